import click

from ..decorators import handle_exceptions, project_options
from .project import create_builder


@click.command()
@project_options
@click.pass_context
@handle_exceptions
def gdb(ctx, **options):
    """Run the APK and attach ndk-gdb to it."""
    builder = create_builder(ctx, **options)
    for artifact in builder.cmd.artifacts:
        builder.gdb(artifact)
