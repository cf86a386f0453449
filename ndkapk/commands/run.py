import click

from ..decorators import handle_exceptions, project_options
from .project import create_builder


@click.command()
@project_options
@click.option("--no-logs", is_flag=True, help="Do not follow logcat after starting the app.")
@click.pass_context
@handle_exceptions
def run(ctx, no_logs, **options):
    """Build, install and start the APK on a device."""
    builder = create_builder(ctx, **options)
    for artifact in builder.cmd.artifacts:
        builder.run(artifact, no_logs=no_logs)
