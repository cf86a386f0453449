import click

from ..decorators import handle_exceptions, project_options
from .project import create_builder


@click.command(context_settings={"ignore_unknown_options": True})
@project_options
@click.argument("cargo_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
@handle_exceptions
def check(ctx, cargo_args, **options):
    """Run `cargo check` for every target with the NDK toolchain configured."""
    create_builder(ctx, args=cargo_args, **options).check()
