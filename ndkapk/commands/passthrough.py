import click

from ..decorators import handle_exceptions, project_options
from .project import create_builder


@click.command("ndk", context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@project_options
@click.argument("cargo_cmd")
@click.argument("cargo_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
@handle_exceptions
def ndk(ctx, cargo_cmd, cargo_args, **options):
    """Run any cargo subcommand with the NDK toolchain configured.

    Also available as `ndkapk -- <subcommand> [args]`.
    """
    create_builder(ctx, **options).default(cargo_cmd, cargo_args)
