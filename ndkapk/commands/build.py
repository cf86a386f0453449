import click

from ..cli_logger import logger
from ..decorators import handle_exceptions, project_options
from .project import create_builder


@click.command(context_settings={"ignore_unknown_options": True})
@project_options
@click.argument("cargo_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
@handle_exceptions
def build(ctx, cargo_args, **options):
    """Compile the crate and package it into a signed APK.

    Arguments after `--` are passed to `cargo build`.
    """
    builder = create_builder(ctx, args=cargo_args, **options)
    for artifact in builder.cmd.artifacts:
        apk = builder.build(artifact)
        logger.success(f"APK for {artifact.name} written to {apk.path}")
