import click
from .commands import *

PASSTHROUGH_MARKER = "--"


class NdkApkGroup(click.Group):
    """Command group that treats a leading ``--`` as the ``ndk`` passthrough command."""

    def parse_args(self, ctx, args):
        args = list(args)
        index = 0
        while index < len(args) and args[index] in ("--path", "-p"):
            index += 2
        if index < len(args) and args[index] == PASSTHROUGH_MARKER:
            args[index] = ndk.name
        return super().parse_args(ctx, args)


@click.group(cls=NdkApkGroup)
@click.option("--path", "-p", default=".", help="Path to the crate directory.")
@click.pass_context
def cli(ctx, path):
    """Build and run Rust crates as Android APKs."""
    ctx.obj = {"path": path}

cli.add_command(check)
cli.add_command(build)
cli.add_command(run)
cli.add_command(gdb)
cli.add_command(ndk)
cli.add_command(version)
cli.add_command(doctor)

if __name__ == '__main__':
    cli()
