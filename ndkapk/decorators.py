import functools
import os
import sys

import click

from .cli_logger import logger
from .config import CONFIG_FILE
from .errors import NdkApkError


def handle_exceptions(func):
    """Log failures of a CLI command and turn them into exit status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.Abort:
            logger.warning("\nCommand aborted by user.")
            sys.exit(1)
        except NdkApkError as e:
            logger.error(f"Error: {e.format_message()}")
            sys.exit(1)
        except click.ClickException:
            raise
        except Exception as e:
            logger.error(f"\nAn unexpected error occurred: {e}")
            logger.exception(*sys.exc_info())
            sys.exit(1)
    return wrapper


_PROJECT_OPTIONS = [
    click.option("--manifest-path", type=click.Path(dir_okay=False),
                 help=f"Path to {CONFIG_FILE}, defaults to the one in --path."),
    click.option("--target", "target", default=None, help="Build for a single target triple."),
    click.option("--release", is_flag=True, help="Build with the release profile."),
    click.option("--profile", default=None, help="Build with the named cargo profile."),
    click.option("--example", default=None, help="Package the named example instead of the library."),
    click.option("--target-dir", type=click.Path(file_okay=False), default=None,
                 help="Directory for all generated artifacts."),
    click.option("--device", "-d", "device_serial", default=None,
                 help="Serial of the device to detect, install to and run on."),
]


def project_options(func):
    """Add the options that select the crate, profile, target and device."""
    for option in reversed(_PROJECT_OPTIONS):
        func = option(func)
    return func


def default_manifest_path(ctx):
    path = (ctx.obj or {}).get("path", ".")
    return os.path.join(path, CONFIG_FILE)
