import click
import importlib.metadata

from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..errors import NdkApkError


@click.command()
@handle_exceptions
def version():
    """Print the version of ndkapk."""
    try:
        ver = importlib.metadata.version("ndkapk")
    except importlib.metadata.PackageNotFoundError:
        raise NdkApkError("Could not determine the version of ndkapk. Is it installed correctly?") from None
    logger.info(f"ndkapk version {ver}")
