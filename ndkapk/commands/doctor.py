import click

from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..errors import NdkApkError
from ..ndk import Ndk
from ..target import Target


def _check(description, query):
    try:
        result = query()
    except NdkApkError as e:
        logger.warning(f"{description}: {e.format_message()}")
        return False
    logger.step_info(f"- {description}: {result}", indent=2)
    return True


@click.command()
@click.pass_context
@handle_exceptions
def doctor(ctx):
    """Check that the Android SDK, NDK and signing tools can be found."""
    logger.info("Running environment check...")
    ndk = Ndk.from_env()
    logger.step_info(f"- Android SDK: {ndk.sdk_path}", indent=2)
    logger.step_info(f"- Android NDK: {ndk.ndk_path} (build {ndk.build_tag})", indent=2)
    logger.step_info(f"- Build tools: {ndk.build_tools_version}", indent=2)
    logger.step_info(f"- Platforms: {', '.join(str(p) for p in ndk.platforms)}", indent=2)

    checks = [
        _check("Toolchain", ndk.toolchain_dir),
        _check("clang", lambda: ndk.clang()[0]),
        _check("readelf", lambda: ndk.toolchain_bin("readelf", Target.ARM64_V8A)),
        _check("adb", ndk.adb_path),
        _check("keytool", ndk.keytool),
    ]
    if not all(checks):
        raise NdkApkError("Environment check found issues. Please review the warnings above.")
    logger.success("Environment check completed successfully.")
