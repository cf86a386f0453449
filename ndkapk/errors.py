import click


class NdkApkError(click.ClickException):
    """Base class for every failure the packaging pipeline reports."""


# -------------------- Environment discovery --------------------

class SdkNotFoundError(NdkApkError):
    def __init__(self):
        super().__init__(
            "Please set the path to the Android SDK with either the $ANDROID_SDK_ROOT or "
            "the $ANDROID_HOME environment variable."
        )


class NdkNotFoundError(NdkApkError):
    def __init__(self):
        super().__init__(
            "Please set the path to the Android NDK with either the $ANDROID_NDK_ROOT or "
            "the $ANDROID_NDK_HOME environment variable."
        )


class BuildToolsNotFoundError(NdkApkError):
    def __init__(self, build_tools_dir):
        self.build_tools_dir = build_tools_dir
        super().__init__(f"Android SDK has no build tools in {build_tools_dir}.")


class NoPlatformFoundError(NdkApkError):
    def __init__(self):
        super().__init__("Android SDK has no platforms installed that the NDK supports.")


class PlatformNotFoundError(NdkApkError):
    def __init__(self, level):
        self.level = level
        super().__init__(f"Platform {level} is not installed.")


class PathNotFoundError(NdkApkError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Path {path} doesn't exist.")


class CommandNotFoundError(NdkApkError):
    def __init__(self, command):
        self.command = command
        super().__init__(f"Command {command} not found.")


class ToolchainBinaryNotFoundError(NdkApkError):
    def __init__(self, toolchain_path, gnu_bin, llvm_bin):
        self.toolchain_path = toolchain_path
        super().__init__(
            f"Neither {gnu_bin} nor {llvm_bin} was found in {toolchain_path}."
        )


# -------------------- Target resolution --------------------

class UnsupportedTargetError(NdkApkError):
    def __init__(self, name):
        self.name = name
        super().__init__(f"Target '{name}' is not supported.")


class UnsupportedHostError(NdkApkError):
    def __init__(self, host):
        self.host = host
        super().__init__(f"Host {host} is not supported.")


# -------------------- Configuration --------------------

class ConfigError(NdkApkError):
    pass


class ManifestError(ConfigError):
    pass


class InvalidSemverError(ConfigError):
    def __init__(self, version, reason="not a valid semantic version"):
        self.version = version
        super().__init__(f"Invalid version '{version}': {reason}.")


# -------------------- Dependency resolution --------------------

class LibraryNotFoundError(NdkApkError):
    def __init__(self, name, needed_by=None):
        self.name = name
        self.needed_by = needed_by
        message = f"Shared library '{name}' not found in any search path"
        if needed_by:
            message += f" (needed by {needed_by})"
        super().__init__(message + ".")


# -------------------- Signing --------------------

class MissingReleaseKeyError(NdkApkError):
    def __init__(self, profile_name):
        self.profile_name = profile_name
        super().__init__(
            f"No signing key configured for profile '{profile_name}'. Add a "
            f"[package.metadata.android.signing.{profile_name}] table with 'path' "
            f"and 'keystore_password' to Cargo.toml."
        )


# -------------------- External commands / IO --------------------

class CommandFailedError(NdkApkError):
    def __init__(self, command, returncode, output=""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{' '.join(str(part) for part in self.command)}' had a non-zero exit code ({returncode})."
        )


class IoPathError(NdkApkError):
    def __init__(self, path, error):
        self.path = path
        self.error = error
        super().__init__(f"{path}: {error}")
