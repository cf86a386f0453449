import os
import shutil
import sys
import tempfile

from packaging.version import InvalidVersion, parse as parse_version

from .cli_logger import logger
from .errors import (
    BuildToolsNotFoundError,
    CommandNotFoundError,
    IoPathError,
    NdkNotFoundError,
    NoPlatformFoundError,
    PathNotFoundError,
    PlatformNotFoundError,
    SdkNotFoundError,
    ToolchainBinaryNotFoundError,
    UnsupportedHostError,
)
from .target import Target
from .utils.command_executor import CommandRunner

IS_WINDOWS = sys.platform.startswith("win")
EXE = ".exe" if IS_WINDOWS else ""
BAT = ".bat" if IS_WINDOWS else ""
CMD = ".cmd" if IS_WINDOWS else ""

NDK_ENV_VARS = ("ANDROID_NDK_ROOT", "ANDROID_NDK_HOME", "ANDROID_NDK_PATH", "NDK_HOME")

DEBUG_KEYSTORE = "debug.keystore"
DEBUG_KEY_PASSWORD = "android"
DEBUG_KEY_ALIAS = "androiddebugkey"
DEBUG_KEY_DNAME = "CN=Android Debug,O=Android,C=US"
DEBUG_KEY_VALIDITY_DAYS = 10000

# Highest API level probed when looking for a sysroot platform directory.
MAX_PLATFORM_PROBE = 100


class Key:
    """A keystore and the password that unlocks it."""

    def __init__(self, path, password):
        self.path = path
        self.password = password

    def __eq__(self, other):
        if not isinstance(other, Key):
            return NotImplemented
        return (self.path, self.password) == (other.path, other.password)

    def __repr__(self):
        return f"Key(path={self.path!r})"


def _version_sort_key(name):
    try:
        return (1, parse_version(name), name)
    except InvalidVersion:
        return (0, parse_version("0"), name)


def _list_dirs(path):
    try:
        return [entry.name for entry in os.scandir(path) if entry.is_dir()]
    except OSError:
        raise PathNotFoundError(path) from None


def _platform_level(name):
    if not name.startswith("android-"):
        return None
    level = name[len("android-"):]
    return int(level) if level.isdigit() else None


class Ndk:
    """The installed Android SDK and NDK, discovered once per invocation.

    Every query is a pure function of the discovered paths. The only state
    that outlives the process is the debug keystore in ``android_dir``.
    """

    def __init__(self, sdk_path, ndk_path, build_tools_version, build_tag, platforms,
                 runner=None, android_dir=None):
        self.sdk_path = sdk_path
        self.ndk_path = ndk_path
        self.build_tools_version = build_tools_version
        self.build_tag = build_tag
        self.platforms = sorted(platforms)
        self.runner = runner or CommandRunner()
        self.android_dir = android_dir or os.path.join(os.path.expanduser("~"), ".android")

    @classmethod
    def from_env(cls, environ=None, runner=None, android_dir=None):
        environ = os.environ if environ is None else environ

        sdk_path = environ.get("ANDROID_SDK_ROOT")
        if not sdk_path and environ.get("ANDROID_HOME"):
            logger.warning(
                "You use environment variable ANDROID_HOME that is deprecated. "
                "Please, remove it and use ANDROID_SDK_ROOT instead. Now ANDROID_HOME is used."
            )
            sdk_path = environ["ANDROID_HOME"]
        if not sdk_path:
            raise SdkNotFoundError()

        ndk_path = next((environ[var] for var in NDK_ENV_VARS if environ.get(var)), None)
        if not ndk_path:
            bundled = os.path.join(sdk_path, "ndk-bundle")
            if not os.path.isdir(bundled):
                raise NdkNotFoundError()
            ndk_path = bundled

        build_tools_dir = os.path.join(sdk_path, "build-tools")
        versions = [name for name in _list_dirs(build_tools_dir) if name[:1].isdigit()]
        if not versions:
            raise BuildToolsNotFoundError(build_tools_dir)
        build_tools_version = max(versions, key=_version_sort_key)

        supported = _ndk_platform_levels(ndk_path)
        platforms_dir = os.path.join(sdk_path, "platforms")
        platforms = sorted(
            level for level in map(_platform_level, _list_dirs(platforms_dir))
            if level is not None and level in supported
        )
        if not platforms:
            raise NoPlatformFoundError()

        return cls(
            sdk_path,
            ndk_path,
            build_tools_version,
            _read_build_tag(ndk_path),
            platforms,
            runner=runner,
            android_dir=android_dir,
        )

    # -------------------- SDK tools --------------------

    def build_tool(self, tool):
        path = os.path.join(self.sdk_path, "build-tools", self.build_tools_version, tool)
        if not os.path.exists(path):
            raise CommandNotFoundError(tool)
        return os.path.realpath(path)

    def platform_tool_path(self, tool):
        path = os.path.join(self.sdk_path, "platform-tools", tool)
        if not os.path.exists(path):
            raise CommandNotFoundError(tool)
        return os.path.realpath(path)

    def adb_path(self):
        return self.platform_tool_path(f"adb{EXE}")

    def adb(self, device_serial=None):
        """Return the adb command prefix, pinned to a device when a serial is given."""
        adb = [self.adb_path()]
        if device_serial:
            adb += ["-s", device_serial]
        return adb

    def highest_supported_platform(self):
        return max(self.platforms)

    def default_platform(self):
        return self.highest_supported_platform()

    def platform_dir(self, platform):
        path = os.path.join(self.sdk_path, "platforms", f"android-{platform}")
        if not os.path.exists(path):
            raise PlatformNotFoundError(platform)
        return path

    def android_jar(self, platform):
        android_jar = os.path.join(self.platform_dir(platform), "android.jar")
        if not os.path.exists(android_jar):
            raise PathNotFoundError(android_jar)
        return android_jar

    # -------------------- NDK toolchain --------------------

    @staticmethod
    def host_arch(environ=None):
        environ = os.environ if environ is None else environ
        host = environ.get("HOST", "")
        if "linux" in host:
            return "linux"
        if "macos" in host or "darwin" in host:
            return "darwin"
        if "windows" in host:
            return "windows"
        if sys.platform.startswith("linux"):
            return "linux"
        if sys.platform == "darwin":
            return "darwin"
        if IS_WINDOWS:
            return "windows"
        raise UnsupportedHostError(host or sys.platform)

    def toolchain_dir(self):
        arch = self.host_arch()
        prebuilt = os.path.join(self.ndk_path, "toolchains", "llvm", "prebuilt")
        toolchain_dir = os.path.join(prebuilt, f"{arch}-x86_64")
        if not os.path.exists(toolchain_dir):
            toolchain_dir = os.path.join(prebuilt, arch)
        if not os.path.exists(toolchain_dir):
            raise PathNotFoundError(toolchain_dir)
        return toolchain_dir

    def clang(self):
        bin_path = os.path.join(self.toolchain_dir(), "bin")
        clang = os.path.join(bin_path, f"clang{EXE}")
        if not os.path.exists(clang):
            raise PathNotFoundError(clang)
        clang_pp = os.path.join(bin_path, f"clang++{EXE}")
        if not os.path.exists(clang_pp):
            raise PathNotFoundError(clang_pp)
        return clang, clang_pp

    def toolchain_bin(self, name, target):
        """Locate a binutils tool, preferring the GNU flavour while the NDK ships it."""
        toolchain_path = os.path.join(self.toolchain_dir(), "bin")
        gnu_bin = f"{target.ndk_triple}-{name}{EXE}"
        gnu_path = os.path.join(toolchain_path, gnu_bin)
        if os.path.exists(gnu_path):
            return gnu_path
        llvm_bin = f"llvm-{name}{EXE}"
        llvm_path = os.path.join(toolchain_path, llvm_bin)
        if os.path.exists(llvm_path):
            return llvm_path
        raise ToolchainBinaryNotFoundError(toolchain_path, gnu_bin, llvm_bin)

    def prebuilt_dir(self):
        arch = self.host_arch()
        prebuilt_dir = os.path.join(self.ndk_path, "prebuilt", f"{arch}-x86_64")
        if not os.path.exists(prebuilt_dir):
            raise PathNotFoundError(prebuilt_dir)
        return prebuilt_dir

    def sysroot_lib_dir(self, target):
        path = os.path.join(self.toolchain_dir(), "sysroot", "usr", "lib", target.ndk_triple)
        if not os.path.exists(path):
            raise PathNotFoundError(path)
        return path

    def sysroot_platform_lib_dir(self, target, min_sdk_version):
        """Return the sysroot directory holding the platform stubs for ``min_sdk_version``.

        The NDK only carries a directory for the API levels whose libraries
        changed, so the nearest level at or above the request is used, then the
        lowest one available.
        """
        sysroot_lib_dir = self.sysroot_lib_dir(target)
        candidates = list(range(min_sdk_version, MAX_PLATFORM_PROBE)) + list(range(1, min_sdk_version))
        for level in candidates:
            path = os.path.join(sysroot_lib_dir, str(level))
            if os.path.exists(path):
                return path
        raise PlatformNotFoundError(min_sdk_version)

    # -------------------- Device --------------------

    def detect_abi(self, device_serial=None):
        stdout = self.runner.run(self.adb(device_serial) + ["shell", "getprop", "ro.product.cpu.abi"])
        return Target.from_android_abi(stdout.strip())

    def ndk_gdb(self, launch_dir, device_serial=None):
        abi = self.detect_abi(device_serial)
        jni_dir = os.path.join(launch_dir, "jni")
        android_mk = os.path.join(jni_dir, "Android.mk")
        try:
            os.makedirs(jni_dir, exist_ok=True)
            with open(android_mk, "w") as f:
                f.write(f"APP_ABI=\"{abi.android_abi}\"\nTARGET_OUT=\"\"\n")
        except OSError as e:
            raise IoPathError(android_mk, e) from e

        ndk_gdb = [os.path.join(self.prebuilt_dir(), "bin", f"ndk-gdb{CMD}")]
        if device_serial:
            ndk_gdb += ["-s", device_serial]
        ndk_gdb += ["--adb", self.adb_path()]
        logger.info(f"Launching ndk-gdb for {abi.android_abi} in {launch_dir}")
        self.runner.run(ndk_gdb, cwd=launch_dir, interactive=True)

    # -------------------- Signing --------------------

    def keytool(self):
        keytool = shutil.which(f"keytool{EXE}")
        if keytool:
            return keytool
        java_home = os.environ.get("JAVA_HOME")
        if java_home:
            keytool = os.path.join(java_home, "bin", f"keytool{EXE}")
            if os.path.exists(keytool):
                return keytool
        raise CommandNotFoundError("keytool")

    def debug_key(self):
        """Return the per-user debug key, generating it on first use.

        keytool writes into a private directory next to the final path and the
        result is published with a hard link, which fails if another process
        got there first. The loser then uses the winner's keystore, so every
        caller ends up signing with the same key.
        """
        path = os.path.join(self.android_dir, DEBUG_KEYSTORE)
        if os.path.exists(path):
            return Key(path, DEBUG_KEY_PASSWORD)

        logger.info(f"Generating debug keystore at {path}")
        try:
            os.makedirs(self.android_dir, exist_ok=True)
            staging_dir = tempfile.mkdtemp(prefix=".debug-keystore-", dir=self.android_dir)
        except OSError as e:
            raise IoPathError(self.android_dir, e) from e

        try:
            staged = os.path.join(staging_dir, DEBUG_KEYSTORE)
            self.runner.run([
                self.keytool(),
                "-genkey",
                "-v",
                "-keystore", staged,
                "-storepass", DEBUG_KEY_PASSWORD,
                "-alias", DEBUG_KEY_ALIAS,
                "-keypass", DEBUG_KEY_PASSWORD,
                "-dname", DEBUG_KEY_DNAME,
                "-keyalg", "RSA",
                "-keysize", "2048",
                "-validity", str(DEBUG_KEY_VALIDITY_DAYS),
            ])
            try:
                os.link(staged, path)
            except FileExistsError:
                logger.info("Another process created the debug keystore first, reusing it.")
            except OSError as e:
                raise IoPathError(path, e) from e
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

        return Key(path, DEBUG_KEY_PASSWORD)


def _read_build_tag(ndk_path):
    """Return the patch field of ``Pkg.Revision``, which AOSP increments across releases."""
    properties = os.path.join(ndk_path, "source.properties")
    try:
        with open(properties, "r") as f:
            lines = f.read().splitlines()
    except OSError:
        logger.warning(f"Could not read {properties}, assuming an old NDK.")
        return 0

    for line in lines:
        key, sep, value = line.partition("=")
        if not sep or key.strip() != "Pkg.Revision":
            continue
        parts = value.strip().split(".")
        if len(parts) < 3:
            return 0
        # Can carry a suffix such as `XXX-beta1`
        patch = parts[2].split("-")[0]
        return int(patch) if patch.isdigit() else 0
    return 0


def _ndk_platform_levels(ndk_path):
    """Return the API levels the NDK can target.

    Older NDKs ship a ``platforms/android-N`` directory per level; newer ones
    only describe the supported range in ``build/core/platforms.mk``.
    """
    platforms_dir = os.path.join(ndk_path, "platforms")
    if os.path.isdir(platforms_dir):
        return {level for level in map(_platform_level, _list_dirs(platforms_dir)) if level is not None}

    platforms_mk = os.path.join(ndk_path, "build", "core", "platforms.mk")
    try:
        with open(platforms_mk, "r") as f:
            lines = f.read().splitlines()
    except OSError:
        raise PathNotFoundError(platforms_mk) from None

    values = {}
    for line in lines:
        key, sep, value = line.partition(":=")
        if sep:
            values[key.strip()] = value.strip()
    try:
        low = int(values["NDK_MIN_PLATFORM_LEVEL"])
        high = int(values["NDK_MAX_PLATFORM_LEVEL"])
    except (KeyError, ValueError):
        raise NoPlatformFoundError() from None
    return set(range(low, high + 1))
