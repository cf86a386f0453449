"""APK assembly with aapt, zipalign and apksigner.

A package moves through three stages, each represented by its own class so a
step cannot be skipped: ``UnalignedApk`` accepts native libraries,
``UnsignedApk`` has been zip-aligned and only ``Apk`` (signed) can be
installed on a device.
"""
import os
import shutil

from .cli_logger import logger
from .dylibs import bundle_directory, bundle_recursive
from .errors import IoPathError, NdkApkError, PathNotFoundError
from .manifest import MAIN_ACTION, effective_min_sdk_version
from .ndk import BAT, EXE


class ApkConfig:
    def __init__(self, ndk, build_dir, apk_name, manifest, assets=None, resources=None,
                 disable_aapt_compression=False, strip="default", reverse_port_forward=None):
        self.ndk = ndk
        self.build_dir = build_dir
        self.apk_name = apk_name
        self.manifest = manifest
        self.assets = assets
        self.resources = resources
        self.disable_aapt_compression = disable_aapt_compression
        self.strip = strip
        self.reverse_port_forward = reverse_port_forward or {}

    @property
    def min_sdk_version(self):
        return effective_min_sdk_version(self.manifest.sdk.min_sdk_version)

    @property
    def unaligned_apk(self):
        return os.path.join(self.build_dir, f"{self.apk_name}-unaligned.apk")

    @property
    def apk(self):
        return os.path.join(self.build_dir, f"{self.apk_name}.apk")

    def build_tool(self, tool):
        return self.ndk.build_tool(tool)

    def create_apk(self):
        """Write the manifest and let aapt create the package with resources and assets."""
        try:
            os.makedirs(self.build_dir, exist_ok=True)
        except OSError as e:
            raise IoPathError(self.build_dir, e) from e
        self.manifest.write_to(self.build_dir)

        target_sdk_version = self.manifest.sdk.target_sdk_version
        aapt = [
            self.build_tool(f"aapt{EXE}"),
            "package",
            "-f",
            "-F", self.unaligned_apk,
            "-M", "AndroidManifest.xml",
            "-I", self.ndk.android_jar(target_sdk_version),
        ]
        if self.disable_aapt_compression:
            aapt += ["-0", ""]
        if self.resources:
            aapt += ["-S", self.resources]
        if self.assets:
            aapt += ["-A", self.assets]

        logger.info(f"Creating {os.path.basename(self.unaligned_apk)}")
        self.ndk.runner.run(aapt, cwd=self.build_dir)
        return UnalignedApk(self)


class UnalignedApk:
    def __init__(self, config):
        self.config = config
        self._bundled = {}

    def bundled_libs(self, target):
        """Names of the libraries already added for ``target``."""
        return set(self._bundled.get(target, ()))

    def add_lib(self, path, target):
        """Copy one library into ``lib/<abi>/`` and add it to the package."""
        if not os.path.exists(path):
            raise PathNotFoundError(path)
        abi = target.android_abi
        file_name = os.path.basename(path)
        out_dir = os.path.join(self.config.build_dir, "lib", abi)
        staged = os.path.join(out_dir, file_name)
        try:
            os.makedirs(out_dir, exist_ok=True)
            shutil.copyfile(path, staged)
        except OSError as e:
            raise IoPathError(staged, e) from e

        self._strip(staged, target)

        aapt = [self.config.build_tool(f"aapt{EXE}"), "add", self.config.unaligned_apk, f"lib/{abi}/{file_name}"]
        self.config.ndk.runner.run(aapt, cwd=self.config.build_dir)
        self._bundled.setdefault(target, set()).add(file_name)

    def _strip(self, staged, target):
        mode = self.config.strip
        if mode == "default":
            return
        ndk = self.config.ndk
        if mode == "split":
            objcopy = ndk.toolchain_bin("objcopy", target)
            ndk.runner.run([objcopy, "--only-keep-debug", staged, f"{staged}.dwarf"])
        strip = ndk.toolchain_bin("strip", target)
        ndk.runner.run([strip, "--strip-debug", staged])

    def add_library(self, lib, target, search_paths):
        """Add ``lib`` along with every shared object it needs that the device lacks."""
        return bundle_recursive(self, lib, target, search_paths)

    def add_runtime_libraries(self, directory, target, search_paths):
        """Add user-supplied libraries from ``directory`` (or its ``<abi>`` subdirectory)."""
        abi_dir = os.path.join(directory, target.android_abi)
        if os.path.isdir(abi_dir):
            directory = abi_dir
        return bundle_directory(self, directory, target, search_paths)

    def align(self):
        zipalign = [
            self.config.build_tool(f"zipalign{EXE}"),
            "-f", "-v", "4",
            self.config.unaligned_apk,
            self.config.apk,
        ]
        logger.info(f"Aligning {os.path.basename(self.config.apk)}")
        self.config.ndk.runner.run(zipalign, cwd=self.config.build_dir)
        return UnsignedApk(self.config)


class UnsignedApk:
    def __init__(self, config):
        self.config = config

    def sign(self, key):
        apksigner = [
            self.config.build_tool(f"apksigner{BAT}"),
            "sign",
            "--ks", key.path,
            "--ks-pass", f"pass:{key.password}",
            self.config.apk,
        ]
        logger.info(f"Signing {os.path.basename(self.config.apk)}")
        self.config.ndk.runner.run(apksigner, cwd=self.config.build_dir)
        return Apk.from_config(self.config)


class Apk:
    """A signed package that can be installed and launched."""

    def __init__(self, path, package_name, activity_name, ndk, reverse_port_forward=None):
        self.path = path
        self.package_name = package_name
        self.activity_name = activity_name
        self.ndk = ndk
        self.reverse_port_forward = reverse_port_forward or {}

    @classmethod
    def from_config(cls, config):
        manifest = config.manifest
        return cls(
            config.apk,
            manifest.package,
            manifest.application.activity.name,
            config.ndk,
            config.reverse_port_forward,
        )

    def _adb(self, device_serial, *args):
        return self.ndk.runner.run(self.ndk.adb(device_serial) + list(args))

    def install(self, device_serial=None):
        logger.info(f"Installing {self.path}")
        self._adb(device_serial, "install", "-r", self.path)

    def start(self, device_serial=None):
        for device_port, host_port in self.reverse_port_forward.items():
            self._adb(device_serial, "reverse", device_port, host_port)
        logger.info(f"Starting {self.package_name}")
        self._adb(
            device_serial,
            "shell", "am", "start",
            "-a", MAIN_ACTION,
            "-n", f"{self.package_name}/{self.activity_name}",
        )

    def uidof(self, device_serial=None):
        """Return the Linux user id Android assigned to the installed package."""
        output = self._adb(device_serial, "shell", "pm", "list", "package", "-U", self.package_name)
        for line in output.splitlines():
            # package:<name> uid:<uid>
            package, _, uid = line.strip().partition(" uid:")
            if package == f"package:{self.package_name}" and uid.split(",")[0].isdigit():
                return int(uid.split(",")[0])
        raise NdkApkError(f"Package {self.package_name} is not installed.")

    def logcat(self, device_serial=None):
        """Follow the log output of the package until interrupted."""
        uid = self.uidof(device_serial)
        logger.info(f"Following logcat for {self.package_name} (uid {uid})")
        self.ndk.runner.run(
            self.ndk.adb(device_serial) + ["logcat", "-v", "color", "--uid", str(uid)],
            interactive=True,
        )
