import os
import shutil

from .apk import ApkConfig
from .cargo import artifact_path, cargo_ndk
from .cli_logger import logger
from .config import load_project
from .dylibs import get_libs_search_paths
from .manifest import effective_min_sdk_version, finalize_for_artifact, initialize_manifest
from .ndk import Ndk
from .signing import resolve_signing_key
from .target import resolve_build_targets

CARGO = "cargo"


class ApkBuilder:
    """Drives cargo and the SDK tools to turn a crate into an installable APK.

    Targets are built one after another. A package is only aligned and signed
    once every target has compiled and been staged, so a failure part way
    through never leaves a usable APK behind.
    """

    def __init__(self, cmd, ndk, project, device_serial=None):
        self.cmd = cmd
        self.ndk = ndk
        self.project = project
        self.device_serial = device_serial
        if self.cmd.package_name is None:
            self.cmd.package_name = project.name
        self.build_targets = resolve_build_targets(
            ndk,
            requested_triple=cmd.target,
            declared_targets=project.build_targets,
            device_serial=device_serial,
        )
        self.min_sdk_version = effective_min_sdk_version(project.android_manifest.sdk.min_sdk_version)
        self.build_dir = os.path.join(cmd.target_dir, cmd.profile.dir_name, "apk")

    @classmethod
    def from_subcommand(cls, cmd, device_serial=None, ndk=None):
        ndk = ndk or Ndk.from_env()
        project = load_project(cmd.manifest_path)
        return cls(cmd, ndk, project, device_serial=device_serial)

    def _cargo(self, subcommand, target, extra_args=(), stream=True):
        env = cargo_ndk(self.ndk, target, self.min_sdk_version, self.cmd.target_dir)
        command = [CARGO, subcommand, "--target", target.rust_triple] + self.cmd.cargo_args() + list(extra_args)
        self.ndk.runner.run(command, env=env, cwd=self.cmd.project_root, stream=stream)

    def staging_dir(self, artifact):
        return os.path.join(self.build_dir, artifact.name)

    def check(self):
        for target in self.build_targets:
            logger.info(f"Checking {self.project.name} for {target.rust_triple}")
            self._cargo("check", target)
        logger.success("Check finished.")

    def _search_paths(self, target):
        profile_dir = self.cmd.profile.dir_name
        paths = get_libs_search_paths(self.cmd.target_dir, target.rust_triple, profile_dir)
        paths.append(os.path.join(self.cmd.target_dir, target.rust_triple, profile_dir, "deps"))
        return paths

    def _apk_config(self, artifact):
        project = self.project
        profile = self.cmd.profile
        manifest = initialize_manifest(project.android_manifest, project.version, self.ndk, profile)
        manifest = finalize_for_artifact(manifest, artifact)
        return ApkConfig(
            ndk=self.ndk,
            build_dir=self.staging_dir(artifact),
            apk_name=project.apk_name or artifact.name,
            manifest=manifest,
            assets=project.resolve_path(project.assets),
            resources=project.resolve_path(project.resources),
            disable_aapt_compression=profile.is_dev,
            strip=project.strip,
            reverse_port_forward=project.reverse_port_forward,
        )

    def build(self, artifact):
        """Compile ``artifact`` for every target and package it into a signed APK.

        On failure the staging directory is removed before the error propagates.
        """
        config = self._apk_config(artifact)
        try:
            return self._build(artifact, config)
        except BaseException:
            logger.warning(f"Build of {artifact.name} failed, removing {config.build_dir}")
            shutil.rmtree(config.build_dir, ignore_errors=True)
            raise

    def _build(self, artifact, config):
        apk = config.create_apk()
        runtime_libs = self.project.resolve_path(self.project.runtime_libs)

        for target in self.build_targets:
            logger.info(f"Building {artifact.name} for {target.rust_triple}")
            self._cargo("build", target, artifact.cargo_args())

            lib = artifact_path(self.cmd.target_dir, target, self.cmd.profile, artifact)
            search_paths = self._search_paths(target)
            logger.info(f"Bundling libraries for {target.android_abi}")
            apk.add_library(lib, target, search_paths)
            if runtime_libs:
                apk.add_runtime_libraries(runtime_libs, target, search_paths)

        key = resolve_signing_key(self.project, self.cmd.profile, self.ndk)
        signed = apk.align().sign(key)
        logger.success(f"Built {signed.path}")
        return signed

    def run(self, artifact, no_logs=False):
        apk = self.build(artifact)
        apk.install(self.device_serial)
        apk.start(self.device_serial)
        if not no_logs:
            apk.logcat(self.device_serial)
        return apk

    def gdb(self, artifact):
        self.run(artifact, no_logs=True)
        self.ndk.ndk_gdb(self.staging_dir(artifact), self.device_serial)

    def default(self, cargo_cmd, args=()):
        """Run any cargo subcommand with the NDK toolchain configured for each target."""
        for target in self.build_targets:
            logger.info(f"Running cargo {cargo_cmd} for {target.rust_triple}")
            self._cargo(cargo_cmd, target, args)
