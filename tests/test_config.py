import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from ndkapk import config
from ndkapk.errors import ConfigError, ManifestError, UnsupportedTargetError
from ndkapk.target import Target

CARGO_TOML = """
[package]
name = "game"
version = "0.1.0"

[package.metadata.android]
apk_name = "my-game"
build_targets = ["aarch64-linux-android", "armv7-linux-androideabi"]
assets = "assets"
resources = "res"
runtime_libs = "libs"
strip = "split"

[package.metadata.android.sdk]
min_sdk_version = 26
target_sdk_version = 31

[[package.metadata.android.uses_permission]]
name = "android.permission.INTERNET"

[package.metadata.android.application]
label = "Game"

[package.metadata.android.application.activity]
orientation = "landscape"

[package.metadata.android.signing.release]
path = "release.keystore"
keystore_password = "secret"

[package.metadata.android.reverse_port_forward]
"tcp:8080" = "tcp:8080"
"""


@patch("ndkapk.config.logger")
class TestConfig(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.test_dir)
        self.manifest_path = os.path.join(self.test_dir, config.CONFIG_FILE)

    def write(self, content):
        with open(self.manifest_path, "w") as f:
            f.write(content)

    def test_load_project(self, mock_logger):
        self.write(CARGO_TOML)
        project = config.load_project(self.manifest_path)

        self.assertEqual(project.name, "game")
        self.assertEqual(project.version, "0.1.0")
        self.assertEqual(project.apk_name, "my-game")
        self.assertEqual(project.build_targets, [Target.ARM64_V8A, Target.ARM_V7A])
        self.assertEqual(project.strip, "split")
        self.assertEqual(project.resolve_path(project.assets), os.path.join(self.test_dir, "assets"))
        self.assertEqual(project.signing["release"].keystore_password, "secret")
        self.assertEqual(project.reverse_port_forward, {"tcp:8080": "tcp:8080"})

        manifest = project.android_manifest
        self.assertEqual(manifest.sdk.min_sdk_version, 26)
        self.assertEqual(manifest.application.label, "Game")
        self.assertEqual(manifest.application.activity.orientation, "landscape")
        self.assertEqual(manifest.uses_permission[0].name, "android.permission.INTERNET")

    def test_load_config_from_directory(self, mock_logger):
        self.write(CARGO_TOML)
        self.assertEqual(config.load_config(self.test_dir)["package"]["name"], "game")

    def test_missing_file(self, mock_logger):
        with self.assertRaises(ConfigError):
            config.load_config(self.test_dir)

    def test_invalid_toml(self, mock_logger):
        self.write("[package\nname = ")
        with self.assertRaises(ConfigError):
            config.load_config(self.manifest_path)

    def test_minimal_project(self, mock_logger):
        project = config.parse_project({"package": {"name": "game", "version": "1.0.0"}}, self.test_dir)
        self.assertEqual(project.build_targets, [])
        self.assertEqual(project.signing, {})
        self.assertIsNone(project.resolve_path(project.assets))
        self.assertIsNone(project.android_manifest.version_name)

    def test_validation(self, mock_logger):
        package = {"name": "game", "version": "1.0.0"}
        cases = [
            ({}, ConfigError),
            ({"package": {"name": "game"}}, ConfigError),
            ({"package": {"name": "game", "version": {"workspace": True}}}, ConfigError),
            ({"package": dict(package, metadata={"android": {"strip": "all"}})}, ConfigError),
            ({"package": dict(package, metadata={"android": {"build_targets": ["mips-linux-android"]}})},
             UnsupportedTargetError),
            ({"package": dict(package, metadata={"android": {"signing": {"release": {"path": "k"}}}})},
             ConfigError),
            ({"package": dict(package, metadata={"android": {"label": "Game"}})}, ManifestError),
        ]
        for conf, error in cases:
            with self.subTest(conf=conf):
                with self.assertRaises(error):
                    config.parse_project(conf, self.test_dir)


if __name__ == '__main__':
    unittest.main()
