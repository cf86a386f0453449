import importlib.metadata
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from click.testing import CliRunner

from fakes import touch
from ndkapk.errors import CommandNotFoundError, ConfigError, MissingReleaseKeyError, SdkNotFoundError
from ndkapk.main import cli
from ndkapk.ndk import Ndk
from ndkapk.subcommand import Profile, Root


class TestMain(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()
        self.test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.test_dir)
        self.manifest_path = touch(os.path.join(self.test_dir, "Cargo.toml"))

        patcher = patch("ndkapk.commands.project.ApkBuilder")
        self.mock_builder_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.builder = self.mock_builder_cls.from_subcommand.return_value
        self.builder.cmd.artifacts = [Root("game")]

    def invoke(self, *args):
        return self.runner.invoke(cli, ["--path", self.test_dir] + list(args))

    def subcommand(self):
        return self.mock_builder_cls.from_subcommand.call_args[0][0]

    @patch("importlib.metadata.version", return_value="0.1.0")
    def test_version(self, mock_version):
        result = self.runner.invoke(cli, ["version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("ndkapk version 0.1.0", result.output)
        mock_version.assert_called_once_with("ndkapk")

    @patch("importlib.metadata.version", side_effect=importlib.metadata.PackageNotFoundError)
    def test_version_not_installed(self, mock_version):
        result = self.runner.invoke(cli, ["version"])
        self.assertEqual(result.exit_code, 1)

    def test_build(self):
        result = self.invoke("build", "--release", "-d", "serial1", "--", "--features", "vulkan")

        self.assertEqual(result.exit_code, 0, result.output)
        cmd = self.subcommand()
        self.assertEqual(cmd.manifest_path, self.manifest_path)
        self.assertEqual(cmd.profile, Profile.RELEASE)
        self.assertEqual(cmd.args, ["--features", "vulkan"])
        self.assertEqual(self.mock_builder_cls.from_subcommand.call_args[1]["device_serial"], "serial1")
        self.builder.build.assert_called_once_with(Root("game"))

    def test_build_custom_profile_and_example(self):
        result = self.invoke("build", "--profile", "bench", "--example", "demo",
                             "--target", "x86_64-linux-android")
        self.assertEqual(result.exit_code, 0, result.output)
        cmd = self.subcommand()
        self.assertEqual(cmd.profile, Profile("bench"))
        self.assertEqual(cmd.example, "demo")
        self.assertEqual(cmd.target, "x86_64-linux-android")

    def test_release_conflicts_with_profile(self):
        result = self.invoke("build", "--release", "--profile", "bench")
        self.assertEqual(result.exit_code, 2)
        self.mock_builder_cls.from_subcommand.assert_not_called()

    def test_pipeline_errors_exit_with_status_1(self):
        self.builder.build.side_effect = MissingReleaseKeyError("release")
        result = self.invoke("build", "--release")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("release", result.output)

    def test_missing_manifest(self):
        result = self.runner.invoke(cli, ["--path", os.path.join(self.test_dir, "missing"), "check"])
        self.assertEqual(result.exit_code, 1)
        self.mock_builder_cls.from_subcommand.assert_not_called()

    def test_unexpected_errors_exit_with_status_1(self):
        self.builder.check.side_effect = RuntimeError("boom")
        result = self.invoke("check")
        self.assertEqual(result.exit_code, 1)

    def test_check(self):
        result = self.invoke("check", "--target-dir", "out")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(self.subcommand().target_dir, os.path.abspath("out"))
        self.builder.check.assert_called_once_with()

    def test_run(self):
        result = self.invoke("run", "--no-logs")
        self.assertEqual(result.exit_code, 0, result.output)
        self.builder.run.assert_called_once_with(Root("game"), no_logs=True)

    def test_gdb(self):
        result = self.invoke("gdb")
        self.assertEqual(result.exit_code, 0, result.output)
        self.builder.gdb.assert_called_once_with(Root("game"))

    def test_double_dash_is_passthrough(self):
        result = self.invoke("--", "doc", "--open")
        self.assertEqual(result.exit_code, 0, result.output)
        self.builder.default.assert_called_once_with("doc", ("--open",))

    def test_ndk_alias(self):
        result = self.invoke("ndk", "--release", "clippy", "--", "-D", "warnings")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(self.subcommand().profile, Profile.RELEASE)
        self.builder.default.assert_called_once_with("clippy", ("--", "-D", "warnings"))

    def test_builder_errors_from_setup(self):
        self.mock_builder_cls.from_subcommand.side_effect = ConfigError("bad config")
        result = self.invoke("build")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("bad config", result.output)


class TestDoctor(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()
        patcher = patch.object(Ndk, "from_env")
        self.ndk = patcher.start().return_value
        self.addCleanup(patcher.stop)
        self.ndk.platforms = [30, 33]
        self.ndk.clang.return_value = ("/ndk/bin/clang", "/ndk/bin/clang++")

    def test_healthy_environment(self):
        result = self.runner.invoke(cli, ["doctor"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("30, 33", result.output)

    def test_missing_tool_is_reported(self):
        self.ndk.keytool.side_effect = CommandNotFoundError("keytool")
        result = self.runner.invoke(cli, ["doctor"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("keytool", result.output)

    def test_no_sdk(self):
        with patch.object(Ndk, "from_env", side_effect=SdkNotFoundError()):
            result = self.runner.invoke(cli, ["doctor"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("ANDROID_SDK_ROOT", result.output)


if __name__ == '__main__':
    unittest.main()
