import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from fakes import FakeRunner, make_ndk, touch
from ndkapk.apk import Apk, ApkConfig, UnsignedApk
from ndkapk.errors import LibraryNotFoundError, NdkApkError
from ndkapk.manifest import AndroidManifest, finalize_for_artifact, initialize_manifest
from ndkapk.ndk import Key
from ndkapk.subcommand import Profile, Root
from ndkapk.target import Target


def readelf_for(graph):
    def handler(call):
        name = os.path.basename(call.command[-1])
        return "".join(
            f" 0x0000000000000001 (NEEDED)             Shared library: [{need}]\n"
            for need in graph.get(name, ())
        )
    return handler


@patch("ndkapk.apk.logger")
@patch("ndkapk.dylibs.logger")
class ApkTestCase(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.test_dir)
        self.runner = FakeRunner()
        with patch("ndkapk.ndk.logger"):
            self.ndk = make_ndk(self.test_dir, runner=self.runner)
        manifest = initialize_manifest(AndroidManifest(), "1.0.0", self.ndk, Profile.DEV)
        self.manifest = finalize_for_artifact(manifest, Root("game"))
        self.build_dir = os.path.join(self.test_dir, "target", "debug", "apk", "game")
        self.out_dir = os.path.join(self.test_dir, "target", "aarch64-linux-android", "debug")

    def config(self, **kwargs):
        return ApkConfig(self.ndk, self.build_dir, "game", self.manifest, **kwargs)

    def staged(self, abi="arm64-v8a"):
        lib_dir = os.path.join(self.build_dir, "lib", abi)
        return sorted(os.listdir(lib_dir)) if os.path.isdir(lib_dir) else []

    def test_create_apk(self, *mocks):
        self.config(disable_aapt_compression=True, assets="/proj/assets", resources="/proj/res").create_apk()

        self.assertTrue(os.path.exists(os.path.join(self.build_dir, "AndroidManifest.xml")))
        aapt = self.runner.calls[0]
        self.assertEqual(aapt.program, "aapt")
        self.assertEqual(aapt.cwd, self.build_dir)
        command = aapt.command
        self.assertEqual(command[1:3], ["package", "-f"])
        self.assertEqual(command[command.index("-F") + 1], os.path.join(self.build_dir, "game-unaligned.apk"))
        self.assertEqual(command[command.index("-M") + 1], "AndroidManifest.xml")
        self.assertTrue(command[command.index("-I") + 1].endswith(os.path.join("android-33", "android.jar")))
        self.assertEqual(command[command.index("-0") + 1], "")
        self.assertEqual(command[command.index("-S") + 1], "/proj/res")
        self.assertEqual(command[command.index("-A") + 1], "/proj/assets")

    def test_create_apk_compressed(self, *mocks):
        self.config().create_apk()
        command = self.runner.calls[0].command
        self.assertNotIn("-0", command)
        self.assertNotIn("-S", command)
        self.assertNotIn("-A", command)

    def test_add_library_bundles_closure(self, *mocks):
        self.runner.on("llvm-readelf", readelf_for({
            "libgame.so": ["liblog.so", "libc++_shared.so", "libfoo.so"],
            "libfoo.so": ["libc.so", "libm.so"],
        }))
        lib = touch(os.path.join(self.out_dir, "libgame.so"))
        touch(os.path.join(self.out_dir, "deps", "libfoo.so"))

        apk = self.config().create_apk()
        apk.add_library(lib, Target.ARM64_V8A, [os.path.join(self.out_dir, "deps")])

        self.assertEqual(self.staged(), ["libc++_shared.so", "libfoo.so", "libgame.so"])
        added = [call.command[-1] for call in self.runner.find("aapt", "add")]
        self.assertEqual(sorted(added), [
            "lib/arm64-v8a/libc++_shared.so",
            "lib/arm64-v8a/libfoo.so",
            "lib/arm64-v8a/libgame.so",
        ])
        self.assertEqual(apk.bundled_libs(Target.ARM64_V8A), {"libc++_shared.so", "libfoo.so", "libgame.so"})

    def test_missing_dependency_stages_nothing(self, *mocks):
        self.runner.on("llvm-readelf", readelf_for({"libgame.so": ["libfoo.so"], "libfoo.so": ["libbar.so"]}))
        lib = touch(os.path.join(self.out_dir, "libgame.so"))
        touch(os.path.join(self.out_dir, "deps", "libfoo.so"))

        apk = self.config().create_apk()
        with self.assertRaises(LibraryNotFoundError) as cm:
            apk.add_library(lib, Target.ARM64_V8A, [os.path.join(self.out_dir, "deps")])

        self.assertEqual(cm.exception.name, "libbar.so")
        self.assertEqual(self.staged(), [])
        self.assertEqual(self.runner.find("aapt", "add"), [])

    def test_runtime_libraries_from_abi_directory(self, *mocks):
        self.runner.on("llvm-readelf", readelf_for({"libextra.so": ["libc++_shared.so"]}))
        runtime = os.path.join(self.test_dir, "libs")
        touch(os.path.join(runtime, "arm64-v8a", "libextra.so"))
        touch(os.path.join(runtime, "armeabi-v7a", "libother.so"))
        lib = touch(os.path.join(self.out_dir, "libgame.so"))

        apk = self.config().create_apk()
        apk.add_library(lib, Target.ARM64_V8A, [])
        apk.add_runtime_libraries(runtime, Target.ARM64_V8A, [])

        self.assertEqual(self.staged(), ["libc++_shared.so", "libextra.so", "libgame.so"])
        self.assertEqual(len(self.runner.find("aapt", "add")), 3)

    def test_split_debug_info(self, *mocks):
        lib = touch(os.path.join(self.out_dir, "libgame.so"))
        apk = self.config(strip="split").create_apk()
        apk.add_lib(lib, Target.ARM64_V8A)

        staged = os.path.join(self.build_dir, "lib", "arm64-v8a", "libgame.so")
        self.assertEqual(self.runner.programs()[1:], ["llvm-objcopy", "llvm-strip", "aapt"])
        self.assertEqual(self.runner.calls[1].command[1:], ["--only-keep-debug", staged, f"{staged}.dwarf"])
        self.assertEqual(self.runner.calls[2].command[1:], ["--strip-debug", staged])

    def test_align_then_sign(self, *mocks):
        apk = self.config().create_apk()
        unsigned = apk.align()
        self.assertIsInstance(unsigned, UnsignedApk)
        signed = unsigned.sign(Key("/keys/release.keystore", "secret"))

        zipalign, apksigner = self.runner.calls[1:]
        unaligned_path = os.path.join(self.build_dir, "game-unaligned.apk")
        apk_path = os.path.join(self.build_dir, "game.apk")
        self.assertEqual(zipalign.command[1:], ["-f", "-v", "4", unaligned_path, apk_path])
        self.assertEqual(
            apksigner.command[1:],
            ["sign", "--ks", "/keys/release.keystore", "--ks-pass", "pass:secret", apk_path],
        )
        self.assertIsInstance(signed, Apk)
        self.assertEqual(signed.path, apk_path)
        self.assertEqual(signed.package_name, "rust.game")


@patch("ndkapk.apk.logger")
class TestApkOnDevice(unittest.TestCase):

    def setUp(self):
        self.runner = FakeRunner()
        self.ndk = MagicMock()
        self.ndk.runner = self.runner
        self.ndk.adb.side_effect = lambda serial=None: ["adb"] + (["-s", serial] if serial else [])
        self.apk = Apk(
            "/out/game.apk", "rust.game", "android.app.NativeActivity", self.ndk,
            reverse_port_forward={"tcp:5037": "tcp:5037"},
        )

    def test_install(self, mock_logger):
        self.apk.install("serial1")
        self.assertEqual(self.runner.calls[0].command, ["adb", "-s", "serial1", "install", "-r", "/out/game.apk"])

    def test_start_forwards_ports_first(self, mock_logger):
        self.apk.start()
        reverse, start = self.runner.calls
        self.assertEqual(reverse.command, ["adb", "reverse", "tcp:5037", "tcp:5037"])
        self.assertEqual(start.command, [
            "adb", "shell", "am", "start",
            "-a", "android.intent.action.MAIN",
            "-n", "rust.game/android.app.NativeActivity",
        ])

    def test_uidof(self, mock_logger):
        self.runner.on("adb", "package:rust.game.other uid:10100\npackage:rust.game uid:10123\n", "pm")
        self.assertEqual(self.apk.uidof(), 10123)

    def test_uidof_not_installed(self, mock_logger):
        self.runner.on("adb", "", "pm")
        with self.assertRaises(NdkApkError):
            self.apk.uidof()

    def test_logcat_follows_the_package_uid(self, mock_logger):
        self.runner.on("adb", "package:rust.game uid:10123\n", "pm")
        self.apk.logcat()
        logcat = self.runner.calls[-1]
        self.assertTrue(logcat.interactive)
        self.assertEqual(logcat.command, ["adb", "logcat", "-v", "color", "--uid", "10123"])


if __name__ == '__main__':
    unittest.main()
