import enum

from .cli_logger import logger
from .errors import NdkApkError, UnsupportedTargetError


class Target(enum.Enum):
    """A CPU architecture an APK can carry native code for.

    The value is the ABI name Android uses for the ``lib/<abi>/`` directory and
    reports through ``ro.product.cpu.abi``.
    """

    ARM_V7A = "armeabi-v7a"
    ARM64_V8A = "arm64-v8a"
    X86 = "x86"
    X86_64 = "x86_64"

    @property
    def android_abi(self):
        return self.value

    @property
    def rust_triple(self):
        """Triple passed to ``cargo --target``."""
        return _RUST_TRIPLES[self]

    @property
    def ndk_llvm_triple(self):
        """Triple understood by the NDK's clang (``--target=<triple><api>``)."""
        if self is Target.ARM_V7A:
            return "armv7a-linux-androideabi"
        return self.rust_triple

    @property
    def ndk_triple(self):
        """Triple used by the non-LLVM parts of the NDK (binutils, sysroot)."""
        if self is Target.ARM_V7A:
            return "arm-linux-androideabi"
        return self.rust_triple

    @classmethod
    def from_android_abi(cls, abi):
        try:
            return cls(abi)
        except ValueError:
            raise UnsupportedTargetError(abi) from None

    @classmethod
    def from_rust_triple(cls, triple):
        for target, rust_triple in _RUST_TRIPLES.items():
            if rust_triple == triple:
                return target
        raise UnsupportedTargetError(triple)


_RUST_TRIPLES = {
    Target.ARM_V7A: "armv7-linux-androideabi",
    Target.ARM64_V8A: "aarch64-linux-android",
    Target.X86: "i686-linux-android",
    Target.X86_64: "x86_64-linux-android",
}

DEFAULT_TARGET = Target.ARM64_V8A


def resolve_build_targets(ndk, requested_triple=None, declared_targets=None, device_serial=None):
    """Pick the targets to build, most explicit source first.

    An explicit ``--target`` wins, then ``build_targets`` from the project
    configuration, then the ABI of the attached device. When no device answers
    the query the build falls back to arm64.
    """
    if requested_triple:
        return [Target.from_rust_triple(requested_triple)]
    if declared_targets:
        return list(declared_targets)
    try:
        target = ndk.detect_abi(device_serial)
        logger.info(f"Detected device ABI {target.android_abi}")
        return [target]
    except NdkApkError as e:
        logger.warning(f"Could not detect the device ABI ({e.message}), falling back to {DEFAULT_TARGET.android_abi}.")
        return [DEFAULT_TARGET]
