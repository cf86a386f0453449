"""Environment for running cargo against the NDK toolchain."""
import os

from .errors import ConfigError, IoPathError

# Separator cargo uses between entries of CARGO_ENCODED_RUSTFLAGS.
RUSTFLAGS_SEP = "\x1f"

# First NDK build without libgcc (r23 beta 3).
LIBGCC_REMOVED_BUILD_TAG = 7272597
EXTRA_LINK_DIR = "cargo-apk-temp-extra-link-libraries"


def cargo_env_target_cfg(tool, triple):
    return f"CARGO_TARGET_{triple.replace('-', '_')}_{tool}".upper()


def _initial_rustflags(environ):
    encoded = environ.get("CARGO_ENCODED_RUSTFLAGS")
    if encoded is not None:
        if "RUSTFLAGS" in environ:
            raise ConfigError(
                "Both `CARGO_ENCODED_RUSTFLAGS` and `RUSTFLAGS` were found in the environment, "
                "please clear one or the other."
            )
        return [flag for flag in encoded.split(RUSTFLAGS_SEP) if flag]
    # Split the same way cargo does.
    return [flag for flag in environ.get("RUSTFLAGS", "").split(" ") if flag.strip()]


def _write_libgcc_stub(target_dir):
    """Rust still asks the linker for libgcc, which newer NDKs replaced with libunwind."""
    link_dir = os.path.join(target_dir, EXTRA_LINK_DIR)
    libgcc = os.path.join(link_dir, "libgcc.a")
    try:
        os.makedirs(link_dir, exist_ok=True)
        with open(libgcc, "w") as f:
            f.write("INPUT(-lunwind)")
    except OSError as e:
        raise IoPathError(libgcc, e) from e
    return link_dir


def cargo_ndk(ndk, target, sdk_version, target_dir, environ=None):
    """Return the environment for a cargo invocation cross-compiling to ``target``.

    The result is a full copy of ``environ`` (the process environment by
    default) with the compiler, linker and archiver for the target triple set
    and ``RUSTFLAGS`` folded into ``CARGO_ENCODED_RUSTFLAGS``.
    """
    environ = os.environ if environ is None else environ
    triple = target.rust_triple
    clang_target = f"--target={target.ndk_llvm_triple}{sdk_version}"

    rustflags = _initial_rustflags(environ)
    env = dict(environ)
    env.pop("RUSTFLAGS", None)

    clang, clang_pp = ndk.clang()
    # Picked up by the `cc` crate in build scripts.
    env[f"CC_{triple}"] = clang
    env[f"CFLAGS_{triple}"] = clang_target
    env[f"CXX_{triple}"] = clang_pp
    env[f"CXXFLAGS_{triple}"] = clang_target

    env[cargo_env_target_cfg("LINKER", triple)] = clang
    rustflags.append(f"-Clink-arg={clang_target}")

    ar = ndk.toolchain_bin("ar", target)
    env[f"AR_{triple}"] = ar
    env[cargo_env_target_cfg("AR", triple)] = ar

    if ndk.build_tag > LIBGCC_REMOVED_BUILD_TAG:
        # RUSTFLAGS rather than `cargo rustc` args so transitive cdylibs link too.
        rustflags += ["-L", _write_libgcc_stub(target_dir)]

    env["CARGO_ENCODED_RUSTFLAGS"] = RUSTFLAGS_SEP.join(rustflags)
    return env


def artifact_path(target_dir, target, profile, artifact):
    """Path of the library cargo produces for ``artifact``."""
    return os.path.join(
        target_dir,
        target.rust_triple,
        profile.dir_name,
        artifact.subdir,
        artifact.file_name,
    )
