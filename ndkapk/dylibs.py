"""Transitive shared-library bundling.

A cdylib built for Android usually links against a handful of other shared
objects: ones the platform ships (``libc.so``, ``liblog.so``...), which must
not be bundled, and ones produced by the build or supplied by the user, which
must. ``resolve_closure`` walks the ``DT_NEEDED`` graph starting from one
library and returns every file that has to go into the APK, failing on the
first dependency it cannot find.
"""
import os

from .cli_logger import logger
from .errors import IoPathError, LibraryNotFoundError, PathNotFoundError

# Shipped with the NDK but not present on devices, so it is bundled when needed.
CXX_SHARED = "libc++_shared.so"

LINK_SEARCH_PREFIX = "cargo:rustc-link-search="
LINK_SEARCH_KINDS = ("dependency", "native", "all")


def list_needed_libs(readelf_path, library_path, runner):
    """List the DT_NEEDED entries of ``library_path`` using ``readelf -d``."""
    output = runner.run([readelf_path, "-d", library_path])
    needed = set()
    for line in output.splitlines():
        if "(NEEDED)" not in line:
            continue
        lib = line.split("Shared library: [")[-1].split("]")[0]
        if lib:
            needed.add(lib)
    return needed


def list_libs(path):
    """Names of the shared objects directly inside ``path``."""
    try:
        return {
            entry.name for entry in os.scandir(path)
            if not entry.is_dir() and entry.name.endswith(".so")
        }
    except OSError as e:
        raise IoPathError(path, e) from e


def find_library_path(paths, library):
    for path in paths:
        lib_path = os.path.join(path, library)
        if os.path.exists(lib_path):
            return os.path.realpath(lib_path)
    return None


def resolve_closure(root, search_paths, read_needed, provided=frozenset(), system_search_paths=()):
    """Return ``root`` followed by every library it transitively needs.

    ``read_needed(path)`` yields the library names a binary depends on.
    Names in ``provided`` are already available on the device (or already in
    the package) and are skipped. ``libc++_shared.so`` is looked up in
    ``system_search_paths`` and everything else in ``search_paths``. Each
    library appears once however many times it is referenced, so diamonds and
    cycles are fine.

    Raises LibraryNotFoundError for the first name that cannot be located.
    """
    if not os.path.exists(root):
        raise PathNotFoundError(root)

    seen = set(provided)
    seen.add(os.path.basename(root))
    closure = [root]
    pending = [root]
    while pending:
        artifact = pending.pop()
        for need in sorted(read_needed(artifact)):
            if need in seen:
                continue
            paths = system_search_paths if need == CXX_SHARED else search_paths
            path = find_library_path(paths, need)
            if path is None:
                raise LibraryNotFoundError(need, needed_by=os.path.basename(artifact))
            seen.add(need)
            closure.append(path)
            pending.append(path)
    return closure


def _android_search_paths(apk, target):
    ndk = apk.config.ndk
    min_sdk_version = apk.config.min_sdk_version
    return [
        ndk.sysroot_lib_dir(target),
        ndk.sysroot_platform_lib_dir(target, min_sdk_version),
    ]


def _platform_provided(android_search_paths):
    provided = set()
    for path in android_search_paths:
        provided |= list_libs(path)
    provided.discard(CXX_SHARED)
    return provided


def bundle_recursive(apk, lib, target, search_paths):
    """Stage ``lib`` and its whole dependency closure into ``apk`` for ``target``.

    The closure is resolved before anything is copied, so a missing dependency
    leaves the package exactly as it was.
    """
    ndk = apk.config.ndk
    readelf_path = ndk.toolchain_bin("readelf", target)
    android_search_paths = _android_search_paths(apk, target)
    provided = _platform_provided(android_search_paths) | apk.bundled_libs(target)

    libs = resolve_closure(
        lib,
        search_paths,
        lambda path: list_needed_libs(readelf_path, path, ndk.runner),
        provided=provided,
        system_search_paths=android_search_paths,
    )
    for path in libs:
        logger.step_info(f"- {os.path.basename(path)} ({target.android_abi})", indent=2)
        apk.add_lib(path, target)
    return libs


def bundle_directory(apk, directory, target, search_paths):
    """Stage every library directly inside ``directory``, each with its own closure."""
    if not os.path.isdir(directory):
        raise PathNotFoundError(directory)
    bundled = []
    for name in sorted(list_libs(directory)):
        if name in apk.bundled_libs(target):
            continue
        bundled += bundle_recursive(apk, os.path.join(directory, name), target, search_paths)
    return bundled


def get_libs_search_paths(target_dir, target_triple, profile_dir):
    """Collect the native search paths build scripts announced with ``cargo:rustc-link-search``."""
    paths = []
    deps_dir = os.path.join(target_dir, target_triple, profile_dir, "build")
    if not os.path.isdir(deps_dir):
        return paths

    for dep_dir in sorted(os.listdir(deps_dir)):
        output_file = os.path.join(deps_dir, dep_dir, "output")
        if not os.path.isfile(output_file):
            continue
        try:
            with open(output_file, "r", errors="replace") as f:
                lines = f.read().splitlines()
        except OSError as e:
            raise IoPathError(output_file, e) from e
        for line in lines:
            if not line.startswith(LINK_SEARCH_PREFIX):
                continue
            link_search = line[len(LINK_SEARCH_PREFIX):]
            kind, sep, path = link_search.partition("=")
            if not sep:
                kind, path = "all", link_search
            if kind in LINK_SEARCH_KINDS:
                paths.append(path)
    return paths
