import toml
import os
from .cli_logger import logger
from .errors import ConfigError
from .manifest import AndroidManifest
from .target import Target

CONFIG_FILE = "Cargo.toml"

STRIP_MODES = ("default", "strip", "split")


class Signing:
    """A keystore configured for one profile in ``[package.metadata.android.signing.<profile>]``."""

    def __init__(self, path, keystore_password):
        self.path = path
        self.keystore_password = keystore_password


class ProjectManifest:
    """Everything ``[package]`` and ``[package.metadata.android]`` tell us about the crate."""

    def __init__(self, name, version, android_manifest=None, project_root=".", apk_name=None,
                 build_targets=None, assets=None, resources=None, runtime_libs=None,
                 signing=None, reverse_port_forward=None, strip="default"):
        self.name = name
        self.version = version
        self.android_manifest = android_manifest or AndroidManifest()
        self.project_root = project_root
        self.apk_name = apk_name
        self.build_targets = build_targets or []
        self.assets = assets
        self.resources = resources
        self.runtime_libs = runtime_libs
        self.signing = signing or {}
        self.reverse_port_forward = reverse_port_forward or {}
        self.strip = strip

    def resolve_path(self, path):
        """Resolve a path from the config file relative to the crate root."""
        if path is None:
            return None
        return os.path.normpath(os.path.join(self.project_root, path))


def load_config(path="."):
    config_path = path if os.path.isfile(path) else os.path.join(path, CONFIG_FILE)
    logger.info(f"Loading configuration from {config_path}")
    if not os.path.exists(config_path):
        raise ConfigError(f"No {CONFIG_FILE} found at {config_path}.")
    try:
        with open(config_path, "r") as f:
            return toml.load(f)
    except toml.TomlDecodeError as e:
        raise ConfigError(f"Error decoding TOML file at {config_path}: {e}") from e
    except IOError as e:
        raise ConfigError(f"Error reading configuration file at {config_path}: {e}") from e


def _parse_signing(table):
    signing = {}
    for profile_name, entry in (table or {}).items():
        if not isinstance(entry, dict) or "path" not in entry or "keystore_password" not in entry:
            raise ConfigError(
                f"[package.metadata.android.signing.{profile_name}] needs both 'path' and 'keystore_password'."
            )
        signing[profile_name] = Signing(entry["path"], entry["keystore_password"])
    return signing


def parse_project(conf, project_root="."):
    """Turn a loaded ``Cargo.toml`` into a ProjectManifest."""
    package = conf.get("package")
    if not isinstance(package, dict):
        raise ConfigError(f"{CONFIG_FILE} in {project_root} must contain a [package] table.")

    name = package.get("name")
    version = package.get("version")
    if not name:
        raise ConfigError("[package] is missing 'name'.")
    if not isinstance(version, str):
        raise ConfigError("[package] is missing 'version' (workspace-inherited versions are not supported).")

    android = dict(package.get("metadata", {}).get("android", {}))
    build_targets = [Target.from_rust_triple(triple) for triple in android.pop("build_targets", [])]
    strip = android.pop("strip", "default")
    if strip not in STRIP_MODES:
        raise ConfigError(f"Unknown strip mode '{strip}', expected one of {', '.join(STRIP_MODES)}.")

    project = ProjectManifest(
        name=name,
        version=version,
        project_root=os.path.abspath(project_root),
        apk_name=android.pop("apk_name", None),
        build_targets=build_targets,
        assets=android.pop("assets", None),
        resources=android.pop("resources", None),
        runtime_libs=android.pop("runtime_libs", None),
        signing=_parse_signing(android.pop("signing", None)),
        reverse_port_forward=android.pop("reverse_port_forward", None),
        strip=strip,
    )
    project.android_manifest = AndroidManifest.from_table(android)
    return project


def load_project(manifest_path):
    """Load and parse the crate manifest at ``manifest_path``."""
    conf = load_config(manifest_path)
    return parse_project(conf, project_root=os.path.dirname(os.path.abspath(manifest_path)))
