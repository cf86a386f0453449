import os
import re
from dataclasses import dataclass

from .errors import ConfigError


class Profile:
    """A cargo build profile.

    ``dev`` and ``release`` are built in; any other name is a custom profile
    declared in the crate's ``[profile.<name>]`` table.
    """

    DEV = None
    RELEASE = None

    def __init__(self, name):
        self.name = name

    def __eq__(self, other):
        if not isinstance(other, Profile):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)

    def __repr__(self):
        return f"Profile({self.name!r})"

    def __str__(self):
        return self.name

    @property
    def is_dev(self):
        return self.name == "dev"

    @property
    def dir_name(self):
        """Name of the directory cargo writes this profile's output to."""
        return "debug" if self.is_dev else self.name

    def cargo_args(self):
        if self.is_dev:
            return []
        if self.name == "release":
            return ["--release"]
        return ["--profile", self.name]


Profile.DEV = Profile("dev")
Profile.RELEASE = Profile("release")


def sanitize_name(name):
    """Turn a crate or example name into the identifier cargo uses for its library."""
    return re.sub(r"\W", "_", name)


@dataclass(frozen=True)
class Artifact:
    name: str

    # Subdirectory of the profile output directory holding the compiled library.
    subdir = ""

    @property
    def lib_name(self):
        return sanitize_name(self.name)

    @property
    def file_name(self):
        return f"lib{self.lib_name}.so"

    def cargo_args(self):
        return []


@dataclass(frozen=True)
class Root(Artifact):
    """The crate's own ``cdylib``."""

    def cargo_args(self):
        return ["--lib"]


@dataclass(frozen=True)
class Example(Artifact):
    """A ``cdylib`` example under ``examples/``."""

    subdir = "examples"

    def cargo_args(self):
        return ["--example", self.name]


class Subcommand:
    """Which crate, profile, target and artifacts a command operates on."""

    def __init__(self, manifest_path, profile=None, target=None, target_dir=None,
                 example=None, package_name=None, args=()):
        self.manifest_path = os.path.abspath(manifest_path)
        if not os.path.isfile(self.manifest_path):
            raise ConfigError(f"Could not find {self.manifest_path}.")
        self.project_root = os.path.dirname(self.manifest_path)
        self.profile = profile or Profile.DEV
        self.target = target
        self.target_dir = os.path.abspath(
            target_dir
            or os.environ.get("CARGO_TARGET_DIR")
            or os.path.join(self.project_root, "target")
        )
        self.example = example
        self.package_name = package_name
        self.args = list(args)

    @property
    def artifacts(self):
        if self.example:
            return [Example(self.example)]
        if not self.package_name:
            raise ConfigError(f"{self.manifest_path} has no [package] name.")
        return [Root(self.package_name)]

    def cargo_args(self):
        """Flags that keep cargo pointed at the same crate and profile."""
        args = ["--manifest-path", self.manifest_path]
        args += self.profile.cargo_args()
        if self.target_dir:
            args += ["--target-dir", self.target_dir]
        return args + self.args
