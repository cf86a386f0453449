from .build import build
from .check import check
from .doctor import doctor
from .gdb import gdb
from .passthrough import ndk
from .run import run
from .version import version

__all__ = ["build", "check", "doctor", "gdb", "ndk", "run", "version"]
