"""Maps semantic versions onto Android ``versionCode`` integers.

Major, minor and patch keep the 8-bit fields cargo-apk has always used, so
any component from 0 to 255 fits. Below them sits a pre-release rank::

    code = (((slot * 256 + major) * 256 + minor) * 256 + patch) * 30 + rank

Ranks follow semver precedence on the pre-release identifiers:

    0       first identifier numeric (``1.0.0-0.3.7``)
    1       other tags sorting before ``alpha``
    2-9     ``alpha``: bare, ``.0`` to ``.5+``, then ``alpha.<word>``
    10      tags between ``alpha`` and ``beta``
    11-18   ``beta``, laid out like alpha
    19      tags between ``beta`` and ``rc``
    20-27   ``rc``, laid out like alpha
    28      tags sorting after ``rc``
    29      the release itself

Pre-releases the rank cannot tell apart share a code, so ordering never
inverts. Android caps ``versionCode`` at 2100000000, which leaves room for
slots 1 to 3.
"""
import re

from .errors import InvalidSemverError

MAX_VERSION_CODE = 2100000000
MAX_SLOT = 3
MAX_COMPONENT = 255

SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

TAGS = ("alpha", "beta", "rc")
NUMBERED_STEPS = 6
_TAG_BLOCK = NUMBERED_STEPS + 2
_RANKS = len(TAGS) * (_TAG_BLOCK + 1) + 3
RELEASE_RANK = _RANKS - 1


class VersionCode:
    def __init__(self, major, minor, patch, rank=RELEASE_RANK):
        self.major = major
        self.minor = minor
        self.patch = patch
        self.rank = rank

    def __eq__(self, other):
        if not isinstance(other, VersionCode):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return f"VersionCode({self.major}, {self.minor}, {self.patch}, rank={self.rank})"

    def _key(self):
        return (self.major, self.minor, self.patch, self.rank)

    @classmethod
    def from_semver(cls, version):
        match = SEMVER_RE.match(version.strip()) if isinstance(version, str) else None
        if not match:
            raise InvalidSemverError(version)

        major, minor, patch = (int(match.group(name)) for name in ("major", "minor", "patch"))
        for component in (major, minor, patch):
            if component > MAX_COMPONENT:
                raise InvalidSemverError(version, f"components above {MAX_COMPONENT} do not fit in a version code")

        pre = match.group("pre")
        if pre is None:
            return cls(major, minor, patch)
        identifiers = pre.split(".")
        for identifier in identifiers:
            if identifier.isdigit() and len(identifier) > 1 and identifier.startswith("0"):
                raise InvalidSemverError(version, f"numeric identifier '{identifier}' has a leading zero")
        return cls(major, minor, patch, pre_release_rank(identifiers))

    def to_code(self, slot):
        if not 1 <= slot <= MAX_SLOT:
            raise ValueError(f"Version code slot must be between 1 and {MAX_SLOT}, got {slot}")
        code = ((slot * 256 + self.major) * 256 + self.minor) * 256 + self.patch
        return code * _RANKS + self.rank


def pre_release_rank(identifiers):
    """Rank dot-separated pre-release identifiers below the release.

    Numeric identifiers sort before words and words compare in ASCII order,
    as semver prescribes. Only the first two identifiers are looked at.
    """
    first = identifiers[0]
    if first.isdigit():
        return 0

    rank = 1
    for tag in TAGS:
        if first < tag:
            return rank
        rank += 1
        if first == tag:
            if len(identifiers) == 1:
                return rank
            second = identifiers[1]
            if second.isdigit():
                return rank + 1 + min(int(second), NUMBERED_STEPS - 1)
            return rank + NUMBERED_STEPS + 1
        rank += _TAG_BLOCK
    return rank


def version_code(version, slot=1):
    """Return the ``versionCode`` for ``version`` in the given slot.

    Raises InvalidSemverError for anything that is not a semantic version, or
    whose major, minor or patch is above 255.
    """
    return VersionCode.from_semver(version).to_code(slot)
