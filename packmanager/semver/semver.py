# packmanager/semver/semver.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Literal

logger = logging.getLogger(__name__)

__all__ = [
    "SEMVER_PATTERN_RE",
    "SemVerPackVersion",
    "parseSemVerPackVersion",
    "parseVersion",
    "compareVersions",
    "isMajorChange",
    "sameMajor",
]



SEMVER_PATTERN_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_LEADING_DIGITS_RE = re.compile(r"\d+")



@total_ordering
@dataclass(frozen=True)
class SemVerPackVersion:
    """
    Pack version. Ordering looks at (major, minor, patch) only;
    prerelease and build tags are carried for display but never
    decide whether one pack version is newer than another.
    """
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()
    
    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        prerelease = f"-{'.'.join(self.prerelease)}" if self.prerelease else ""
        build = f"+{'.'.join(self.build)}" if self.build else ""
        return f"{base}{prerelease}{build}"
    
    @property
    def core(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVerPackVersion):
            return NotImplemented
        return self.core == other.core
    
    def __hash__(self) -> int:
        return hash(self.core)
    
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVerPackVersion):
            return NotImplemented
        return self.core < other.core



def parseSemVerPackVersion(raw: str) -> SemVerPackVersion:
    """
    Parse a semantic version string into SemVerPackVersion.
    
    Accepted forms (examples):
        "1"             -> 1.0.0
        "1.2"           -> 1.2.0
        "1.2.3"         -> 1.2.3
        "1.2.3-alpha.1"
        "1.2.3+build.1"
        "v1.2.3"
    
    Rejected:
        ".1", "1.", "1..3", "1.2.3.4", "01.2.3" (leading zeroes), etc.
    """
    if raw is None:
        raise ValueError("Version string cannot be None")
    
    if not isinstance(raw, str):
        raise TypeError(f"Version string must be a string type, got {type(raw).__name__}")
    
    raw = raw.strip()
    if not raw:
        raise ValueError("Version string cannot be empty or whitespace only")
    
    # Accept a single 'v' or 'V' and remove it (v1.2.3 -> 1.2.3)
    if raw[0] in "vV" and len(raw) > 1 and "0" <= raw[1] <= "9":
        raw = raw[1:]

    # Split into core (numeric) and suffix (-prerelease +build)
    sepIndex = len(raw)
    for ch in ("-", "+"):
        idx = raw.find(ch)
        if idx != -1 and idx < sepIndex:
            sepIndex = idx
    
    core = raw[:sepIndex]
    suffix = raw[sepIndex:]
    
    coreParts = core.split(".")
    if not 1 <= len(coreParts) <= 3:
        raise ValueError(f"Invalid version core {core!r} in {raw!r}")
    
    if any(part == "" for part in coreParts):
        raise ValueError(f"Empty numeric component in version {raw!r}")
    
    numericParts: list[int] = []
    for part in coreParts:
        if not re.fullmatch(r"0|[1-9]\d*", part):
            raise ValueError(f"Invalid numeric component {part!r} in version {raw!r}")
        numericParts.append(int(part))
    
    while len(numericParts) < 3:
        numericParts.append(0)
    
    major, minor, patch = numericParts
    
    normalized = f"{major}.{minor}.{patch}{suffix}"
    
    mtch = SEMVER_PATTERN_RE.match(normalized)
    if not mtch:
        raise ValueError(f"Invalid semantic version {raw!r} (normalized {normalized!r})")

    prereleaseGroup = mtch.group("prerelease")
    buildGroup = mtch.group("build")
    
    return SemVerPackVersion(
        major=major,
        minor=minor,
        patch=patch,
        prerelease=tuple(prereleaseGroup.split(".")) if prereleaseGroup is not None else (),
        build=tuple(buildGroup.split(".")) if buildGroup is not None else (),
    )



def _parseLenient(raw: str) -> SemVerPackVersion:
    # Anything after "-" or "+" is a tag; each dotted component keeps its leading digits only.
    text = raw.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    text = re.split(r"[-+]", text, maxsplit=1)[0]
    numbers: list[int] = []
    for part in text.split(".")[:3]:
        mtch = _LEADING_DIGITS_RE.search(part)
        numbers.append(int(mtch.group(0)) if mtch else 0)
    while len(numbers) < 3:
        numbers.append(0)
    return SemVerPackVersion(numbers[0], numbers[1], numbers[2])



def parseVersion(raw: str | SemVerPackVersion | None) -> SemVerPackVersion:
    """
    Tolerant version parsing for pack and installed versions.
    
    "1", "1.2" and "1.2.3" are accepted (missing components default to 0).
    None and "" become 0.0.0. Strings the strict parser rejects are read
    leniently rather than failing, because installed versions come from
    records this process did not validate.
    """
    if isinstance(raw, SemVerPackVersion):
        return raw
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return SemVerPackVersion(0, 0, 0)
    try:
        return parseSemVerPackVersion(raw)
    except ValueError as err:
        logger.debug("parseVersion: falling back to lenient parse for %r: %s", raw, err)
        return _parseLenient(str(raw))



def compareVersions(first: str | SemVerPackVersion | None, second: str | SemVerPackVersion | None) -> Literal[-1, 0, 1]:
    """Returns -1, 0 or 1 comparing (major, minor, patch) lexicographically."""
    left = parseVersion(first).core
    right = parseVersion(second).core
    if left < right:
        return -1
    if left > right:
        return 1
    return 0



def sameMajor(first: str | SemVerPackVersion | None, second: str | SemVerPackVersion | None) -> bool:
    return parseVersion(first).major == parseVersion(second).major



def isMajorChange(current: str | SemVerPackVersion | None, target: str | SemVerPackVersion | None) -> bool:
    """True when moving from `current` to `target` crosses a major version (either direction)."""
    if current is None or target is None:
        return False
    return not sameMajor(current, target)
