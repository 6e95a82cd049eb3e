"""npm-flavoured semver helpers on top of semantic_version"""

import re
from typing import Iterable, List, Optional, Set, Union

from semantic_version import Version, NpmSpec


# Dependency specifiers that are not semver ranges at all
_NON_SEMVER_PREFIXES = (
    'file:', 'link:', 'workspace:', 'npm:', 'portal:', 'patch:',
    'git:', 'git+', 'github:', 'http:', 'https:',
)

_RANGE_OPERATOR_PREFIX = re.compile(r'^\s*[\^~><=]')

# A (possibly partial) version inside a range expression: 1, 1.2, 1.2.x, 1.2.3-beta.1
_VERSION_IN_RANGE = re.compile(
    r'v?(\d+)(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?(-[0-9A-Za-z.-]+)?'
)

VersionLike = Union[str, Version]

# Plausible versions tried when looking for an overlap between ranges
VERSION_GRID = tuple(
    Version(major=major, minor=minor, patch=patch)
    for major in range(0, 11)
    for minor in range(0, 6)
    for patch in range(0, 3)
)


def parse_version(value: Optional[str]) -> Optional[Version]:
    """
    Parse a version string strictly, after npm-style cleaning

    Leading '=' and 'v' and surrounding whitespace are ignored, like
    `semver.clean`. Partial versions such as '1.2' are rejected.

    Returns:
        Version or None if the string is not valid semver
    """
    if value is None:
        return None
    cleaned = str(value).strip().lstrip('=v').strip()
    if not cleaned:
        return None
    try:
        return Version(cleaned)
    except ValueError:
        return None


def _version_from_match(match) -> Optional[Version]:
    major, minor, patch, prerelease = match.groups()

    def number(part):
        return '0' if part is None or part in ('x', 'X', '*') else part

    text = f"{major}.{number(minor)}.{number(patch)}"
    # A prerelease tag only makes sense on a fully specified version
    if prerelease and patch not in (None, 'x', 'X', '*'):
        text += prerelease
    try:
        return Version(text)
    except ValueError:
        return None


def parse_range(spec: Optional[str]) -> Optional[NpmSpec]:
    """
    Parse an npm range expression

    Returns:
        NpmSpec, or None for dist-tags, URLs, protocol specifiers and garbage
    """
    if spec is None:
        return None
    text = str(spec).strip()
    if not text:
        text = '*'
    if text.lower().startswith(_NON_SEMVER_PREFIXES) or '/' in text:
        return None
    try:
        return NpmSpec(text)
    except ValueError:
        return None


def satisfies(version: VersionLike, spec: str) -> bool:
    """True when version is valid and inside the npm range"""
    parsed = version if isinstance(version, Version) else parse_version(version)
    npm_spec = parse_range(spec)
    if parsed is None or npm_spec is None:
        return False
    return npm_spec.match(parsed)


def is_exact_version(spec: Optional[str]) -> bool:
    """True for a pinned version such as '1.2.3' (no operators, no alternatives)"""
    if not spec:
        return False
    text = str(spec).strip()
    if _RANGE_OPERATOR_PREFIX.match(text) or '||' in text or ' - ' in text:
        return False
    return parse_version(text) is not None


def base_version(spec: Optional[str]) -> Optional[Version]:
    """First version mentioned in a range, with wildcards zeroed ('^1.x' -> 1.0.0)"""
    match = _VERSION_IN_RANGE.search(str(spec or ''))
    if not match:
        return None
    return _version_from_match(match)


def _mentioned_versions(spec: str) -> Set[Version]:
    """Every version written in a range plus its next patch ('>1.2.3' -> 1.2.4)"""
    found = set()
    for match in _VERSION_IN_RANGE.finditer(str(spec)):
        version = _version_from_match(match)
        if version is None:
            continue
        found.add(version)
        found.add(version.next_patch())
    return found


def min_satisfying_version(spec: Optional[str]) -> Optional[Version]:
    """
    Lowest version that satisfies an npm range

    Candidates are 0.0.0 plus every version mentioned in the range and
    its next patch (which covers exclusive lower bounds like '>1.2.3').

    Returns:
        Version or None if the range is not parsable or nothing matches
    """
    npm_spec = parse_range(spec)
    if npm_spec is None:
        return None

    candidates = {Version('0.0.0')} | _mentioned_versions(spec)
    matching = [v for v in candidates if npm_spec.match(v)]
    return min(matching) if matching else None


def common_version(specs: Iterable[str]) -> Optional[Version]:
    """
    Highest candidate version that satisfies every range

    Candidates are VERSION_GRID plus the versions mentioned in the ranges.
    Overlaps that contain none of them are not found.

    Returns:
        Version, or None if a range is not parsable or nothing matches all
    """
    specs = list(specs)
    if not specs or any(parse_range(spec) is None for spec in specs):
        return None

    candidates = set(VERSION_GRID)
    for spec in specs:
        candidates |= _mentioned_versions(spec)

    matching = [v for v in candidates if all(satisfies(v, spec) for spec in specs)]
    return max(matching) if matching else None


def version_diff(a: VersionLike, b: VersionLike) -> Optional[str]:
    """
    Most significant component that differs between two versions

    Returns:
        'major', 'minor', 'patch', 'prerelease' or None when equal/unparsable
    """
    va = a if isinstance(a, Version) else parse_version(a)
    vb = b if isinstance(b, Version) else parse_version(b)
    if va is None or vb is None:
        return None
    if va.major != vb.major:
        return 'major'
    if va.minor != vb.minor:
        return 'minor'
    if va.patch != vb.patch:
        return 'patch'
    if va.prerelease != vb.prerelease:
        return 'prerelease'
    return None


RANGE_JOINER = ' AND '


def join_ranges(specs: Iterable[str]) -> str:
    """Combine ranges that must all hold, dropping repeats ('^1.0.0 AND >=1.2.0')"""
    distinct = []
    for spec in specs:
        if spec not in distinct:
            distinct.append(spec)
    return RANGE_JOINER.join(distinct)


def split_ranges(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [part.strip() for part in text.split(RANGE_JOINER) if part.strip()]
