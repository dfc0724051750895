"""Semver range compatibility for ``targetAppVersion`` catalogs.

Range expressions follow npm semantics:

| Range            | Devices that match                                  |
|------------------|-----------------------------------------------------|
| ``1.2.3``        | exactly 1.2.3                                       |
| ``*``            | every device                                        |
| ``1.2.x``        | any 1.2 patch                                       |
| ``1.2``          | ``>=1.2.0 <1.3.0``                                  |
| ``1.2.3 - 1.2.7``| 1.2.3 through 1.2.7 inclusive                       |
| ``>=1.2.3 <1.2.7``| 1.2.3 inclusive through 1.2.7 exclusive            |
| ``~1.2.3``       | ``>=1.2.3 <1.3.0``                                  |
| ``^1.2.3``       | ``>=1.2.3 <2.0.0``                                  |

Each expression is desugared into plain comparator sets and evaluated with
``packaging.version.Version`` ordering. Expressions that do not parse are
reported as non-matching, never as errors.

Device versions are coerced to plain triples, so a prerelease bound such as
``1.2.3-beta.1`` only has to sort below ``1.2.3`` and above every 1.2.2 release;
it becomes ``1.2.3.dev0``. Build metadata (``+build.5``) is ignored.
"""
from __future__ import annotations

import logging
import operator
import re
from collections.abc import Callable, Iterable
from functools import lru_cache

from packaging.version import Version

logger = logging.getLogger("ota.engine.semver")

_WILDCARDS = {"*", "x", "X"}
_PARTIAL = re.compile(
    r"^v?(\d+|[xX*])(?:\.(\d+|[xX*])(?:\.(\d+|[xX*])(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?)?)?$"
)
_HYPHEN = re.compile(r"^(\S+)\s+-\s+(\S+)$")
_PRIMITIVE = re.compile(r"^(<=|>=|<|>|=|~|\^)?(.+)$")
_COERCE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_OPERATOR_GAP = re.compile(r"(<=|>=|<|>|=|~|\^)\s+")

_OPERATORS: dict[str, Callable[[Version, Version], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
}

Comparator = tuple[str, Version]
# One alternative of a ``||`` union: every comparator must hold.
ComparatorSet = tuple[Comparator, ...]

_NEVER: ComparatorSet = (("<", Version("0.0.0")),)


class InvalidRangeError(ValueError):
    pass


def _version(major: int, minor: int, patch: int, prerelease: bool = False) -> Version:
    return Version(f"{major}.{minor}.{patch}.dev0" if prerelease else f"{major}.{minor}.{patch}")


def _parse_partial(text: str) -> tuple[int | None, int | None, int | None, bool]:
    match = _PARTIAL.match(text)
    if match is None:
        raise InvalidRangeError(f"not a version: {text!r}")
    parts: list[int | None] = []
    wildcard_seen = False
    for raw in match.group(1, 2, 3):
        if raw is None or raw in _WILDCARDS or wildcard_seen:
            wildcard_seen = True
            parts.append(None)
        else:
            parts.append(int(raw))
    prerelease = match.group(4) is not None
    if (prerelease or match.group(5) is not None) and parts[2] is None:
        raise InvalidRangeError(f"qualifier on partial version: {text!r}")
    return parts[0], parts[1], parts[2], prerelease


def _x_range(major: int | None, minor: int | None, patch: int | None, prerelease: bool) -> ComparatorSet:
    if major is None:
        return ()
    if minor is None:
        return ((">=", _version(major, 0, 0)), ("<", _version(major + 1, 0, 0)))
    if patch is None:
        return ((">=", _version(major, minor, 0)), ("<", _version(major, minor + 1, 0)))
    return (("==", _version(major, minor, patch, prerelease)),)


def _tilde(major: int | None, minor: int | None, patch: int | None, prerelease: bool) -> ComparatorSet:
    if major is None:
        return ()
    if minor is None:
        return ((">=", _version(major, 0, 0)), ("<", _version(major + 1, 0, 0)))
    return ((">=", _version(major, minor, patch or 0, prerelease)), ("<", _version(major, minor + 1, 0)))


def _caret(major: int | None, minor: int | None, patch: int | None, prerelease: bool) -> ComparatorSet:
    if major is None:
        return ()
    if minor is None:
        return ((">=", _version(major, 0, 0)), ("<", _version(major + 1, 0, 0)))
    lower = _version(major, minor, patch or 0, prerelease)
    if major > 0:
        upper = _version(major + 1, 0, 0)
    elif minor > 0 or patch is None:
        upper = _version(0, minor + 1, 0)
    else:
        upper = _version(0, 0, patch + 1)
    return ((">=", lower), ("<", upper))


def _primitive(op: str, major: int | None, minor: int | None, patch: int | None, prerelease: bool) -> ComparatorSet:
    if major is None:
        return () if op in {">=", "<="} else _NEVER
    if op == ">":
        if minor is None:
            return ((">=", _version(major + 1, 0, 0)),)
        if patch is None:
            return ((">=", _version(major, minor + 1, 0)),)
        return ((">", _version(major, minor, patch, prerelease)),)
    if op == "<=":
        if minor is None:
            return (("<", _version(major + 1, 0, 0)),)
        if patch is None:
            return (("<", _version(major, minor + 1, 0)),)
        return (("<=", _version(major, minor, patch, prerelease)),)
    return ((op, _version(major, minor or 0, patch or 0, prerelease)),)


def _hyphen(lower_text: str, upper_text: str) -> ComparatorSet:
    lower = _parse_partial(lower_text)
    upper = _parse_partial(upper_text)
    comparators: list[Comparator] = []
    if lower[0] is not None:
        comparators.append((">=", _version(lower[0], lower[1] or 0, lower[2] or 0, lower[3])))
    comparators.extend(_primitive("<=", *upper) if upper[0] is not None else ())
    return tuple(comparators)


def _simple(token: str) -> ComparatorSet:
    match = _PRIMITIVE.match(token)
    if match is None:
        raise InvalidRangeError(f"empty comparator in {token!r}")
    op, rest = match.group(1), match.group(2)
    parts = _parse_partial(rest)
    if op is None or op == "=":
        return _x_range(*parts)
    if op == "~":
        return _tilde(*parts)
    if op == "^":
        return _caret(*parts)
    return _primitive(op, *parts)


def _parse_alternative(text: str) -> ComparatorSet:
    text = _OPERATOR_GAP.sub(r"\1", text.strip())
    if not text:
        return ()
    hyphen = _HYPHEN.match(text)
    if hyphen is not None:
        return _hyphen(hyphen.group(1), hyphen.group(2))
    comparators: list[Comparator] = []
    for token in text.split():
        comparators.extend(_simple(token))
    return tuple(comparators)


@lru_cache(maxsize=1024)
def parse_range(expression: str) -> tuple[ComparatorSet, ...]:
    """Desugar a range expression into a union of comparator sets.

    Raises ``InvalidRangeError`` when the expression is not a valid range.
    """
    if expression is None or not expression.strip():
        raise InvalidRangeError("empty range expression")
    return tuple(_parse_alternative(part) for part in expression.split("||"))


def coerce_version(text: str | None) -> Version | None:
    """Reduce a free-form app version to a plain ``major.minor.patch`` triple."""
    if not text:
        return None
    match = _COERCE.search(text)
    if match is None:
        return None
    major, minor, patch = (int(part) if part is not None else 0 for part in match.group(1, 2, 3))
    return Version(f"{major}.{minor}.{patch}")


def _satisfies_set(version: Version, comparators: ComparatorSet) -> bool:
    return all(_OPERATORS[op](version, bound) for op, bound in comparators)


def semver_satisfies(expression: str, app_version: str) -> bool:
    version = coerce_version(app_version)
    if version is None:
        return False
    try:
        alternatives = parse_range(expression)
    except InvalidRangeError:
        return False
    return any(_satisfies_set(version, comparators) for comparators in alternatives)


def is_wildcard_range(expression: str) -> bool:
    try:
        alternatives = parse_range(expression)
    except InvalidRangeError:
        return False
    return any(len(comparators) == 0 for comparators in alternatives)


def min_version(expression: str) -> Version:
    """Lowest version the range admits, used only for ordering."""
    lowest: Version | None = None
    for comparators in parse_range(expression):
        floor = Version("0.0.0")
        for op, bound in comparators:
            if op in {">=", ">", "=="} and bound > floor:
                floor = bound
        if lowest is None or floor < lowest:
            lowest = floor
    return lowest if lowest is not None else Version("0.0.0")


def filter_compatible_app_versions(target_app_versions: Iterable[str], app_version: str) -> list[str]:
    """Return the ranges ``app_version`` satisfies, most specific first.

    Non-wildcard ranges are ordered by their minimum version (descending, ties
    by the expression text); ranges that match every version come last.
    """
    version = coerce_version(app_version)
    if version is None:
        return []

    specific: list[str] = []
    wildcard: list[str] = []
    for expression in dict.fromkeys(target_app_versions):
        if not expression:
            continue
        try:
            alternatives = parse_range(expression)
        except InvalidRangeError:
            logger.debug("Skipping malformed target app version %r", expression)
            continue
        if not any(_satisfies_set(version, comparators) for comparators in alternatives):
            continue
        if any(len(comparators) == 0 for comparators in alternatives):
            wildcard.append(expression)
        else:
            specific.append(expression)

    specific.sort(reverse=True)
    specific.sort(key=min_version, reverse=True)
    wildcard.sort(reverse=True)
    return specific + wildcard
