"""Shell-glob matching of release asset names.

``fnmatch`` accepts any string as a pattern, so malformed classes such as
``a[b`` would silently match literally. Patterns are compiled here instead,
with ``*``, ``?``, ``[...]`` (``^`` or ``!`` negates, ``lo-hi`` ranges) and
``\\`` escapes. ``/`` has no special meaning since asset names are flat.
"""

import logging
import re
from collections.abc import Iterable

from releaseget.errors import InvalidAssetNameError, NoMatchingAssetError, PatternError
from releaseget.github_api import Asset

logger = logging.getLogger(__name__)


class GlobPattern:
    def __init__(self, pattern: str):
        self.pattern = pattern
        self._regex = re.compile(_translate(pattern), re.DOTALL)

    def match(self, name: str) -> bool:
        return self._regex.fullmatch(name) is not None

    def __repr__(self) -> str:
        return f"GlobPattern({self.pattern!r})"


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    n = len(pattern)
    if i >= n:
        raise PatternError(pattern, "unterminated character class")
    c = pattern[i]
    if c in "-]":
        raise PatternError(pattern, f"unexpected {c!r} in character class")
    if c == "\\":
        i += 1
        if i >= n:
            raise PatternError(pattern, "unterminated character class")
        c = pattern[i]
    return c, i + 1


def _translate(pattern: str) -> str:
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            while i < n and pattern[i] == "*":
                i += 1
            out.append(".*")
        elif c == "?":
            out.append(".")
        elif c == "\\":
            if i >= n:
                raise PatternError(pattern, "trailing backslash")
            out.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            negate = i < n and pattern[i] in "^!"
            if negate:
                i += 1
            items: list[str] = []
            while True:
                if i >= n:
                    raise PatternError(pattern, "unterminated character class")
                if pattern[i] == "]" and items:
                    i += 1
                    break
                lo, i = _class_char(pattern, i)
                if i < n and pattern[i] == "-":
                    hi, i = _class_char(pattern, i + 1)
                    if hi < lo:
                        raise PatternError(pattern, f"bad range {lo}-{hi}")
                    items.append(f"{re.escape(lo)}-{re.escape(hi)}")
                else:
                    items.append(re.escape(lo))
            out.append("[" + ("^" if negate else "") + "".join(items) + "]")
        else:
            out.append(re.escape(c))
    return "".join(out)


def select_asset(assets: Iterable[Asset], pattern: GlobPattern) -> Asset:
    """Return the first asset, in API order, whose name matches ``pattern``.

    Raises NoMatchingAssetError listing every asset name when none matches.
    """
    names: list[str] = []
    for asset in assets:
        if pattern.match(asset.name):
            logger.debug("Asset %r matches %r", asset.name, pattern.pattern)
            return asset
        names.append(asset.name)
    raise NoMatchingAssetError(pattern.pattern, names)


def local_name(asset_name: str) -> str:
    """Final path segment of ``asset_name``, whichever separator it uses."""
    base = asset_name.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
    if base in ("", ".", ".."):
        raise InvalidAssetNameError(asset_name)
    return base
