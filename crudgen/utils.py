# File: crudgen/utils.py
"""
crudgen - Naming Helpers & Small Utilities
============================================
String inflection shared by the association compiler, the route resolver
and every render strategy, plus the checksum and timing helpers used by the
writer and the pipeline report.

All inflection functions are cached with ``functools.lru_cache``: the same
handful of entity names is inflected many times per run.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import re
import time
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple, Union

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)

# Irregular nouns that show up as entity names
_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "axis": "axes",
    "crisis": "crises",
    "analysis": "analyses",
    "status": "statuses",
    "address": "addresses",
    "hero": "heroes",
    "potato": "potatoes",
    "tomato": "tomatoes",
}

_IRREGULAR_SINGULARS: Dict[str, str] = {v: k for k, v in _IRREGULAR_PLURALS.items()}

# Words with identical singular and plural forms
_UNCOUNTABLE: FrozenSet[str] = frozenset({
    "equipment", "information", "rice", "money", "species",
    "series", "fish", "sheep", "news", "metadata",
})


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("BlogPost")
        'blog_post'
        >>> to_snake_case("line-item")
        'line_item'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert any string to PascalCase.

    Examples:
        >>> to_pascal_case("line_item")
        'LineItem'
    """
    if not name:
        return ""
    return "".join(word.capitalize() for word in _extract_words(name))


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """Convert any string to camelCase (``line_item`` -> ``lineItem``)."""
    words: Tuple[str, ...] = _extract_words(name) if name else ()
    if not words:
        return ""
    return words[0].lower() + "".join(w.capitalize() for w in words[1:])


@functools.lru_cache(maxsize=None)
def to_title_human(name: str) -> str:
    """``line_item`` -> ``Line Item``."""
    if not name:
        return ""
    return " ".join(w.capitalize() for w in _extract_words(name))


def _match_case(original: str, replacement: str) -> str:
    if original[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    English pluralisation good enough for resource names.

    Only the last underscore-separated word is inflected, so
    ``line_item`` becomes ``line_items`` and ``person`` becomes ``people``.
    """
    if not name:
        return ""

    head, sep, last = name.rpartition("_")
    lower: str = last.lower()

    if lower in _UNCOUNTABLE:
        return name
    if lower in _IRREGULAR_PLURALS:
        return head + sep + _match_case(last, _IRREGULAR_PLURALS[lower])

    if lower.endswith(("s", "sh", "ch", "x", "z")):
        return name + "es"
    if lower.endswith("y") and len(lower) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith("fe") and not lower.endswith("ffe"):
        return name[:-2] + "ves"
    if lower.endswith(("lf", "rf")):
        return name[:-1] + "ves"

    return name + "s"


@functools.lru_cache(maxsize=None)
def to_singular(name: str) -> str:
    """
    Reverse of :func:`to_plural`.

    Used to derive an association's target entity from its name
    (``has_many :comments`` targets ``comment``).
    """
    if not name:
        return ""

    head, sep, last = name.rpartition("_")
    lower: str = last.lower()

    if lower in _UNCOUNTABLE:
        return name
    if lower in _IRREGULAR_SINGULARS:
        return head + sep + _match_case(last, _IRREGULAR_SINGULARS[lower])
    if lower in _IRREGULAR_PLURALS:
        # already singular
        return name

    if lower.endswith("ies") and len(lower) > 3:
        return name[:-3] + "y"
    if lower.endswith(("lves", "rves")):
        return name[:-3] + "f"
    if lower.endswith(("knives", "wives", "lives")):
        return name[:-3] + "fe"
    if lower.endswith(("sses", "shes", "ches", "xes", "zes")):
        return name[:-2]
    if lower.endswith("ss") or lower.endswith("us") or lower.endswith("is"):
        return name
    if lower.endswith("s"):
        return name[:-1]

    return name


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    """Split any casing style into a tuple of lowercase words."""
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


# ---------------------------------------------------------------------------
# Code formatting helpers
# ---------------------------------------------------------------------------


def indent_lines(lines: Sequence[str], level: int = 1, size: int = 2) -> List[str]:
    """Indent a list of lines, leaving blank lines blank."""
    prefix: str = " " * (level * size)
    return [prefix + line if line.strip() else line for line in lines]


def build_import_block(imports: Dict[str, Set[str]]) -> str:
    """
    Build a sorted, de-duplicated Python import block from a mapping of
    module -> names.  An empty name set yields a plain ``import module``.
    """
    lines: List[str] = []
    for module in sorted(imports):
        names: List[str] = sorted(imports[module])
        if names:
            lines.append(f"from {module} import {', '.join(names)}")
        else:
            lines.append(f"import {module}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: Union[str, bytes]) -> str:
    """Return SHA-256 hex digest of a string (UTF-8 encoded) or raw bytes."""
    data: bytes = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for pipeline steps.

    Usage:
        with Timer("validate") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_title_human",
    "to_plural",
    "to_singular",
    "indent_lines",
    "build_import_block",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("crudgen.utils loaded: %d public symbols.", len(__all__))
