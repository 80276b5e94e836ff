"""Defensive parsing of semi-structured model output.

Model responses are asked for strict JSON but often arrive wrapped in
code fences, prefixed with prose, or with missing fields. Parsers here
return a tagged result: :class:`Ok` when the payload had the expected
shape, :class:`Fallback` (carrying a conservative default and the reason)
when it did not. Per-field defaults are declared as coercion tables of
:class:`FieldRule`, so the fallback policy is plain data.
"""

from __future__ import annotations

import copy
import json
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeAlias, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

T = TypeVar("T")

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)
_BLOCK_START_RE = re.compile(r"^[ \t]*([\[{])", re.MULTILINE)


class JSONExtractionError(Exception):
    """Raised when no JSON value can be extracted from text."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Payload parsed with the expected shape."""

    value: T

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True)
class Fallback(Generic[T]):
    """Payload unusable; ``value`` is the conservative default.

    ``unparsed`` is True when the text held no JSON at all, as opposed
    to JSON of the wrong shape.
    """

    value: T
    reason: str
    unparsed: bool = False

    @property
    def is_fallback(self) -> bool:
        return True


ParseResult: TypeAlias = Ok[T] | Fallback[T]


# ─── Field coercion ───────────────────────────────────────────

_MISSING = object()


@dataclass(frozen=True, slots=True)
class FieldRule:
    """How to read one field of an upstream record.

    ``accept`` decides whether the raw value is usable; ``transform``
    normalizes an accepted value; otherwise ``default`` is used (deep
    copied, so list defaults are never shared).
    """

    accept: Callable[[Any], bool]
    default: Any
    source: str | None = None
    transform: Callable[[Any], Any] | None = None


def is_number(value: Any) -> bool:
    """True for ints and floats (not bools) that fit a finite float."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def is_text(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def is_list(value: Any) -> bool:
    return isinstance(value, list)


def one_of(*choices: Any) -> Callable[[Any], bool]:
    allowed = frozenset(choices)

    def _accept(value: Any) -> bool:
        try:
            return value in allowed
        except TypeError:
            return False

    return _accept


def clamp(low: float, high: float) -> Callable[[Any], float]:
    def _clamp(value: Any) -> float:
        return max(low, min(high, float(value)))

    return _clamp


def string_items(value: list[Any]) -> list[str]:
    return [str(v) for v in value if isinstance(v, str | int | float)]


def coerce_record(raw: Any, rules: Mapping[str, FieldRule]) -> dict[str, Any]:
    """Build a record from *raw* using *rules*; never raises.

    Non-dict input yields a record made entirely of defaults.
    """
    src = raw if isinstance(raw, dict) else {}
    record: dict[str, Any] = {}
    for name, rule in rules.items():
        value = src.get(rule.source or name, _MISSING)
        if value is not _MISSING and rule.accept(value):
            record[name] = rule.transform(value) if rule.transform else value
        else:
            record[name] = copy.deepcopy(rule.default)
    return record


# ─── JSON extraction ──────────────────────────────────────────


def _try_loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return _MISSING


def extract_json(text: str) -> Any:
    """Extract a JSON value (object or array) from text.

    Tries strategies in order:
    1. Direct ``json.loads()`` on the full text
    2. Contents of a markdown code fence (```json ... ```)
    3. A ``[...]`` or ``{...}`` span whose opener starts a line

    Raises:
        JSONExtractionError: If no valid JSON value can be found.
    """
    stripped = text.strip()
    if not stripped:
        msg = "Empty text"
        raise JSONExtractionError(msg)

    # Strategy 1: Direct parse
    result = _try_loads(stripped)
    if result is not _MISSING:
        return result

    # Strategy 2: Markdown code fence
    match = _FENCE_RE.search(text)
    if match:
        result = _try_loads(match.group(1))
        if result is not _MISSING:
            return result

    # Strategy 3: Bracketed span opening a line, up to the last closer
    for match in _BLOCK_START_RE.finditer(stripped):
        opener = match.group(1)
        last = stripped.rfind("]" if opener == "[" else "}")
        if last > match.start(1):
            result = _try_loads(stripped[match.start(1) : last + 1])
            if result is not _MISSING:
                return result

    msg = "No valid JSON value found in text"
    raise JSONExtractionError(msg)


def parse_record_list(
    text: str, rules: Mapping[str, FieldRule]
) -> ParseResult[list[dict[str, Any]]]:
    """Parse a JSON array of records, coercing every item with *rules*.

    Malformed items are kept with defaulted fields, never dropped.
    """
    try:
        data = extract_json(text)
    except JSONExtractionError as e:
        return Fallback([], str(e), unparsed=True)
    if not isinstance(data, list):
        return Fallback([], f"Expected JSON array, got {type(data).__name__}")
    return Ok([coerce_record(item, rules) for item in data])


def parse_string_list(text: str) -> ParseResult[list[str]]:
    """Parse a JSON array, keeping only its string items."""
    try:
        data = extract_json(text)
    except JSONExtractionError as e:
        return Fallback([], str(e), unparsed=True)
    if not isinstance(data, list):
        return Fallback([], f"Expected JSON array, got {type(data).__name__}")
    return Ok([item for item in data if isinstance(item, str)])


def parse_record(
    text: str, rules: Mapping[str, FieldRule]
) -> ParseResult[dict[str, Any]]:
    """Parse a JSON object with *rules*; defaults for everything on failure."""
    try:
        data = extract_json(text)
    except JSONExtractionError as e:
        return Fallback(coerce_record(None, rules), str(e), unparsed=True)
    if not isinstance(data, dict):
        reason = f"Expected JSON object, got {type(data).__name__}"
        return Fallback(coerce_record(None, rules), reason)
    return Ok(coerce_record(data, rules))
