"""
Query time normalization.

The activity map API accepts and returns times in several shapes: epoch
seconds, epoch milliseconds, unitized relative offsets ("-30m") and the
literal "now". QueryTime folds all of them into one value type:

  - INSTANT:  absolute time, always held as epoch milliseconds
  - RELATIVE: signed offset from the evaluation time, in milliseconds
  - NOW:      the zero-offset sentinel

Bare integers are unit-ambiguous. Anything whose magnitude is below
SECONDS_THRESHOLD is read as seconds, everything else as milliseconds.
QueryTime never reads a clock; relative values are resolved against a
caller-supplied "now".
"""

import enum
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Union

from ..errors import InvalidQueryTime

# Bare integers below this magnitude are epoch seconds. 10**12 ms is
# September 2001, 10**12 s is far beyond any realistic timestamp.
SECONDS_THRESHOLD = 10**12

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

NOW_TOKEN = "now"

UNIT_MS = {
    "d": 86_400_000,
    "h": 3_600_000,
    "m": 60_000,
    "s": 1_000,
}

_BARE_INT = re.compile(r"^-?[0-9]+$")
_EXPLICIT_MS = re.compile(r"^(-?[0-9]+)ms$")
_RELATIVE = re.compile(r"^([+-])([0-9]+)([smhd])$")


class TimeKind(enum.Enum):
    INSTANT = "instant"
    RELATIVE = "relative"
    NOW = "now"


def _checked(value: int, source: object) -> int:
    if not INT64_MIN <= value <= INT64_MAX:
        raise InvalidQueryTime(source, "overflows signed 64-bit milliseconds")
    return value


# int64 has at most 19 decimal digits
_MAX_DIGITS = 19


def _to_int(digits: str, source: object) -> int:
    if len(digits.lstrip("+-").lstrip("0")) > _MAX_DIGITS:
        raise InvalidQueryTime(source, "overflows signed 64-bit milliseconds")
    return int(digits)


@dataclass(frozen=True)
class QueryTime:
    """An absolute instant or a relative offset used in activity map queries."""
    kind: TimeKind
    value: int = 0

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidQueryTime(self.value, "value must be an integer")
        _checked(self.value, self.value)
        if self.kind is TimeKind.NOW and self.value != 0:
            raise InvalidQueryTime(self.value, "NOW carries no offset")
        if self.kind is TimeKind.RELATIVE and self.value % 1000:
            raise InvalidQueryTime(self.value, "relative offsets are whole seconds")

    # -- construction --------------------------------------------------

    @classmethod
    def instant(cls, epoch_ms: int) -> "QueryTime":
        return cls(TimeKind.INSTANT, epoch_ms)

    @classmethod
    def relative(cls, offset: Union[timedelta, int]) -> "QueryTime":
        """Build a relative time from a timedelta or a millisecond offset."""
        if isinstance(offset, timedelta):
            if offset % timedelta(seconds=1):
                raise InvalidQueryTime(offset, "relative offsets are whole seconds")
            offset = offset // timedelta(milliseconds=1)
        return cls(TimeKind.RELATIVE, offset)

    @classmethod
    def parse(
        cls, value: Union[int, str], threshold: int = SECONDS_THRESHOLD
    ) -> "QueryTime":
        """
        Parse a wire value into a QueryTime.

        Accepts an integer (or its decimal string), "<sign><n><unit>" with
        unit in s/m/h/d, "<n>ms" as explicit milliseconds, or "now".
        Raises InvalidQueryTime for anything else.
        """
        if isinstance(value, bool):
            raise InvalidQueryTime(value, "booleans are not times")
        if isinstance(value, int):
            return cls._from_integer(value, threshold)
        if not isinstance(value, str):
            raise InvalidQueryTime(value, f"unsupported type {type(value).__name__}")

        text = value.strip()
        if text == NOW_TOKEN:
            return NOW
        if _BARE_INT.match(text):
            return cls._from_integer(_to_int(text, value), threshold, source=value)

        m = _EXPLICIT_MS.match(text)
        if m:
            return cls.instant(_checked(_to_int(m.group(1), value), value))

        m = _RELATIVE.match(text)
        if m:
            sign, amount, unit = m.groups()
            offset = _to_int(amount, value) * UNIT_MS[unit]
            if sign == "-":
                offset = -offset
            return cls.relative(_checked(offset, value))

        raise InvalidQueryTime(value, "expected epoch integer, <sign><n><s|m|h|d> or 'now'")

    @classmethod
    def coerce(cls, value: Union["QueryTime", int, str], threshold: int = SECONDS_THRESHOLD) -> "QueryTime":
        if isinstance(value, QueryTime):
            return value
        return cls.parse(value, threshold)

    @classmethod
    def _from_integer(cls, n: int, threshold: int, source: object = None) -> "QueryTime":
        source = n if source is None else source
        _checked(n, source)
        if abs(n) < threshold:
            n = _checked(n * 1000, source)
        return cls.instant(n)

    # -- rendering -----------------------------------------------------

    def format(self, threshold: int = SECONDS_THRESHOLD) -> str:
        """
        Render in the grammar accepted by parse().

        Instants below the threshold get an explicit "ms" suffix so that
        parsing them back does not reinterpret them as seconds.
        """
        if self.kind is TimeKind.NOW:
            return NOW_TOKEN
        if self.kind is TimeKind.INSTANT:
            if abs(self.value) < threshold:
                return f"{self.value}ms"
            return str(self.value)

        sign = "-" if self.value < 0 else "+"
        magnitude = abs(self.value)
        for unit, unit_ms in UNIT_MS.items():
            if magnitude % unit_ms == 0:
                return f"{sign}{magnitude // unit_ms}{unit}"
        # unreachable: __post_init__ guarantees whole seconds
        raise InvalidQueryTime(self.value, "relative offset is not whole seconds")

    def to_wire(self, threshold: int = SECONDS_THRESHOLD) -> Union[int, str]:
        """Request parameter form: milliseconds for instants, strings otherwise."""
        if self.kind is TimeKind.INSTANT:
            return self.value
        return self.format(threshold)

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        if self.kind is TimeKind.NOW:
            return "QueryTime.NOW"
        return f"QueryTime.{self.kind.value}({self.value})"

    # -- inspection ----------------------------------------------------

    @property
    def is_relative(self) -> bool:
        return self.kind is not TimeKind.INSTANT

    @property
    def is_absolute(self) -> bool:
        return self.kind is TimeKind.INSTANT

    @property
    def offset(self) -> Optional[timedelta]:
        """Offset from evaluation time, or None for instants."""
        if self.kind is TimeKind.INSTANT:
            return None
        return timedelta(milliseconds=self.value)

    def resolve(self, now_ms: int) -> "QueryTime":
        """Pin a relative time to an instant using the caller's clock value."""
        if self.kind is TimeKind.INSTANT:
            return self
        return QueryTime.instant(_checked(now_ms + self.value, now_ms))


NOW = QueryTime(TimeKind.NOW, 0)
