"""
Flag value kinds: a closed set of coercions between raw strings and typed values.

Every Kind member owns exactly one coerce() and one format() so that
kind.coerce(kind.format(value)) == value for any value the kind produces.

Accepted spellings
- bool: 1, t, T, TRUE, true, True, 0, f, F, FALSE, false, False
- int / int64: optional sign followed by decimal digits, within the signed 64-bit range
- float64: decimal or exponent notation, inf and nan (no digit separators)
- duration: a sequence of decimal numbers with a unit suffix, e.g. "300ms",
  "1.5h" or "2h45m"; units are ns, us (or µs), ms, s, m, h. "0" is the zero duration.
"""
import datetime
import re
from decimal import Decimal
from enum import Enum

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_INTEGER = re.compile(r"[+-]?\d+")
_FLOAT = re.compile(r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf|infinity|nan)", re.IGNORECASE)
_DURATION = re.compile(r"(?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+")
_SEGMENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

# microseconds per unit
_UNITS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),
    "μs": Decimal(1),
    "ms": Decimal(1_000),
    "s": Decimal(1_000_000),
    "m": Decimal(60_000_000),
    "h": Decimal(3_600_000_000),
}

_INT64 = range(-2 ** 63, 2 ** 63)


def _parse_bool(raw):
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"invalid syntax for bool: {raw!r}")


def _parse_int(raw):
    if not _INTEGER.fullmatch(raw):
        raise ValueError(f"invalid syntax for integer: {raw!r}")
    if (value := int(raw)) not in _INT64:
        raise ValueError(f"value out of range: {raw!r}")
    return value


def _parse_float(raw):
    if not _FLOAT.fullmatch(raw):
        raise ValueError(f"invalid syntax for float: {raw!r}")
    return float(raw)


def _parse_duration(raw):
    sign, body = (-1, raw[1:]) if raw[:1] == "-" else (1, raw.removeprefix("+"))
    if body == "0":
        return datetime.timedelta(0)
    if not body or not _DURATION.fullmatch(body):
        raise ValueError(f"invalid duration: {raw!r}")
    total = sum(Decimal(number) * _UNITS[unit] for number, unit in _SEGMENT.findall(body))
    return datetime.timedelta(microseconds=sign * int(total.to_integral_value()))


def _fraction(value, unit):
    whole, rest = divmod(value, unit)
    if not rest:
        return str(whole)
    return f"{whole}.{str(rest).rjust(len(str(unit)) - 1, "0").rstrip("0")}"


def _format_duration(value):
    micros = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    if micros == 0:
        return "0s"
    sign, micros = ("-" if micros < 0 else ""), abs(micros)
    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_fraction(micros, 1_000)}ms"
    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    text = f"{hours}h" if hours else ""
    if hours or minutes:
        text += f"{minutes}m"
    return f"{sign}{text}{_fraction(rest, 1_000_000)}s"


def _format_float(value):
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "+Inf" if value > 0 else "-Inf"
    return text.removesuffix(".0") if (text := repr(value)).endswith(".0") else text


class Kind(Enum):
    """
    Closed variant over the value kinds a flag may carry.
    """
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    INT64 = "int64"
    FLOAT64 = "float64"
    DURATION = "duration"

    def coerce(self, raw, /):
        """
        Parse a raw string into this kind's value; raises ValueError when malformed.
        """
        if not isinstance(raw, str):
            raise TypeError(f"{self.value} raw value must be a string")
        match self:
            case Kind.STRING:
                return raw
            case Kind.BOOL:
                return _parse_bool(raw)
            case Kind.INT | Kind.INT64:
                return _parse_int(raw)
            case Kind.FLOAT64:
                return _parse_float(raw)
            case Kind.DURATION:
                return _parse_duration(raw)

    def format(self, value, /):
        """
        Render a value of this kind back to the raw string form coerce() accepts.
        """
        match self:
            case Kind.STRING:
                return str(value)
            case Kind.BOOL:
                return "true" if value else "false"
            case Kind.INT | Kind.INT64:
                return str(int(value))
            case Kind.FLOAT64:
                return _format_float(float(value))
            case Kind.DURATION:
                return _format_duration(value)

    @property
    def zero(self):
        """
        The value a flag of this kind reads as when nothing supplied one.
        """
        match self:
            case Kind.STRING:
                return ""
            case Kind.BOOL:
                return False
            case Kind.INT | Kind.INT64:
                return 0
            case Kind.FLOAT64:
                return 0.0
            case Kind.DURATION:
                return datetime.timedelta(0)


__all__ = (
    "Kind",
)
