"""
Per-field codecs for the notification payload.

Most fields travel unchanged between the stored record and the canonical
output. The irregular ones get a codec registered under their wire name in
``NOTIFICATION_CODECS``; the schema and the encoder look codecs up by name and
never special-case a field themselves.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from pydantic import BaseModel

from .exceptions import EncodeError, EncodeErrorKind

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

TIMESTAMP_UNITS = ("ms", "ns")

RFC3339_RE = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})T(?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})"
)


@dataclass(frozen=True)
class EncodeOptions:
    timestamp_unit: str = "ms"


class FieldCodec:
    """Pass-through codec: the decoded value is the wire value."""

    def decode(self, value: Any) -> Any:
        return value

    def encode(self, value: Any, options: EncodeOptions) -> Any:
        return value


def parse_rfc3339(text: str) -> datetime:
    m = RFC3339_RE.fullmatch(text)
    if not m:
        raise ValueError(f"not an RFC3339 timestamp: {text!r}")
    try:
        parsed = datetime.strptime(f"{m['date']}T{m['time']}", "%Y-%m-%dT%H:%M:%S")
    except ValueError as e:
        raise ValueError(f"not an RFC3339 timestamp: {text!r} ({e})") from e

    tz = m["tz"]
    if tz == "Z":
        tzinfo = timezone.utc
    else:
        hours, minutes = int(tz[1:3]), int(tz[4:6])
        if hours > 23 or minutes > 59:
            raise ValueError(f"not an RFC3339 timestamp: {text!r} (offset out of range)")
        offset = timedelta(hours=hours, minutes=minutes)
        tzinfo = timezone(-offset if tz[0] == "-" else offset)

    # datetime keeps microseconds; extra fraction digits are truncated
    micros = int((m["frac"] or "0")[:6].ljust(6, "0"))
    return parsed.replace(microsecond=micros, tzinfo=tzinfo)


class TimestampCodec(FieldCodec):
    """RFC3339 text on the way in, integer epoch offset on the way out."""

    def decode(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if not isinstance(value, str):
            raise ValueError("timestamp must be an RFC3339 string")
        return parse_rfc3339(value)

    def encode(self, value: datetime, options: EncodeOptions) -> int:
        if options.timestamp_unit not in TIMESTAMP_UNITS:
            raise ValueError(f"unknown timestamp unit {options.timestamp_unit!r}")
        delta = value - EPOCH
        if options.timestamp_unit == "ns":
            # Below datetime resolution: scaled up from microseconds
            encoded = (delta // timedelta(microseconds=1)) * 1000
        else:
            encoded = delta // timedelta(milliseconds=1)
        if not INT64_MIN <= encoded <= INT64_MAX:
            raise EncodeError(
                EncodeErrorKind.OUT_OF_RANGE,
                f"timestamp {value.isoformat()} does not fit a 64-bit {options.timestamp_unit} value",
                field="timestamp",
            )
        return encoded


class PlaceholderCodec(FieldCodec):
    """Accepts any object and forgets its contents; always encodes to ``{}``."""

    def decode(self, value: Any) -> Any:
        if value is None or isinstance(value, BaseModel):
            return value
        if isinstance(value, dict):
            return {}
        raise ValueError("messageAttributes must be an object")

    def encode(self, value: Any, options: EncodeOptions) -> Dict[str, Any]:
        return {}


PASS_THROUGH = FieldCodec()

NOTIFICATION_CODECS: Dict[str, FieldCodec] = {
    "timestamp": TimestampCodec(),
    "messageAttributes": PlaceholderCodec(),
}


def codec_for(wire_name: str) -> FieldCodec:
    return NOTIFICATION_CODECS.get(wire_name, PASS_THROUGH)
