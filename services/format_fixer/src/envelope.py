import json
import re
from typing import Any, Dict, Optional, Tuple, Type, TypeVar, Union

from pydantic import ValidationError

from .codecs import EncodeOptions, codec_for
from .exceptions import DecodeError, DecodeErrorKind, EncodeError, EncodeErrorKind
from .schemas import Envelope, Notification

Record = TypeVar("Record", Envelope, Notification)

# Strings are matched first so a constant inside a value is never reported
_CONSTANT_RE = re.compile(r'"(?:[^"\\]|\\.)*"|(-?Infinity|NaN)')


class _NonFiniteConstant(ValueError):
    pass


def _reject_constant(name: str) -> Any:
    raise _NonFiniteConstant(name)


def _field_from_loc(loc: Tuple[Any, ...]) -> Optional[str]:
    names = [part for part in loc if isinstance(part, str)]
    return names[-1] if names else None


def _byte_offset(json_text: str, pos: int) -> int:
    return len(json_text[:pos].encode("utf-8"))


def _parse(json_text: str) -> Any:
    try:
        return json.loads(json_text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        offset = _byte_offset(json_text, e.pos)
        raise DecodeError(
            DecodeErrorKind.MALFORMED,
            f"invalid JSON at byte {offset}: {e.msg}",
            offset=offset,
        ) from e
    except _NonFiniteConstant as e:
        pos = next(
            (m.start(1) for m in _CONSTANT_RE.finditer(json_text) if m.group(1)),
            0,
        )
        offset = _byte_offset(json_text, pos)
        raise DecodeError(
            DecodeErrorKind.MALFORMED,
            f"invalid JSON at byte {offset}: {e} is not a JSON number",
            offset=offset,
        ) from e


def _validate(data: Any, record_type: Type[Record]) -> Record:
    try:
        return record_type.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = _field_from_loc(first["loc"])
        raise DecodeError(
            DecodeErrorKind.SCHEMA_MISMATCH,
            f"{field or 'record'}: {first['msg']}",
            field=field,
        ) from e


def decode(json_text: str, record_type: Type[Record] = Envelope) -> Record:
    """Parse strict JSON text into ``record_type``.

    Raises DecodeError(MALFORMED) with the UTF-8 byte offset of the syntax
    error (``NaN`` and ``Infinity`` included), or DecodeError(SCHEMA_MISMATCH)
    naming the first offending field.
    """
    return _validate(_parse(json_text), record_type)


def decode_notification(json_text: str) -> Notification:
    return decode(json_text, Notification)


def decode_record(json_text: str) -> Union[Envelope, Notification]:
    """Decode an Envelope, or a bare Notification when the object has no ``sns`` member."""
    data = _parse(json_text)
    if isinstance(data, dict) and not any(str(k).lower() == "sns" for k in data):
        return _validate(data, Notification)
    return _validate(data, Envelope)


def _encode_notification(notification: Notification, options: EncodeOptions) -> Dict[str, Any]:
    data = notification.model_dump(by_alias=True)
    for name, field in Notification.model_fields.items():
        wire = field.alias or name
        data[wire] = codec_for(wire).encode(getattr(notification, name), options)
    return data


def encode(record: Union[Envelope, Notification], timestamp_unit: str = "ms") -> bytes:
    """Canonical compact JSON for a decoded record.

    Raises EncodeError(OUT_OF_RANGE) when the timestamp does not fit the
    numeric encoding or a number is not finite.
    """
    options = EncodeOptions(timestamp_unit=timestamp_unit)
    if isinstance(record, Envelope):
        data = record.model_dump(by_alias=True, exclude={"sns"})
        data["sns"] = _encode_notification(record.sns, options)
    else:
        data = _encode_notification(record, options)
    try:
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except ValueError as e:
        raise EncodeError(EncodeErrorKind.OUT_OF_RANGE, f"non-finite number: {e}") from e
    return text.encode("utf-8")
