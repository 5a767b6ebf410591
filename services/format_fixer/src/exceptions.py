from enum import Enum
from typing import Optional


class FixerError(Exception):
    pass

class RetryableError(FixerError):
    """Temporary: storage timeout, 429/5xx from the object store, transient IO errors."""
    pass

class PermanentError(FixerError):
    """Won't improve with retry: malformed record, object not found, schema mismatch."""
    pass


class DecodeErrorKind(str, Enum):
    MALFORMED = "malformed"
    SCHEMA_MISMATCH = "schema_mismatch"


class EncodeErrorKind(str, Enum):
    OUT_OF_RANGE = "out_of_range"


class DecodeError(PermanentError):
    """Record text could not be turned into an Envelope.

    ``offset`` is the UTF-8 byte offset of a syntax error (MALFORMED only),
    ``field`` the wire name of the offending field (SCHEMA_MISMATCH only).
    """

    def __init__(
        self,
        kind: DecodeErrorKind,
        message: str,
        offset: Optional[int] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.offset = offset
        self.field = field

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "field": self.field, "offset": self.offset, "message": str(self)}


class EncodeError(PermanentError):
    def __init__(self, kind: EncodeErrorKind, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.field = field

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "field": self.field, "offset": None, "message": str(self)}
