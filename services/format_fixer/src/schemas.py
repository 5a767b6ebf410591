from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from .codecs import codec_for


class WireModel(BaseModel):
    """Record decoded from the notification store. Keys match case-insensitively."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True, allow_inf_nan=False)

    @model_validator(mode="before")
    @classmethod
    def _fold_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        names: Dict[str, str] = {}
        for name, field in cls.model_fields.items():
            wire = field.alias or name
            names[name.lower()] = wire
            names[wire.lower()] = wire
        return {names.get(str(k).lower(), k): v for k, v in data.items()}


class AttributePlaceholder(BaseModel):
    """Stands in for the publisher's free-form attribute map, which is dropped."""
    model_config = ConfigDict(extra="ignore", frozen=True)


class Notification(WireModel):
    message_attributes: Optional[AttributePlaceholder] = Field(default=None, alias="messageAttributes")
    signing_cert_url: str = Field(default="", alias="signingCertUrl")
    message_id: str = Field(default="", alias="messageId")
    message: str = ""
    unsubscribe_url: str = Field(default="", alias="unsubscribeUrl")
    type: str = ""
    signature_version: int = Field(default=0, alias="signatureVersion")
    signature: str = ""
    timestamp: datetime
    topic_arn: str = Field(default="", alias="topicArn")

    @field_validator("*", mode="before")
    @classmethod
    def _decode_field(cls, value: Any, info: ValidationInfo) -> Any:
        field = cls.model_fields[info.field_name]
        return codec_for(field.alias or info.field_name).decode(value)


class Envelope(WireModel):
    event_version: float = Field(default=0.0, alias="eventVersion")
    event_source: str = Field(default="", alias="eventSource")
    event_subscription_arn: str = Field(default="", alias="eventSubscriptionArn")
    sns: Notification


# -----------------------
# Batch runs
# -----------------------

class RecordOutcome(BaseModel):
    key: str
    status: Literal["fixed", "unchanged", "failed"]
    written: bool = False
    retryable: Optional[bool] = None
    error: Optional[Dict[str, Any]] = None


class RepairRunRequest(BaseModel):
    bucket: str = Field(..., min_length=1, description="Bucket holding the stored notifications")
    prefix: Optional[str] = Field(default=None, description="Key prefix; defaults to DEFAULT_PREFIX")
    dry_run: Optional[bool] = Field(default=None, description="Repair without writing back")
    max_keys: Optional[int] = Field(default=None, ge=1, description="Stop listing after this many keys")
    timestamp_unit: Optional[Literal["ms", "ns"]] = None


class RepairRunResponse(BaseModel):
    bucket: str
    prefix: str
    dry_run: bool
    listed: int = 0
    fixed: int = 0
    unchanged: int = 0
    failed: int = 0
    records: List[RecordOutcome] = Field(default_factory=list)
    version: str = "v1"
