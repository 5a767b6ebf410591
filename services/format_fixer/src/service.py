import time
import uuid
from typing import Dict, Optional

import anyio
from anyio import to_thread
from opentelemetry import trace

from .config import settings
from .envelope import decode_record, encode
from .exceptions import DecodeError, DecodeErrorKind, FixerError, PermanentError, RetryableError
from .logging import hash_preview, jlog, reset_run_id, set_run_id
from .normalizer import normalize
from .schemas import RecordOutcome, RepairRunResponse
from .storage import get_object, list_keys, put_object

tracer = trace.get_tracer(__name__)

def repair_text(raw_text: str, timestamp_unit: Optional[str] = None) -> bytes:
    """normalize -> decode -> encode for one stored record."""
    return encode(decode_record(normalize(raw_text)), timestamp_unit or settings.timestamp_unit)

def repair_record(raw: bytes, timestamp_unit: Optional[str] = None) -> bytes:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(
            DecodeErrorKind.MALFORMED,
            f"invalid UTF-8 at byte {e.start}",
            offset=e.start,
        ) from e
    return repair_text(text, timestamp_unit)

def _error_detail(e: FixerError) -> Dict:
    # Decode/encode errors carry kind/field/offset; storage errors only a message
    to_dict = getattr(e, "to_dict", None)
    if to_dict is not None:
        return to_dict()
    return {"kind": "storage", "field": None, "offset": None, "message": str(e)}

def repair_object(bucket: str, key: str, timestamp_unit: str, dry_run: bool) -> RecordOutcome:
    """Repair one stored object in place. Failures are reported, never raised."""
    with tracer.start_as_current_span("repair_object", attributes={"bucket": bucket, "key": key}):
        start = time.time()
        try:
            raw = get_object(bucket, key)
            fixed = repair_record(raw, timestamp_unit)
            if fixed == raw:
                outcome = RecordOutcome(key=key, status="unchanged")
            else:
                if not dry_run:
                    put_object(bucket, key, fixed)
                outcome = RecordOutcome(key=key, status="fixed", written=not dry_run)
            jlog(
                event="record_ok",
                bucket=bucket,
                key=key,
                status=outcome.status,
                written=outcome.written,
                before=hash_preview(raw),
                after=hash_preview(fixed),
                duration_ms=int((time.time() - start) * 1000),
            )
            return outcome
        except PermanentError as e:
            jlog(event="record_failed", severity="WARNING", bucket=bucket, key=key, retryable=False, error=str(e))
            return RecordOutcome(key=key, status="failed", retryable=False, error=_error_detail(e))
        except RetryableError as e:
            jlog(event="record_failed", severity="WARNING", bucket=bucket, key=key, retryable=True, error=str(e))
            return RecordOutcome(key=key, status="failed", retryable=True, error=_error_detail(e))
        except Exception as e:
            # One bad record must not take the batch down; report it as retryable
            jlog(event="record_failed_unexpected", severity="ERROR", bucket=bucket, key=key, error=repr(e))
            return RecordOutcome(
                key=key,
                status="failed",
                retryable=True,
                error={"kind": "unexpected", "field": None, "offset": None, "message": repr(e)},
            )

async def repair_bucket(
    bucket: str,
    prefix: Optional[str] = None,
    *,
    dry_run: Optional[bool] = None,
    max_keys: Optional[int] = None,
    timestamp_unit: Optional[str] = None,
) -> RepairRunResponse:
    """
    List every object under ``prefix`` and repair each one, writing the result
    back under the same key. Listing errors abort the run; record errors do not.
    """
    prefix = settings.default_prefix if prefix is None else prefix
    dry_run = settings.dry_run if dry_run is None else dry_run
    max_keys = settings.list_max_keys if max_keys is None else max_keys
    unit = timestamp_unit or settings.timestamp_unit

    token = set_run_id(uuid.uuid4().hex)
    try:
        start = time.time()
        jlog(event="run_start", bucket=bucket, prefix=prefix, dry_run=dry_run, max_keys=max_keys, timestamp_unit=unit)

        keys = await to_thread.run_sync(list_keys, bucket, prefix, max_keys)

        limiter = anyio.CapacityLimiter(max(1, settings.fixer_concurrency))
        outcomes: Dict[str, RecordOutcome] = {}

        async def _repair_one(key: str) -> None:
            outcomes[key] = await to_thread.run_sync(
                repair_object, bucket, key, unit, dry_run, limiter=limiter
            )

        async with anyio.create_task_group() as tg:
            for key in keys:
                tg.start_soon(_repair_one, key)

        records = [outcomes[k] for k in keys]
        report = RepairRunResponse(
            bucket=bucket,
            prefix=prefix,
            dry_run=dry_run,
            listed=len(keys),
            fixed=sum(1 for r in records if r.status == "fixed"),
            unchanged=sum(1 for r in records if r.status == "unchanged"),
            failed=sum(1 for r in records if r.status == "failed"),
            records=records,
        )
        jlog(
            event="run_done",
            bucket=bucket,
            prefix=prefix,
            listed=report.listed,
            fixed=report.fixed,
            unchanged=report.unchanged,
            failed=report.failed,
            duration_ms=int((time.time() - start) * 1000),
        )
        return report
    finally:
        reset_run_id(token)
