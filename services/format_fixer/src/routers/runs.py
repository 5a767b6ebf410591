from fastapi import APIRouter, Header, HTTPException, status

from ..exceptions import PermanentError, RetryableError
from ..logging import jlog
from ..schemas import RepairRunRequest, RepairRunResponse
from ..service import repair_bucket

router = APIRouter()

@router.post(
    "/runs",
    response_model=RepairRunResponse,
    summary="Repair every stored notification under a bucket prefix",
    status_code=status.HTTP_200_OK,
)
async def create_run(
    payload: RepairRunRequest,
    x_correlation_id: str | None = Header(default=None),
) -> RepairRunResponse:
    """
    Runs inline and returns the per-record report. Record failures are part of
    the report; only listing failures fail the request.
    """
    try:
        return await repair_bucket(
            payload.bucket,
            payload.prefix,
            dry_run=payload.dry_run,
            max_keys=payload.max_keys,
            timestamp_unit=payload.timestamp_unit,
        )
    except RetryableError as e:
        jlog(event="run_failed", retryable=True, error=str(e), bucket=payload.bucket, correlation_id=x_correlation_id)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="run_failed", retryable=False, error=str(e), bucket=payload.bucket, correlation_id=x_correlation_id)
        raise HTTPException(status_code=422, detail=str(e))
