from typing import Literal, Optional

from anyio import to_thread
from fastapi import APIRouter, Header, HTTPException, Request, Response, status

from ..exceptions import DecodeError, EncodeError
from ..logging import hash_preview, jlog
from ..service import repair_record

router = APIRouter()

@router.post(
    "/repair",
    summary="Repair one quasi-JSON notification record",
    status_code=status.HTTP_200_OK,
    response_class=Response,
)
async def repair(
    request: Request,
    timestamp_unit: Optional[Literal["ms", "ns"]] = None,
    x_correlation_id: str | None = Header(default=None),
) -> Response:
    raw = await request.body()
    try:
        fixed = await to_thread.run_sync(repair_record, raw, timestamp_unit)
    except (DecodeError, EncodeError) as e:
        jlog(
            event="repair_failed",
            retryable=False,
            error=str(e),
            kind=e.kind.value,
            correlation_id=x_correlation_id,
            body=hash_preview(raw),
        )
        raise HTTPException(status_code=422, detail=e.to_dict())

    jlog(event="repair_ok", correlation_id=x_correlation_id, before=hash_preview(raw), after=hash_preview(fixed))
    return Response(content=fixed, media_type="application/json")
