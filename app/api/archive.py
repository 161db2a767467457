"""Authenticated, cached proxy in front of the Chronicling America API."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from starlette.responses import Response

from app.api.deps import get_archive_proxy, get_db, require_user
from app.observability import CACHE_STATUS_HEADER
from app.services.archive_proxy import (
    ArchiveProxy,
    normalize_endpoint,
    requires_subscription,
)
from app.services.entitlements import has_active_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["archive"])


@router.get("/chronam-proxy")
async def chronam_proxy(
    request: Request,
    endpoint: str | None = Query(default=None),
    db: Session = Depends(get_db),
    proxy: ArchiveProxy = Depends(get_archive_proxy),
) -> Response:
    normalized = normalize_endpoint(endpoint)
    if normalized is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "missing_endpoint",
                "message": 'Missing required "endpoint" query parameter',
            },
        )
    request.state.archive_endpoint = normalized
    user = require_user(request)

    if requires_subscription(normalized):
        entitled = await run_in_threadpool(has_active_subscription, db, user.id)
        if not entitled:
            logger.info(
                "Denied gated archive endpoint %s for user %s",
                normalized,
                user.id,
                extra={"endpoint": normalized},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "subscription_required",
                    "message": "Subscription required for OCR text access",
                },
            )

    params = [
        (key, value)
        for key, value in request.query_params.multi_items()
        if key != "endpoint"
    ]
    result = await proxy.fetch(normalized, params)
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=result.content_type,
        headers={CACHE_STATUS_HEADER: result.cache_status},
    )
