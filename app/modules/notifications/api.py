"""HTTP routes for the notification engine.

Mounted under /api/v1/notifications:

- POST /trigger: deliver an event (fire-and-forget unless ?wait=true)
- POST|GET /retry-queue/process: drain one retry batch (cron callers)
- GET /retry-queue/dead-letters: inspect dead-lettered entries
"""

import secrets
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from api.dependencies.rate_limits import get_limiter
from infrastructure.logging import bind_request_context, get_module_logger
from infrastructure.services import SettingsDep
from modules.notifications.models import DeliveryResult, NotificationEvent
from modules.notifications.service import NotificationService
from modules.notifications.submission import NotificationSubmitter

logger = get_module_logger()
router = APIRouter(prefix="/notifications", tags=["Notifications"])
limiter = get_limiter()

RETRY_LIMIT_DEFAULT = 50
RETRY_LIMIT_MAX = 200


def get_notification_service(request: Request) -> NotificationService:
    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Notification service not ready")
    return service


def get_notification_submitter(request: Request) -> NotificationSubmitter:
    submitter = getattr(request.app.state, "notification_submitter", None)
    if submitter is None:
        raise HTTPException(status_code=503, detail="Notification submitter not ready")
    return submitter


def require_cron_secret(request: Request, settings: SettingsDep) -> None:
    """Check the bearer token when CRON_SECRET is configured."""
    secret = settings.notifications.cron_secret
    if not secret:
        return
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token, secret):
        logger.warning(
            "cron_request_unauthorized",
            path=request.url.path,
            ip_address=request.client.host if request.client else "unknown",
        )
        raise HTTPException(status_code=401, detail="Unauthorized")


ServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
SubmitterDep = Annotated[NotificationSubmitter, Depends(get_notification_submitter)]


@router.post("/trigger", response_model=None)
@limiter.limit("300/minute")
def trigger_notification(
    request: Request,
    event: NotificationEvent,
    service: ServiceDep,
    submitter: SubmitterDep,
    wait: bool = False,
) -> Any:
    """Trigger notifications for a resource state change.

    With wait=true the delivery runs in the request and the per-channel
    results are returned. Otherwise the event is handed to the background
    submitter and 202 is returned; 503 means the submitter is full.
    """
    with bind_request_context(
        correlation_id=request.headers.get("x-correlation-id"),
        organization_id=event.organization_id,
        request_path=request.url.path,
    ):
        if wait:
            results: List[DeliveryResult] = service.trigger(event)
            return {
                "success": any(result.success for result in results),
                "results": [result.model_dump() for result in results],
            }

        if not submitter.submit(event):
            return JSONResponse(
                status_code=503,
                content={"accepted": False, "message": "Notification queue is full"},
            )
        return JSONResponse(status_code=202, content={"accepted": True})


def _process_retry_queue(service: NotificationService, limit: Optional[int]) -> Dict[str, Any]:
    clamped = max(1, min(limit if limit is not None else RETRY_LIMIT_DEFAULT, RETRY_LIMIT_MAX))
    stats = service.process_retry_queue(limit=clamped)
    logger.info("retry_queue_processed_via_api", limit=clamped, **stats)
    return stats


@router.post("/retry-queue/process", dependencies=[Depends(require_cron_secret)])
def process_retry_queue(
    service: ServiceDep, limit: Optional[int] = Query(default=None)
) -> Dict[str, Any]:
    """Process one batch of due retry entries."""
    return _process_retry_queue(service, limit)


@router.get("/retry-queue/process", dependencies=[Depends(require_cron_secret)])
def process_retry_queue_get(
    service: ServiceDep, limit: Optional[int] = Query(default=None)
) -> Dict[str, Any]:
    """GET variant for schedulers that can only issue GET requests."""
    return _process_retry_queue(service, limit)


@router.get("/retry-queue/dead-letters", dependencies=[Depends(require_cron_secret)])
def list_dead_letters(
    service: ServiceDep,
    organization_id: Optional[str] = None,
    limit: int = Query(default=RETRY_LIMIT_DEFAULT, ge=1, le=RETRY_LIMIT_MAX),
) -> Dict[str, Any]:
    entries = service.list_dead_letters(organization_id=organization_id, limit=limit)
    return {
        "count": len(entries),
        "entries": [
            {
                "id": entry.id,
                "organization_id": entry.organization_id,
                "rule_id": entry.rule_id,
                "channel_id": entry.channel_id,
                "event_type": entry.event_type,
                "attempt_count": entry.attempt_count,
                "max_attempts": entry.max_attempts,
                "last_error": entry.last_error,
                "created_at": entry.created_at.isoformat(),
                "processed_at": entry.processed_at.isoformat() if entry.processed_at else None,
            }
            for entry in entries
        ],
    }
