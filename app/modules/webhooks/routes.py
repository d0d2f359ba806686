import json
from fastapi import APIRouter, Depends, HTTPException, Request
from app.config.settings import settings
from app.core.signatures import verify_hmac_signature, verify_shared_secret
from app.database.supabase_client import get_service_supabase
from app.modules.webhooks.lindy import LindyWebhookService
from app.modules.webhooks.normalizer import normalize_event
from app.modules.webhooks.schemas import LindyWebhookResponse, WorkflowEventResponse
from app.modules.webhooks.service import WorkflowEventService
from supabase import Client
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_workflow_event_service(supabase: Client = Depends(get_service_supabase)) -> WorkflowEventService:
    return WorkflowEventService(supabase)


def get_lindy_service(supabase: Client = Depends(get_service_supabase)) -> LindyWebhookService:
    return LindyWebhookService(supabase)


def _parse_json_object(body: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="JSON body must be an object")
    return payload


@router.post("/workflow-events", response_model=WorkflowEventResponse)
async def workflow_event(
    request: Request,
    service: WorkflowEventService = Depends(get_workflow_event_service)
):
    """Normalize an automation platform event and fan it out to the attribution, settlement, metering and contribution routes"""
    body = await request.body()
    if settings.workflow_webhook_secret:
        signature = request.headers.get("x-webhook-signature")
        if not verify_hmac_signature(body, signature, settings.workflow_webhook_secret):
            raise HTTPException(status_code=401, detail="Invalid webhook signature")

    payload = _parse_json_object(body)
    source_platform = request.headers.get("x-source-platform") or payload.get("source") or "unknown"
    logger.info(f"Workflow event received from: {source_platform}")

    event = normalize_event(str(source_platform), payload)
    return service.route_event(event)


@router.post("/lindy", response_model=LindyWebhookResponse)
async def lindy_webhook(
    request: Request,
    service: LindyWebhookService = Depends(get_lindy_service)
):
    """Route a Lindy action to tasks, contacts, meetings or notes"""
    if not settings.lindy_webhook_secret:
        raise HTTPException(status_code=500, detail="Lindy webhook secret not configured")
    if not verify_shared_secret(request.headers.get("x-lindy-secret"), settings.lindy_webhook_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = _parse_json_object(await request.body())
    return service.handle(payload)
