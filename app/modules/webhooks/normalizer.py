"""Per-platform normalization of inbound workflow automation events."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.modules.webhooks.schemas import AttributionStep, NormalizedEvent

LINDY_OUTCOMES = {
    "email_sent": "outreach",
    "email_replied": "reply_received",
    "meeting_booked": "meeting_set",
    "meeting_confirmed": "meeting_confirmed",
    "contact_created": "lead_created",
    "deal_created": "deal_created",
    "deal_closed": "deal_closed",
    "task_completed": "task_completed",
    # Signal / agent workflow events
    "signal.detected": "trigger_detected",
    "signal_detected": "trigger_detected",
    "trigger_detected": "trigger_detected",
    "enrichment_complete": "enrichment_complete",
    "enrichment.complete": "enrichment_complete",
    "draft_created": "draft_created",
    "draft.created": "draft_created",
    "sequence_drafted": "draft_created",
}


def _str(*values: Any) -> Optional[str]:
    for value in values:
        if value is not None and value != "":
            return str(value)
    return None


def _number(*values: Any) -> Optional[float]:
    for value in values:
        if isinstance(value, bool) or value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if number:
            return number
    return None


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _chain(value: Any) -> List[AttributionStep]:
    steps = []
    if isinstance(value, list):
        for item in value:
            if isinstance(item, dict) and item.get("type") and item.get("id"):
                steps.append(AttributionStep(
                    type=str(item["type"]),
                    id=str(item["id"]),
                    timestamp=str(item.get("timestamp") or _now()),
                ))
    return steps


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def map_lindy_outcome(action: Optional[str]) -> Optional[str]:
    if not action:
        return None
    return LINDY_OUTCOMES.get(action.lower(), action)


def map_hubspot_outcome(payload: Dict[str, Any]) -> Optional[str]:
    if payload.get("objectType") == "MEETING" and payload.get("subscriptionType") == "meeting.creation":
        return "meeting_set"
    if payload.get("objectType") == "DEAL" and payload.get("propertyName") == "dealstage":
        if "closedwon" in str(payload.get("propertyValue")):
            return "deal_closed"
    return None


def extract_hubspot_value(payload: Dict[str, Any]) -> Optional[float]:
    if payload.get("objectType") == "DEAL" and payload.get("propertyName") == "amount":
        return _number(payload.get("propertyValue"))
    return None


def normalize_event(source: str, payload: Dict[str, Any]) -> NormalizedEvent:
    platform = (source or "unknown").lower()

    if platform in ("lindy", "lindy.ai"):
        data = _dict(payload.get("data"))
        action = _str(payload.get("action"), payload.get("event_type"))
        return NormalizedEvent(
            event_type=_str(payload.get("event_type"), payload.get("action")) or "lindy_event",
            source_platform="lindy.ai",
            deal_room_id=_str(payload.get("deal_room_id")),
            agent_id=_str(payload.get("lindy_agent_id"), payload.get("agent_id")),
            workflow_id=_str(payload.get("workflow_id")),
            entity_type=_str(payload.get("entity_type"), data.get("entity_type")),
            entity_id=_str(payload.get("entity_id"), data.get("entity_id")),
            outcome_type=map_lindy_outcome(action),
            value_amount=_number(payload.get("value_amount"), data.get("amount")),
            metadata={
                "lindy_integration_id": payload.get("lindy_integration_id"),
                "user_id": payload.get("user_id"),
                **data,
            },
            attribution_chain=[AttributionStep(
                type="workflow",
                id=_str(payload.get("workflow_id")) or "unknown",
                timestamp=_now(),
            )],
            raw_payload=payload,
        )

    if platform == "n8n":
        return NormalizedEvent(
            event_type=_str(payload.get("event")) or "n8n_event",
            source_platform="n8n",
            deal_room_id=_str(payload.get("deal_room_id"), payload.get("dealRoomId")),
            agent_id=_str(payload.get("agent_id")),
            workflow_id=_str(payload.get("workflowId")),
            entity_type=_str(payload.get("entityType")),
            entity_id=_str(payload.get("entityId")),
            outcome_type=_str(payload.get("outcomeType")),
            value_amount=_number(payload.get("amount"), payload.get("value")),
            metadata=_dict(payload.get("metadata")),
            attribution_chain=_chain(payload.get("attributionChain")),
            raw_payload=payload,
        )

    if platform == "hubspot":
        return NormalizedEvent(
            event_type=_str(payload.get("subscriptionType")) or "hubspot_event",
            source_platform="hubspot",
            entity_type=_str(payload.get("objectType")),
            entity_id=_str(payload.get("objectId")),
            outcome_type=map_hubspot_outcome(payload),
            value_amount=extract_hubspot_value(payload),
            metadata={
                "portal_id": payload.get("portalId"),
                "change_source": payload.get("changeSource"),
                "property_name": payload.get("propertyName"),
                "property_value": payload.get("propertyValue"),
            },
            raw_payload=payload,
        )

    return NormalizedEvent(
        event_type=_str(payload.get("event_type"), payload.get("type")) or "unknown",
        source_platform=source or "unknown",
        deal_room_id=_str(payload.get("deal_room_id")),
        agent_id=_str(payload.get("agent_id")),
        workflow_id=_str(payload.get("workflow_id")),
        entity_type=_str(payload.get("entity_type")),
        entity_id=_str(payload.get("entity_id")),
        outcome_type=_str(payload.get("outcome_type")),
        value_amount=_number(payload.get("value_amount"), payload.get("amount")),
        metadata=_dict(payload.get("metadata")),
        attribution_chain=_chain(payload.get("attribution_chain")),
        raw_payload=payload,
    )
