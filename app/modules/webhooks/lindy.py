"""Keyword router for Lindy automation webhooks: the action name decides which table gets the row."""
from supabase import Client
from app.modules.webhooks.schemas import LindyWebhookResponse
from typing import Any, Dict, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

# First match wins
ROUTES = (
    (("task",), "task"),
    (("lead", "contact"), "contact"),
    (("meeting", "calendar"), "meeting"),
    (("note", "summary"), "note"),
)


def match_route(action: str) -> str:
    action = action.lower()
    for keywords, route in ROUTES:
        if any(keyword in action for keyword in keywords):
            return route
    return "unrouted"


class LindyWebhookService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def handle(self, payload: Dict[str, Any]) -> LindyWebhookResponse:
        action = payload.get("action")
        if not action or not isinstance(action, str):
            self._log_rejected(None, payload, "Missing action")
            raise HTTPException(status_code=400, detail="Missing action")

        route = match_route(action)
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        data = {**{k: v for k, v in payload.items() if k not in ("action", "data")}, **data}
        logger.info(f"Lindy action '{action}' routed to {route}")

        try:
            if route == "task":
                record_id = self._create_task(data)
            elif route == "contact":
                record_id = self._upsert_contact(data)
            elif route == "meeting":
                record_id = self._create_meeting(data)
            elif route == "note":
                record_id = self._create_note(data)
            else:
                record_id = None

            self.supabase.table("lindy_webhook_events").insert({
                "action": action,
                "route": route,
                "record_id": record_id,
                "payload": payload,
            }).execute()
        except HTTPException as e:
            if e.status_code == 400:
                self._log_rejected(action, payload, str(e.detail))
            raise
        except Exception as e:
            logger.error(f"Error handling Lindy action '{action}': {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        return LindyWebhookResponse(route=route, record_id=record_id)

    def _log_rejected(self, action: Optional[str], payload: Dict[str, Any], error: str) -> None:
        logger.warning(f"Lindy delivery rejected ({action}): {error}")
        try:
            self.supabase.table("lindy_webhook_events").insert({
                "action": action,
                "route": "rejected",
                "record_id": None,
                "error": error,
                "payload": payload,
            }).execute()
        except Exception as e:
            logger.error(f"Error logging rejected Lindy delivery: {str(e)}")

    def _insert(self, table: str, row: Dict[str, Any]) -> Optional[str]:
        result = self.supabase.table(table).insert(row).execute()
        return result.data[0].get("id") if result.data else None

    def _create_task(self, data: Dict[str, Any]) -> Optional[str]:
        title = data.get("title") or data.get("task") or data.get("name")
        if not title:
            raise HTTPException(status_code=400, detail="Task title is required")
        return self._insert("tasks", {
            "title": title,
            "description": data.get("description"),
            "due_date": data.get("due_date"),
            "priority": data.get("priority") or "medium",
            "assigned_to": data.get("user_id") or data.get("assigned_to"),
            "status": "pending",
            "source": "lindy",
        })

    def _upsert_contact(self, data: Dict[str, Any]) -> Optional[str]:
        email = data.get("email")
        if not email:
            raise HTTPException(status_code=400, detail="Contact email is required")
        row = {
            "email": email.lower(),
            "first_name": data.get("first_name"),
            "last_name": data.get("last_name"),
            "company": data.get("company") or data.get("company_name"),
            "phone": data.get("phone"),
            "source": "lindy",
        }
        result = self.supabase.table("crm_contacts").upsert(row, on_conflict="email").execute()
        return result.data[0].get("id") if result.data else None

    def _create_meeting(self, data: Dict[str, Any]) -> Optional[str]:
        start_time = data.get("start_time") or data.get("scheduled_at")
        if not start_time:
            raise HTTPException(status_code=400, detail="Meeting start_time is required")
        return self._insert("meetings", {
            "title": data.get("title") or "Meeting",
            "start_time": start_time,
            "end_time": data.get("end_time"),
            "attendees": data.get("attendees") or [],
            "location": data.get("location") or data.get("meeting_url"),
            "source": "lindy",
        })

    def _create_note(self, data: Dict[str, Any]) -> Optional[str]:
        content = data.get("content") or data.get("summary") or data.get("note")
        if not content:
            raise HTTPException(status_code=400, detail="Note content is required")
        return self._insert("notes", {
            "title": data.get("title"),
            "content": content,
            "entity_type": data.get("entity_type"),
            "entity_id": data.get("entity_id"),
            "source": "lindy",
        })
