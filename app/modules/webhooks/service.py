import re
from supabase import Client
from app.modules.webhooks.schemas import NormalizedEvent, RoutingResult, WorkflowEventResponse
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_uuid(value: str) -> bool:
    return bool(_UUID.match(value or ""))


def agent_slug(agent_ref: str) -> str:
    return re.sub(r"[^a-z0-9_-]", "_", agent_ref.lower())


def format_agent_name(slug: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in re.split(r"[_-]", slug) if word)


def should_trigger_contract(contract: Dict[str, Any], event: NormalizedEvent) -> bool:
    """Whether a settlement contract's trigger matches the event"""
    revenue_source = contract.get("revenue_source_type")
    if revenue_source and event.outcome_type != revenue_source:
        return False

    trigger_type = contract.get("trigger_type")
    if trigger_type == "meeting_set":
        return event.outcome_type in ("meeting_set", "meeting_confirmed")
    if trigger_type == "deal_closed":
        return event.outcome_type == "deal_closed"
    if trigger_type == "revenue":
        return bool(event.value_amount and event.value_amount > 0)
    return event.event_type == trigger_type


class WorkflowEventService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def route_event(self, event: NormalizedEvent) -> WorkflowEventResponse:
        """Audit the event, then run every route whose preconditions hold"""
        event_id = self._audit_event(event)

        routes: List[tuple] = []
        if event.outcome_type and event.deal_room_id:
            routes.append(("attribution", self.handle_attribution))
        if event.deal_room_id and event.value_amount and event.value_amount > 0:
            routes.append(("settlement", self.trigger_settlements))
        if event.deal_room_id and event.source_platform != "unknown":
            routes.append(("credit_metering", self.record_credit_usage))
        if event.agent_id and event.outcome_type:
            routes.append(("contribution", self.create_contribution_event))

        results = [self._run(name, handler, event) for name, handler in routes]
        logger.info(f"Routing complete for {event.source_platform}/{event.event_type}: "
                    f"{[(r.handler, r.success) for r in results]}")

        return WorkflowEventResponse(
            event_id=event_id,
            source_platform=event.source_platform,
            event_type=event.event_type,
            routing_results=results,
        )

    def _run(self, name: str, handler: Callable[[NormalizedEvent], Dict[str, Any]], event: NormalizedEvent) -> RoutingResult:
        try:
            return RoutingResult(handler=name, success=True, result=handler(event))
        except Exception as e:
            logger.error(f"{name} handler error: {e}")
            return RoutingResult(handler=name, success=False, error=str(e))

    def _audit_event(self, event: NormalizedEvent) -> Optional[str]:
        try:
            result = self.supabase.table("ai_audit_logs").insert({
                "action": "workflow_event_received",
                "entity_type": "workflow_event",
                "entity_id": event.workflow_id or event.agent_id,
                "new_values": {
                    "source_platform": event.source_platform,
                    "event_type": event.event_type,
                    "deal_room_id": event.deal_room_id,
                    "outcome_type": event.outcome_type,
                    "value_amount": event.value_amount,
                },
            }).execute()
            return result.data[0].get("id") if result.data else None
        except Exception as e:
            logger.error(f"Error logging event: {e}")
            return None

    def handle_attribution(self, event: NormalizedEvent) -> Dict[str, Any]:
        rules = self.supabase.table("agent_attribution_rules")\
            .select("*")\
            .eq("deal_room_id", event.deal_room_id)\
            .eq("outcome_type", event.outcome_type)\
            .eq("is_active", True)\
            .execute().data or []

        credits_assigned = 0.0
        for rule in rules:
            base_amount = rule.get("base_amount") or 0
            percentage = rule.get("percentage_of_deal") or 0
            percentage_amount = (event.value_amount * percentage) / 100 if event.value_amount and percentage else 0
            total_credits = base_amount + percentage_amount
            credits_assigned += total_credits

            self.supabase.table("ai_audit_logs").insert({
                "action": "attribution_applied",
                "entity_type": "agent_attribution_rule",
                "entity_id": rule.get("id"),
                "new_values": {
                    "outcome_type": event.outcome_type,
                    "base_amount": base_amount,
                    "percentage_amount": percentage_amount,
                    "total_credits": total_credits,
                    "agent_id": rule.get("agent_id"),
                },
            }).execute()

        return {"rules_matched": len(rules), "credits_assigned": credits_assigned}

    def trigger_settlements(self, event: NormalizedEvent) -> Dict[str, Any]:
        contracts = self.supabase.table("settlement_contracts")\
            .select("*")\
            .eq("deal_room_id", event.deal_room_id)\
            .eq("is_active", True)\
            .order("payout_priority")\
            .execute().data or []

        triggered = 0
        for contract in contracts:
            if not should_trigger_contract(contract, event):
                continue
            self.supabase.table("settlement_queue").insert({
                "contract_id": contract["id"],
                "deal_room_id": event.deal_room_id,
                "trigger_event": event.outcome_type or event.event_type,
                "trigger_data": {
                    "amount": event.value_amount,
                    "entity_type": event.entity_type,
                    "entity_id": event.entity_id,
                    "source_platform": event.source_platform,
                },
                "attribution_chain": [step.model_dump() for step in event.attribution_chain],
                "status": "pending",
            }).execute()
            triggered += 1

        return {"contracts_evaluated": len(contracts), "contracts_triggered": triggered}

    def record_credit_usage(self, event: NormalizedEvent) -> Dict[str, Any]:
        result = self.supabase.table("platform_credit_meters")\
            .select("*")\
            .eq("deal_room_id", event.deal_room_id)\
            .eq("platform_name", event.source_platform)\
            .maybe_single()\
            .execute()
        meter = result.data if result else None

        if not meter:
            logger.info(f"No credit meter for platform {event.source_platform} in deal room {event.deal_room_id}")
            return {"meter_id": None, "credits_logged": 0}

        # One credit per delivered event
        credits_used = 1
        raw_cost = credits_used * (meter.get("cost_per_credit") or 0)
        billed_cost = raw_cost * (1 + (meter.get("markup_percentage") or 0) / 100)

        self.supabase.table("platform_credit_usage").insert({
            "meter_id": meter["id"],
            "deal_room_id": event.deal_room_id,
            "agent_id": event.agent_id,
            "workflow_id": event.workflow_id,
            "action_type": event.event_type,
            "credits_used": credits_used,
            "raw_cost": raw_cost,
            "billed_cost": billed_cost,
            "external_transaction_id": event.metadata.get("transaction_id"),
            "metadata": {
                "outcome_type": event.outcome_type,
                "value_amount": event.value_amount,
            },
        }).execute()

        return {"meter_id": meter["id"], "credits_logged": credits_used, "billed_cost": billed_cost}

    def resolve_agent(self, agent_ref: str, source_platform: str) -> Dict[str, Any]:
        """Map an agent UUID or slug to a registered agent, registering unknown slugs"""
        if is_uuid(agent_ref):
            return {"id": agent_ref, "slug": agent_ref, "is_new": False}

        slug = agent_slug(agent_ref)
        result = self.supabase.table("instincts_agents")\
            .select("id, slug")\
            .eq("slug", slug)\
            .maybe_single()\
            .execute()
        existing = result.data if result else None
        if existing:
            return {"id": existing["id"], "slug": existing["slug"], "is_new": False}

        created = self.supabase.table("instincts_agents").insert({
            "slug": slug,
            "name": format_agent_name(slug),
            "category": "sales",
            "is_active": True,
            "capabilities": [source_platform],
            "config_schema": {"auto_registered": True, "source_platform": source_platform},
        }).execute()
        if not created.data:
            raise ValueError(f"Cannot resolve agent: {agent_ref}")

        logger.info(f"Auto-registered new agent: {slug} -> {created.data[0]['id']}")
        return {"id": created.data[0]["id"], "slug": slug, "is_new": True}

    def create_contribution_event(self, event: NormalizedEvent) -> Dict[str, Any]:
        agent = self.resolve_agent(event.agent_id, event.source_platform)
        result = self.supabase.table("contribution_events").insert({
            "agent_id": agent["id"],
            "deal_room_id": event.deal_room_id,
            "workflow_id": event.workflow_id,
            "event_type": event.event_type,
            "outcome_type": event.outcome_type,
            "value_amount": event.value_amount,
            "source_platform": event.source_platform,
            "entity_type": event.entity_type,
            "entity_id": event.entity_id,
            "attribution_chain": [step.model_dump() for step in event.attribution_chain],
        }).execute()
        contribution_id = result.data[0].get("id") if result.data else None
        return {
            "contribution_id": contribution_id,
            "agent_id": agent["id"],
            "agent_auto_registered": agent["is_new"],
        }
