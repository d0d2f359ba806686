"""
Per-agent daily caps and gateway usage accounting.

An agent's caps live on its `instincts_agents` row (`daily_run_cap`,
`daily_cost_cap_usd`); today's runs and spend are read back from
`agent_cost_tracking`. Tracking writes never fail the generation call.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from supabase import Client
import logging

from app.modules.ai.schemas import AgentLimitStatus, GatewayResult, TextGenerationRequest

logger = logging.getLogger(__name__)


class UsageTracker:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def check_agent_limits(
        self, agent_id: str, workspace_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> AgentLimitStatus:
        now = now or datetime.now(timezone.utc)
        try:
            result = self.supabase.table("instincts_agents")\
                .select("id, daily_run_cap, daily_cost_cap_usd")\
                .eq("id", agent_id)\
                .maybe_single()\
                .execute()
            agent = result.data if result else None
            if not agent:
                return AgentLimitStatus()

            day_start = datetime.combine(now.astimezone(timezone.utc).date(), datetime.min.time(), tzinfo=timezone.utc)
            query = self.supabase.table("agent_cost_tracking")\
                .select("cost_usd, created_at")\
                .eq("agent_id", agent_id)\
                .gte("created_at", day_start.isoformat())
            if workspace_id:
                query = query.eq("workspace_id", workspace_id)
            runs = query.execute().data or []
        except Exception as e:
            logger.error(f"Error checking limits for agent {agent_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        run_cap = agent.get("daily_run_cap")
        cost_cap = agent.get("daily_cost_cap_usd")
        run_count = len(runs)
        total_cost = round(sum(float(r.get("cost_usd") or 0) for r in runs), 6)

        reason = None
        if run_cap is not None and run_count >= run_cap:
            reason = f"Daily run cap reached ({run_count}/{run_cap})"
        elif cost_cap is not None and total_cost >= float(cost_cap):
            reason = f"Daily cost cap reached (${total_cost:.4f} of ${float(cost_cap):.2f})"

        return AgentLimitStatus(
            blocked=reason is not None,
            reason=reason,
            run_count=run_count,
            total_cost=total_cost,
            daily_run_cap=run_cap,
            daily_cost_cap_usd=cost_cap,
        )

    def record_blocked_run(self, entity_type: str, entity_id: str, reason: str) -> None:
        try:
            self.supabase.table("blocked_runs").insert({
                "entity_type": entity_type,
                "entity_id": entity_id,
                "reason": reason,
            }).execute()
        except Exception as e:
            logger.error(f"Error recording blocked run for {entity_type} {entity_id}: {str(e)}")

    def track(self, request: TextGenerationRequest, result: GatewayResult, today: Optional[str] = None) -> None:
        """Add one request to today's model totals and the workspace cost ledger"""
        today = today or datetime.now(timezone.utc).date().isoformat()
        tokens = result.usage.total_tokens
        try:
            found = self.supabase.table("ai_model_usage")\
                .select("id, requests_count, tokens_input, total_cost")\
                .eq("model_name", result.model)\
                .eq("model_provider", result.provider.value)\
                .eq("usage_date", today)\
                .maybe_single()\
                .execute()
            existing = found.data if found else None
            if existing:
                self.supabase.table("ai_model_usage").update({
                    "requests_count": (existing.get("requests_count") or 0) + 1,
                    "tokens_input": (existing.get("tokens_input") or 0) + tokens,
                    "total_cost": round((existing.get("total_cost") or 0) + result.cost_usd, 6),
                }).eq("id", existing["id"]).execute()
            else:
                self.supabase.table("ai_model_usage").insert({
                    "model_name": result.model,
                    "model_provider": result.provider.value,
                    "tokens_input": tokens,
                    "requests_count": 1,
                    "total_cost": result.cost_usd,
                    "usage_date": today,
                    "metadata": {"task_type": request.task_type.value},
                }).execute()

            if request.workspace_id:
                self.supabase.table("agent_cost_tracking").insert({
                    "workspace_id": request.workspace_id,
                    "agent_id": request.agent_id,
                    "run_id": request.run_id,
                    "cost_usd": result.cost_usd,
                    "tokens_used": tokens,
                    "model_used": result.model,
                    "provider": result.provider.value,
                }).execute()
        except Exception as e:
            logger.error(f"Usage tracking error: {str(e)}")
