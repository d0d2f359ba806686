from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List


class AttributionStep(BaseModel):
    type: str
    id: str
    timestamp: str


class NormalizedEvent(BaseModel):
    event_type: str = "unknown"
    source_platform: str
    deal_room_id: Optional[str] = None
    agent_id: Optional[str] = None
    workflow_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    outcome_type: Optional[str] = None
    value_amount: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    attribution_chain: List[AttributionStep] = Field(default_factory=list)
    raw_payload: Dict[str, Any] = Field(default_factory=dict)


class RoutingResult(BaseModel):
    handler: str
    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class WorkflowEventResponse(BaseModel):
    success: bool = True
    event_id: Optional[str] = None
    source_platform: str
    event_type: str
    routing_results: List[RoutingResult]


class LindyWebhookResponse(BaseModel):
    success: bool = True
    route: str
    record_id: Optional[str] = None
