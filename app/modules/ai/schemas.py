from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class TaskType(str, Enum):
    # Research
    WEB_RESEARCH = "web_research"
    PROSPECT_INTELLIGENCE = "prospect_intelligence"
    COMPANY_RESEARCH = "company_research"
    MARKET_RESEARCH = "market_research"
    REAL_TIME_SEARCH = "real_time_search"
    COMPETITOR_ANALYSIS = "competitor_analysis"
    NEWS_SEARCH = "news_search"
    # Reasoning
    COMPLEX_REASONING = "complex_reasoning"
    TOOL_CALLING = "tool_calling"
    MULTI_STEP_WORKFLOW = "multi_step_workflow"
    DOCUMENT_ANALYSIS = "document_analysis"
    CODE_GENERATION = "code_generation"
    # Fast
    GENERAL_QA = "general_qa"
    SUMMARY = "summary"
    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"
    TRANSLATION = "translation"
    # Content
    CONTENT_GENERATION = "content_generation"
    EMAIL_DRAFTING = "email_drafting"
    PROPOSAL_WRITING = "proposal_writing"


class Provider(str, Enum):
    GATEWAY = "gateway"
    PERPLEXITY = "perplexity"


class ModelTier(str, Enum):
    NANO = "nano"
    FAST = "fast"
    PRO = "pro"
    PREMIUM = "premium"


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TextGenerationRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=100_000)
    system_prompt: Optional[str] = None
    task_type: TaskType = TaskType.GENERAL_QA
    preferred_provider: Optional[Provider] = None
    fallback_providers: List[Provider] = Field(default_factory=lambda: [Provider.GATEWAY])
    tier: Optional[ModelTier] = None
    max_tokens: int = Field(default=4000, ge=1, le=32_000)
    temperature: float = Field(default=0.7, ge=0, le=2)
    agent_id: Optional[str] = None
    run_id: Optional[str] = None
    workspace_id: Optional[str] = None


class TextGenerationResponse(BaseModel):
    id: Optional[str] = None
    content: str
    provider: Provider
    model: str
    usage: Usage
    cost_usd: float
    citations: List[str] = []


class ImageGenerationRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=4000)


class ImageGenerationResponse(BaseModel):
    id: Optional[str] = None
    image_url: str
    storage_path: str
    model: str
    caption: Optional[str] = None


class VideoGenerationRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=1000)
    duration_seconds: int = Field(default=5, ge=1, le=10)
    aspect_ratio: str = "1280:720"


class VideoStatusResponse(BaseModel):
    id: str
    status: str
    provider_job_id: Optional[str] = None
    video_url: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None


class GatewayResult(BaseModel):
    content: str
    provider: Provider
    model: str
    usage: Usage = Usage()
    cost_usd: float = 0.0
    citations: List[str] = []
    raw: Dict[str, Any] = {}


class AgentLimitStatus(BaseModel):
    blocked: bool = False
    reason: Optional[str] = None
    run_count: int = 0
    total_cost: float = 0.0
    daily_run_cap: Optional[int] = None
    daily_cost_cap_usd: Optional[float] = None
