"""
Model gateway: picks a provider and model for a task type and walks the
provider chain until one answers.

Research tasks go to Perplexity first (web-grounded answers with
citations); everything else goes to the OpenAI-compatible AI gateway, with
the model tier chosen per task.
"""
from typing import List, Optional

import httpx
from fastapi import HTTPException
import logging

from app.config.settings import settings
from app.core.http import require_key, send
from app.modules.ai.schemas import GatewayResult, ModelTier, Provider, TaskType, TextGenerationRequest, Usage

logger = logging.getLogger(__name__)

RESEARCH_TASKS = {
    TaskType.WEB_RESEARCH,
    TaskType.PROSPECT_INTELLIGENCE,
    TaskType.COMPANY_RESEARCH,
    TaskType.MARKET_RESEARCH,
    TaskType.REAL_TIME_SEARCH,
    TaskType.COMPETITOR_ANALYSIS,
    TaskType.NEWS_SEARCH,
}

GATEWAY_MODELS = {
    ModelTier.NANO: "google/gemini-2.5-flash-lite",
    ModelTier.FAST: "google/gemini-2.5-flash",
    ModelTier.PRO: "google/gemini-2.5-pro",
    ModelTier.PREMIUM: "google/gemini-3-pro-preview",
}

TASK_TIERS = {
    TaskType.GENERAL_QA: ModelTier.FAST,
    TaskType.SUMMARY: ModelTier.FAST,
    TaskType.CLASSIFICATION: ModelTier.NANO,
    TaskType.EXTRACTION: ModelTier.NANO,
    TaskType.TRANSLATION: ModelTier.FAST,
    TaskType.COMPLEX_REASONING: ModelTier.PRO,
    TaskType.TOOL_CALLING: ModelTier.PRO,
    TaskType.MULTI_STEP_WORKFLOW: ModelTier.PRO,
    TaskType.DOCUMENT_ANALYSIS: ModelTier.PRO,
    TaskType.CODE_GENERATION: ModelTier.PRO,
    TaskType.CONTENT_GENERATION: ModelTier.FAST,
    TaskType.EMAIL_DRAFTING: ModelTier.FAST,
    TaskType.PROPOSAL_WRITING: ModelTier.PRO,
    TaskType.NEWS_SEARCH: ModelTier.FAST,
}

PERPLEXITY_MODEL = "sonar"

# USD per 1K tokens (approximate)
MODEL_COSTS = {
    "sonar": 0.001,
    "sonar-pro": 0.003,
    "google/gemini-2.5-flash-lite": 0.0001,
    "google/gemini-2.5-flash": 0.0003,
    "google/gemini-2.5-pro": 0.003,
    "google/gemini-3-pro-preview": 0.006,
}

DEFAULT_RESEARCH_PROMPT = "You are a helpful research assistant. Provide accurate, up-to-date information with citations."


def primary_provider(task_type: TaskType) -> Provider:
    return Provider.PERPLEXITY if task_type in RESEARCH_TASKS else Provider.GATEWAY


def model_for(task_type: TaskType, tier: Optional[ModelTier] = None) -> str:
    return GATEWAY_MODELS[tier or TASK_TIERS.get(task_type, ModelTier.PRO)]


def provider_chain(task_type: TaskType, preferred: Optional[Provider], fallbacks: List[Provider]) -> List[Provider]:
    """Primary provider first, then fallbacks, without duplicates"""
    chain = [preferred or primary_provider(task_type)]
    for provider in fallbacks:
        if provider not in chain:
            chain.append(provider)
    return chain


def estimate_cost(model: str, total_tokens: int) -> float:
    return round(total_tokens / 1000 * MODEL_COSTS.get(model, 0.001), 6)


def _messages(system_prompt: Optional[str], prompt: str) -> list:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def _parse_completion(data: dict, provider: Provider, model: str) -> GatewayResult:
    choices = data.get("choices") or []
    if not choices:
        raise HTTPException(status_code=502, detail=f"{provider.value} returned no choices")
    message = choices[0].get("message") or {}
    usage = Usage(**{k: v for k, v in (data.get("usage") or {}).items() if k in Usage.model_fields})
    return GatewayResult(
        content=message.get("content") or "",
        provider=provider,
        model=data.get("model") or model,
        usage=usage,
        cost_usd=estimate_cost(model, usage.total_tokens),
        citations=[str(c) for c in data.get("citations") or []],
        raw=data,
    )


class ModelGateway:
    def __init__(self, http_client: httpx.Client):
        self.http = http_client

    def complete(self, request: TextGenerationRequest) -> GatewayResult:
        last_error: Optional[Exception] = None
        for provider in provider_chain(request.task_type, request.preferred_provider, request.fallback_providers):
            try:
                logger.info(f"Trying provider {provider.value} for task {request.task_type.value}")
                if provider == Provider.PERPLEXITY:
                    result = self._call_perplexity(request)
                else:
                    result = self._call_gateway(request)
                logger.info(f"Success with {provider.value}: {result.model}")
                return result
            except HTTPException as e:
                logger.warning(f"{provider.value} failed: {e.detail}")
                last_error = e
        raise last_error or HTTPException(status_code=502, detail="All providers failed")

    def _call_gateway(self, request: TextGenerationRequest) -> GatewayResult:
        api_key = require_key(settings.ai_gateway_api_key, "AI_GATEWAY_API_KEY")
        model = model_for(request.task_type, request.tier)
        response = send(
            self.http, "AI gateway", "POST", f"{settings.ai_gateway_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": model,
                "messages": _messages(request.system_prompt, request.prompt),
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            },
        )
        return _parse_completion(response.json(), Provider.GATEWAY, model)

    def _call_perplexity(self, request: TextGenerationRequest) -> GatewayResult:
        api_key = require_key(settings.perplexity_api_key, "PERPLEXITY_API_KEY")
        response = send(
            self.http, "Perplexity", "POST", f"{settings.perplexity_api_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": PERPLEXITY_MODEL,
                "messages": _messages(request.system_prompt or DEFAULT_RESEARCH_PROMPT, request.prompt),
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            },
        )
        return _parse_completion(response.json(), Provider.PERPLEXITY, PERPLEXITY_MODEL)

    def generate_image(self, prompt: str) -> dict:
        """Return the raw gateway message for an image prompt"""
        api_key = require_key(settings.ai_gateway_api_key, "AI_GATEWAY_API_KEY")
        response = send(
            self.http, "AI gateway", "POST", f"{settings.ai_gateway_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": settings.image_model,
                "messages": [{"role": "user", "content": prompt}],
                "modalities": ["image", "text"],
            },
        )
        choices = response.json().get("choices") or []
        if not choices:
            raise HTTPException(status_code=502, detail="AI gateway returned no image")
        return choices[0].get("message") or {}
