from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user
from app.core.http import get_http_client
from app.database.supabase_client import get_service_supabase
from app.modules.ai.schemas import (
    ImageGenerationRequest, ImageGenerationResponse, TextGenerationRequest, TextGenerationResponse,
    VideoGenerationRequest, VideoStatusResponse,
)
from app.modules.ai.service import AIGenerationService
from supabase import Client
from typing import Dict
import httpx

router = APIRouter(prefix="/ai", tags=["ai"])


def get_ai_service(
    supabase: Client = Depends(get_service_supabase),
    http_client: httpx.Client = Depends(get_http_client)
) -> AIGenerationService:
    return AIGenerationService(supabase, http_client)


@router.post("/generate/text", response_model=TextGenerationResponse)
def generate_text(
    request: TextGenerationRequest,
    user_data: Dict = Depends(get_current_user),
    service: AIGenerationService = Depends(get_ai_service)
):
    """Prompt completion routed by task type"""
    return service.generate_text(request, user_data["id"])


@router.post("/generate/image", response_model=ImageGenerationResponse)
def generate_image(
    request: ImageGenerationRequest,
    user_data: Dict = Depends(get_current_user),
    service: AIGenerationService = Depends(get_ai_service)
):
    return service.generate_image(request, user_data["id"])


@router.post("/generate/video", response_model=VideoStatusResponse, status_code=202)
def generate_video(
    request: VideoGenerationRequest,
    user_data: Dict = Depends(get_current_user),
    service: AIGenerationService = Depends(get_ai_service)
):
    """Start a video job; poll GET /ai/generate/video/{id}"""
    return service.submit_video(request, user_data["id"])


@router.get("/generate/video/{generation_id}", response_model=VideoStatusResponse)
def video_status(
    generation_id: str,
    user_data: Dict = Depends(get_current_user),
    service: AIGenerationService = Depends(get_ai_service)
):
    return service.get_video_status(generation_id, user_data["id"])
