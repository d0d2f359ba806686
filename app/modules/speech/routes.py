from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user
from app.core.http import get_http_client
from app.database.supabase_client import get_service_supabase
from app.modules.speech.schemas import SpeechRequest, SpeechResponse
from app.modules.speech.service import SpeechService
from supabase import Client
from typing import Dict
import httpx

router = APIRouter(prefix="/speech", tags=["speech"])


def get_speech_service(
    supabase: Client = Depends(get_service_supabase),
    http_client: httpx.Client = Depends(get_http_client)
) -> SpeechService:
    return SpeechService(supabase, http_client)


@router.post("/synthesize", response_model=SpeechResponse, status_code=201)
def synthesize(
    request: SpeechRequest,
    user_data: Dict = Depends(get_current_user),
    service: SpeechService = Depends(get_speech_service)
):
    """Text-to-speech"""
    return service.synthesize(request, user_data["id"])
