from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user
from app.core.http import get_http_client
from app.database.supabase_client import get_service_supabase
from app.modules.sms.schemas import SmsSendRequest, SmsSendResponse
from app.modules.sms.service import SmsService
from supabase import Client
from typing import Dict
import httpx

router = APIRouter(prefix="/sms", tags=["sms"])


def get_sms_service(
    supabase: Client = Depends(get_service_supabase),
    http_client: httpx.Client = Depends(get_http_client)
) -> SmsService:
    return SmsService(supabase, http_client)


@router.post("/send", response_model=SmsSendResponse, status_code=201)
def send_sms(
    request: SmsSendRequest,
    user_data: Dict = Depends(get_current_user),
    service: SmsService = Depends(get_sms_service)
):
    """Send an SMS through Twilio"""
    return service.send_sms(request, user_data["id"])
