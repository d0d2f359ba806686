import httpx
from supabase import Client
from app.config.settings import settings
from app.core.http import require_key, send
from app.modules.sms.schemas import SmsSendRequest, SmsSendResponse
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class SmsService:
    def __init__(self, supabase: Client, http_client: httpx.Client):
        self.supabase = supabase
        self.http = http_client

    def send_sms(self, request: SmsSendRequest, user_id: str) -> SmsSendResponse:
        account_sid = require_key(settings.twilio_account_sid, "TWILIO_ACCOUNT_SID")
        auth_token = require_key(settings.twilio_auth_token, "TWILIO_AUTH_TOKEN")
        from_number = require_key(settings.twilio_from_number, "TWILIO_FROM_NUMBER")

        response = send(
            self.http, "Twilio", "POST", f"{settings.twilio_api_url}/Accounts/{account_sid}/Messages.json",
            auth=(account_sid, auth_token),
            data={"To": request.to, "From": from_number, "Body": request.body},
        )
        message = response.json()
        sid = message.get("sid")
        if not sid:
            raise HTTPException(status_code=502, detail="Twilio returned no message sid")
        status = message.get("status") or "queued"

        try:
            result = self.supabase.table("sms_messages").insert({
                "user_id": user_id,
                "to_number": request.to,
                "from_number": from_number,
                "body": request.body,
                "provider_sid": sid,
                "status": status,
            }).execute()
        except Exception as e:
            logger.error(f"Error recording SMS {sid}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"SMS {sid} sent to {request.to[:-4]}**** ({status})")
        return SmsSendResponse(
            id=result.data[0].get("id") if result.data else None,
            sid=sid,
            status=status,
            to=request.to,
        )
