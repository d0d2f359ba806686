import base64
import binascii
import re
import uuid
import httpx
from supabase import Client
from app.config.settings import settings
from app.core.errors import LimitExceededError
from app.core.http import require_key, send
from app.database.storage import BucketStorage, StorageError
from app.modules.ai.gateway import ModelGateway
from app.modules.ai.usage import UsageTracker
from app.modules.ai.schemas import (
    ImageGenerationRequest, ImageGenerationResponse, TextGenerationRequest, TextGenerationResponse,
    VideoGenerationRequest, VideoStatusResponse,
)
from typing import Any, Dict, Optional, Tuple
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)

VIDEO_API_VERSION = "2024-11-06"
VIDEO_MODEL = "gen4_turbo"

# Provider task states -> our generation status
VIDEO_STATES = {
    "PENDING": "processing",
    "THROTTLED": "processing",
    "RUNNING": "processing",
    "SUCCEEDED": "completed",
    "FAILED": "failed",
    "CANCELLED": "failed",
}


def decode_data_url(url: str) -> Tuple[bytes, str]:
    match = _DATA_URL.match(url or "")
    if not match:
        raise HTTPException(status_code=502, detail="AI gateway returned an unexpected image format")
    try:
        return base64.b64decode(match.group("data")), match.group("mime")
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=502, detail="AI gateway returned invalid image data")


class AIGenerationService:
    def __init__(self, supabase: Client, http_client: httpx.Client, storage: Optional[BucketStorage] = None):
        self.supabase = supabase
        self.http = http_client
        self.gateway = ModelGateway(http_client)
        self.usage = UsageTracker(supabase)
        self.storage = storage or BucketStorage(supabase, settings.media_bucket)

    def _record(self, row: Dict[str, Any]) -> Optional[str]:
        try:
            result = self.supabase.table("ai_generations").insert(row).execute()
            return result.data[0].get("id") if result.data else None
        except Exception as e:
            logger.error(f"Error recording generation: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def generate_text(self, request: TextGenerationRequest, user_id: str) -> TextGenerationResponse:
        if request.agent_id:
            limits = self.usage.check_agent_limits(request.agent_id, request.workspace_id)
            if limits.blocked:
                logger.info(f"Agent {request.agent_id} blocked: {limits.reason}")
                self.usage.record_blocked_run("agent", request.agent_id, limits.reason)
                raise LimitExceededError(limits.reason, limits.model_dump(exclude={"blocked", "reason"}))

        result = self.gateway.complete(request)
        if request.workspace_id:
            self.usage.track(request, result)

        generation_id = self._record({
            "user_id": user_id,
            "kind": "text",
            "task_type": request.task_type.value,
            "prompt": request.prompt,
            "output_text": result.content,
            "provider": result.provider.value,
            "model": result.model,
            "tokens_used": result.usage.total_tokens,
            "cost_usd": result.cost_usd,
            "status": "completed",
        })
        return TextGenerationResponse(
            id=generation_id,
            content=result.content,
            provider=result.provider,
            model=result.model,
            usage=result.usage,
            cost_usd=result.cost_usd,
            citations=result.citations,
        )

    def generate_image(self, request: ImageGenerationRequest, user_id: str) -> ImageGenerationResponse:
        message = self.gateway.generate_image(request.prompt)
        images = message.get("images") or []
        if not images:
            raise HTTPException(status_code=502, detail="AI gateway returned no image")
        content, mime = decode_data_url((images[0].get("image_url") or {}).get("url"))

        extension = mime.split("/")[-1].replace("jpeg", "jpg")
        storage_path = f"images/{user_id}/{uuid.uuid4()}.{extension}"
        try:
            self.storage.upload_file(content, storage_path, content_type=mime)
        except StorageError as e:
            raise HTTPException(status_code=502, detail=f"Failed to store image: {e}")
        image_url = self.storage.public_url(storage_path)

        generation_id = self._record({
            "user_id": user_id,
            "kind": "image",
            "prompt": request.prompt,
            "provider": "gateway",
            "model": settings.image_model,
            "storage_path": storage_path,
            "output_url": image_url,
            "output_text": message.get("content"),
            "status": "completed",
        })
        return ImageGenerationResponse(
            id=generation_id,
            image_url=image_url,
            storage_path=storage_path,
            model=settings.image_model,
            caption=message.get("content") or None,
        )

    def _video_headers(self) -> Dict[str, str]:
        api_key = require_key(settings.video_api_key, "VIDEO_API_KEY")
        return {"Authorization": f"Bearer {api_key}", "X-Runway-Version": VIDEO_API_VERSION}

    def submit_video(self, request: VideoGenerationRequest, user_id: str) -> VideoStatusResponse:
        """Start an asynchronous video job; callers poll get_video_status"""
        response = send(
            self.http, "Video API", "POST", f"{settings.video_api_url}/text_to_video",
            headers=self._video_headers(),
            json={
                "model": VIDEO_MODEL,
                "promptText": request.prompt,
                "ratio": request.aspect_ratio,
                "duration": request.duration_seconds,
            },
        )
        job_id = response.json().get("id")
        if not job_id:
            raise HTTPException(status_code=502, detail="Video API returned no job id")

        generation_id = self._record({
            "user_id": user_id,
            "kind": "video",
            "prompt": request.prompt,
            "provider": "video",
            "model": VIDEO_MODEL,
            "provider_job_id": job_id,
            "status": "processing",
        })
        logger.info(f"Video job {job_id} submitted for user {user_id}")
        return VideoStatusResponse(id=generation_id or job_id, status="processing", provider_job_id=job_id)

    def get_video_status(self, generation_id: str, user_id: str) -> VideoStatusResponse:
        result = self.supabase.table("ai_generations")\
            .select("*")\
            .eq("id", generation_id)\
            .eq("user_id", user_id)\
            .eq("kind", "video")\
            .maybe_single()\
            .execute()
        row = result.data if result else None
        if not row:
            raise HTTPException(status_code=404, detail="Video generation not found")

        if row.get("status") != "processing":
            return VideoStatusResponse(
                id=row["id"],
                status=row["status"],
                provider_job_id=row.get("provider_job_id"),
                video_url=row.get("output_url"),
                error=row.get("error_message"),
                created_at=row.get("created_at"),
            )

        response = send(
            self.http, "Video API", "GET", f"{settings.video_api_url}/tasks/{row['provider_job_id']}",
            headers=self._video_headers(),
        )
        task = response.json()
        status = VIDEO_STATES.get(str(task.get("status", "")).upper(), "processing")
        output = task.get("output") or []
        video_url = output[0] if output else None
        error = task.get("failure") if status == "failed" else None

        if status != "processing":
            self.supabase.table("ai_generations").update({
                "status": status,
                "output_url": video_url,
                "error_message": error,
            }).eq("id", row["id"]).execute()

        return VideoStatusResponse(
            id=row["id"],
            status=status,
            provider_job_id=row.get("provider_job_id"),
            video_url=video_url,
            error=error,
            created_at=row.get("created_at"),
        )
