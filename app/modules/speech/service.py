import uuid
import httpx
from supabase import Client
from app.config.settings import settings
from app.core.http import require_key, send
from app.database.storage import BucketStorage, StorageError
from app.modules.speech.schemas import SpeechRequest, SpeechResponse
from typing import Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class SpeechService:
    def __init__(self, supabase: Client, http_client: httpx.Client, storage: Optional[BucketStorage] = None):
        self.supabase = supabase
        self.http = http_client
        self.storage = storage or BucketStorage(supabase, settings.audio_bucket)

    def synthesize(self, request: SpeechRequest, user_id: str) -> SpeechResponse:
        """Text to MP3 via ElevenLabs, stored in the audio bucket"""
        api_key = require_key(settings.elevenlabs_api_key, "ELEVENLABS_API_KEY")
        text = request.text.strip()
        if not text:
            raise HTTPException(status_code=400, detail="Text is required")
        voice_id = request.voice_id or settings.elevenlabs_voice_id
        model_id = request.model_id or settings.elevenlabs_model_id

        response = send(
            self.http, "ElevenLabs", "POST", f"{settings.elevenlabs_api_url}/text-to-speech/{voice_id}",
            headers={"xi-api-key": api_key, "Accept": "audio/mpeg"},
            params={"output_format": "mp3_44100_128"},
            json={
                "text": text,
                "model_id": model_id,
                "voice_settings": request.voice_settings.model_dump(),
            },
        )
        audio = response.content
        if not audio:
            raise HTTPException(status_code=502, detail="ElevenLabs returned empty audio")

        storage_path = f"tts/{user_id}/{uuid.uuid4()}.mp3"
        try:
            self.storage.upload_file(audio, storage_path, content_type="audio/mpeg")
        except StorageError as e:
            raise HTTPException(status_code=502, detail=f"Failed to store audio: {e}")
        audio_url = self.storage.public_url(storage_path)

        try:
            result = self.supabase.table("tts_generations").insert({
                "user_id": user_id,
                "text": text,
                "voice_id": voice_id,
                "model_id": model_id,
                "characters": len(text),
                "storage_path": storage_path,
                "audio_url": audio_url,
            }).execute()
        except Exception as e:
            logger.error(f"Error recording speech generation: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Synthesized {len(text)} characters with voice {voice_id}")
        return SpeechResponse(
            id=result.data[0].get("id") if result.data else None,
            audio_url=audio_url,
            storage_path=storage_path,
            characters=len(text),
            voice_id=voice_id,
            model_id=model_id,
        )
