from pydantic import BaseModel, Field
from typing import Optional


class VoiceSettings(BaseModel):
    stability: float = Field(default=0.5, ge=0, le=1)
    similarity_boost: float = Field(default=0.75, ge=0, le=1)
    style: float = Field(default=0.0, ge=0, le=1)
    use_speaker_boost: bool = True


class SpeechRequest(BaseModel):
    text: str = Field(min_length=1, max_length=5000)
    voice_id: Optional[str] = None
    model_id: Optional[str] = None
    voice_settings: VoiceSettings = VoiceSettings()


class SpeechResponse(BaseModel):
    id: Optional[str] = None
    audio_url: str
    storage_path: str
    characters: int
    voice_id: str
    model_id: str
