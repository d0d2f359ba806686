"""Tests for text-to-speech."""

import json

import httpx

from app.config.settings import settings
from tests.conftest import USER_ID

MP3 = b"ID3\x04\x00fake-mp3-frames"


def test_synthesize(client, db, provider, user_headers):
    provider.respond(lambda request: httpx.Response(200, content=MP3, headers={"content-type": "audio/mpeg"}))
    resp = client.post("/api/v1/speech/synthesize", headers=user_headers, json={"text": "  Hello there  "})
    assert resp.status_code == 201
    data = resp.json()
    assert data["characters"] == len("Hello there")
    assert data["voice_id"] == settings.elevenlabs_voice_id
    assert data["storage_path"].startswith(f"tts/{USER_ID}/")
    assert db.storage.objects["audio"][data["storage_path"]] == MP3
    assert db.storage.content_types[("audio", data["storage_path"])] == "audio/mpeg"

    sent = provider.requests[0]
    assert sent.url.path.endswith(f"/text-to-speech/{settings.elevenlabs_voice_id}")
    assert sent.url.params["output_format"] == "mp3_44100_128"
    assert sent.headers["xi-api-key"] == "eleven-key"
    assert json.loads(sent.content)["text"] == "Hello there"

    row = db.tables["tts_generations"][0]
    assert row["id"] == data["id"]
    assert row["audio_url"] == data["audio_url"]


def test_custom_voice(client, provider, user_headers):
    provider.respond(lambda request: httpx.Response(200, content=MP3))
    resp = client.post("/api/v1/speech/synthesize", headers=user_headers,
                       json={"text": "Hi", "voice_id": "voice-2", "voice_settings": {"stability": 0.9}})
    assert resp.json()["voice_id"] == "voice-2"
    assert json.loads(provider.requests[0].content)["voice_settings"]["stability"] == 0.9


def test_blank_text(client, provider, user_headers):
    resp = client.post("/api/v1/speech/synthesize", headers=user_headers, json={"text": "   "})
    assert resp.status_code == 400
    assert provider.requests == []


def test_text_too_long(client, user_headers):
    resp = client.post("/api/v1/speech/synthesize", headers=user_headers, json={"text": "x" * 5001})
    assert resp.status_code == 400


def test_provider_error(client, db, provider, user_headers):
    provider.respond(lambda request: httpx.Response(401, json={"detail": "invalid api key"}))
    resp = client.post("/api/v1/speech/synthesize", headers=user_headers, json={"text": "Hi"})
    assert resp.status_code == 502
    assert resp.json()["error"].startswith("ElevenLabs API error: 401")
    assert "tts_generations" not in db.tables
