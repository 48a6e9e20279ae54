"""Tests for the ElevenLabs client, against an in-process mock transport."""

import asyncio
import json
import os
import wave

import httpx
import pytest

from voicecast.elevenlabs import ElevenLabsClient
from voicecast.errors import SynthesisError
from voicecast.models import VoiceSettings


VOICES = {
    "voices": [
        {"voice_id": "v3", "name": "zoe", "category": "cloned"},
        {"voice_id": "v2", "name": "Rachel", "category": "premade", "labels": {"accent": "american"}},
        {"voice_id": "v1", "name": "Adam", "category": "premade", "description": "Deep"},
        {"voice_id": "v4", "name": "Bella"},
    ]
}


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses):
        self.requests = []
        self.responses = list(responses)

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _client(tmp_path, handler, **kwargs):
    return ElevenLabsClient(
        "test-key",
        output_dir=str(tmp_path / "out"),
        base_url="https://api.test/v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _run(client, coro_fn):
    async def go():
        async with client:
            return await coro_fn(client)
    return asyncio.run(go())


# --- Voice catalog ---

def test_list_voices_normalized_and_sorted(tmp_path):
    handler = Recorder(httpx.Response(200, json=VOICES))
    voices = _run(_client(tmp_path, handler), lambda c: c.list_voices())

    assert [v["name"] for v in voices] == ["Adam", "Rachel", "Bella", "zoe"]
    adam = voices[0]
    assert adam["description"] == "Deep"
    assert adam["labels"] == {}
    assert adam["settings"] == VoiceSettings().to_dict()
    assert voices[2]["category"] == "custom"

    request = handler.requests[0]
    assert request.url.path == "/v1/voices"
    assert request.headers["xi-api-key"] == "test-key"


def test_list_voices_cached(tmp_path):
    handler = Recorder(httpx.Response(200, json=VOICES))

    async def twice(client):
        await client.list_voices()
        return await client.list_voices()

    voices = _run(_client(tmp_path, handler), twice)
    assert len(voices) == 4
    assert len(handler.requests) == 1


def test_list_voices_force_refresh(tmp_path):
    handler = Recorder(httpx.Response(200, json=VOICES))

    async def twice(client):
        await client.list_voices()
        return await client.list_voices(force_refresh=True)

    _run(_client(tmp_path, handler), twice)
    assert len(handler.requests) == 2


def test_list_voices_falls_back_to_expired_cache(tmp_path):
    handler = Recorder(httpx.Response(200, json=VOICES), httpx.Response(503))

    async def expire_then_fetch(client):
        first = await client.list_voices()
        client._cache_expiry = 0.0
        second = await client.list_voices()
        return first, second

    first, second = _run(_client(tmp_path, handler), expire_then_fetch)
    assert second == first
    assert len(handler.requests) == 2


def test_list_voices_error_without_cache_raises(tmp_path):
    handler = Recorder(httpx.Response(401))
    with pytest.raises(httpx.HTTPStatusError):
        _run(_client(tmp_path, handler), lambda c: c.list_voices())


# --- Synthesis ---

def test_synthesize_writes_mp3(tmp_path):
    handler = Recorder(httpx.Response(200, content=b"ID3fake-mp3-bytes"))
    settings = VoiceSettings(stability=0.0, style=0.2)

    path = _run(
        _client(tmp_path, handler),
        lambda c: c.synthesize("Hello there", "voice-1", settings, "001_alice.mp3"),
    )

    assert path == str(tmp_path / "out" / "001_alice.mp3")
    with open(path, "rb") as f:
        assert f.read() == b"ID3fake-mp3-bytes"

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/text-to-speech/voice-1"
    assert request.url.params["output_format"] == "mp3_44100_128"
    body = json.loads(request.content)
    assert body["text"] == "Hello there"
    assert body["model_id"] == "eleven_multilingual_v2"
    assert body["voice_settings"]["stability"] == 0.0
    assert body["voice_settings"]["style"] == 0.2
    assert body["voice_settings"]["use_speaker_boost"] is True


def test_synthesize_http_error_status(tmp_path):
    handler = Recorder(httpx.Response(429))
    with pytest.raises(SynthesisError, match="HTTP 429: Too Many Requests") as exc_info:
        _run(
            _client(tmp_path, handler),
            lambda c: c.synthesize("Hi", "v1", VoiceSettings(), "001_bob.mp3"),
        )
    assert exc_info.value.status_code == 429
    assert not os.path.exists(tmp_path / "out" / "001_bob.mp3")


def test_synthesize_transport_error(tmp_path):
    handler = Recorder(httpx.ConnectError("connection refused"))
    with pytest.raises(SynthesisError, match="Request failed"):
        _run(
            _client(tmp_path, handler),
            lambda c: c.synthesize("Hi", "v1", VoiceSettings(), "001_bob.mp3"),
        )


def test_synthesize_empty_audio(tmp_path):
    handler = Recorder(httpx.Response(200, content=b""))
    with pytest.raises(SynthesisError, match="no audio"):
        _run(
            _client(tmp_path, handler),
            lambda c: c.synthesize("Hi", "v1", VoiceSettings(), "001_bob.mp3"),
        )


def test_synthesize_pcm_framed_as_wav(tmp_path):
    pcm = b"\x00\x01" * 2205  # 0.1s of mono 16-bit audio at 22050 Hz
    handler = Recorder(httpx.Response(200, content=pcm))

    path = _run(
        _client(tmp_path, handler, output_format="pcm_22050"),
        lambda c: c.synthesize("Hi", "v1", VoiceSettings(), "002_bob.mp3"),
    )

    assert path.endswith("002_bob.wav")
    with wave.open(path) as w:
        assert w.getframerate() == 22050
        assert w.getnchannels() == 1
        assert w.getsampwidth() == 2
        assert w.getnframes() == 2205
    assert handler.requests[0].url.params["output_format"] == "pcm_22050"


def test_synthesize_malformed_pcm(tmp_path):
    handler = Recorder(httpx.Response(200, content=b"\x00\x01\x02"))
    with pytest.raises(SynthesisError, match="Malformed PCM"):
        _run(
            _client(tmp_path, handler, output_format="pcm_16000"),
            lambda c: c.synthesize("Hi", "v1", VoiceSettings(), "003_bob.mp3"),
        )


# --- Key validation ---

def test_validate_api_key_valid(tmp_path):
    handler = Recorder(httpx.Response(200, json=VOICES))
    result = _run(_client(tmp_path, handler), lambda c: c.validate_api_key())
    assert result == {"valid": True, "voice_count": 4}


def test_validate_api_key_unauthorized(tmp_path):
    handler = Recorder(httpx.Response(401))
    result = _run(_client(tmp_path, handler), lambda c: c.validate_api_key())
    assert result == {"valid": False, "error": "Invalid API key"}


def test_validate_api_key_server_error(tmp_path):
    handler = Recorder(httpx.Response(500))
    result = _run(_client(tmp_path, handler), lambda c: c.validate_api_key())
    assert result["valid"] is False
    assert result["error"] == "HTTP 500"


def test_validate_api_key_unreachable(tmp_path):
    handler = Recorder(httpx.ConnectError("no route"))
    result = _run(_client(tmp_path, handler), lambda c: c.validate_api_key())
    assert result["valid"] is False
    assert "no route" in result["error"]
