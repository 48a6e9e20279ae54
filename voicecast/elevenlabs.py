"""ElevenLabs API client: voice catalog and text-to-speech synthesis."""

import logging
import os
import time

import httpx
from pydub import AudioSegment

from voicecast.constants import (
    ELEVENLABS_BASE_URL,
    ELEVENLABS_MODEL,
    ELEVENLABS_OUTPUT_FORMAT,
    ELEVENLABS_TIMEOUT,
    OUTPUT_DIR,
    VOICE_CACHE_SECONDS,
)
from voicecast.errors import SynthesisError
from voicecast.models import VoiceSettings

logger = logging.getLogger(__name__)


def _normalize_voice(voice: dict) -> dict:
    """Reduce an API voice record to the fields the pipeline uses."""
    return {
        "voice_id": voice["voice_id"],
        "name": voice.get("name", ""),
        "category": voice.get("category") or "custom",
        "description": voice.get("description") or "",
        "preview_url": voice.get("preview_url"),
        "labels": voice.get("labels") or {},
        "settings": voice.get("settings") or VoiceSettings().to_dict(),
    }


def _pcm_sample_rate(output_format: str) -> int | None:
    """Sample rate for pcm_<rate> formats (pcm_44100 → 44100), else None."""
    if not output_format.startswith("pcm_"):
        return None
    return int(output_format.split("_", 1)[1])


class ElevenLabsClient:
    """Async client for the ElevenLabs REST API.

    Use as an async context manager, or call aclose() when done.
    """

    def __init__(
        self,
        api_key: str,
        output_dir: str = OUTPUT_DIR,
        base_url: str = ELEVENLABS_BASE_URL,
        model_id: str = ELEVENLABS_MODEL,
        output_format: str = ELEVENLABS_OUTPUT_FORMAT,
        timeout: float = ELEVENLABS_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.output_dir = output_dir
        self.model_id = model_id
        self.output_format = output_format
        self._voice_cache: list[dict] | None = None
        self._cache_expiry = 0.0
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"xi-api-key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_voices(self, force_refresh: bool = False) -> list[dict]:
        """Fetch available voices, premade first, then alphabetical.

        Results are cached for VOICE_CACHE_SECONDS. If the API call fails and
        an (even expired) cache exists, the cache is returned instead.
        """
        if not force_refresh and self._voice_cache is not None and time.monotonic() < self._cache_expiry:
            logger.debug("Returning cached voices")
            return self._voice_cache

        try:
            response = await self._http.get("/voices")
            response.raise_for_status()
            voices = [_normalize_voice(v) for v in response.json().get("voices", [])]
        except httpx.HTTPError as e:
            if self._voice_cache is not None:
                logger.warning("Voice fetch failed (%s), returning expired cache", e)
                return self._voice_cache
            raise

        voices.sort(key=lambda v: (v["category"] != "premade", v["name"].lower()))
        self._voice_cache = voices
        self._cache_expiry = time.monotonic() + VOICE_CACHE_SECONDS
        logger.info("Fetched %d voices from ElevenLabs", len(voices))
        return voices

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        settings: VoiceSettings,
        filename: str,
    ) -> str:
        """Render text with a voice and write the clip to output_dir/filename.

        PCM output formats are framed as WAV (the extension becomes .wav).
        Returns the written path. Raises SynthesisError on transport errors,
        non-success responses, or empty audio.
        """
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": settings.to_dict(),
        }
        try:
            response = await self._http.post(
                f"/text-to-speech/{voice_id}",
                params={"output_format": self.output_format},
                json=payload,
            )
        except httpx.HTTPError as e:
            raise SynthesisError(f"Request failed: {e}") from e

        if not response.is_success:
            raise SynthesisError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        audio = response.content
        if not audio:
            raise SynthesisError(f"Synthesis returned no audio for: {text[:50]}...")

        os.makedirs(self.output_dir, exist_ok=True)
        sample_rate = _pcm_sample_rate(self.output_format)

        if sample_rate is None:
            path = os.path.join(self.output_dir, filename)
            with open(path, "wb") as f:
                f.write(audio)
        else:
            path = os.path.join(self.output_dir, os.path.splitext(filename)[0] + ".wav")
            try:
                clip = AudioSegment(data=audio, sample_width=2, frame_rate=sample_rate, channels=1)
            except ValueError as e:
                raise SynthesisError(f"Malformed PCM audio: {e}") from e
            clip.export(path, format="wav").close()

        logger.debug("Wrote %s (%d bytes)", path, len(audio))
        return path

    async def validate_api_key(self) -> dict:
        """Check the key against the voices endpoint."""
        try:
            response = await self._http.get("/voices")
        except httpx.HTTPError as e:
            return {"valid": False, "error": str(e)}
        if response.status_code == 401:
            return {"valid": False, "error": "Invalid API key"}
        if not response.is_success:
            return {"valid": False, "error": f"HTTP {response.status_code}"}
        return {"valid": True, "voice_count": len(response.json().get("voices", []))}
