"""Shared fixtures for voicecast tests."""

import pytest

from voicecast.models import VoiceProfile, VoiceSettings
from voicecast.storage import MemoryStore


SAMPLE_SCRIPT = """Episode 1: The Vault

**NARRATOR**: The lights flicker. *thunder rolls*
The crew waits in silence.

**ALICE**: Is everyone here? *looks around*
BOB: Right behind you.
ALICE: Then let's go.
"""


class FakeSynthesizer:
    """Records calls; raises for any text listed in fail_on."""

    def __init__(self, fail_on=(), on_call=None):
        self.calls = []
        self.fail_on = set(fail_on)
        self.on_call = on_call

    async def synthesize(self, text, voice_id, settings, filename):
        self.calls.append({"text": text, "voice_id": voice_id, "settings": settings, "filename": filename})
        if self.on_call:
            self.on_call(len(self.calls))
        if text in self.fail_on:
            raise RuntimeError("HTTP 500: Internal Server Error")
        return f"/tmp/episode/{filename}"


@pytest.fixture
def sample_script():
    return SAMPLE_SCRIPT


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def voice_mapping():
    """ALICE and BOB mapped; NARRATOR deliberately left out."""
    return {
        "ALICE": VoiceProfile(voice_id="voice-alice", settings=VoiceSettings()),
        "BOB": VoiceProfile(voice_id="voice-bob", settings=VoiceSettings(stability=0.0)),
    }
