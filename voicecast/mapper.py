"""Speaker-to-voice mapping: assignment, validation and persistence."""

import json
import logging
import time
from datetime import datetime, timezone

from voicecast.constants import (
    MAPPING_FORMAT_VERSION,
    MAPPING_HISTORY_KEY,
    MAPPING_HISTORY_LIMIT,
    MAPPING_STORAGE_KEY,
)
from voicecast.models import MappingValidation, VoiceProfile, VoiceSettings
from voicecast.storage import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)


def _mapping_from_dict(data: dict) -> dict[str, VoiceProfile]:
    return {speaker: VoiceProfile.from_dict(profile) for speaker, profile in data.items()}


class SpeakerMapper:
    """Holds the speaker → VoiceProfile mapping used by the processor.

    voice_client is anything with an async list_voices() returning voice
    descriptor dicts (see ElevenLabsClient).
    """

    def __init__(self, store: KeyValueStore | None = None, voice_client=None):
        self.store = store if store is not None else MemoryStore()
        self.voice_client = voice_client
        self.available_voices: list[dict] = []
        self.last_fetch_error: Exception | None = None
        self._mapping: dict[str, VoiceProfile] = {}

    # --- Mapping ---

    def map_speaker_to_voice(
        self,
        speaker: str,
        voice_id: str,
        settings: VoiceSettings | dict | None = None,
    ) -> VoiceProfile:
        """Create or replace the mapping for a speaker.

        Omitted settings fields get their defaults; explicit 0 or False
        values are kept.
        """
        if not isinstance(settings, VoiceSettings):
            settings = VoiceSettings.from_dict(settings)

        voice_name = ""
        for voice in self.available_voices:
            if voice.get("voice_id") == voice_id:
                voice_name = voice.get("name", "")
                break

        profile = VoiceProfile(voice_id=voice_id, settings=settings, voice_name=voice_name)
        self._mapping[speaker] = profile
        return profile

    def remove_speaker(self, speaker: str) -> bool:
        return self._mapping.pop(speaker, None) is not None

    def get_speaker_mapping(self) -> dict[str, VoiceProfile]:
        """Return a shallow copy of the current mapping."""
        return dict(self._mapping)

    def find_duplicate_voices(self) -> list[dict]:
        """Voices assigned to more than one speaker."""
        usage = {}
        for speaker, profile in self._mapping.items():
            usage.setdefault(profile.voice_id, []).append(speaker)

        duplicates = []
        for voice_id, speakers in usage.items():
            if len(speakers) > 1:
                duplicates.append({
                    "voice_id": voice_id,
                    "voice_name": self._mapping[speakers[0]].voice_name,
                    "speakers": speakers,
                })
        return duplicates

    def validate_mapping(self, speakers) -> MappingValidation:
        """Check that every speaker has a voice. Does not modify the mapping."""
        unmapped = [speaker for speaker in speakers if speaker not in self._mapping]
        return MappingValidation(
            is_valid=not unmapped,
            unmapped_speakers=unmapped,
            duplicate_voices=self.find_duplicate_voices(),
        )

    # --- Voice catalog ---

    async def fetch_voices(self) -> list[dict]:
        """Fetch the voice catalog.

        Never raises: any failure is logged, kept in last_fetch_error, and an
        empty list is returned. Callers that need to tell "no voices" from
        "fetch failed" must check last_fetch_error.
        """
        self.last_fetch_error = None
        try:
            if self.voice_client is None:
                raise RuntimeError("No voice catalog client configured")
            voices = await self.voice_client.list_voices()
        except Exception as e:
            self.last_fetch_error = e
            logger.error("Failed to fetch voices: %s", e)
            return []

        self.available_voices = list(voices)
        logger.info("Loaded %d voices", len(self.available_voices))
        return self.available_voices

    # --- Persistence ---

    def _snapshot(self) -> dict:
        return {speaker: profile.to_dict() for speaker, profile in self._mapping.items()}

    def save_mapping(self) -> bool:
        """Persist the whole mapping. Returns False if the store failed."""
        data = {
            "version": MAPPING_FORMAT_VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "mapping": self._snapshot(),
        }
        try:
            self.store.save(MAPPING_STORAGE_KEY, json.dumps(data))
        except OSError as e:
            logger.error("Failed to save mapping: %s", e)
            return False
        self._save_to_history()
        return True

    def load_mapping(self) -> bool:
        """Replace the in-memory mapping with the saved one, if any.

        Returns False and leaves the mapping untouched when nothing is saved
        or the saved value cannot be read.
        """
        try:
            saved = self.store.load(MAPPING_STORAGE_KEY)
        except OSError as e:
            logger.error("Failed to read saved mapping: %s", e)
            return False
        if saved is None:
            return False

        try:
            data = json.loads(saved)
            # Older snapshots stored the bare mapping without the envelope
            raw = data["mapping"] if "mapping" in data else data
            mapping = _mapping_from_dict(raw)
        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed saved mapping: %s", e)
            return False

        self._mapping = mapping
        return True

    def get_mapping_history(self) -> list[dict]:
        try:
            saved = self.store.load(MAPPING_HISTORY_KEY)
            history = json.loads(saved) if saved else []
        except (OSError, json.JSONDecodeError):
            return []
        return history if isinstance(history, list) else []

    def _save_to_history(self) -> None:
        history = self.get_mapping_history()
        # ids must stay unique even when the clock has coarse resolution
        entry_id = time.time_ns()
        if history and isinstance(history[0].get("id"), int):
            entry_id = max(entry_id, history[0]["id"] + 1)
        history.insert(0, {
            "id": entry_id,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "speaker_count": len(self._mapping),
            "mapping": self._snapshot(),
        })
        try:
            self.store.save(MAPPING_HISTORY_KEY, json.dumps(history[:MAPPING_HISTORY_LIMIT]))
        except OSError as e:
            logger.warning("Failed to save mapping history: %s", e)

    def load_from_history(self, history_id: int) -> bool:
        for item in self.get_mapping_history():
            if item.get("id") == history_id:
                self._mapping = _mapping_from_dict(item["mapping"])
                return True
        return False

    def export_mapping(self, path: str) -> str:
        data = {
            "version": MAPPING_FORMAT_VERSION,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "mapping": self._snapshot(),
        }
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
        return path

    def import_mapping(self, path: str) -> None:
        """Replace the mapping with one exported by export_mapping()."""
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, dict) or "mapping" not in data:
            raise ValueError(f"Invalid mapping file format: {path}")
        self._mapping = _mapping_from_dict(data["mapping"])
