"""Data models for script voicing."""

from dataclasses import dataclass, field, asdict

from voicecast.constants import (
    DEFAULT_STABILITY,
    DEFAULT_SIMILARITY_BOOST,
    DEFAULT_STYLE,
    DEFAULT_USE_SPEAKER_BOOST,
)

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"


def speaker_slug(speaker: str) -> str:
    return speaker.strip().replace(" ", "_").lower()


def chunk_suffix(chunk_index: int) -> str:
    """0 → "a", 25 → "z", 26 → "aa"."""
    suffix = ""
    n = chunk_index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        suffix = chr(ord("a") + rem) + suffix
    return suffix


def unit_id(original_index: int, speaker: str, chunk_index: int | None = None) -> str:
    """Deterministic unit id: "003_old_man" for index 2, speaker "OLD MAN".

    Chunks of a split dialogue get a letter suffix: "003a_old_man".
    """
    suffix = "" if chunk_index is None else chunk_suffix(chunk_index)
    return f"{original_index + 1:03d}{suffix}_{speaker_slug(speaker)}"


@dataclass
class DialogueUnit:
    id: str
    speaker: str
    text: str
    original_index: int
    status: str = PENDING   # "pending", "completed" or "failed"
    chunk_index: int = 0
    total_chunks: int = 1


@dataclass
class VoiceSettings:
    stability: float = DEFAULT_STABILITY
    similarity_boost: float = DEFAULT_SIMILARITY_BOOST
    style: float = DEFAULT_STYLE
    use_speaker_boost: bool = DEFAULT_USE_SPEAKER_BOOST

    def __post_init__(self):
        for name in ("stability", "similarity_boost", "style"):
            value = float(getattr(self, name))
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
            setattr(self, name, value)
        self.use_speaker_boost = bool(self.use_speaker_boost)

    @classmethod
    def from_dict(cls, data: dict | None) -> "VoiceSettings":
        """Build settings from a partial dict.

        A field falls back to its default only when the key is missing or None;
        explicit 0 / 0.0 / False values are kept as given.
        """
        data = data or {}
        kwargs = {}
        for name in ("stability", "similarity_boost", "style", "use_speaker_boost"):
            if data.get(name) is not None:
                kwargs[name] = data[name]
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VoiceProfile:
    voice_id: str
    settings: VoiceSettings = field(default_factory=VoiceSettings)
    voice_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "VoiceProfile":
        return cls(
            voice_id=data["voice_id"],
            settings=VoiceSettings.from_dict(data.get("settings")),
            voice_name=data.get("voice_name", ""),
        )

    def to_dict(self) -> dict:
        return {
            "voice_id": self.voice_id,
            "voice_name": self.voice_name,
            "settings": self.settings.to_dict(),
        }


@dataclass
class ProcessingResult:
    unit: DialogueUnit
    filename: str | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_message is None


@dataclass
class QueueStats:
    total: int
    completed: int
    failed: int
    remaining: int


@dataclass
class ParseResult:
    speakers: list[str]
    dialogues: list[DialogueUnit]
    total_characters: int
    stats: dict = field(default_factory=dict)


@dataclass
class MappingValidation:
    is_valid: bool
    unmapped_speakers: list[str]
    duplicate_voices: list[dict] = field(default_factory=list)
