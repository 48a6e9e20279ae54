"""Exception types raised across the pipeline."""


class VoicecastError(RuntimeError):
    """Base class for voicecast errors."""


class ConfigurationError(VoicecastError):
    """Missing or invalid configuration (API key, numeric env values)."""


class SynthesisError(VoicecastError):
    """The synthesis service failed or returned a non-success response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProcessorStateError(VoicecastError):
    """A processor operation was called in a state that forbids it."""
