"""Runtime configuration from the environment and an optional .env file."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from voicecast.constants import (
    ELEVENLABS_BASE_URL,
    ELEVENLABS_MODEL,
    ELEVENLABS_OUTPUT_FORMAT,
    ELEVENLABS_TIMEOUT,
    OUTPUT_DIR,
    STORE_PATH,
    SUBSCRIPTION_QUOTA,
    THROTTLE_DELAY_SECONDS,
)
from voicecast.errors import ConfigurationError


@dataclass
class Settings:
    api_key: str = ""
    base_url: str = ELEVENLABS_BASE_URL
    model_id: str = ELEVENLABS_MODEL
    output_format: str = ELEVENLABS_OUTPUT_FORMAT
    timeout: float = ELEVENLABS_TIMEOUT
    subscription_quota: int = SUBSCRIPTION_QUOTA
    output_dir: str = OUTPUT_DIR
    store_path: str = os.path.expanduser(STORE_PATH)
    throttle: float = THROTTLE_DELAY_SECONDS

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(
                "ElevenLabs API key not configured. Set ELEVENLABS_API_KEY in the environment or a .env file."
            )
        return self.api_key


def _number(env: dict, name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from None


def load_settings(env: dict | None = None, dotenv_path: str | None = None) -> Settings:
    """Build Settings from environment variables.

    When env is None the process environment is used, after loading .env
    (existing variables win over the file).
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = dict(os.environ)

    return Settings(
        api_key=env.get("ELEVENLABS_API_KEY", "").strip(),
        base_url=env.get("ELEVENLABS_BASE_URL", ELEVENLABS_BASE_URL).rstrip("/"),
        model_id=env.get("ELEVENLABS_MODEL", ELEVENLABS_MODEL),
        output_format=env.get("ELEVENLABS_OUTPUT_FORMAT", ELEVENLABS_OUTPUT_FORMAT),
        timeout=_number(env, "ELEVENLABS_TIMEOUT", ELEVENLABS_TIMEOUT, float),
        subscription_quota=_number(env, "ELEVENLABS_SUBSCRIPTION_QUOTA", SUBSCRIPTION_QUOTA, int),
        output_dir=env.get("VOICECAST_OUTPUT_DIR", OUTPUT_DIR),
        store_path=os.path.expanduser(env.get("VOICECAST_STORE", STORE_PATH)),
        throttle=_number(env, "VOICECAST_THROTTLE", THROTTLE_DELAY_SECONDS, float),
    )
