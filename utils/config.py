"""Environment-driven settings for the stamp expert service."""

import os
from typing import Optional

from pydantic import BaseModel


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


class Settings(BaseModel):
    """Runtime configuration. Every field has an environment variable of the same name, upper-cased."""

    openai_api_key: Optional[str] = None
    openai_assistant_id: str = "asst_AfsiDbpnx2WjgZV7O97eHhyb"
    openai_vector_store_id: str = "vs_68a700c721648191a8f8bd76ddfcd860"

    chat_model: str = "gpt-4o"
    voice_chat_model: str = "gpt-4.1"
    vision_model: str = "gpt-4o-mini"
    transcribe_model: str = "whisper-1"
    tts_model: str = "tts-1"
    realtime_model: str = "gpt-4o-realtime-preview-2025-06-03"

    # Run driver
    run_poll_interval_seconds: float = 0.5
    run_max_poll_attempts: int = 15
    active_run_max_wait_attempts: int = 30
    keep_alive_every: int = 5

    # Deadlines
    deadline_seconds: float = 8.0
    non_stream_timeout_seconds: float = 12.0

    # Relay
    chunk_words: int = 5
    chunk_delay_seconds: float = 0.05

    # Session state
    dedup_max_age_seconds: float = 60.0
    stamp_context_ttl_seconds: float = 600.0
    stamp_context_max: int = 5
    conversation_store: str = "memory"
    database_dir: Optional[str] = None

    # Input limits
    max_message_length: int = 2000
    max_image_bytes: int = 5 * 1024 * 1024

    stamp_catalog_path: str = "stamps-with-descriptions.json"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment, falling back to defaults."""
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_assistant_id=os.getenv("OPENAI_ASSISTANT_ID", defaults.openai_assistant_id),
            openai_vector_store_id=os.getenv("OPENAI_VECTOR_STORE_ID", defaults.openai_vector_store_id),
            chat_model=os.getenv("CHAT_MODEL", defaults.chat_model),
            voice_chat_model=os.getenv("VOICE_CHAT_MODEL", defaults.voice_chat_model),
            vision_model=os.getenv("VISION_MODEL", defaults.vision_model),
            transcribe_model=os.getenv("TRANSCRIBE_MODEL", defaults.transcribe_model),
            tts_model=os.getenv("TTS_MODEL", defaults.tts_model),
            realtime_model=os.getenv("REALTIME_MODEL", defaults.realtime_model),
            run_poll_interval_seconds=_env_float("RUN_POLL_INTERVAL_SECONDS", defaults.run_poll_interval_seconds),
            run_max_poll_attempts=_env_int("RUN_MAX_POLL_ATTEMPTS", defaults.run_max_poll_attempts),
            active_run_max_wait_attempts=_env_int(
                "ACTIVE_RUN_MAX_WAIT_ATTEMPTS", defaults.active_run_max_wait_attempts
            ),
            keep_alive_every=_env_int("KEEP_ALIVE_EVERY", defaults.keep_alive_every),
            deadline_seconds=_env_float("DEADLINE_SECONDS", defaults.deadline_seconds),
            non_stream_timeout_seconds=_env_float("NON_STREAM_TIMEOUT_SECONDS", defaults.non_stream_timeout_seconds),
            chunk_words=_env_int("CHUNK_WORDS", defaults.chunk_words),
            chunk_delay_seconds=_env_float("CHUNK_DELAY_SECONDS", defaults.chunk_delay_seconds),
            dedup_max_age_seconds=_env_float("DEDUP_MAX_AGE_SECONDS", defaults.dedup_max_age_seconds),
            stamp_context_ttl_seconds=_env_float("STAMP_CONTEXT_TTL_SECONDS", defaults.stamp_context_ttl_seconds),
            stamp_context_max=_env_int("STAMP_CONTEXT_MAX", defaults.stamp_context_max),
            conversation_store=os.getenv("CONVERSATION_STORE", defaults.conversation_store).strip().lower(),
            database_dir=os.getenv("DATABASE_DIR"),
            max_message_length=_env_int("MAX_MESSAGE_LENGTH", defaults.max_message_length),
            max_image_bytes=_env_int("MAX_IMAGE_BYTES", defaults.max_image_bytes),
            stamp_catalog_path=os.getenv("STAMP_CATALOG_PATH", defaults.stamp_catalog_path),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        )
