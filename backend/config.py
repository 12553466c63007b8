"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No bridging logic
- No protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    REALTIME_DEFAULT_MODEL,
    REALTIME_DEFAULT_URL,
    VAD_DEFAULT_SILENCE_DURATION_MS,
    VAD_DEFAULT_THRESHOLD,
)
from orchestrator.enums.turn_policy import TurnPolicy


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the registry, sessions and AI links.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"
    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Realtime AI endpoint
    # ------------------------------------------------------------------

    openai_api_key: str | None = None
    realtime_model: str = REALTIME_DEFAULT_MODEL
    realtime_url: str = REALTIME_DEFAULT_URL
    temperature: float = 0.7
    voice: str = "alloy"

    # ------------------------------------------------------------------
    # Turn detection
    # ------------------------------------------------------------------

    turn_policy: TurnPolicy = TurnPolicy.AUTO
    vad_threshold: float = VAD_DEFAULT_THRESHOLD
    vad_silence_duration_ms: int = VAD_DEFAULT_SILENCE_DURATION_MS

    # ------------------------------------------------------------------
    # Persona
    # ------------------------------------------------------------------

    persona_file: str | None = None

    # ------------------------------------------------------------------
    # HTTP server / webhook
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"
    port: int = 5050
    say_language: str = "es-MX"
    say_voice: str = "Google.es-MX-Standard-A"
    say_text: str = (
        "Conectando con tu asistente de voz. "
        "Puedes hablar cuando escuches el tono."
    )

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    show_timing_math: bool = False

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a variable is present but malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            enable_json_logs=_env_flag("ENABLE_JSON_LOGS", "1"),

            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            realtime_model=os.environ.get("REALTIME_MODEL", REALTIME_DEFAULT_MODEL),
            realtime_url=os.environ.get("REALTIME_URL", REALTIME_DEFAULT_URL),
            temperature=_env_float("TEMPERATURE", 0.7),
            voice=os.environ.get("VOICE", "alloy"),

            turn_policy=TurnPolicy.parse(os.environ.get("TURN_POLICY", "AUTO")),
            vad_threshold=_env_float("VAD_THRESHOLD", VAD_DEFAULT_THRESHOLD),
            vad_silence_duration_ms=_env_int(
                "VAD_SILENCE_DURATION_MS", VAD_DEFAULT_SILENCE_DURATION_MS
            ),

            persona_file=os.environ.get("PERSONA_FILE") or None,

            host=os.environ.get("HOST", "0.0.0.0"),
            port=_env_int("PORT", 5050),
            say_language=os.environ.get("GREETING_SAY_LANGUAGE", "es-MX"),
            say_voice=os.environ.get("GREETING_SAY_VOICE", "Google.es-MX-Standard-A"),
            say_text=os.environ.get(
                "GREETING_SAY_TEXT",
                "Conectando con tu asistente de voz. "
                "Puedes hablar cuando escuches el tono.",
            ),

            show_timing_math=_env_flag("SHOW_TIMING_MATH", "0"),
        )
