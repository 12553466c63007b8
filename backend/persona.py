"""
Persona loader.

A persona is the configuration blob handed verbatim to the AI session
configure step: instructions, an optional voice override and an optional
greeting the assistant speaks first.

Personas live in YAML files so long prompts do not have to squeeze into
environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from constants import LOG_PAYLOAD_PREVIEW_CHARS
from observability.logger import log_event


DEFAULT_INSTRUCTIONS = (
    "You are a helpful, friendly voice assistant on a phone call. "
    "Keep answers to one to three short sentences and ask for clarification "
    "in one sentence when you do not understand."
)


@dataclass(frozen=True)
class PersonaConfig:
    """
    Persona loaded from YAML.

    Fields:
        instructions: system prompt for the AI session (required in files)
        greeting: prompt asking the assistant to open the call, or None
        voice: output voice override, or None to use the configured voice
        metadata: free-form documentation, never sent to the AI
    """

    instructions: str = DEFAULT_INSTRUCTIONS
    greeting: str | None = None
    voice: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, file_path: str | Path) -> PersonaConfig:
        """
        Load a persona from a YAML file.

        Raises:
            FileNotFoundError: if the file does not exist
            ValueError: if the file is not valid YAML or lacks instructions
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Persona file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in persona file {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("Persona file must contain a mapping")

        instructions = data.get("instructions")
        if not instructions:
            raise ValueError("'instructions' field is required in persona file")
        if not isinstance(instructions, str):
            raise ValueError("'instructions' field must be a string")

        greeting = _optional_str(data, "greeting")
        voice = _optional_str(data, "voice")

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise ValueError("'metadata' field must be a mapping")

        persona = cls(
            instructions=instructions.strip(),
            greeting=greeting,
            voice=voice,
            metadata=metadata,
        )

        log_event({
            "event_type": "PERSONA_LOADED",
            "file_path": str(file_path),
            **persona.summary(),
        })

        return persona

    @classmethod
    def load(cls, file_path: str | Path | None) -> PersonaConfig:
        """
        Load from file_path, or return the built-in default when unset.

        A file that is set but unreadable is an error, never a fallback.
        """
        if not file_path:
            return cls()
        return cls.from_yaml(file_path)

    def summary(self) -> dict[str, Any]:
        """Short, log-safe view of the persona."""
        return {
            "instructions_preview": self.instructions[:LOG_PAYLOAD_PREVIEW_CHARS],
            "instructions_length": len(self.instructions),
            "has_greeting": self.greeting is not None,
            "voice": self.voice,
        }


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' field must be a string")
    value = value.strip()
    return value or None
