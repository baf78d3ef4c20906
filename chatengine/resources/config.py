"""
Session configuration.

Loads the per-session settings (script location, contacts, pacing,
time budget, sounds) from JSON and validates them against a schema.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a session config is missing or invalid."""


_NUMBER = {"type": "number", "minimum": 0}

SESSION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "script_path": {"type": "string"},
        "contacts": {
            "type": "array",
            "items": {
                "anyOf": [
                    {"type": "string", "minLength": 1},
                    {
                        "type": "object",
                        "required": ["name"],
                        "properties": {
                            "name": {"type": "string", "minLength": 1},
                            "entry_node": {"type": "integer", "minimum": 0},
                        },
                        "additionalProperties": False,
                    },
                ]
            },
        },
        "start_node": {"type": "integer", "minimum": 0},
        "default_line_delay": _NUMBER,
        "self_line_delay": _NUMBER,
        "option_delay": _NUMBER,
        "safe_threshold": {"type": "integer", "minimum": 1},
        "lookahead_limit": {"type": "integer", "minimum": 1},
        "total_time": {"type": "number", "exclusiveMinimum": 0},
        "message_volume": {"type": "number", "minimum": 0, "maximum": 1},
        "sounds": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
    },
    "additionalProperties": False,
}


class ContactConfig:
    """A conversation partner declared in config."""

    def __init__(self, name: str, entry_node: int = 0):
        self.name = name
        self.entry_node = entry_node

    def __repr__(self) -> str:
        return f"ContactConfig(name={self.name!r}, entry_node={self.entry_node})"


class SessionConfig:
    """Configuration for a chat session."""

    def __init__(
        self,
        script_path: str | Path | None = None,
        contacts: list[ContactConfig] | None = None,
        start_node: int = 0,
        default_line_delay: float = 1.0,
        self_line_delay: float = 0.5,
        option_delay: float = 1.0,
        safe_threshold: int = 12001,
        lookahead_limit: int = 50,
        total_time: float = 600.0,
        message_volume: float = 0.5,
        sounds: dict[str, str] | None = None,
    ):
        self.script_path = Path(script_path) if script_path else None
        self.contacts = contacts or []
        self.start_node = start_node
        self.default_line_delay = default_line_delay
        self.self_line_delay = self_line_delay
        self.option_delay = option_delay
        self.safe_threshold = safe_threshold
        self.lookahead_limit = lookahead_limit
        self.total_time = total_time
        self.message_volume = message_volume
        self.sounds = sounds or {}

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_path: Path | None = None) -> SessionConfig:
        """
        Build a config from parsed JSON.

        Args:
            data: Config mapping
            base_path: Directory that relative paths are resolved against

        Raises:
            ConfigError: If the data does not match the session schema
        """
        try:
            jsonschema.validate(instance=data, schema=SESSION_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigError(f"Invalid session config: {e.message}") from e

        contacts = []
        seen = set()
        for entry in data.get("contacts", []):
            if isinstance(entry, str):
                contact = ContactConfig(entry)
            else:
                contact = ContactConfig(entry["name"], entry.get("entry_node", 0))
            if contact.name in seen:
                logger.warning(f"Duplicate contact in config: {contact.name}")
                continue
            seen.add(contact.name)
            contacts.append(contact)

        def resolve(path: str) -> Path:
            p = Path(path)
            if base_path is not None and not p.is_absolute():
                p = base_path / p
            return p

        script_path = data.get("script_path")
        sounds = {cue: str(resolve(path)) for cue, path in data.get("sounds", {}).items()}

        return cls(
            script_path=resolve(script_path) if script_path else None,
            contacts=contacts,
            start_node=data.get("start_node", 0),
            default_line_delay=data.get("default_line_delay", 1.0),
            self_line_delay=data.get("self_line_delay", 0.5),
            option_delay=data.get("option_delay", 1.0),
            safe_threshold=data.get("safe_threshold", 12001),
            lookahead_limit=data.get("lookahead_limit", 50),
            total_time=data.get("total_time", 600.0),
            message_volume=data.get("message_volume", 0.5),
            sounds=sounds,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> SessionConfig:
        """Load and validate a JSON config file."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

        config = cls.from_dict(data, base_path=path.parent)
        logger.info(f"Loaded session config {path} ({len(config.contacts)} contacts)")
        return config
