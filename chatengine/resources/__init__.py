"""Session configuration loading."""

from chatengine.resources.config import SessionConfig, ContactConfig, ConfigError

__all__ = ["SessionConfig", "ContactConfig", "ConfigError"]
