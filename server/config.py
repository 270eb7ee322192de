"""
Centralized configuration for the UNO game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.timing.TURN_TIMEOUT_SECONDS)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class SessionTiming:
    """
    Delays (seconds) for scheduled work inside a game session.

    AI_THINKING_SECONDS must stay below TURN_TIMEOUT_SECONDS so an AI always
    moves before a countdown could expire.
    """
    TURN_TIMEOUT_SECONDS: float = 10.0
    AI_THINKING_SECONDS: float = 1.5
    FINISHED_GRACE_SECONDS: float = 30.0
    INACTIVITY_TIMEOUT_SECONDS: float = 120.0
    INACTIVITY_SWEEP_SECONDS: float = 60.0

    def __post_init__(self) -> None:
        if self.AI_THINKING_SECONDS >= self.TURN_TIMEOUT_SECONDS:
            raise ValueError("AI_THINKING_SECONDS must be shorter than TURN_TIMEOUT_SECONDS")


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Persistence (empty = in-memory store)
    REDIS_URL: str = ""

    # Session settings
    DEFAULT_MAX_PLAYERS: int = 4
    MAX_PLAYERS_PER_SESSION: int = 10
    SESSION_CODE_LENGTH: int = 4

    timing: SessionTiming = field(default_factory=SessionTiming)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", ""),
            DEFAULT_MAX_PLAYERS=get_env_int("DEFAULT_MAX_PLAYERS", 4),
            MAX_PLAYERS_PER_SESSION=get_env_int("MAX_PLAYERS_PER_SESSION", 10),
            SESSION_CODE_LENGTH=get_env_int("SESSION_CODE_LENGTH", 4),
            timing=SessionTiming(
                TURN_TIMEOUT_SECONDS=get_env_float("TURN_TIMEOUT_SECONDS", 10.0),
                AI_THINKING_SECONDS=get_env_float("AI_THINKING_SECONDS", 1.5),
                FINISHED_GRACE_SECONDS=get_env_float("FINISHED_GRACE_SECONDS", 30.0),
                INACTIVITY_TIMEOUT_SECONDS=get_env_float("INACTIVITY_TIMEOUT_SECONDS", 120.0),
                INACTIVITY_SWEEP_SECONDS=get_env_float("INACTIVITY_SWEEP_SECONDS", 60.0),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
