"""Runtime settings read from the environment."""

import logging
import os
import sys
from dataclasses import dataclass

LOG_FORMAT = '[%(levelname)s] %(message)s'


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    server_name: str = "custom-actions-mcp"
    json_response: bool = True
    stateless: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 8080)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            server_name=os.getenv("MCP_SERVER_NAME", "custom-actions-mcp"),
            json_response=_env_bool("MCP_JSON_RESPONSE", True),
            stateless=_env_bool("MCP_STATELESS", True),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(stream=sys.stderr, level=settings.log_level, format=LOG_FORMAT)


__all__ = [
    "Settings",
    "configure_logging",
]
