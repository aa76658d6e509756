"""
Environment-driven settings.

Values come from the process environment, optionally seeded from the
nearest ``.env`` file (current directory first, then its parents).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DIAGRAM_NAME = "Converted Diagram"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@dataclass(frozen=True)
class Settings:
    diagram_name: str = DEFAULT_DIAGRAM_NAME
    server_host: str = DEFAULT_HOST
    server_port: int = DEFAULT_PORT


def find_env_file(start: Optional[Path] = None) -> Optional[Path]:
    """Return the closest .env walking up from *start* (default: cwd)."""
    base = start or Path.cwd()
    for folder in (base, *base.parents):
        candidate = folder / ".env"
        if candidate.exists():
            return candidate
    return None


def load_env(start: Optional[Path] = None) -> Optional[Path]:
    """Load the nearest .env without overriding variables already set."""
    env_path = find_env_file(start)
    if env_path is not None:
        load_dotenv(env_path)
    return env_path


def get_settings() -> Settings:
    port = os.environ.get("MERMAID_SERVER_PORT", "")
    return Settings(
        diagram_name=os.environ.get("MERMAID_DIAGRAM_NAME") or DEFAULT_DIAGRAM_NAME,
        server_host=os.environ.get("MERMAID_SERVER_HOST") or DEFAULT_HOST,
        server_port=int(port) if port.isdigit() else DEFAULT_PORT,
    )
