"""Centralised settings for the Storyloom backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("STORYLOOM_WORKSPACE", Path.home() / ".storyloom_data")
        )
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("STORYLOOM_CLI_DIR", Path.home() / ".storyloom_cli")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "stories.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Remote API (used by backend.client)
    # ------------------------------------------------------------------
    api_base_url: str = field(
        default_factory=lambda: os.environ.get("STORYLOOM_API_URL", "http://localhost:8000")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_verbosity: int = field(
        default_factory=lambda: int(os.environ.get("STORYLOOM_LOG_VERBOSITY", "0"))
    )

    # ------------------------------------------------------------------
    # Tree layout (coordinates are percentages of the canvas)
    # ------------------------------------------------------------------
    layout_x_min: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_X_MIN", "10"))
    )
    layout_x_max: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_X_MAX", "90"))
    )
    layout_root_span: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_ROOT_SPAN", "70"))
    )
    layout_min_offset: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_MIN_OFFSET", "0.5"))
    )
    layout_y_top: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_Y_TOP", "10"))
    )
    layout_height: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_HEIGHT", "80"))
    )
    layout_min_spacing: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_MIN_SPACING", "8"))
    )
    layout_max_spacing: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_MAX_SPACING", "30"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from backend.config import settings
settings = Settings()
