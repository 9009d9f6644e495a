"""
plugsmith Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables (prefixed with PLUGSMITH_).
"""

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for plugsmith logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/plugsmith/logs if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/plugsmith/logs if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "plugsmith" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "plugsmith" / "logs")

    # Fallback for development/testing environments without HOME
    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLUGSMITH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Plugin discovery
    plugin_root: str = "plugins"  # Directory holding the category folders
    categories: list[str] = []  # Category folder names scanned on startup
    plugin_data_dir: str = ""  # Shared data root (empty = beside each plugin)
    graylist_file: str = "plugin_list.yml"

    # Source loaders registered by the host
    loader_folder: bool = True
    loader_zip: bool = True
    loader_pyz: bool = True

    # Loading behaviour
    host_api_version: str = "1.0.0"
    scan_seed: Optional[int] = None  # Fixed seed for reproducible scan order
    fail_on_load_errors: bool = True

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True  # Enable console (stderr) logging
    log_file_enabled: bool = False  # Enable file-based logging
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5  # Keep 5 backup files

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())

    @property
    def data_directory(self) -> Optional[Path]:
        """Shared plugin data root, or None when data lives beside each plugin."""
        if self.plugin_data_dir:
            return Path(self.plugin_data_dir).expanduser()
        return None


# Global settings instance
settings = Settings()
