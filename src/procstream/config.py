"""procstream environment configuration.

Environment variables:
    PROCSTREAM_SIDECAR_DIR: Directory searched by ``Command.new_sidecar``
        - empty/unset = directory of the running executable (default)

    PROCSTREAM_LOG_DEBUG: Debug logging mode
        - true/1/yes/on = on (log to a temp file at DEBUG level)
        - false/0/no/off = off (default, log to stderr at INFO level)

    PROCSTREAM_KILL_ON_EXIT: Whether the CLI kills its child on Ctrl+C
        - true/1/yes/on = kill (default)
        - false/0/no/off = leave the child running
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_dir(value: str | None) -> Path | None:
    """Parse a directory environment variable, empty meaning unset."""
    if not value or not value.strip():
        return None
    return Path(value.strip()).expanduser()


@dataclass
class Config:
    """procstream configuration.

    Attributes:
        sidecar_dir: Directory for sidecar lookup, None = executable's dir
        log_debug: Debug logging to a temp file
        log_file: Log file path (set automatically when log_debug=True)
        kill_on_exit: CLI kills the child when interrupted
    """

    sidecar_dir: Path | None = None
    log_debug: bool = False
    log_file: str | None = None
    kill_on_exit: bool = True

    def __repr__(self) -> str:
        return (
            f"Config(sidecar_dir={self.sidecar_dir}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"kill_on_exit={self.kill_on_exit})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "procstream"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"procstream_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("PROCSTREAM_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        sidecar_dir=_parse_dir(os.environ.get("PROCSTREAM_SIDECAR_DIR")),
        log_debug=log_debug,
        log_file=log_file,
        kill_on_exit=_parse_bool(os.environ.get("PROCSTREAM_KILL_ON_EXIT"), default=True),
    )


# Global instance, loaded lazily
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from the environment (used by tests)."""
    global _config
    _config = load_config()
    return _config
