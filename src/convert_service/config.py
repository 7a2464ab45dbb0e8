import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping

DEFAULT_SOFFICE_PATH = r"C:\Program Files\LibreOffice\program\soffice.exe"

_TRUTHY = {"1", "true", "yes", "on"}


class RunMode(str, Enum):
    PRODUCTION = "production"
    TEST = "test"


@dataclass(frozen=True)
class ServiceConfig:
    """Resolved service settings.

    Built once at start-up (usually via `from_env`) and handed to the
    conversion service and the web app; nothing downstream reads the
    environment itself.
    """

    storage_root: Path
    pandoc_path: str = "pandoc"
    markitdown_path: str = "markitdown"
    soffice_path: str | None = DEFAULT_SOFFICE_PATH
    run_mode: RunMode = RunMode.PRODUCTION
    shortcut_enabled: bool = False
    workers: int = 4
    max_upload_mb: int = 300
    tool_timeout_sec: float | None = 1800
    log_level: str = "INFO"

    @property
    def uploads_dir(self) -> Path:
        return self.storage_root / "uploads"

    @property
    def converted_dir(self) -> Path:
        return self.storage_root / "converted"

    @property
    def simulate(self) -> bool:
        return self.run_mode is RunMode.TEST

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ServiceConfig":
        env = os.environ if env is None else env
        timeout = float(env.get("TOOL_TIMEOUT_SEC", "1800"))
        return cls(
            storage_root=Path(env.get("STORAGE_DIR", "./storage")).resolve(),
            pandoc_path=env.get("PANDOC_PATH") or "pandoc",
            markitdown_path=env.get("MARKITDOWN_PATH") or "markitdown",
            soffice_path=env.get("SOFFICE_PATH") or DEFAULT_SOFFICE_PATH,
            run_mode=RunMode(env.get("CONVERT_SERVICE_ENV", "production").strip().lower()),
            shortcut_enabled=env.get("CONVERT_SERVICE_ENABLE_SHORTCUT", "").lower() in _TRUTHY,
            workers=int(env.get("WORKERS", "4")),
            max_upload_mb=int(env.get("MAX_UPLOAD_MB", "300")),
            tool_timeout_sec=timeout if timeout > 0 else None,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
