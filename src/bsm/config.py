from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import secrets
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    secret_key: str
    session_ttl_seconds: int = 3600
    cloudinary_cloud_name: str = ""
    cloudinary_upload_preset: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    host: str = "127.0.0.1"
    port: int = 8000
    secure_cookies: bool = False

    @classmethod
    def from_env(cls, env: dict | None = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            secret_key=env.get("BSM_SECRET_KEY", "").strip() or secrets.token_hex(32),
            session_ttl_seconds=int(env.get("BSM_SESSION_TTL_SECONDS", "3600")),
            cloudinary_cloud_name=env.get("CLOUDINARY_CLOUD_NAME", "").strip(),
            cloudinary_upload_preset=env.get("CLOUDINARY_UPLOAD_PRESET", "").strip(),
            cloudinary_api_key=env.get("CLOUDINARY_API_KEY", "").strip(),
            cloudinary_api_secret=env.get("CLOUDINARY_API_SECRET", "").strip(),
            host=env.get("BSM_HOST", "127.0.0.1"),
            port=int(env.get("BSM_PORT", "8000")),
            secure_cookies=env.get("BSM_SECURE_COOKIES", "0").strip().lower() in {"1", "true", "yes"},
        )


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "BottleShopManager") -> AppPaths:
    override = os.environ.get("BSM_HOME", "").strip()
    if override:
        base = Path(override)
    elif sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "shop.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)
