from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger("smartbutton.config")

ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_ENTITY = "theia_buttonconfiguration"


def load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


@dataclass(frozen=True)
class Settings:
    webapi_url: str = ""
    access_token: str | None = None
    http_timeout: float = 30.0
    cache_attempts: int = 5
    cache_retry_ms: int = 100
    config_entity: str = DEFAULT_CONFIG_ENTITY
    log_level: str = "INFO"

    @property
    def cache_retry_delay(self) -> float:
        return self.cache_retry_ms / 1000.0


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("config_invalid key=%s value=%s default=%s", key, raw, default)
        return default
    if value < 0:
        logger.warning("config_invalid key=%s value=%s default=%s", key, raw, default)
        return default
    return value


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    if env is None:
        load_env_file(ROOT / "app" / ".env")
        env = os.environ
    return Settings(
        webapi_url=(env.get("SMARTBUTTON_WEBAPI_URL") or "").strip().rstrip("/"),
        access_token=(env.get("SMARTBUTTON_ACCESS_TOKEN") or "").strip() or None,
        http_timeout=_number(env, "SMARTBUTTON_HTTP_TIMEOUT", 30.0, float),
        cache_attempts=_number(env, "SMARTBUTTON_CACHE_ATTEMPTS", 5, int),
        cache_retry_ms=_number(env, "SMARTBUTTON_CACHE_RETRY_MS", 100, int),
        config_entity=(env.get("SMARTBUTTON_CONFIG_ENTITY") or "").strip() or DEFAULT_CONFIG_ENTITY,
        log_level=(env.get("SMARTBUTTON_LOG_LEVEL") or "INFO").strip().upper(),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
