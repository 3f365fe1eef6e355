from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    ws_token: str = os.getenv("DASHBOARD_WS_TOKEN", "kiosk-local-token")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    backend_host: str = os.getenv("BACKEND_HOST", "127.0.0.1")
    backend_port: int = int(os.getenv("BACKEND_PORT", "3001"))

    # Served document; empty means "use the embedded fallback only".
    config_url: str = os.getenv("DASHBOARD_CONFIG_URL", "")
    fallback_config: str = os.getenv(
        "DASHBOARD_FALLBACK_CONFIG",
        str(CONFIG_DIR / "dashboards" / "default.json"),
    )
    version_url: str = os.getenv("DASHBOARD_VERSION_URL", "")
    build_number: int = int(os.getenv("DASHBOARD_BUILD_NUMBER", "0"))

    reconnect_interval_ms: int = int(os.getenv("RECONNECT_INTERVAL_MS", "3000"))
    max_reconnect_attempts: int = int(os.getenv("MAX_RECONNECT_ATTEMPTS", "10"))
    heartbeat_interval_ms: int = int(os.getenv("HEARTBEAT_INTERVAL_MS", "30000"))
    version_poll_interval_ms: int = int(os.getenv("VERSION_POLL_INTERVAL_MS", "10000"))

    # Fixed kiosk resolution (5" Raspberry Pi panel).
    display_width: int = int(os.getenv("DISPLAY_WIDTH", "800"))
    display_height: int = int(os.getenv("DISPLAY_HEIGHT", "480"))

    embed_backend: bool = _env_flag("EMBED_BACKEND", "true")


settings = Settings()
