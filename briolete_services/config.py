"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

_PACKAGE_ROOT = os.path.dirname(os.path.abspath(__file__))

DEFAULT_FONT_DIR = os.path.join(_PACKAGE_ROOT, "fonts")
FONT_REGULAR_FILE = "DejaVuSans.ttf"
FONT_BOLD_FILE = "DejaVuSans-Bold.ttf"


def env_int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name, "").strip()
    return raw or default


def required_env(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigError(f"Missing env: {name}")
    return value


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    supabase_service_key: str
    environment: str = "production"
    host: str = "0.0.0.0"
    port: int = 8080
    max_body_bytes: int = 12 * 1024 * 1024
    listen_backlog: int = 512
    services_table: str = "services"
    quotation_bucket: str = "cotizaciones"
    font_dir: str = DEFAULT_FONT_DIR
    logo_path: str = ""

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def font_regular_path(self) -> str:
        return os.path.join(self.font_dir, FONT_REGULAR_FILE)

    @property
    def font_bold_path(self) -> str:
        return os.path.join(self.font_dir, FONT_BOLD_FILE)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            supabase_url=required_env(env, "SUPABASE_URL"),
            supabase_anon_key=required_env(env, "SUPABASE_ANON_KEY"),
            supabase_service_key=required_env(env, "SUPABASE_SERVICE_ROLE_KEY"),
            environment=env_str(env, "NODE_ENV", "production"),
            host=env_str(env, "BRIOLETE_HOST", "0.0.0.0"),
            port=env_int(env, "BRIOLETE_PORT", 8080),
            max_body_bytes=env_int(env, "BRIOLETE_MAX_BODY_BYTES", 12 * 1024 * 1024, minimum=1024),
            listen_backlog=env_int(env, "BRIOLETE_LISTEN_BACKLOG", 512),
            services_table=env_str(env, "BRIOLETE_SERVICES_TABLE", "services"),
            quotation_bucket=env_str(env, "BRIOLETE_QUOTATION_BUCKET", "cotizaciones"),
            font_dir=env_str(env, "BRIOLETE_FONT_DIR", DEFAULT_FONT_DIR),
            logo_path=env_str(env, "BRIOLETE_LOGO_PATH", ""),
        )
