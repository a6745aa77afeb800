"""
Runtime settings for the SEO Metrics Hub API.

Values come from the process environment (Railway / Docker) with an optional
.env file for local development. Credentials are not validated here: each
provider client checks what it needs when it is constructed.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    try:
        return float(raw) if raw.strip() else default
    except ValueError:
        return default


@dataclass
class Settings:
    # Site-authority vendor (Moz JSON-RPC)
    moz_token: str = ""
    moz_access_id: str = ""
    moz_secret_key: str = ""
    moz_api_url: str = "https://api.moz.com/jsonrpc"
    moz_timeout: float = 30.0

    # SERP / keyword vendor (DataForSEO)
    dataforseo_login: str = ""
    dataforseo_password: str = ""
    dataforseo_url: str = "https://api.dataforseo.com"
    dataforseo_timeout: float = 60.0

    # Text generation (Anthropic)
    anthropic_api_key: str = ""
    keyword_model: str = "claude-haiku-4-5-20251001"
    keyword_temperature: float = 0.7
    llm_timeout: float = 60.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # HTTP surface
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    auth_user_header: str = "X-User-Id"
    require_auth: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            moz_token=os.environ.get("MOZ_TOKEN", ""),
            moz_access_id=os.environ.get("MOZ_ACCESS_ID", ""),
            moz_secret_key=os.environ.get("MOZ_SECRET_KEY", ""),
            moz_api_url=os.environ.get("MOZ_API_URL", cls.moz_api_url),
            dataforseo_login=os.environ.get("DATAFORSEO_LOGIN", ""),
            dataforseo_password=os.environ.get("DATAFORSEO_PASSWORD", ""),
            dataforseo_url=os.environ.get("DATAFORSEO_URL", cls.dataforseo_url),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            keyword_model=os.environ.get("KEYWORD_MODEL", cls.keyword_model),
            keyword_temperature=_env_float("KEYWORD_TEMPERATURE", cls.keyword_temperature),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
            log_file=os.environ.get("LOG_FILE") or None,
            cors_origins=origins or ["*"],
            auth_user_header=os.environ.get("AUTH_USER_HEADER", cls.auth_user_header),
            require_auth=_env_bool("REQUIRE_AUTH", True),
        )
