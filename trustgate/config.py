"""Runtime settings for the trust gateway.

Settings come from environment variables.  Every external dependency is
optional: a missing key leaves the corresponding adapter in its local
fallback mode instead of preventing startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_CLASSIFIER_MODEL = "claude-haiku-3-5-20241022"
DEFAULT_MODERATION_URL = "https://api.openai.com/v1/moderations"
DEFAULT_MODERATION_MODEL = "omni-moderation-latest"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


@dataclass
class GatewaySettings:
    """All tunables for the gateway and its collaborators."""

    anthropic_api_key: str = ""
    classifier_model: str = DEFAULT_CLASSIFIER_MODEL
    openai_api_key: str = ""
    moderation_url: str = DEFAULT_MODERATION_URL
    moderation_model: str = DEFAULT_MODERATION_MODEL
    moderate_images: bool = False
    service_timeout: float = 5.0

    quota_backend: str = "memory"  # "memory" | "sql" | "rpc"
    quota_database_url: str = ""
    supabase_url: str = ""
    supabase_service_key: str = ""
    sweep_interval: float = 60.0

    max_content_length: int = 5000
    policy_file: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "GatewaySettings":
        """Build settings from the process environment."""
        return cls(
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            classifier_model=os.environ.get("TRUSTGATE_CLASSIFIER_MODEL", DEFAULT_CLASSIFIER_MODEL),
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            moderation_url=os.environ.get("TRUSTGATE_MODERATION_URL", DEFAULT_MODERATION_URL),
            moderation_model=os.environ.get("TRUSTGATE_MODERATION_MODEL", DEFAULT_MODERATION_MODEL),
            moderate_images=os.environ.get("TRUSTGATE_MODERATE_IMAGES", "").lower() in _TRUTHY,
            service_timeout=_env_float("TRUSTGATE_SERVICE_TIMEOUT", 5.0),
            quota_backend=os.environ.get("TRUSTGATE_QUOTA_BACKEND", "memory").lower(),
            quota_database_url=os.environ.get("TRUSTGATE_QUOTA_DATABASE_URL", ""),
            supabase_url=os.environ.get("SUPABASE_URL", ""),
            supabase_service_key=os.environ.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            sweep_interval=_env_float("TRUSTGATE_SWEEP_INTERVAL", 60.0),
            max_content_length=_env_int("TRUSTGATE_MAX_CONTENT_LENGTH", 5000),
            policy_file=os.environ.get("TRUSTGATE_POLICY_FILE", ""),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler used by the service and the CLI."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
