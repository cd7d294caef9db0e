"""Settings for cluster-spine.

All fields can be set through ``CLUSTER_SPINE_*`` environment variables or a
``.env`` file in the working directory, e.g.::

    CLUSTER_SPINE_BASE_URL=https://api-gw-service-nmn.local/apis
    CLUSTER_SPINE_ROOT_CERT=/etc/cluster-spine/alps_root_cert.pem
    CLUSTER_SPINE_CATALOG_FILE=/etc/cluster-spine/cray-product-catalog.yaml
    CLUSTER_SPINE_NODE_GROUP=zinal

Command-line flags override the values read here.

Tags:
    settings, configuration, pydantic, environment
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from clusterspine.core.clock import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_MAX_ATTEMPTS


def _default_token_file() -> Path:
    return Path.home() / ".cache" / "cluster-spine" / "http"


class ClusterSpineSettings(BaseSettings):
    """cluster-spine configuration.

    Fields
    ──────
    base_url           : Management plane API gateway (``.../apis``)
    root_cert          : CA bundle used to verify the gateway
    token / token_file : Bearer credential, or the file caching it
    catalog_file       : Dump of the ``cray-product-catalog`` ConfigMap
    node_group         : Default override target for session templates
    socks5_proxy       : Optional ``socks5h://`` proxy for every request
    poll_*             : Completion poller interval and attempt budget, at
                         least the built-in 2 s x 1800 attempts
    """

    model_config = SettingsConfigDict(
        env_prefix="CLUSTER_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Management plane ─────────────────────────────────────────
    base_url: str = "https://api-gw-service-nmn.local/apis"
    root_cert: Path | None = None
    socks5_proxy: str | None = None
    request_timeout: float = Field(default=30.0, gt=0)

    # ── Credentials ──────────────────────────────────────────────
    token: SecretStr | None = None
    token_file: Path = Field(default_factory=_default_token_file)

    # ── Collaborators ────────────────────────────────────────────
    catalog_file: Path | None = None
    node_group: str | None = None

    # ── Polling ──────────────────────────────────────────────────
    # The built-in budget is a floor: settings may lengthen a wait, never shorten it.
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, ge=DEFAULT_POLL_INTERVAL)
    poll_max_attempts: int = Field(default=DEFAULT_POLL_MAX_ATTEMPTS, ge=DEFAULT_POLL_MAX_ATTEMPTS)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None


@lru_cache(maxsize=1)
def get_settings() -> ClusterSpineSettings:
    """Return the cached settings instance."""
    return ClusterSpineSettings()


def clear_settings_cache() -> None:
    """Forget the cached settings (tests change the environment)."""
    get_settings.cache_clear()
