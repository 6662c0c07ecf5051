"""Per-service (Jira / Confluence) connection settings."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

from atlassian_mcp.config.parsing import _check_range, _parse_bool, _try_parse_int
from atlassian_mcp.core.api.models import ClientSettings
from atlassian_mcp.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_JIRA_API_SUFFIX_RE = re.compile(r"/rest/api/\d+$")
_CONFLUENCE_WIKI_SUFFIX_RE = re.compile(r"/wiki$")

_DEFAULT_API_VERSIONS = {"jira": "3", "confluence": "auto"}
_VALID_API_VERSIONS = {"jira": {"2", "3"}, "confluence": {"auto", "v1", "v2"}}

# (setting attribute, env suffix, TOML key)
_INT_SETTINGS = (
    ("timeout_ms", "API_TIMEOUT", "timeout_ms"),
    ("max_retries", "API_RETRIES", "max_retries"),
    ("base_delay_ms", "API_RETRY_DELAY", "base_delay_ms"),
    ("rate_limit_ms", "API_RATE_LIMIT", "rate_limit_ms"),
    ("cache_ttl_ms", "CACHE_TIMEOUT", "cache_ttl_ms"),
)


def normalize_base_url(service: str, url: str) -> str:
    """Strip the trailing slash and any API suffix users paste in.

    Jira drops a trailing ``/rest/api/N``; Confluence drops ``/wiki``
    (paths add it back per endpoint).
    """
    url = url.strip().rstrip("/")
    if service == "jira":
        url = _JIRA_API_SUFFIX_RE.sub("", url)
    elif service == "confluence":
        url = _CONFLUENCE_WIKI_SUFFIX_RE.sub("", url)
    return url.rstrip("/")


@dataclass
class ServiceConfig:
    """Connection and request-layer settings for one Atlassian service.

    Attributes:
        service: ``"jira"`` or ``"confluence"`` (also the env prefix).
        url: Site base URL.
        email: Account email for basic auth.
        api_token: API token for basic auth.
        api_version: Jira ``"3"``/``"2"``; Confluence ``"auto"``/``"v1"``/``"v2"``.
        timeout_ms: Per-attempt timeout (1000-300000).
        max_retries: Attempt bound (0-10; 0 still makes one attempt).
        base_delay_ms: Backoff base delay.
        rate_limit_ms: Minimum spacing between requests (0 disables).
        cache_enabled: Cache idempotent reads.
        cache_ttl_ms: Cache entry lifetime.
    """

    service: str
    url: Optional[str] = None
    email: Optional[str] = None
    api_token: Optional[str] = None
    api_version: Optional[str] = None
    timeout_ms: int = 30000
    max_retries: int = 3
    base_delay_ms: int = 1000
    rate_limit_ms: int = 0
    cache_enabled: bool = True
    cache_ttl_ms: int = 300000

    def __post_init__(self) -> None:
        if self.api_version is None:
            self.api_version = _DEFAULT_API_VERSIONS.get(self.service)
        if self.url:
            self.url = normalize_base_url(self.service, self.url)

    @property
    def env_prefix(self) -> str:
        return self.service.upper()

    @property
    def enabled(self) -> bool:
        """A service is served only when URL, email and token are all set."""
        return bool(self.url and self.email and self.api_token)

    @property
    def partially_configured(self) -> bool:
        return not self.enabled and any((self.url, self.email, self.api_token))

    def missing_settings(self) -> list:
        names = (("url", "URL"), ("email", "EMAIL"), ("api_token", "API_TOKEN"))
        return [f"{self.env_prefix}_{suffix}" for attr, suffix in names if not getattr(self, attr)]

    def client_settings(self) -> ClientSettings:
        return ClientSettings(
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            rate_limit_ms=self.rate_limit_ms,
            cache_enabled=self.cache_enabled,
            cache_ttl_ms=self.cache_ttl_ms,
        )

    def apply_toml(self, data: Mapping[str, Any]) -> None:
        """Apply a ``[jira]`` / ``[confluence]`` TOML table."""
        for key in ("url", "email", "api_token"):
            if key in data:
                setattr(self, key, str(data[key]))
        if "api_version" in data:
            self.api_version = str(data["api_version"]).strip().lower()
        if "cache_enabled" in data:
            self.cache_enabled = _parse_bool(data["cache_enabled"])
        for attr, _, toml_key in _INT_SETTINGS:
            if toml_key in data:
                parsed = _try_parse_int(data[toml_key], f"[{self.service}] {toml_key}")
                if parsed is not None:
                    setattr(self, attr, parsed)
        if self.url:
            self.url = normalize_base_url(self.service, self.url)

    def apply_env(self, environ: Mapping[str, str]) -> None:
        """Apply ``<SERVICE>_*`` environment variables."""
        prefix = self.env_prefix
        if url := environ.get(f"{prefix}_URL"):
            self.url = normalize_base_url(self.service, url)
        if email := environ.get(f"{prefix}_EMAIL"):
            self.email = email.strip()
        if token := environ.get(f"{prefix}_API_TOKEN"):
            self.api_token = token.strip()
        if version := environ.get(f"{prefix}_API_VERSION"):
            self.api_version = version.strip().lower()
        if (cache := environ.get(f"{prefix}_ENABLE_CACHE")) is not None:
            self.cache_enabled = cache.strip().lower() != "false"
        for attr, env_suffix, _ in _INT_SETTINGS:
            raw = environ.get(f"{prefix}_{env_suffix}")
            if raw:
                parsed = _try_parse_int(raw, f"{prefix}_{env_suffix}")
                if parsed is not None:
                    setattr(self, attr, parsed)

    def validate(self) -> None:
        """Raise ``ConfigurationError`` for malformed or out-of-range settings."""
        prefix = self.env_prefix
        if self.url:
            parsed = urlparse(self.url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"Invalid URL format: {self.url}", setting=f"{prefix}_URL")
        if self.email and not _EMAIL_RE.match(self.email):
            raise ConfigurationError(f"Invalid email format: {self.email}", setting=f"{prefix}_EMAIL")

        valid_versions = _VALID_API_VERSIONS.get(self.service, set())
        if self.api_version not in valid_versions:
            raise ConfigurationError(
                f"{prefix}_API_VERSION must be one of {', '.join(sorted(valid_versions))}, got {self.api_version!r}",
                setting=f"{prefix}_API_VERSION",
            )

        _check_range(f"{prefix}_API_TIMEOUT", self.timeout_ms, 1000, 300000)
        _check_range(f"{prefix}_API_RETRIES", self.max_retries, 0, 10)
        _check_range(f"{prefix}_API_RETRY_DELAY", self.base_delay_ms, 0)
        _check_range(f"{prefix}_API_RATE_LIMIT", self.rate_limit_ms, 0)
        _check_range(f"{prefix}_CACHE_TIMEOUT", self.cache_ttl_ms, 0)

    def describe(self) -> Dict[str, Any]:
        """Summary safe to print (no token)."""
        return {
            "enabled": self.enabled,
            "url": self.url,
            "email": self.email,
            "api_version": self.api_version,
            "timeout_ms": self.timeout_ms,
            "max_retries": self.max_retries,
            "rate_limit_ms": self.rate_limit_ms,
            "cache_enabled": self.cache_enabled,
            "cache_ttl_ms": self.cache_ttl_ms,
        }
