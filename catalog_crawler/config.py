"""Crawler configuration."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urljoin, urlsplit

import yaml

from .errors import ConfigError
from .parser import Selectors
from .retry import RetryConfig

DEFAULT_BASE_URL = "https://www.politeianet.gr"
DEFAULT_LIST_PATH = (
    "/index.php?orderby=bestsellers&Itemid=585&option=com_virtuemart&page=shop.browse"
    "&category_id=470&manufacturer_id=0&keyword=&keyword1=&keyword2=&kidage=0&limitstart=0"
)


@dataclass(frozen=True)
class Config:
    base_url: str = DEFAULT_BASE_URL
    list_path: str = DEFAULT_LIST_PATH
    selectors: Selectors = field(default_factory=Selectors)
    recommendation_header_prefix: str = "To βιβλίο"
    skip_unrecommended: bool = True
    impersonate: Optional[str] = "chrome120"
    timeout_ms: int = 3000
    max_concurrent: int = 5
    rate_limit_per_minute: float = 60.0
    max_retries: int = 3
    pool_size: int = 20
    page_retry: RetryConfig = field(default_factory=RetryConfig)
    detail_retry: RetryConfig = field(default_factory=RetryConfig)
    results_path: str = "output/religion.csv"
    errors_path: str = "output/errors.jsonl"
    log_level: str = "INFO"
    progress_interval_secs: float = 30.0

    @property
    def seed_url(self) -> str:
        return urljoin(self.base_url, self.list_path)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Config":
        data = dict(data or {})
        known = {f.name for f in dataclasses.fields(Config)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        if "selectors" in data:
            data["selectors"] = _build(Selectors, data["selectors"], "selectors")
        for key in ("page_retry", "detail_retry"):
            if key in data:
                data[key] = _build(RetryConfig, data[key], key)
        config = Config(**data)
        config.validate()
        return config

    @staticmethod
    def from_yaml(path: Union[str, Path]) -> "Config":
        with Path(path).open("r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        return Config.from_dict(data)

    def with_overrides(self, **overrides: Any) -> "Config":
        """Return a validated copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        config = dataclasses.replace(self, **changes)
        config.validate()
        return config

    def validate(self) -> None:
        parts = urlsplit(self.base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigError(f"base_url must be an absolute http(s) URL: {self.base_url!r}")
        if self.timeout_ms <= 0:
            raise ConfigError("timeout_ms must be positive")
        if self.max_concurrent < 1:
            raise ConfigError("max_concurrent must be at least 1")
        if self.rate_limit_per_minute < 0:
            raise ConfigError("rate_limit_per_minute must not be negative")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        if self.pool_size < 0:
            raise ConfigError("pool_size must not be negative")
        for name in ("page_retry", "detail_retry"):
            retry = getattr(self, name)
            if retry.max_attempts < 1 or retry.delay_ms < 0 or retry.backoff_factor < 1:
                raise ConfigError(f"{name} needs max_attempts >= 1, delay_ms >= 0, backoff_factor >= 1")


def _build(cls, value: Any, name: str):
    if isinstance(value, cls):
        return value
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping")
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(value) - known)
    if unknown:
        raise ConfigError(f"Unknown {name} keys: {', '.join(unknown)}")
    return cls(**value)
