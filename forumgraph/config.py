"""Crawler configuration.

Settings come from three places, later ones winning:

- defaults of CrawlerConfig
- an optional JSON config file (``config.json``); the camelCase keys of older
  configs (forumUrl, outDir, cacheMaxFiles, cacheTtl, scrapInterval) still work
- FORUMGRAPH_* environment variables, e.g. FORUMGRAPH_BASE_URL,
  FORUMGRAPH_OUT_DIR, FORUMGRAPH_PASSWORD; a ``.env`` file at the project root
  is read first without overriding variables that are already set

Usage:
    from forumgraph.config import load_config
    config = load_config("config.json")
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

ENV_PREFIX = "FORUMGRAPH_"
DEFAULT_CONFIG_FILE = "config.json"


class ConfigError(RuntimeError):
    pass


class CrawlerConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    base_url: str = Field(
        "https://forum.pirati.cz/",
        validation_alias=AliasChoices("base_url", "baseUrl", "forumUrl"),
        description="Forum root URL; also the crawl seed",
    )
    out_dir: str = Field("./out/", validation_alias=AliasChoices("out_dir", "outDir"))
    queue_file: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("queue_file", "queueFile"),
        description="Frontier snapshot path, defaults to <out_dir>/queue.json",
    )
    username: Optional[str] = None
    password: Optional[str] = None

    cache_max_files: int = Field(1000, ge=1, validation_alias=AliasChoices("cache_max_files", "cacheMaxFiles"))
    cache_ttl_seconds: float = Field(
        500, gt=0, validation_alias=AliasChoices("cache_ttl_seconds", "cacheTtlSeconds", "cacheTtl")
    )
    scrap_interval_ms: int = Field(
        1000, ge=1, validation_alias=AliasChoices("scrap_interval_ms", "scrapIntervalMs", "scrapInterval")
    )
    checkpoint_interval_ms: int = Field(
        1_800_000, ge=1, validation_alias=AliasChoices("checkpoint_interval_ms", "checkpointIntervalMs")
    )
    cache_tick_interval_ms: int = Field(
        10_000, ge=1, validation_alias=AliasChoices("cache_tick_interval_ms", "cacheTickIntervalMs")
    )
    stats_interval_ms: int = Field(10_000, ge=1, validation_alias=AliasChoices("stats_interval_ms", "statsIntervalMs"))

    request_timeout: float = Field(10.0, gt=0, validation_alias=AliasChoices("request_timeout", "requestTimeout"))
    max_retries: int = Field(2, ge=0, validation_alias=AliasChoices("max_retries", "maxRetries"))
    user_agent: str = Field("forumgraph/0.1", validation_alias=AliasChoices("user_agent", "userAgent"))
    language: str = Field("cs", description="Language tag of titles and post content")

    @field_validator("base_url")
    @classmethod
    def _base_url_ends_with_slash(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an absolute http(s) URL")
        return v if v.endswith("/") else v + "/"

    @property
    def queue_path(self) -> str:
        return self.queue_file or os.path.join(self.out_dir, "queue.json")


def _load_env_from_file(root_dir: Optional[str] = None) -> None:
    """Load variables from a .env file at the project root if present.

    Only sets variables that aren't already present in the process environment.
    """
    root_dir = root_dir or os.getcwd()
    env_path = os.path.join(root_dir, ".env")
    if not os.path.isfile(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as f:
        for line in f:
            s = line.strip()
            if not s or s.startswith("#") or "=" not in s:
                continue
            key, val = s.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")
            if key and (key not in os.environ or not os.environ[key]):
                os.environ[key] = val


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, val in env.items():
        if key.startswith(ENV_PREFIX) and val != "":
            out[key[len(ENV_PREFIX):].lower()] = val
    return out


def load_config(
    path: Optional[str] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> CrawlerConfig:
    """Build a CrawlerConfig from file, environment and explicit overrides.

    A missing file is not an error (defaults apply); an unreadable one or an
    invalid value raises ConfigError.
    """
    if env is None:
        _load_env_from_file()
        env = os.environ

    data: Dict[str, Any] = {}
    path = path or DEFAULT_CONFIG_FILE
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f) or {}
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read config file '{path}': {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file '{path}' must contain a JSON object")

    data.update(_env_overrides(env))
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return CrawlerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid crawler configuration:\n{exc}") from exc
