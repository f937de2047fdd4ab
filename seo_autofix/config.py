# === FILE: seo_autofix/config.py ===
"""
Loading and validation of the SEO Autofix configuration.
Pydantic describes the schema and checks the data.
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, List, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

_AUTHOR_RE = re.compile(r"^\s*([^<>]+?)\s*<([^<>@\s]+@[^<>\s]+)>\s*$")


class CrawlerConfig(BaseModel):
    """Limits and politeness settings for one crawl."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_pages: int = Field(100, ge=1, description="Hard limit on the number of page reports.")
    max_depth: int = Field(5, ge=0, description="Maximum link depth from the seed URL.")
    timeout: float = Field(30.0, gt=0, description="Per-navigation timeout (seconds).")
    user_agent: str = Field("SEOAutofixBot/1.0", min_length=1, description="User-Agent header.")
    rate_limit: float = Field(5.0, gt=0, description="Requests per second.")
    retry_times: int = Field(2, ge=0, description="Retries on 5xx/429 responses.")
    concurrency: int = Field(4, ge=1, description="Pages fetched together per wave.")
    respect_robots_txt: bool = Field(True, description="Honor the wildcard robots.txt group.")
    deny_patterns: List[str] = Field(
        default_factory=lambda: ["logout", "delete"],
        description="Path fragments that are never followed.",
    )


class TrackingConfig(BaseModel):
    """Where site repositories live and how batches are named."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    repos_base_path: Path = Field(Path("site-repos"), description="Parent directory of site repositories.")
    branch_prefix: str = Field("seo-fix-", min_length=1)
    fixes_branch: str = Field("seo-fixes", min_length=1, description="Stable branch collecting approved batches.")
    default_branch: str = Field("main", min_length=1)
    author: str = Field("SEO Autofix <automation@seo-autofix.local>")
    git_timeout: float = Field(60.0, gt=0, description="Timeout for every git invocation (seconds).")

    @field_validator("author")
    def _check_author(cls, v: str) -> str:
        if not _AUTHOR_RE.match(v):
            raise ValueError("author must look like 'Name <email>'")
        return v

    @field_validator("branch_prefix", "fixes_branch", "default_branch")
    def _check_ref_name(cls, v: str) -> str:
        if any(ch in v for ch in " ~^:?*[\\") or ".." in v:
            raise ValueError(f"invalid git ref name: {v!r}")
        return v

    @property
    def author_name(self) -> str:
        return _AUTHOR_RE.match(self.author).group(1)  # type: ignore[union-attr]

    @property
    def author_email(self) -> str:
        return _AUTHOR_RE.match(self.author).group(2)  # type: ignore[union-attr]


class PipelineConfig(BaseModel):
    """Keep/rollback policy of the orchestrator."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    auto_approve: bool = Field(True, description="Merge a batch when at least one fix applied.")
    rollback_on_failure: bool = Field(True, description="Roll back when verification fails.")
    analysis_only: bool = Field(False, description="Stop after fix generation.")


class AppConfig(BaseModel):
    """Top-level configuration file."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> AppConfig:
    """
    Read YAML or JSON and return a validated AppConfig.

    With ``path=None`` the default file is used when it exists, otherwise the
    built-in defaults. An explicit path that does not exist raises FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return AppConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return AppConfig(**data)
