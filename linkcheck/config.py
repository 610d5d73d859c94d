# === FILE: linkcheck/config.py ===
"""
Loading and validation of the link checker configuration.
The schema is described with Pydantic, files may be YAML or JSON.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from linkcheck import __version__
from linkcheck.utils import default_host_glob, is_supported_scheme, remove_duplicates

DEFAULT_SEED = "http://localhost:8080/"


class CheckerConfig(BaseModel):
    """Configuration for a single crawl."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    seeds: List[str] = Field(
        default_factory=lambda: [DEFAULT_SEED], min_length=1, description="Crawl start URLs."
    )
    hosts: List[str] = Field(
        default_factory=list,
        description="Globs of internal URLs. Empty means one scheme://authority/** per seed.",
    )
    check_external: bool = Field(False, description="Also check links leaving the site.")
    verbose: bool = Field(False, description="Log every checked destination.")
    concurrency: Optional[int] = Field(None, ge=1, description="Number of fetch workers.")
    timeout: float = Field(10.0, gt=0, description="Timeout for one request (seconds).")
    user_agent: str = Field(f"linkcheck/{__version__}", min_length=1, description="User-Agent header.")
    retry_times: int = Field(2, ge=0, description="Retries on 429/5xx and connection errors.")
    retry_backoff: float = Field(1.0, ge=0, description="Multiplier for the exponential backoff.")

    @field_validator("seeds", mode="after")
    def _check_seeds(cls, v: List[str]) -> List[str]:
        bad = [s for s in v if not is_supported_scheme(s)]
        if bad:
            raise ValueError(f"seed URLs must use http or https: {', '.join(bad)}")
        return remove_duplicates(v)

    @field_validator("hosts", mode="after")
    def _strip_hosts(cls, v: List[str]) -> List[str]:
        return [h.strip() for h in v if h.strip()]

    def effective_hosts(self) -> List[str]:
        """Configured host globs, or ones derived from the seeds."""
        if self.hosts:
            return list(self.hosts)
        return list(dict.fromkeys(default_host_glob(s) for s in self.seeds))


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


def load_config(path: Union[str, Path, None]) -> CheckerConfig:
    """
    Reads YAML or JSON and returns a validated CheckerConfig.
    Without a path the defaults are used. A missing file raises FileNotFoundError.
    """
    if path is None:
        return CheckerConfig()

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

    return CheckerConfig(**data)


__all__ = ["CheckerConfig", "ValidationError", "load_config", "DEFAULT_SEED"]
