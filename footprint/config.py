from __future__ import annotations

import json
import math
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from footprint.locator import DEFAULT_BRANCHES, DEFAULT_MAX_PAGES


CONFIG_FILENAME = ".footprint.json"
GITHUB_HOSTS = {"github.com", "www.github.com"}


@dataclass(slots=True)
class FootprintConfig:
    dist_path: str = "dist"
    gzip: bool = True
    brotli: bool = True
    budget_max_increase_kb: float | None = None
    warn_above_kb: float | None = None
    fail_above_kb: float | None = None
    baseline_branches: tuple[str, ...] = field(default=DEFAULT_BRANCHES)
    max_pages: int = DEFAULT_MAX_PAGES
    token: str = ""
    repo: str = ""

    @property
    def dist_root(self) -> Path:
        return Path(self.dist_path).expanduser().resolve()


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def parse_kb(key: str, value: Any) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number (e.g., 10 or 0.5)")
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number (e.g., 10 or 0.5)") from None
    if not math.isfinite(parsed):
        raise ValueError(f"{key} must be a number (e.g., 10 or 0.5)")
    return parsed


def parse_max_pages(value: Any) -> int:
    message = "max_pages must be a positive integer (e.g., 10)"
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(message)
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValueError(message) from None
    if parsed <= 0:
        raise ValueError(message)
    return parsed


def parse_branches(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ValueError("baseline_branches must be a list of branch names")
    branches = tuple(dict.fromkeys(item.strip() for item in items if item.strip()))
    if not branches:
        raise ValueError("baseline_branches must name at least one branch")
    return branches


def config_from_dict(data: dict[str, Any]) -> FootprintConfig:
    config = FootprintConfig()
    if "dist_path" in data:
        config.dist_path = str(data["dist_path"])
    if "gzip" in data:
        config.gzip = bool(data["gzip"])
    if "brotli" in data:
        config.brotli = bool(data["brotli"])
    config.budget_max_increase_kb = parse_kb(
        "budget_max_increase_kb", data.get("budget_max_increase_kb")
    )
    config.warn_above_kb = parse_kb("warn_above_kb", data.get("warn_above_kb"))
    config.fail_above_kb = parse_kb("fail_above_kb", data.get("fail_above_kb"))
    if "baseline_branches" in data:
        config.baseline_branches = parse_branches(data["baseline_branches"])
    if "max_pages" in data:
        config.max_pages = parse_max_pages(data["max_pages"])
    config.token = str(data.get("token") or "")
    config.repo = normalize_repo(str(data.get("repo") or ""))
    return config


def load_config(base_dir: Path | None = None, *, required: bool = False) -> FootprintConfig:
    path = config_path(base_dir)
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Config file not found: {path}. Run `fp init` first.")
        return FootprintConfig()

    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a JSON object")
    return config_from_dict(data)


def save_config(config: FootprintConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    payload = asdict(config)
    payload["baseline_branches"] = list(config.baseline_branches)
    payload["repo"] = normalize_repo(str(payload["repo"]))
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")
    return path


def with_overrides(config: FootprintConfig, **overrides: Any) -> FootprintConfig:
    """Apply CLI values on top of the file config; None means "not given"."""
    given = {key: value for key, value in overrides.items() if value is not None}
    if "baseline_branches" in given:
        given["baseline_branches"] = parse_branches(given["baseline_branches"])
    if "max_pages" in given:
        given["max_pages"] = parse_max_pages(given["max_pages"])
    for key in ("budget_max_increase_kb", "warn_above_kb", "fail_above_kb"):
        if key in given:
            given[key] = parse_kb(key, given[key])
    if "repo" in given:
        given["repo"] = normalize_repo(given["repo"])
    updated = replace(config, **given)
    if not updated.repo:
        updated.repo = default_repo()
    return updated


def default_repo() -> str:
    return normalize_repo(os.getenv("GITHUB_REPOSITORY", ""))


def normalize_repo(repo: str) -> str:
    value = (repo or "").strip()
    if not value:
        return value

    # SSH form used by Git-over-SSH (`git@github.com:owner/repo.git`)
    if value.startswith("git@github.com:"):
        value = value.split(":", 1)[1].strip()
        return _strip_git_suffix(value).strip("/")

    if "://" not in value:
        return _strip_git_suffix(value.strip("/"))

    parsed = urlparse(value)
    if parsed.hostname not in GITHUB_HOSTS:
        return value

    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) >= 2:
        return f"{parts[0]}/{_strip_git_suffix(parts[1])}"
    return _strip_git_suffix(parsed.path.strip("/"))


def _strip_git_suffix(value: str) -> str:
    return value[:-4] if value.endswith(".git") else value
