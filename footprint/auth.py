from __future__ import annotations

import os
from pathlib import Path

import yaml


TOKEN_ENV_NAMES = ("GITHUB_TOKEN", "GH_TOKEN")
GH_HOST = "github.com"


def resolve_github_token(config_token: str | None = None) -> str | None:
    """Resolve a token from env, config, or the GitHub CLI host file."""
    for env_name in TOKEN_ENV_NAMES:
        value = os.getenv(env_name, "").strip()
        if value:
            return value

    if config_token and config_token.strip():
        return config_token.strip()

    for path in _hosts_file_candidates():
        try:
            if path.exists() and path.is_file():
                value = _token_from_hosts_file(path.read_text(encoding="utf-8"))
                if value:
                    return value
        except OSError:
            continue

    return None


def _token_from_hosts_file(text: str) -> str | None:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError:
        return None
    host = data.get(GH_HOST) if isinstance(data, dict) else None
    if not isinstance(host, dict):
        return None

    # The top-level token belongs to the active account.
    token = host.get("oauth_token")
    if not token:
        users = host.get("users")
        active = host.get("user")
        if isinstance(users, dict) and isinstance(users.get(active), dict):
            token = users[active].get("oauth_token")
    if isinstance(token, str) and token.strip():
        return token.strip()
    return None


def _hosts_file_candidates() -> list[Path]:
    candidates: list[Path] = []

    gh_config_dir = os.getenv("GH_CONFIG_DIR")
    if gh_config_dir:
        candidates.append(Path(gh_config_dir) / "hosts.yml")

    xdg_config_home = os.getenv("XDG_CONFIG_HOME")
    if xdg_config_home:
        candidates.append(Path(xdg_config_home) / "gh" / "hosts.yml")

    appdata = os.getenv("AppData")
    if appdata:
        candidates.append(Path(appdata) / "GitHub CLI" / "hosts.yml")

    candidates.append(Path.home() / ".config" / "gh" / "hosts.yml")

    unique: list[Path] = []
    seen: set[str] = set()
    for path in candidates:
        key = str(path).lower()
        if key not in seen:
            seen.add(key)
            unique.append(path)
    return unique
