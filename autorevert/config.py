"""Guard configuration — which repo to watch and whose commits to undo.

The file format is YAML. Since YAML is a superset of JSON, the historical
``config.json`` layout loads unchanged::

    {
      "repo": "https://example.com/team/project.git",
      "username": "bot",
      "password": "token",
      "name": "Eve",
      "commitTitle": "Reverted %commit-name%",
      "commitMessage": "Automatic revert of %commit-name%."
    }
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from autorevert.errors import ConfigError, ConfigNotFoundError

COMMIT_PLACEHOLDER = "%commit-name%"

DEFAULT_INTERVAL_SECONDS = 5.0

# config key -> accepted spellings, first one wins
_ALIASES: dict[str, tuple[str, ...]] = {
    "repo_url": ("repo", "repo_url"),
    "username": ("username",),
    "password": ("password",),
    "disallowed_identity": ("name", "disallowed_identity", "author"),
    "commit_title": ("commitTitle", "commit_title"),
    "commit_message": ("commitMessage", "commit_message"),
    "interval_seconds": ("interval", "interval_seconds"),
    "jitter_seconds": ("jitter", "jitter_seconds"),
    "remote_name": ("remote", "remote_name"),
    "work_dir": ("workDir", "work_dir"),
    "author_name": ("authorName", "author_name"),
    "author_email": ("authorEmail", "author_email"),
    "log_level": ("logLevel", "log_level"),
}


@dataclass
class GuardConfig:
    """Everything the watch loop needs to run."""

    repo_url: str
    disallowed_identity: str
    username: str = ""
    password: str = ""
    commit_title: str | None = None
    commit_message: str | None = None
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    jitter_seconds: float = 0.0
    remote_name: str = "origin"
    work_dir: Path | None = None
    author_name: str = "autorevert"
    author_email: str = "autorevert@localhost"
    log_level: str = "INFO"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username or self.password)


def render_template(template: str, commit_id: str) -> str:
    """Substitute the commit placeholder in a title or body template."""
    return template.replace(COMMIT_PLACEHOLDER, commit_id)


def load_config(path: str | Path) -> GuardConfig:
    """Load a guard configuration from a YAML or JSON file.

    Raises:
        ConfigNotFoundError: If the file does not exist.
        ConfigError: If the file cannot be parsed or lacks required keys.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigNotFoundError(f"Config not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")

    return config_from_dict(data)


def config_from_dict(data: dict) -> GuardConfig:
    """Build a ``GuardConfig`` from parsed config data plus environment overrides."""
    values = {}
    for key, aliases in _ALIASES.items():
        for alias in aliases:
            if data.get(alias) is not None:
                values[key] = data[alias]
                break

    for required in ("repo_url", "disallowed_identity"):
        if not str(values.get(required, "")).strip():
            raise ConfigError(f"Missing required config key: {_ALIASES[required][0]}")

    values["username"] = os.environ.get("AUTOREVERT_USERNAME", values.get("username", ""))
    values["password"] = os.environ.get("AUTOREVERT_PASSWORD", values.get("password", ""))

    for key in ("interval_seconds", "jitter_seconds"):
        if key in values:
            try:
                values[key] = float(values[key])
            except (TypeError, ValueError):
                raise ConfigError(f"{_ALIASES[key][0]} must be a number, got {values[key]!r}")
            if values[key] < 0:
                raise ConfigError(f"{_ALIASES[key][0]} must not be negative")

    if values.get("work_dir"):
        values["work_dir"] = Path(values["work_dir"]).expanduser()

    for key in ("repo_url", "disallowed_identity", "username", "password"):
        values[key] = str(values.get(key, ""))

    return GuardConfig(**values)
