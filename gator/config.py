"""Reading and writing the user's gator configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


@dataclass
class Config:
    """Database location and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.current_user_name = user_name
        write(self, self.path)

    def to_dict(self) -> dict[str, str]:
        """Return the fields stored in the configuration file."""
        return {"db_url": self.db_url, "current_user_name": self.current_user_name}


def config_file_path() -> Path:
    """Return the default location of the configuration file."""
    return Path.home() / CONFIG_FILE_NAME


def _string_field(data: dict, key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string")
    return value


def read(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path`` or from the default location."""
    full_path = Path(path) if path is not None else config_file_path()
    with full_path.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(data, "db_url"),
        current_user_name=_string_field(data, "current_user_name"),
        path=full_path,
    )


def write(cfg: Config, path: str | Path | None = None) -> None:
    """Save ``cfg`` to ``path`` or to the default location."""
    full_path = Path(path) if path is not None else config_file_path()
    text = json.dumps(cfg.to_dict(), separators=(",", ":"), ensure_ascii=False)
    with full_path.open("w", encoding="utf-8") as handle:
        handle.write(text + "\n")