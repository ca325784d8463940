"""Configuration management for linkweave.

Settings come from, in order of precedence:

1. ``LINKWEAVE_*`` environment variables
2. a ``.linkweave.yaml`` file found by walking up from the working directory
3. built-in defaults (documented below)

The corpus root itself is discovered the same way, with ``~/.linkweave/notes``
as a last resort.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

CONFIG_FILENAME = ".linkweave.yaml"

# =============================================================================
# Defaults
# =============================================================================

# Extension (without the dot) shared by every document in the corpus
DEFAULT_EXTENSION = "md"

# Minutes between periodic rebuilds. The first rebuild fires on start.
DEFAULT_REBUILD_INTERVAL = 5.0

# Graphviz executable used to render the exported graph
DEFAULT_GRAPH_EXECUTABLE = "dot"

# Output format passed to the renderer as -T<format>
DEFAULT_GRAPH_FORMAT = "svg"

# Directory (relative to the corpus root) that holds dated notes
DEFAULT_DAILY_DIRECTORY = "daily"

# Seconds of quiet before a burst of file events triggers a rebuild
DEFAULT_WATCH_DEBOUNCE = 2.0

# Maximum directories to walk up when looking for the config file
MAX_CONFIG_SEARCH_DEPTH = 10


class Settings(BaseModel):
    """Resolved configuration for one corpus."""

    root: Path
    extension: str = DEFAULT_EXTENSION
    rebuild_interval: float = Field(default=DEFAULT_REBUILD_INTERVAL, gt=0)
    graph_executable: str = DEFAULT_GRAPH_EXECUTABLE
    graph_viewer: str | None = None
    graph_format: str = DEFAULT_GRAPH_FORMAT
    daily_directory: str = DEFAULT_DAILY_DIRECTORY
    watch_debounce: float = Field(default=DEFAULT_WATCH_DEBOUNCE, ge=0)

    @field_validator("extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:
        value = value.strip().lstrip(".")
        if not value:
            raise ValueError("extension must not be empty")
        return value

    @property
    def suffix(self) -> str:
        """The extension with its leading dot, as used by ``Path.suffix``."""
        return f".{self.extension}"

    @property
    def rebuild_seconds(self) -> float:
        return self.rebuild_interval * 60.0


def find_config_file(start_dir: Path | None = None, max_depth: int = MAX_CONFIG_SEARCH_DEPTH) -> Path | None:
    """Walk up from start_dir looking for ``.linkweave.yaml``.

    Args:
        start_dir: Directory to start from (defaults to cwd).
        max_depth: Maximum directories to traverse up.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _read_config_file(config_file: Path) -> dict:
    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_file} must contain a mapping")

    root = data.get("root")
    if root is not None:
        # Relative roots are relative to the config file, not the cwd
        data["root"] = (config_file.parent / str(root)).resolve()
    return data


def _env_overrides() -> dict:
    overrides: dict = {}
    env_map = {
        "LINKWEAVE_ROOT": "root",
        "LINKWEAVE_EXTENSION": "extension",
        "LINKWEAVE_REBUILD_INTERVAL": "rebuild_interval",
        "LINKWEAVE_GRAPH_EXECUTABLE": "graph_executable",
        "LINKWEAVE_GRAPH_VIEWER": "graph_viewer",
        "LINKWEAVE_GRAPH_FORMAT": "graph_format",
    }
    for env_name, field_name in env_map.items():
        value = os.environ.get(env_name)
        if value:
            overrides[field_name] = Path(value) if field_name == "root" else value
    return overrides


def get_user_root() -> Path | None:
    """Return ``~/.linkweave/notes`` if it exists."""
    user_root = Path.home() / ".linkweave" / "notes"
    if user_root.is_dir():
        return user_root
    return None


def load_settings(start_dir: Path | None = None, **overrides) -> Settings:
    """Resolve settings for the current corpus.

    Args:
        start_dir: Directory to start the config file search from.
        **overrides: Explicit values (e.g. from CLI options) that win over
            everything else. ``None`` values are ignored.

    Raises:
        ConfigurationError: If no corpus root can be determined or a value
            is invalid.
    """
    data: dict = {}

    config_file = find_config_file(start_dir)
    if config_file is not None:
        data.update(_read_config_file(config_file))

    data.update(_env_overrides())
    data.update({key: value for key, value in overrides.items() if value is not None})

    if data.get("root") is None:
        user_root = get_user_root()
        if user_root is None:
            raise ConfigurationError(
                "No corpus root configured. Options:\n"
                "  1. Set LINKWEAVE_ROOT to your notes directory\n"
                f"  2. Add 'root: <dir>' to a {CONFIG_FILENAME} file\n"
                "  3. Create ~/.linkweave/notes"
            )
        data["root"] = user_root

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ConfigurationError("Invalid configuration:\n" + "\n".join(errors)) from e
