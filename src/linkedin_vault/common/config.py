"""Layered TOML configuration with environment overrides."""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

import platformdirs
import toml
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)

# LINKEDIN_VAULT__LIMITS__MAX_ENTRIES -> limits.max_entries
ENV_SEPARATOR = "__"

_TRUE_WORDS = frozenset({"true", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "no", "off"})


def _read_toml(path: Path) -> Dict[str, Any]:
    logger.debug(f"Reading config file {{'path': {str(path)!r}}}")
    return toml.load(path)


def merge_layers(base: Dict[str, Any], layer: Dict[str, Any]) -> Dict[str, Any]:
    """Return base with layer applied on top; nested tables merge key by key."""
    merged = dict(base)
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_layers(current, value)
        else:
            merged[key] = value
    return merged


def parse_env_value(raw: str) -> Any:
    """Interpret an environment string as bool, number, list or text."""
    lowered = raw.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False

    number: Callable[[str], Any] = float if "." in raw else int
    try:
        return number(raw)
    except ValueError:
        pass

    if "," in raw:
        return [item.strip() for item in raw.split(",")]
    return raw


class ConfigLoader:
    """Builds one configuration from every source that exists.

    Layers, later ones winning:

    1. ``defaults.toml`` (explicit path, ``./config`` or ``~/.config/<app>``)
    2. system file (``/etc/<app>/config.toml`` or ``%PROGRAMDATA%``)
    3. user file (platformdirs user config dir)
    4. ``<APP>__SECTION__KEY`` environment variables
    """

    def __init__(self, app_name: str = "linkedin-vault", config_class: Optional[Type[T]] = None) -> None:
        self.app_name = app_name
        self.config_class = config_class
        self._config: Optional[T] = None

    @property
    def env_prefix(self) -> str:
        return app_env_prefix(self.app_name)

    def load(self, defaults_path: Optional[Path] = None) -> T:
        """Merge all layers and validate the result.

        Raises:
            FileNotFoundError: defaults_path was given but does not exist
            pydantic.ValidationError: the merged values fail validation
        """
        layers: List[Tuple[str, Optional[Dict[str, Any]]]] = [
            ("defaults", self._load_defaults(defaults_path)),
            ("system", self._load_system_config()),
            ("user", self._load_user_config()),
        ]

        merged: Dict[str, Any] = {}
        for name, layer in layers:
            if layer:
                logger.debug(f"Applying config layer {{'layer': {name!r}, 'sections': {sorted(layer)}}}")
                merged = merge_layers(merged, layer)
        merged = self._apply_env_overrides(merged)

        self._config = self.config_class(**merged) if self.config_class else merged
        return self._config

    def _load_defaults(self, defaults_path: Optional[Path] = None) -> Dict[str, Any]:
        if defaults_path is not None:
            path = Path(defaults_path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")
            return _read_toml(path)

        candidates = (
            Path.cwd() / "config" / "defaults.toml",
            Path.home() / ".config" / self.app_name / "defaults.toml",
        )
        found = next((path for path in candidates if path.exists()), None)
        return _read_toml(found) if found else {}

    def _system_config_path(self) -> Path:
        if os.name == "nt":
            root = Path(os.environ.get("PROGRAMDATA", "C:\\ProgramData"))
            return root / self.app_name / "config.toml"
        return Path("/etc") / self.app_name / "config.toml"

    def _load_system_config(self) -> Optional[Dict[str, Any]]:
        path = self._system_config_path()
        return _read_toml(path) if path.exists() else None

    def _load_user_config(self) -> Optional[Dict[str, Any]]:
        path = Path(platformdirs.user_config_dir(appname=self.app_name, appauthor=False)) / "config.toml"
        return _read_toml(path) if path.exists() else None

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply ``<APP>__SECTION__KEY=value`` variables.

        A double underscore separates levels so keys like ``max_entries``
        keep their single underscores.
        """
        prefix = self.env_prefix
        for env_key in sorted(k for k in os.environ if k.startswith(prefix)):
            path = [part.lower() for part in env_key[len(prefix):].split(ENV_SEPARATOR) if part]
            if not path:
                continue

            section = config
            for part in path[:-1]:
                if not isinstance(section.get(part), dict):
                    section[part] = {}
                section = section[part]
            section[path[-1]] = parse_env_value(os.environ[env_key])
            logger.debug(f"Applied environment override {{'variable': {env_key!r}}}")

        return config

    @property
    def config(self) -> T:
        """Loaded configuration, loading on first access."""
        if self._config is None:
            self._config = self.load()
        return self._config


def app_env_prefix(app_name: str) -> str:
    """``linkedin-vault`` -> ``LINKEDIN_VAULT__``."""
    return f"{app_name.upper().replace('-', '_')}{ENV_SEPARATOR}"
