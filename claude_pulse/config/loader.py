"""
Settings management and loading.

Handles the persisted user settings consumed by the CLI: rolling window
length, refresh interval, optional usage limit and theme.
"""

import math
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

SETTINGS_FILENAME = "claudepulse-settings.yaml"


class Theme(Enum):
    """Display theme preference."""
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


@dataclass(frozen=True)
class AppSettings:
    """User-configurable settings."""
    refresh_interval_secs: int = 180
    window_hours: float = 5.0
    usage_limit_tokens: Optional[int] = None
    theme: Theme = Theme.SYSTEM

    def __post_init__(self):
        """Validate setting values."""
        if self.refresh_interval_secs <= 0:
            raise ValueError("refresh_interval_secs must be > 0")
        if not math.isfinite(self.window_hours) or self.window_hours <= 0:
            raise ValueError("window_hours must be a finite number > 0")
        if self.usage_limit_tokens is not None and self.usage_limit_tokens <= 0:
            raise ValueError("usage_limit_tokens must be > 0")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["theme"] = self.theme.value
        return data


def default_settings_path() -> Path:
    """Return ``~/.claude/claudepulse-settings.yaml``."""
    return Path.home() / ".claude" / SETTINGS_FILENAME


def load_settings(path: Optional[Union[str, Path]] = None) -> AppSettings:
    """Load and validate settings from a YAML file.

    A missing or empty file yields the defaults; keys left out take their
    default values.

    Args:
        path: Settings file (defaults to ``~/.claude/claudepulse-settings.yaml``)

    Returns:
        Validated AppSettings

    Raises:
        yaml.YAMLError: If YAML is invalid
        ValueError: If a key is unknown or a value is invalid
    """
    settings_path = Path(path) if path is not None else default_settings_path()
    if not settings_path.exists():
        return AppSettings()

    with open(settings_path, 'r', encoding='utf-8') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in settings file {settings_path}: {e}")

    if not raw:
        return AppSettings()
    if not isinstance(raw, dict):
        raise ValueError("Settings file must contain a mapping")

    allowed_keys = {'refresh_interval_secs', 'window_hours', 'usage_limit_tokens', 'theme'}
    unknown_keys = set(raw.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown settings keys: {unknown_keys}")

    values: Dict[str, Any] = {}

    if 'refresh_interval_secs' in raw:
        interval = raw['refresh_interval_secs']
        if isinstance(interval, bool) or not isinstance(interval, int):
            raise ValueError("'refresh_interval_secs' must be an integer")
        values['refresh_interval_secs'] = interval

    if 'window_hours' in raw:
        hours = raw['window_hours']
        if isinstance(hours, bool) or not isinstance(hours, (int, float)):
            raise ValueError("'window_hours' must be a number")
        values['window_hours'] = float(hours)

    if 'usage_limit_tokens' in raw:
        limit = raw['usage_limit_tokens']
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int)):
            raise ValueError("'usage_limit_tokens' must be an integer or null")
        values['usage_limit_tokens'] = limit

    if 'theme' in raw:
        values['theme'] = parse_theme(raw['theme'])

    return AppSettings(**values)


def parse_theme(value: Any) -> Theme:
    """Parse a theme name, case-insensitively.

    Raises:
        ValueError: If the value is not a known theme
    """
    if not isinstance(value, str):
        raise ValueError("'theme' must be a string")
    try:
        return Theme(value.lower())
    except ValueError:
        valid_themes = [theme.value for theme in Theme]
        raise ValueError(f"'theme' must be one of: {valid_themes}")


def save_settings(settings: AppSettings, path: Optional[Union[str, Path]] = None) -> Path:
    """Write settings as YAML, creating the parent directory.

    Returns:
        Path the settings were written to
    """
    settings_path = Path(path) if path is not None else default_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with open(settings_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(settings.to_dict(), f, sort_keys=False)
    return settings_path
