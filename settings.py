"""
settings.py

Persistent settings management for Digital.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/digital/settings.toml
    - macOS: ~/Library/Application Support/digital/settings.toml
    - Linux: ~/.config/digital/settings.toml

Settings are addressed through typed SettingKey objects. The modules that own
a setting declare its key (name, default, TOML codec); this module only stores
values and notifies listeners when one changes. Entries of the file that no
key claims are kept as they are and written back on save.
"""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import platformdirs
from PyQt6.QtCore import QObject, Qt, pyqtSignal

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

log = logging.getLogger(__name__)

APP_NAME = "digital"

# Section used when a key does not name one
DEFAULT_SECTION = "general"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def set_settings(manager: Optional["SettingsManager"]) -> None:
    """Replace the global settings manager (None drops it)."""
    global _settings_manager
    _settings_manager = manager


def _identity(value: Any) -> Any:
    return value


# =============================================================================
# Setting Keys
# =============================================================================

@dataclass(frozen=True, eq=False)
class SettingKey:
    """Description of a single typed setting.

    Attributes:
        name: Entry name inside its TOML section (e.g. "colorScheme").
        default: Value returned while the setting is unset or unreadable.
        section: TOML table the entry lives in.
        encode: Converts a value into something tomli_w can write.
        decode: Converts the stored TOML value back; may raise ValueError,
            KeyError or TypeError for malformed data.
        requires_repaint: Presentation hint, a change needs a repaint.
        depends_on: Optional key this setting is only meaningful for.
        enabled_when: Predicate over the depends_on value.
    """
    name: str
    default: Any
    section: str = DEFAULT_SECTION
    encode: Callable[[Any], Any] = _identity
    decode: Callable[[Any], Any] = _identity
    requires_repaint: bool = False
    depends_on: Optional["SettingKey"] = None
    enabled_when: Optional[Callable[[Any], bool]] = None

    def is_enabled(self, manager: "SettingsManager") -> bool:
        """Whether this setting currently applies, given its dependency."""
        if self.depends_on is None or self.enabled_when is None:
            return True
        return bool(self.enabled_when(manager.get(self.depends_on)))

    def __hash__(self) -> int:
        return hash((self.section, self.name))

    def __eq__(self, other) -> bool:
        if not isinstance(other, SettingKey):
            return NotImplemented
        return (self.section, self.name) == (other.section, other.name)


def enum_key(name: str, default: Enum, section: str = DEFAULT_SECTION,
             requires_repaint: bool = False) -> SettingKey:
    """Build a key for an Enum valued setting, stored by member name.

    Args:
        name: Entry name.
        default: Default member; its class defines the allowed values.
        section: TOML table name.
        requires_repaint: Presentation hint.

    Returns:
        The SettingKey.
    """
    enum_cls = type(default)

    def decode(raw: Any) -> Enum:
        return enum_cls[str(raw)]

    return SettingKey(
        name=name,
        default=default,
        section=section,
        encode=lambda member: member.name,
        decode=decode,
        requires_repaint=requires_repaint,
    )


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager(QObject):
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Signals:
        changed(str): Emitted with the key name after a value changed.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory, overrides the platform default.
    """

    changed = pyqtSignal(str)

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        super().__init__()
        if settings_dir is None:
            settings_dir = platformdirs.user_config_dir(app_name)
        self.settings_dir = Path(settings_dir)
        self.settings_file = self.settings_dir / "settings.toml"
        self._lock = threading.RLock()
        self._values: Dict[SettingKey, Any] = {}
        self._data = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> Dict[str, Dict[str, Any]]:
        """Load raw settings tables from the TOML file.

        Returns:
            Dictionary of TOML sections, empty if the file doesn't exist or
            is invalid.
        """
        if not self.settings_file.exists():
            return {}

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, ValueError) as e:
            # If file is corrupted or unreadable, fall back to defaults
            log.warning("Ignoring unreadable settings file %s: %s", self.settings_file, e)
            return {}

        return {name: dict(table) for name, table in data.items() if isinstance(table, dict)}

    def reload(self) -> None:
        """Re-read the settings file and notify listeners of every entry."""
        data = self.load()
        with self._lock:
            self._data = data
            self._values.clear()
            names = [name for table in data.values() for name in table]
        for name in names:
            self.changed.emit(name)

    def get(self, key: SettingKey) -> Any:
        """Get the value of a setting.

        Args:
            key: The setting key.

        Returns:
            The stored value, or the key's default if the setting is unset or
            the stored value cannot be decoded.
        """
        with self._lock:
            if key in self._values:
                return self._values[key]
            table = self._data.get(key.section, {})
            if key.name not in table:
                return key.default
            try:
                value = key.decode(table[key.name])
            except (ValueError, KeyError, TypeError) as e:
                log.warning("Invalid value for setting '%s', using default: %s", key.name, e)
                return key.default
            self._values[key] = value
            return value

    def set(self, key: SettingKey, value: Any) -> None:
        """Set the value of a setting and notify listeners if it changed.

        The value is kept in memory; call save() to write it to disk.

        Args:
            key: The setting key.
            value: The new value.
        """
        with self._lock:
            old = self.get(key)
            self._values[key] = value
            self._data.setdefault(key.section, {})[key.name] = key.encode(value)
            self._needs_save = True
            if old == value:
                return
        log.debug("Setting '%s' changed", key.name)
        self.changed.emit(key.name)

    def add_listener(self, callback: Callable[[str], None]) -> None:
        """Register a callback invoked with the key name on every change.

        The callback runs directly in the thread that changed the value.
        """
        self.changed.connect(callback, type=Qt.ConnectionType.DirectConnection)

    def remove_listener(self, callback: Callable[[str], None]) -> None:
        """Unregister a callback added with add_listener()."""
        try:
            self.changed.disconnect(callback)
        except (TypeError, RuntimeError):
            log.debug("Listener %r was not registered", callback)

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        # Ensure directory exists
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        with self._lock:
            data = {name: dict(table) for name, table in self._data.items()}

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)
        self._needs_save = False

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        with self._lock:
            return tomli_w.dumps(self._data)

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
