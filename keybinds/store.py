"""
keybinds/store.py

Key binding storage.

Key bindings map an action name to a key specification string of the form
``KEY`` or ``Shift+KEY`` where KEY is a single letter or digit, or one of the
function keys F1 to F12.

The user's bindings live in a local JSON file. On first run that file does
not exist yet; the bindings bundled with the application (``kb.json`` next to
this module) are loaded instead and copied to the local file, which is the
only source used from then on.

Problems never raise out of the store. They are logged, appended to
``KeyBindStore.issues`` and emitted through the ``issue_reported`` signal so
the presentation layer can show them.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from schemas import validate_keybinds

log = logging.getLogger(__name__)

# Bindings shipped with the application
BUNDLED_DEFAULTS_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "kb.json")

SHIFT_PREFIX = "Shift+"

_VALID_KEY = re.compile(r"[A-Z0-9]|F[1-9]|F1[0-2]")


def resolve_storage_path(
    platform: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Get the location of the user's key binding file.

    - Windows: %APPDATA%/Digital/keybinds/kb.json
    - Others: ~/.digital/keybinds/kb.json

    The containing directory is created if needed.

    Args:
        platform: Platform name, defaults to sys.platform.
        environ: Environment, defaults to os.environ.
        home: Home directory, defaults to Path.home().

    Returns:
        Path to kb.json.
    """
    platform = sys.platform if platform is None else platform
    environ = os.environ if environ is None else environ
    home = Path.home() if home is None else Path(home)

    if platform.startswith("win"):
        appdata = environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        path = Path(appdata, "Digital", "keybinds", "kb.json")
    else:
        path = home / ".digital" / "keybinds" / "kb.json"

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log.warning("Could not create key binding directory %s: %s", path.parent, e)
    return path


def is_valid_key(key: str) -> bool:
    """Check that a key is a single plain key without modifiers.

    Valid keys are A-Z, 0-9 and F1-F12. The check is case sensitive, callers
    upper-case user input first.
    """
    return isinstance(key, str) and _VALID_KEY.fullmatch(key) is not None


def _dumps(bindings: Mapping[str, str]) -> str:
    """Format bindings as the content of kb.json.

    Raises:
        TypeError: If an action or key specification is not a string.
    """
    for action, spec in bindings.items():
        if not isinstance(action, str) or not isinstance(spec, str):
            raise TypeError(f"Key binding {action!r}: {spec!r} is not a pair of strings")
    return json.dumps(bindings, indent=2, ensure_ascii=False) + "\n"


@dataclass(frozen=True)
class KeyCombination:
    """A key plus the state of the Shift modifier."""
    key: str
    shift: bool = False

    @classmethod
    def parse(cls, spec: str) -> "KeyCombination":
        """Split a ``KEY`` or ``Shift+KEY`` specification."""
        if spec.startswith(SHIFT_PREFIX):
            return cls(spec[len(SHIFT_PREFIX):], True)
        return cls(spec, False)

    @property
    def is_valid(self) -> bool:
        return is_valid_key(self.key)

    def __str__(self) -> str:
        return (SHIFT_PREFIX if self.shift else "") + self.key


# =============================================================================
# Reported conditions
# =============================================================================

class IssueKind(Enum):
    """Kinds of problems reported by the store."""
    RESOURCE_MISSING = "resource_missing"
    LOAD_FAILED = "load_failed"
    SAVE_FAILED = "save_failed"
    INVALID_KEY = "invalid_key"


@dataclass
class KeyBindIssue:
    """A problem reported to the presentation layer.

    Attributes:
        kind: What went wrong.
        message: Human readable description.
        actions: Offending action names (INVALID_KEY only).
    """
    kind: IssueKind
    message: str
    actions: List[str] = field(default_factory=list)


@dataclass
class EditResult:
    """Outcome of KeyBindStore.apply_edits().

    Attributes:
        ok: True if all edits were valid and applied.
        invalid: Actions whose key was rejected; nothing was applied then.
        saved: True if the updated bindings reached the local file.
    """
    ok: bool
    invalid: List[str] = field(default_factory=list)
    saved: bool = False


class StoreState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"


class LoadSource(Enum):
    """Where the loaded bindings came from."""
    NONE = "none"
    LOCAL_FILE = "local_file"
    BUNDLED_DEFAULTS = "bundled_defaults"


# =============================================================================
# Store
# =============================================================================

class KeyBindStore(QObject):
    """Loads, validates and saves the user's key bindings.

    Signals:
        issue_reported(object): Emitted with a KeyBindIssue.
        bindings_changed(object): Emitted with the new bindings dict after they
            were replaced in memory.

    Args:
        local_file: The user's key binding file, defaults to
            resolve_storage_path().
        default_resource: Bundled defaults used on first run; None means no
            defaults are available.
        parent: Optional Qt parent.
    """

    issue_reported = pyqtSignal(object)
    bindings_changed = pyqtSignal(object)

    def __init__(self, local_file: Optional[Path] = None,
                 default_resource: Optional[str] = BUNDLED_DEFAULTS_PATH,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.local_file = Path(local_file) if local_file is not None else resolve_storage_path()
        self.default_resource = Path(default_resource) if default_resource is not None else None
        self.issues: List[KeyBindIssue] = []
        self._bindings: Dict[str, str] = {}
        self._state = StoreState.UNLOADED
        self._source = LoadSource.NONE

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def source(self) -> LoadSource:
        return self._source

    @property
    def bindings(self) -> Dict[str, str]:
        """A copy of the current bindings."""
        return dict(self._bindings)

    def get_combination(self, action: str) -> Optional[KeyCombination]:
        spec = self._bindings.get(action)
        if spec is None:
            return None
        return KeyCombination.parse(spec)

    def load(self) -> Dict[str, str]:
        """Load the bindings.

        Reads the local file if it exists. Otherwise the bundled defaults are
        read and immediately saved as the local file.

        Returns:
            The loaded bindings; empty if nothing could be loaded.
        """
        try:
            if self.local_file.exists():
                self._set_bindings(self._read(self.local_file), LoadSource.LOCAL_FILE)
                log.info("Loaded %d key bindings from %s", len(self._bindings), self.local_file)
                return self.bindings

            if self.default_resource is None or not self.default_resource.is_file():
                self._set_bindings({}, LoadSource.NONE)
                self._report(IssueKind.RESOURCE_MISSING, "Default key binding resource missing!")
                return {}

            self._set_bindings(self._read(self.default_resource), LoadSource.BUNDLED_DEFAULTS)
        except (OSError, ValueError) as e:
            self._set_bindings({}, LoadSource.NONE)
            self._report(IssueKind.LOAD_FAILED, f"Error loading key bindings:\n{e}")
            return {}

        log.info("Loaded %d default key bindings, creating %s", len(self._bindings), self.local_file)
        # Local copy for the user to edit
        self.save()
        return self.bindings

    def ensure_loaded(self) -> Dict[str, str]:
        """Load the bindings unless that already happened."""
        if self._state is StoreState.UNLOADED:
            return self.load()
        return self.bindings

    def save(self, bindings: Optional[Mapping[str, str]] = None) -> bool:
        """Write the bindings to the local file, replacing its content.

        Args:
            bindings: New bindings to keep and write; defaults to the current
                bindings.

        Returns:
            True if the file was written.
        """
        updated = self._bindings if bindings is None else dict(bindings)
        try:
            text = _dumps(updated)
        except (TypeError, ValueError) as e:
            self._report(IssueKind.SAVE_FAILED, f"Error saving key bindings:\n{e}")
            return False

        if bindings is not None:
            self._set_bindings(updated, self._source)

        # Written next to the target and swapped in, the old file survives a failed write
        tmp_file = self.local_file.with_name(self.local_file.name + ".tmp")
        try:
            self.local_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_file, self.local_file)
        except OSError as e:
            self._discard(tmp_file)
            self._report(IssueKind.SAVE_FAILED, f"Error saving key bindings:\n{e}")
            return False

        log.debug("Saved %d key bindings to %s", len(self._bindings), self.local_file)
        return True

    def apply_edits(self, edits: Mapping[str, Tuple[str, bool]]) -> EditResult:
        """Validate and apply edited bindings.

        Each edit maps an action to the raw key typed by the user and the
        state of the Shift checkbox. Raw keys are stripped and upper-cased.
        If any key is invalid, or an edit is not a (key, shift) pair, nothing
        is changed and the offending actions are reported.

        Args:
            edits: Mapping of action name to (raw key, shift).

        Returns:
            The EditResult.
        """
        self.ensure_loaded()

        accepted: Dict[str, str] = {}
        invalid: List[str] = []
        for action, edit in edits.items():
            try:
                raw_key, shift = edit
            except (TypeError, ValueError):
                log.warning("Malformed edit for '%s': %r", action, edit)
                invalid.append(action)
                continue
            key = str(raw_key).strip().upper()
            if is_valid_key(key):
                accepted[action] = str(KeyCombination(key, bool(shift)))
            else:
                invalid.append(action)

        if invalid:
            self._report(
                IssueKind.INVALID_KEY,
                "Invalid key(s) found. Please correct the marked fields.",
                invalid,
            )
            return EditResult(ok=False, invalid=invalid, saved=False)

        updated = self.bindings
        updated.update(accepted)
        saved = self.save(updated)
        return EditResult(ok=True, saved=saved)

    def _read(self, path: Path) -> Dict[str, str]:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        ok, errors = validate_keybinds(data)
        if not ok:
            raise ValueError(f"{path}: " + "; ".join(errors))
        return dict(data)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning("Could not remove %s: %s", path, e)

    def _set_bindings(self, bindings: Dict[str, str], source: LoadSource) -> None:
        changed = bindings != self._bindings or list(bindings) != list(self._bindings)
        self._bindings = bindings
        self._source = source
        self._state = StoreState.LOADED
        if changed:
            self.bindings_changed.emit(dict(bindings))

    def _report(self, kind: IssueKind, message: str, actions: Optional[List[str]] = None) -> KeyBindIssue:
        issue = KeyBindIssue(kind, message, list(actions or []))
        if kind is IssueKind.INVALID_KEY:
            log.warning("%s (%s)", message, ", ".join(issue.actions))
        else:
            log.error(message)
        self.issues.append(issue)
        self.issue_reported.emit(issue)
        return issue
