"""
keybinds package

User key bindings: loading from the local file or the bundled defaults,
validation of edited keys and persistence.
"""

from keybinds.store import (
    BUNDLED_DEFAULTS_PATH,
    EditResult,
    IssueKind,
    KeyBindIssue,
    KeyBindStore,
    KeyCombination,
    LoadSource,
    SHIFT_PREFIX,
    StoreState,
    is_valid_key,
    resolve_storage_path,
)

__all__ = [
    "BUNDLED_DEFAULTS_PATH",
    "EditResult",
    "IssueKind",
    "KeyBindIssue",
    "KeyBindStore",
    "KeyCombination",
    "LoadSource",
    "SHIFT_PREFIX",
    "StoreState",
    "is_valid_key",
    "resolve_storage_path",
]
