"""
main.py

Digital - appearance and key binding configuration

Launch wrapper that resolves the selected color scheme and the user's key
bindings before the user interface starts. Also usable from the command line
to inspect and change them.

Usage:
    python main.py                          show the active scheme and key bindings
    python main.py --list-schemes           show all color schemes
    python main.py --scheme DARK            select a color scheme
    python main.py --bind Delete=Shift+X    change key bindings
    python main.py --check                  check the format of all key bindings

Dependencies:
    pip install PyQt6 platformdirs tomli-w jsonschema
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from debug_trace import close_log, setup_logging, trace, trace_exception
from graphics import ColorKey, ColorScheme, ColorSchemes, SchemeRegistry
from keybinds import SHIFT_PREFIX, IssueKind, KeyBindStore
from schemas import validate_keybinds
from settings import SettingsManager, get_settings, set_settings


def parse_binding(text: str) -> Tuple[str, Tuple[str, bool]]:
    """Parse ``ACTION=KEY`` or ``ACTION=Shift+KEY`` into an edit entry.

    The Shift prefix is matched case-insensitively.
    """
    action, sep, spec = text.partition("=")
    if not sep or not action.strip():
        raise argparse.ArgumentTypeError(f"expected ACTION=KEY, got {text!r}")
    spec = spec.strip()
    if spec[:len(SHIFT_PREFIX)].lower() == SHIFT_PREFIX.lower():
        return action.strip(), (spec[len(SHIFT_PREFIX):], True)
    return action.strip(), (spec, False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digital-config",
        description="Show and edit the Digital color scheme and key bindings.",
    )
    parser.add_argument("--scheme", choices=[s.name for s in ColorSchemes],
                        help="select the color scheme")
    parser.add_argument("--list-schemes", action="store_true",
                        help="print every color scheme")
    parser.add_argument("--bind", action="append", type=parse_binding, default=[],
                        metavar="ACTION=KEY", help="change a key binding (repeatable)")
    parser.add_argument("--check", action="store_true",
                        help="check the format of all stored key bindings")
    parser.add_argument("--keybinds-file", type=Path,
                        help="key binding file to use instead of the default location")
    parser.add_argument("--settings-dir", type=Path,
                        help="settings directory to use instead of the default location")
    parser.add_argument("--verbose", action="store_true", help="debug logging")
    parser.add_argument("--log-file", action="store_true",
                        help="also write the log to the user log directory")
    return parser


def describe_scheme(name: str, scheme: ColorScheme) -> List[str]:
    """Human readable summary of a scheme."""
    kind = scheme.scheme_type.name if scheme.scheme_type else "-"
    lines = [f"{name}: theme={scheme.theme} type={kind} appearance={scheme.aqua_theme or '-'}"]
    for key in ColorKey:
        lines.append(f"    {key.name:<12} {scheme.get_color(key).to_hex()}")
    return lines


def describe_bindings(bindings: Dict[str, str]) -> List[str]:
    width = max((len(action) for action in bindings), default=0)
    return [f"    {action:<{width}}  {spec}" for action, spec in bindings.items()]


def run(args: argparse.Namespace) -> int:
    """Apply the requested changes and print the resulting configuration."""
    status = 0

    if args.settings_dir is not None:
        set_settings(SettingsManager(settings_dir=args.settings_dir))
    settings_manager = get_settings()
    try:
        settings_manager.ensure_file_complete()
    except OSError as e:
        trace(f"Cannot write settings file: {e}", "ERROR")

    registry = SchemeRegistry(settings_manager)
    if args.scheme:
        registry.select_scheme(ColorSchemes[args.scheme])

    if args.list_schemes:
        for selector in ColorSchemes:
            print("\n".join(describe_scheme(selector.name, registry.resolve_scheme(selector))))

    selected = registry.selected()
    trace(f"Color scheme {selected.name}", "MAIN")
    print("\n".join(describe_scheme(f"Active scheme ({selected.name})", registry.get_active_scheme())))

    store = KeyBindStore(local_file=args.keybinds_file)
    store.load()
    if args.bind:
        result = store.apply_edits(dict(args.bind))
        if not result.ok:
            print(f"Invalid key for: {', '.join(result.invalid)}", file=sys.stderr)
            status = 1
        elif not result.saved:
            status = 1

    print(f"Key bindings ({store.local_file}):")
    print("\n".join(describe_bindings(store.bindings)))

    if args.check:
        ok, errors = validate_keybinds(store.bindings, strict=True)
        for error in errors:
            print(f"Invalid binding {error}", file=sys.stderr)
        if not ok:
            status = 1

    for issue in store.issues:
        if issue.kind is not IssueKind.INVALID_KEY:
            print(issue.message, file=sys.stderr)
            status = 1

    registry.close()
    return status


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.verbose, log_file=True if args.log_file else None)
    trace("Application starting", "MAIN")
    try:
        return run(args)
    finally:
        close_log()


if __name__ == "__main__":
    # Set up global exception handler to catch crashes
    def excepthook(exc_type, exc_value, exc_tb):
        import traceback
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        sys.exit(main())
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        raise
