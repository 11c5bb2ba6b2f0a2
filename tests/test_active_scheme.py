"""Tests for SchemeRegistry and the active scheme cache: selector resolution,
the lazily fetched custom scheme, listener driven invalidation and the direct
custom scheme update.
"""
from __future__ import annotations

import threading

import pytest

import graphics.color_scheme as color_scheme
import settings
from graphics.color import BLUE, RED
from graphics.color_scheme import (
    COLOR_BLIND_SCHEME,
    COLOR_SCHEME,
    CUSTOM_COLOR_SCHEME,
    DARK_SCHEME,
    DEFAULT_SCHEME,
    ColorKey,
    ColorScheme,
    ColorSchemes,
    SchemeRegistry,
)
from settings import SettingsManager


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def settings_manager(tmp_path):
    return SettingsManager(settings_dir=tmp_path)


@pytest.fixture()
def registry(settings_manager):
    reg = SchemeRegistry(settings_manager)
    yield reg
    reg.close()


@pytest.fixture()
def red_scheme():
    return ColorScheme.Builder(DEFAULT_SCHEME).set(ColorKey.BACKGROUND, RED).build()


@pytest.fixture()
def blue_scheme():
    return ColorScheme.Builder(DEFAULT_SCHEME).set(ColorKey.BACKGROUND, BLUE).build()


@pytest.fixture()
def global_settings(settings_manager, monkeypatch):
    """Install a temporary global settings manager and a fresh registry."""
    monkeypatch.setattr(settings, "_settings_manager", settings_manager)
    color_scheme.reset_registry()
    yield settings_manager
    color_scheme.reset_registry()


# ─────────────────────────────────────────────────────────
# resolve_scheme
# ─────────────────────────────────────────────────────────


class TestResolveScheme:
    def test_built_in_selectors(self, registry):
        assert registry.resolve_scheme(ColorSchemes.DEFAULT) is DEFAULT_SCHEME
        assert registry.resolve_scheme(ColorSchemes.DARK) is DARK_SCHEME
        assert registry.resolve_scheme(ColorSchemes.COLOR_BLIND) is COLOR_BLIND_SCHEME

    def test_custom_defaults_to_default_scheme(self, registry):
        assert registry.resolve_scheme(ColorSchemes.CUSTOM) == DEFAULT_SCHEME

    def test_custom_comes_from_settings(self, registry, settings_manager, red_scheme):
        settings_manager.set(CUSTOM_COLOR_SCHEME, red_scheme)
        assert registry.resolve_scheme(ColorSchemes.CUSTOM) == red_scheme

    def test_custom_is_fetched_once(self, registry, settings_manager, monkeypatch):
        calls = []
        original_get = settings_manager.get

        def counting_get(key):
            calls.append(key.name)
            return original_get(key)

        monkeypatch.setattr(settings_manager, "get", counting_get)
        first = registry.resolve_scheme(ColorSchemes.CUSTOM)
        second = registry.resolve_scheme(ColorSchemes.CUSTOM)
        assert first is second
        assert calls.count(CUSTOM_COLOR_SCHEME.name) == 1

    def test_failing_store_gives_default(self, registry, settings_manager, monkeypatch):
        def broken_get(key):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(settings_manager, "get", broken_get)
        assert registry.resolve_scheme(ColorSchemes.CUSTOM) is DEFAULT_SCHEME
        assert registry.selected() is ColorSchemes.DARK


# ─────────────────────────────────────────────────────────
# get_active_scheme
# ─────────────────────────────────────────────────────────


class TestActiveScheme:
    def test_default_selection_is_dark(self, registry):
        assert registry.get_active_scheme() is DARK_SCHEME

    def test_cached(self, registry):
        assert registry.get_active_scheme() is registry.get_active_scheme()
        assert registry.cache.get() is DARK_SCHEME

    def test_selector_change_recomputes(self, registry, settings_manager):
        registry.get_active_scheme()
        settings_manager.set(COLOR_SCHEME, ColorSchemes.COLOR_BLIND)
        assert registry.get_active_scheme() is COLOR_BLIND_SCHEME

    def test_select_scheme(self, registry, settings_manager):
        registry.get_active_scheme()
        registry.select_scheme(ColorSchemes.DEFAULT)
        assert registry.get_active_scheme() is DEFAULT_SCHEME
        assert settings_manager.get_settings_path().exists()

    def test_selector_change_from_other_thread(self, registry, settings_manager):
        registry.get_active_scheme()
        worker = threading.Thread(
            target=settings_manager.set, args=(COLOR_SCHEME, ColorSchemes.DEFAULT)
        )
        worker.start()
        worker.join()
        assert registry.get_active_scheme() is DEFAULT_SCHEME

    def test_custom_scheme_change_while_custom_active(self, registry, settings_manager,
                                                      red_scheme):
        settings_manager.set(COLOR_SCHEME, ColorSchemes.CUSTOM)
        assert registry.get_active_scheme() == DEFAULT_SCHEME
        settings_manager.set(CUSTOM_COLOR_SCHEME, red_scheme)
        assert registry.get_active_scheme() == red_scheme

    def test_custom_scheme_change_while_other_active(self, registry, settings_manager,
                                                     red_scheme):
        registry.get_active_scheme()
        settings_manager.set(CUSTOM_COLOR_SCHEME, red_scheme)
        assert registry.get_active_scheme() is DARK_SCHEME

    def test_close_stops_following(self, registry, settings_manager):
        registry.get_active_scheme()
        registry.close()
        settings_manager.set(COLOR_SCHEME, ColorSchemes.DEFAULT)
        assert registry.cache.get() is None


# ─────────────────────────────────────────────────────────
# update_custom_scheme
# ─────────────────────────────────────────────────────────


class TestUpdateCustomScheme:
    def test_active_immediately(self, registry, settings_manager, red_scheme):
        settings_manager.set(COLOR_SCHEME, ColorSchemes.CUSTOM)
        registry.get_active_scheme()
        registry.update_custom_scheme(red_scheme)
        assert registry.get_active_scheme() == red_scheme

    def test_no_listener_round_trip_needed(self, registry, settings_manager, red_scheme):
        settings_manager.set(COLOR_SCHEME, ColorSchemes.CUSTOM)
        registry.get_active_scheme()
        # Suppress change notifications, only the direct path is left
        settings_manager.blockSignals(True)
        try:
            registry.update_custom_scheme(red_scheme)
            assert registry.get_active_scheme() == red_scheme
        finally:
            settings_manager.blockSignals(False)

    def test_persisted(self, tmp_path, registry, red_scheme):
        registry.update_custom_scheme(red_scheme)
        reloaded = SettingsManager(settings_dir=tmp_path)
        assert reloaded.get(CUSTOM_COLOR_SCHEME) == red_scheme

    def test_not_active_until_selected(self, registry, red_scheme):
        registry.get_active_scheme()
        registry.update_custom_scheme(red_scheme)
        assert registry.get_active_scheme() is DARK_SCHEME
        registry.select_scheme(ColorSchemes.CUSTOM)
        assert registry.get_active_scheme() == red_scheme

    def test_repeated_edits(self, registry, settings_manager, red_scheme, blue_scheme):
        settings_manager.set(COLOR_SCHEME, ColorSchemes.CUSTOM)
        registry.get_active_scheme()
        registry.update_custom_scheme(red_scheme)
        registry.update_custom_scheme(blue_scheme)
        assert registry.get_active_scheme() == blue_scheme
        assert registry.resolve_scheme(ColorSchemes.CUSTOM) == blue_scheme

    def test_save_failure_is_not_raised(self, registry, settings_manager, red_scheme,
                                        monkeypatch):
        def failing_save():
            raise OSError("disk full")

        monkeypatch.setattr(settings_manager, "save", failing_save)
        settings_manager.set(COLOR_SCHEME, ColorSchemes.CUSTOM)
        registry.get_active_scheme()
        registry.update_custom_scheme(red_scheme)
        assert registry.get_active_scheme() == red_scheme


# ─────────────────────────────────────────────────────────
# Module level functions
# ─────────────────────────────────────────────────────────


class TestModuleFunctions:
    def test_get_active_scheme_uses_global_settings(self, global_settings):
        global_settings.set(COLOR_SCHEME, ColorSchemes.COLOR_BLIND)
        assert color_scheme.get_active_scheme() is COLOR_BLIND_SCHEME

    def test_registry_is_shared(self, global_settings):
        assert color_scheme.get_registry() is color_scheme.get_registry()

    def test_update_custom_scheme(self, global_settings, red_scheme):
        global_settings.set(COLOR_SCHEME, ColorSchemes.CUSTOM)
        color_scheme.get_active_scheme()
        color_scheme.update_custom_scheme(red_scheme)
        assert color_scheme.get_active_scheme() == red_scheme
        assert color_scheme.resolve_scheme(ColorSchemes.CUSTOM) == red_scheme
