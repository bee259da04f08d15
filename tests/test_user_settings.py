from __future__ import annotations

import pytest

from kfzlotti.user_settings import UserSettingsStore


def test_defaults_created_on_first_read(session_factory) -> None:
    settings = UserSettingsStore(session_factory).get()
    assert settings.display_name == ""
    assert settings.dark_mode == "system"
    assert settings.offline_mode is False


def test_update_persists_partial_changes(session_factory, clock) -> None:
    store = UserSettingsStore(session_factory, clock=clock)
    store.update(display_name="  Lotti  ", dark_mode="dark")
    store.update(offline_mode=True)

    reloaded = UserSettingsStore(session_factory).get()
    assert reloaded.display_name == "Lotti"
    assert reloaded.dark_mode == "dark"
    assert reloaded.offline_mode is True
    assert reloaded.updated_at == clock.now
    assert store.is_offline_mode_enabled()


def test_display_name_is_truncated(session_factory) -> None:
    settings = UserSettingsStore(session_factory).update(display_name="x" * 80)
    assert len(settings.display_name) == 32


def test_unknown_dark_mode_rejected(session_factory) -> None:
    with pytest.raises(ValueError):
        UserSettingsStore(session_factory).update(dark_mode="sepia")  # type: ignore[arg-type]


def test_storage_failure_falls_back_to_memory(broken_session_factory) -> None:
    store = UserSettingsStore(broken_session_factory)
    assert store.get().offline_mode is False

    store.update(offline_mode=True)

    assert store.is_offline_mode_enabled()


def test_reads_leave_updated_at_alone(session_factory, clock) -> None:
    store = UserSettingsStore(session_factory, clock=clock)
    store.update(dark_mode="light")
    written_at = clock.now

    clock.advance(hours=3)
    store.get()
    clock.advance(hours=3)

    assert store.get().updated_at == written_at
    assert UserSettingsStore(session_factory).get().dark_mode == "light"
