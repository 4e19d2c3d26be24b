from __future__ import annotations

import json

import pytest
from cryptography.fernet import Fernet

from mockapi import schemas
from mockapi.notifications import NotificationStore
from mockapi.persistence import EncryptedFileStorage, JsonFileStorage, MemoryStorage, StateKey
from mockapi.preferences import DocumentRoot, ProfileStore, ThemeStore, TwoFactorStore


def _event(title: str, kind: str = "user_added") -> dict:
    return {"type": kind, "title": title, "message": f"{title} happened"}


def test_notifications_are_newest_first(storage):
    feed = NotificationStore(storage)

    first = feed.add(_event("first"))
    second = feed.add(_event("second"))
    third = feed.add(schemas.NotificationEvent(**_event("third", "role_added")))

    assert [item.id for item in feed.notifications()] == [third.id, second.id, first.id]
    assert all(item.read is False for item in feed.notifications())


def test_unknown_notification_type_is_rejected(storage):
    feed = NotificationStore(storage)

    with pytest.raises(ValueError):
        feed.add(_event("bad", "made_up_event"))


def test_unread_count_tracks_read_flags(storage):
    feed = NotificationStore(storage)
    added = [feed.add(_event(f"n{index}")) for index in range(4)]

    feed.mark_read(added[0].id)
    assert feed.unread_count() == 3

    feed.remove(added[1].id)
    assert feed.unread_count() == 2
    assert len(feed.notifications()) == 3

    feed.mark_all_read()
    assert feed.unread_count() == 0
    assert feed.unread_count() == sum(1 for item in feed.notifications() if not item.read)

    feed.clear()
    assert feed.notifications() == []


def test_notification_ids_are_unique(storage):
    feed = NotificationStore(storage)
    ids = {feed.add(_event(f"n{index}")).id for index in range(25)}

    assert len(ids) == 25


def test_notification_feed_survives_reload(storage):
    feed = NotificationStore(storage)
    feed.add(_event("first"))
    kept = feed.add(
        {
            "type": "hospital_added",
            "title": "Hospital Added",
            "message": "created",
            "route": "/super/hospitals",
            "metadata": {"hospital_id": "7"},
        }
    )
    feed.mark_read(kept.id)

    reloaded = NotificationStore(storage)

    assert reloaded.get() == feed.get()
    assert reloaded.unread_count() == 1


def test_persisted_layout_has_state_and_version(storage):
    NotificationStore(storage).add(_event("first"))

    payload = json.loads(storage.entries["notifications-storage"])

    assert payload["version"] == 1
    assert payload["state"]["notifications"][0]["title"] == "first"


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        json.dumps({"state": {"notifications": []}, "version": 99}),
        json.dumps({"state": {"notifications": [{"id": 1}]}, "version": 1}),
    ],
)
def test_unusable_persisted_state_falls_back_to_defaults(raw):
    storage = MemoryStorage({"notifications-storage": raw, "ui-storage": raw})

    assert NotificationStore(storage).notifications() == []
    assert ThemeStore(storage).theme == schemas.ThemeMode.light


def test_first_run_defaults(storage, document):
    assert ThemeStore(storage, document).theme == schemas.ThemeMode.light
    assert TwoFactorStore(storage).get() == schemas.TwoFactorState()
    assert NotificationStore(storage).unread_count() == 0
    assert document.class_list == set()


def test_theme_toggle_updates_document_before_subscribers(storage, document):
    theme = ThemeStore(storage, document)
    seen = []
    theme.subscribe(lambda state, previous: seen.append((state.theme, document.theme)))

    assert theme.toggle() == schemas.ThemeMode.dark
    assert "dark" in document.class_list
    assert theme.toggle() == schemas.ThemeMode.light
    assert "dark" not in document.class_list

    assert seen == [
        (schemas.ThemeMode.dark, schemas.ThemeMode.dark),
        (schemas.ThemeMode.light, schemas.ThemeMode.light),
    ]
    assert json.loads(storage.entries["ui-storage"])["state"]["theme"] == "light"


def test_stored_theme_is_applied_on_load(storage):
    ThemeStore(storage, DocumentRoot()).set_theme("dark")

    fresh_document = DocumentRoot()
    ThemeStore(storage, fresh_document)

    assert fresh_document.theme == schemas.ThemeMode.dark


def test_sidebar_state_persists(storage):
    ui = ThemeStore(storage)
    assert ui.toggle_sidebar() is True
    assert ui.set_sidebar_collapsed(False) is False
    ui.toggle_sidebar()

    assert ThemeStore(storage).get().sidebar_collapsed is True


def test_unsubscribe_stops_notifications(storage):
    theme = ThemeStore(storage)
    calls = []
    unsubscribe = theme.subscribe(lambda state, previous: calls.append(state.theme))

    theme.toggle()
    unsubscribe()
    theme.toggle()

    assert calls == [schemas.ThemeMode.dark]


def test_disable_two_factor_clears_secret_and_codes(storage):
    two_factor = TwoFactorStore(storage)
    two_factor.enable("authenticator", secret="JBSWY3DPEHPK3PXP")
    two_factor.set_backup_codes(["AAAA-1111", "BBBB-2222"])

    assert two_factor.get().backup_codes == ["AAAA-1111", "BBBB-2222"]
    assert TwoFactorStore(storage).get() == two_factor.get()

    two_factor.disable()

    state = TwoFactorStore(storage).get()
    assert state.enabled is False
    assert state.method is None
    assert state.secret is None
    assert state.backup_codes is None


def test_profile_update_merges_fields(storage):
    profile = ProfileStore(storage)
    profile.update(name="Amelia Harper", email="amelia.harper@example.com")
    profile.update(avatar="data:image/png;base64,AAAA")

    reloaded = ProfileStore(storage).get()
    assert reloaded.name == "Amelia Harper"
    assert reloaded.avatar == "data:image/png;base64,AAAA"

    with pytest.raises(TypeError):
        profile.update(nickname="Mia")

    profile.reset()
    assert ProfileStore(storage).get() == schemas.ProfileState()


def test_json_file_storage_round_trip(tmp_path):
    storage = JsonFileStorage(tmp_path / "state")
    feed = NotificationStore(storage)
    feed.add(_event("persisted"))

    assert (tmp_path / "state" / "notifications-storage.json").exists()
    assert NotificationStore(JsonFileStorage(tmp_path / "state")).get() == feed.get()


def test_encrypted_storage_hides_two_factor_secret(tmp_path):
    key = StateKey(tmp_path / "keys" / "state.key").get_key()
    storage = EncryptedFileStorage(tmp_path / "state", key)
    TwoFactorStore(storage).enable("google", secret="TOPSECRETSEED")

    raw = (tmp_path / "state" / "2fa-storage.json.enc").read_bytes()
    assert b"TOPSECRETSEED" not in raw
    assert TwoFactorStore(storage).get().secret == "TOPSECRETSEED"
    assert StateKey(tmp_path / "keys" / "state.key").get_key() == key


def test_encrypted_storage_with_wrong_key_starts_fresh(tmp_path):
    TwoFactorStore(EncryptedFileStorage(tmp_path, Fernet.generate_key())).enable("google")

    other = TwoFactorStore(EncryptedFileStorage(tmp_path, Fernet.generate_key()))

    assert other.enabled is False


def test_generated_backup_codes(storage):
    two_factor = TwoFactorStore(storage)

    codes = two_factor.set_backup_codes().backup_codes

    assert len(codes) == 10
    assert len(set(codes)) == 10
    assert all(len(code) == 9 and code[4] == "-" for code in codes)
