"""Wires the simulated backend and the client stores together."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .client import AuthAPI, HospitalAPI, SuperAPI
from .config import Settings, get_settings
from .monitoring import AnomalyDetector
from .notifications import NotificationStore
from .persistence import (
    EncryptedFileStorage,
    JsonFileStorage,
    PersistenceAdapter,
    StateKey,
)
from .preferences import DocumentRoot, ProfileStore, ThemeStore, TwoFactorStore
from .router import MockRouter
from .session import SessionStore
from .storage import EntityStore, default_dataset


@dataclass
class Console:
    settings: Settings
    store: EntityStore
    router: MockRouter
    auth: AuthAPI
    super_api: SuperAPI
    hospital_api: HospitalAPI
    notifications: NotificationStore
    theme: ThemeStore
    two_factor: TwoFactorStore
    profile: ProfileStore
    session: SessionStore
    anomalies: AnomalyDetector


def default_storage(settings: Settings) -> PersistenceAdapter:
    return JsonFileStorage(settings.state_dir)


def secret_storage(settings: Settings) -> PersistenceAdapter:
    return EncryptedFileStorage(
        settings.state_dir, StateKey(settings.state_key_path).get_key()
    )


def build_console(
    settings: Optional[Settings] = None,
    storage: Optional[PersistenceAdapter] = None,
    document: Optional[DocumentRoot] = None,
) -> Console:
    """Construct one entity store, its router and each client store.

    When ``storage`` is given it backs every client store; otherwise state is
    written below ``settings.state_dir`` and the two-factor record is
    encrypted at rest.
    """

    settings = settings or get_settings()
    dataset = default_dataset(settings) if settings.seed_demo_data else None
    store = EntityStore(settings, dataset)
    state_storage = storage or default_storage(settings)
    notifications = NotificationStore(state_storage)
    router = MockRouter(store, settings, notifications=notifications)
    auth = AuthAPI(router)
    super_api = SuperAPI(router)
    return Console(
        settings=settings,
        store=store,
        router=router,
        auth=auth,
        super_api=super_api,
        hospital_api=HospitalAPI(router),
        notifications=notifications,
        theme=ThemeStore(state_storage, document),
        two_factor=TwoFactorStore(storage or secret_storage(settings)),
        profile=ProfileStore(state_storage),
        session=SessionStore(state_storage, auth, super_api),
        anomalies=AnomalyDetector(notifications),
    )
