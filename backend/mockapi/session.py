"""Active console session, persisted like the other client stores."""
from __future__ import annotations

import logging

from . import schemas
from .client import AuthAPI, SuperAPI
from .persistence import PersistenceAdapter
from .state import StateContainer

logger = logging.getLogger(__name__)


class SessionStore(StateContainer[schemas.SessionState]):
    """Tracks who is signed in; other stores are left to the caller."""

    storage_key = "auth-storage"
    state_model = schemas.SessionState

    def __init__(self, storage: PersistenceAdapter, auth: AuthAPI, super_api: SuperAPI) -> None:
        self.auth = auth
        self.super_api = super_api
        super().__init__(storage)

    @property
    def authenticated(self) -> bool:
        return self._state.status == schemas.SessionStatus.authenticated

    async def login(self, email: str, password: str) -> schemas.SessionState:
        result = await self.auth.login(email, password)
        logger.info("Signed in as %s", result.role.value)
        return self.set(
            {
                "status": schemas.SessionStatus.authenticated,
                "role": result.role,
                "hospital_id": result.hospital_id,
                "impersonating": None,
            }
        )

    async def logout(self) -> schemas.SessionState:
        try:
            await self.auth.logout()
        finally:
            self.reset()
        return self.get()

    async def refresh(self) -> schemas.SessionState:
        await self.auth.refresh()
        return self.set({"status": schemas.SessionStatus.authenticated})

    async def impersonate(self, hospital_id: str) -> schemas.SessionState:
        result = await self.super_api.impersonate(hospital_id)
        return self.set({"impersonating": result.hospital_id})
