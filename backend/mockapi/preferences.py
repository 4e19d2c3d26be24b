"""Per-session preference stores: theme, two-factor enrollment and profile."""
from __future__ import annotations

import logging
import secrets
from typing import Optional, Sequence, Union

from . import schemas
from .persistence import PersistenceAdapter
from .state import StateContainer

logger = logging.getLogger(__name__)

DARK_CLASS = "dark"


class DocumentRoot:
    """Stand-in for the document element whose class list carries the theme."""

    def __init__(self) -> None:
        self.class_list: set[str] = set()

    def apply_theme(self, theme: schemas.ThemeMode) -> None:
        if theme == schemas.ThemeMode.dark:
            self.class_list.add(DARK_CLASS)
        else:
            self.class_list.discard(DARK_CLASS)

    @property
    def theme(self) -> schemas.ThemeMode:
        if DARK_CLASS in self.class_list:
            return schemas.ThemeMode.dark
        return schemas.ThemeMode.light


class ThemeStore(StateContainer[schemas.UIState]):
    """Theme and sidebar layout; the theme is mirrored onto the document root."""

    storage_key = "ui-storage"
    state_model = schemas.UIState

    def __init__(
        self, storage: PersistenceAdapter, document: Optional[DocumentRoot] = None
    ) -> None:
        self.document = document or DocumentRoot()
        super().__init__(storage)
        self.document.apply_theme(self._state.theme)

    def _on_change(self, state: schemas.UIState, previous: schemas.UIState) -> None:
        # before subscribers run, so nothing renders with the old theme
        self.document.apply_theme(state.theme)

    @property
    def theme(self) -> schemas.ThemeMode:
        return self._state.theme

    def set_theme(self, theme: Union[schemas.ThemeMode, str]) -> schemas.ThemeMode:
        return self.set({"theme": schemas.ThemeMode(theme)}).theme

    def toggle(self) -> schemas.ThemeMode:
        if self._state.theme == schemas.ThemeMode.light:
            return self.set_theme(schemas.ThemeMode.dark)
        return self.set_theme(schemas.ThemeMode.light)

    def toggle_sidebar(self) -> bool:
        return self.set(
            lambda state: {"sidebar_collapsed": not state.sidebar_collapsed}
        ).sidebar_collapsed

    def set_sidebar_collapsed(self, collapsed: bool) -> bool:
        return self.set({"sidebar_collapsed": collapsed}).sidebar_collapsed


def generate_backup_codes(count: int = 10) -> list[str]:
    return [f"{secrets.token_hex(2)}-{secrets.token_hex(2)}".upper() for _ in range(count)]


class TwoFactorStore(StateContainer[schemas.TwoFactorState]):
    storage_key = "2fa-storage"
    state_model = schemas.TwoFactorState

    @property
    def enabled(self) -> bool:
        return self._state.enabled

    def enable(
        self,
        method: Union[schemas.TwoFactorMethod, str],
        secret: Optional[str] = None,
    ) -> schemas.TwoFactorState:
        logger.info("Two-factor authentication enabled via %s", method)
        return self.set(
            {
                "enabled": True,
                "method": schemas.TwoFactorMethod(method),
                "secret": secret,
            }
        )

    def disable(self) -> schemas.TwoFactorState:
        logger.info("Two-factor authentication disabled")
        return self.set(
            {"enabled": False, "method": None, "secret": None, "backup_codes": None}
        )

    def set_backup_codes(
        self, codes: Optional[Sequence[str]] = None
    ) -> schemas.TwoFactorState:
        if codes is None:
            codes = generate_backup_codes()
        return self.set({"backup_codes": list(codes)})


class ProfileStore(StateContainer[schemas.ProfileState]):
    storage_key = "profile-storage"
    state_model = schemas.ProfileState

    def update(self, **changes: Optional[str]) -> schemas.ProfileState:
        unknown = set(changes) - set(schemas.ProfileState.model_fields)
        if unknown:
            raise TypeError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        return self.set(changes)
