from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from core.auth import AuthService, Identity
from core.catalog import Notifier
from core.session import PosSession


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - auth: account service; auth.current is the signed-in Identity
      - session: the register session built after login (or offline start)
    """

    auth: AuthService = field(default_factory=AuthService)
    session: Optional[PosSession] = None

    @property
    def user(self) -> Optional[Identity]:
        return self.auth.current

    async def start_session(self, notify: Notifier) -> PosSession:
        """Build the register for the current user, or an offline one."""
        user_id = self.user.id if self.user else None
        self.session = PosSession.create(user_id, notify=notify)
        await self.session.catalog.load()
        return self.session

    async def end_session(self) -> None:
        """Sign out and drop the register; an unsaved cart is discarded."""
        await self.auth.sign_out()
        self.session = None
