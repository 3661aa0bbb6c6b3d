from __future__ import annotations

import logging
from typing import AsyncIterator

from .channel import Channel

logger = logging.getLogger(__name__)


class OwnerSession:
    """
    Identity boundary. Holds the signed-in owner id; sign-in and sign-out
    are the only events the journal reacts to.
    """

    def __init__(self, owner_id: str | None = None):
        self._channel: Channel[str | None] = Channel(owner_id or None, name="session")

    @property
    def owner_id(self) -> str | None:
        return self._channel.value

    @property
    def signed_in(self) -> bool:
        return self.owner_id is not None

    def sign_in(self, owner_id: str) -> None:
        if not owner_id:
            raise ValueError("owner_id must not be empty")
        if owner_id == self.owner_id:
            return
        logger.info("Owner signed in: %s", owner_id)
        self._channel.publish(owner_id)

    def sign_out(self) -> None:
        if self.owner_id is None:
            return
        logger.info("Owner signed out: %s", self.owner_id)
        self._channel.publish(None)

    def changes(self) -> AsyncIterator[str | None]:
        return self._channel.subscribe()
