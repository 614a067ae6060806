from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from memory import ConversationStore
from memory.time_utils import utc_now

from .models import Location
from .titles import generate_conversation_title

logger = logging.getLogger(__name__)

REUSE_WINDOW = timedelta(minutes=5)


@dataclass(frozen=True)
class SessionResolution:
    conversation_id: str
    created: bool = False
    reused: bool = False


class ConversationSessionManager:
    def __init__(
        self,
        store: ConversationStore,
        *,
        reuse_window: timedelta = REUSE_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.reuse_window = reuse_window
        self.clock = clock

    def resolve(
        self,
        *,
        user_id: str,
        message: str,
        conversation_id: str | None = None,
        location: Location | None = None,
    ) -> SessionResolution:
        if conversation_id:
            return SessionResolution(conversation_id=conversation_id)

        recent = self.store.find_recent_empty_conversation(
            user_id=user_id,
            since=self.clock() - self.reuse_window,
        )
        if recent:
            self.store.update_title(recent["id"], generate_conversation_title(message))
            logger.info("reusing empty conversation %s", recent["id"])
            return SessionResolution(conversation_id=recent["id"], reused=True)

        location = location or Location()
        new_id = self.store.create_conversation(
            user_id=user_id,
            title=generate_conversation_title(message),
            state_code=location.state_code,
            lga_code=location.lga_code,
        )
        logger.info("created conversation %s", new_id)
        return SessionResolution(conversation_id=new_id, created=True)
