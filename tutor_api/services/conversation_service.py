"""
Conversation history per browser fingerprint.

Conversations are kept as a JSON list under ``conversations_<fingerprint>``
and a per-day counter under ``daily_count_<fingerprint>_<date>``. Both are
read-modify-write without locking; concurrent writes for one fingerprint are
last-write-wins.
"""

import datetime
import time
from typing import Callable, Optional

import structlog

from tutor_api.config import settings
from tutor_api.models import Conversation
from tutor_api.routing.quota import utc_today
from tutor_api.storage.base import KeyValueStore

logger = structlog.get_logger()

CONVERSATIONS_PREFIX = "conversations_"


def conversations_key(fingerprint_id: str) -> str:
    return f"{CONVERSATIONS_PREFIX}{fingerprint_id}"


def daily_count_key(fingerprint_id: str, day: datetime.date) -> str:
    return f"daily_count_{fingerprint_id}_{day.isoformat()}"


class ConversationService:
    def __init__(
        self,
        store: KeyValueStore,
        today: Callable[[], datetime.date] = utc_today,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.today = today
        self.clock = clock

    async def _load(self, fingerprint_id: str) -> list[Conversation]:
        data = await self.store.get_json(conversations_key(fingerprint_id)) or []
        return [Conversation.model_validate(item) for item in data]

    async def store_conversation(
        self,
        fingerprint_id: str,
        user_message: Optional[str],
        ai_response: Optional[str],
        conversation_id: Optional[str] = None,
    ) -> dict:
        """
        Append an exchange to the fingerprint's history and bump today's count.

        Returns:
            dict with ``success``, ``conversationId`` and ``dailyCount``
        """
        day = self.today()
        now = self.clock()
        conversation = Conversation(
            id=conversation_id or str(int(now * 1000)),
            timestamp=datetime.datetime.fromtimestamp(now, datetime.timezone.utc).isoformat(),
            date=day.isoformat(),
            user_message=user_message,
            ai_response=ai_response,
            fingerprint_id=fingerprint_id,
        )

        conversations = await self._load(fingerprint_id)
        conversations.append(conversation)
        await self.store.put_json(
            conversations_key(fingerprint_id), [c.model_dump(by_alias=True) for c in conversations]
        )

        count_key = daily_count_key(fingerprint_id, day)
        count = int(await self.store.get(count_key) or 0) + 1
        await self.store.put(count_key, str(count))

        logger.info("conversation_stored", fingerprint_id=fingerprint_id, daily_count=count)
        return {"success": True, "conversationId": conversation.id, "dailyCount": count}

    async def daily_count(self, fingerprint_id: str) -> dict:
        count = int(await self.store.get(daily_count_key(fingerprint_id, self.today())) or 0)
        return {"count": count, "remaining": max(0, settings.conversation_daily_limit - count)}

    async def for_fingerprint(self, fingerprint_id: str) -> list[dict]:
        return [c.model_dump(by_alias=True) for c in await self._load(fingerprint_id)]

    async def list_all(self) -> list[dict]:
        """Every stored conversation across fingerprints, newest first."""
        conversations: list[Conversation] = []
        for key in await self.store.list_keys(CONVERSATIONS_PREFIX):
            fingerprint_id = key[len(CONVERSATIONS_PREFIX):]
            conversations.extend(await self._load(fingerprint_id))
        conversations.sort(key=lambda c: c.timestamp, reverse=True)
        return [c.model_dump(by_alias=True) for c in conversations]
