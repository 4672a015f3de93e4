import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import redis

from cyberstack.core.errors import StoreError

logger = logging.getLogger(__name__)

CHAT_INDEX_KEY = "chat_index"


class ChatLogStore:
    """
    Persists chat transcripts as opaque JSON blobs.

    Layout: chat:{id} holds the transcript, chat_meta:{id} a hash with the
    save timestamp and a preview of the last message, chat_index the set of
    known ids. Each save overwrites the transcript with the full history.
    """

    def __init__(self, client: redis.Redis, preview_length: int = 50):
        self.client = client
        self.preview_length = preview_length

    def _preview(self, chat_data: Dict[str, Any]) -> str:
        messages = chat_data.get('messages') or []
        if not messages:
            return "Empty"
        last = messages[-1]
        content = last.get('content', '') if isinstance(last, dict) else str(last)
        return str(content)[:self.preview_length]

    def save_chat(self, chat_id: str, chat_data: Dict[str, Any]) -> None:
        try:
            with self.client.pipeline() as pipe:
                pipe.set(f"chat:{chat_id}", json.dumps(chat_data, ensure_ascii=False))
                pipe.sadd(CHAT_INDEX_KEY, chat_id)
                pipe.hset(f"chat_meta:{chat_id}", mapping={
                    'timestamp': datetime.now(timezone.utc).isoformat(),
                    'preview': self._preview(chat_data),
                })
                pipe.execute()
        except redis.RedisError as e:
            raise StoreError(f"Could not save chat {chat_id}: {e}") from e

    def get_chat(self, chat_id: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(f"chat:{chat_id}")
        except redis.RedisError as e:
            raise StoreError(f"Could not read chat {chat_id}: {e}") from e
        return json.loads(data) if data else None

    def list_chats(self) -> List[Dict[str, Optional[str]]]:
        """Chat summaries, newest first. Entries without a timestamp sort last."""
        try:
            chat_ids = self.client.smembers(CHAT_INDEX_KEY)
            chats = []
            for chat_id in chat_ids:
                meta = self.client.hgetall(f"chat_meta:{chat_id}")
                chats.append({
                    'id': chat_id,
                    'timestamp': meta.get('timestamp') or None,
                    'preview': meta.get('preview') or None,
                })
        except redis.RedisError as e:
            raise StoreError(f"Could not list chats: {e}") from e

        chats.sort(key=lambda c: c['timestamp'] or '', reverse=True)
        return chats
