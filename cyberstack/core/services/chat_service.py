import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cyberstack.core.engines.local import ChatModelLoader, Consumer, ModelCoordinator
from cyberstack.core.errors import InferenceError, LoadCancelled, LoadError, ModelBusy, StoreError
from cyberstack.core.services.agent_context import AgentContextBuilder
from cyberstack.core.services.chat_store import ChatLogStore

logger = logging.getLogger(__name__)

VALID_ROLES = ('user', 'assistant')


def validate_messages(messages: Any) -> List[Dict[str, str]]:
    """Checks the {role, content} shape and returns a clean copy."""
    if not isinstance(messages, list) or not messages:
        raise ValueError("messages must be a non-empty list")
    clean = []
    for message in messages:
        if not isinstance(message, dict):
            raise ValueError("each message must be an object")
        role = message.get('role')
        content = message.get('content')
        if role not in VALID_ROLES or not isinstance(content, str):
            raise ValueError("each message needs role 'user'|'assistant' and string content")
        clean.append({'role': role, 'content': content})
    if clean[-1]['role'] != 'user':
        raise ValueError("the last message must come from the user")
    return clean


class ChatService:
    """
    Hybrid chat: the local chat model when the coordinator grants the slot,
    otherwise the remote client. After a local LoadError/InferenceError the
    service stays on the remote client for the rest of the session. Losing
    the slot to another request (LoadCancelled, ModelBusy) only sends that
    turn to the remote client.
    """

    def __init__(self,
                 context_builder: AgentContextBuilder,
                 remote_factory,
                 chat_store: Optional[ChatLogStore] = None,
                 coordinator: Optional[ModelCoordinator] = None,
                 chat_loader: Optional[ChatModelLoader] = None):
        self.context_builder = context_builder
        self.remote_factory = remote_factory
        self.chat_store = chat_store
        self.coordinator = coordinator
        self.chat_loader = chat_loader
        self.remote_only = False
        self._remote = None

    @property
    def remote(self):
        if self._remote is None:
            self._remote = self.remote_factory()
        return self._remote

    def _use_local(self) -> bool:
        if self.remote_only or self.coordinator is None or self.chat_loader is None:
            return False
        return self.coordinator.request_switch(Consumer.CHATBOT)

    def _local_reply(self, history: List[Dict[str, str]], system_instruction: str) -> str:
        self.chat_loader.ensure_loaded()
        return self.chat_loader.infer(
            history[-1]['content'],
            system_instruction=system_instruction,
            history=history[:-1],
        )

    def generate(self, history: List[Dict[str, str]]) -> Dict[str, str]:
        """Returns {'reply': text, 'backend': 'local'|'remote'}. Raises ApiError/ConfigurationError."""
        system_instruction = self.context_builder.system_instruction()

        if self._use_local():
            try:
                return {'reply': self._local_reply(history, system_instruction), 'backend': 'local'}
            except (LoadCancelled, ModelBusy) as e:
                logger.info(f"[Chat] Local model contended ({e}). Answering this turn remotely.")
            except (LoadError, InferenceError) as e:
                logger.warning(f"[Chat] Local model unavailable ({e}). Using remote API for the rest of the session.")
                self.remote_only = True

        return {'reply': self.remote.generate(history, system_instruction), 'backend': 'remote'}

    def reply(self, messages: Any, chat_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Validates the transcript, generates the assistant turn and logs the
        updated transcript. Logging failures do not fail the reply.
        """
        history = validate_messages(messages)
        result = self.generate(history)

        chat_id = chat_id or str(uuid.uuid4())
        transcript = history + [{'role': 'assistant', 'content': result['reply']}]
        if self.chat_store is not None:
            try:
                self.chat_store.save_chat(chat_id, {
                    'id': chat_id,
                    'timestamp': datetime.now(timezone.utc).isoformat(),
                    'messages': transcript,
                })
            except StoreError as e:
                logger.error(f"[Chat] Could not log chat {chat_id}: {e}")

        return {
            'reply': result['reply'],
            'backend': result['backend'],
            'chatId': chat_id,
            'messages': transcript,
        }

