from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Protocol, Tuple

from .models import ChatMessage


@dataclass
class Conversation:
    """一段进行中的会话。

    历史消息只允许通过 append 追加，不提供修改或删除接口。
    """

    id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    meta: Dict[str, Any] = field(default_factory=dict)
    _messages: List[ChatMessage] = field(default_factory=list, repr=False)

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def append(self, message: ChatMessage) -> None:
        self._messages.append(message)

    def __len__(self) -> int:
        return len(self._messages)

    def last(self) -> Optional[ChatMessage]:
        return self._messages[-1] if self._messages else None


class ConversationStore(Protocol):
    def create(self, meta: Optional[Dict[str, Any]] = None) -> Conversation:
        ...

    def save(self, conversation: Conversation) -> None:
        ...

    def load(self, conversation_id: str) -> Conversation:
        ...

    def list_ids(self) -> List[str]:
        ...
