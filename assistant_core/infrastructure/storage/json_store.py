import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional
from uuid import uuid4

from assistant_core.config.settings import settings
from assistant_core.domain.conversation import ConversationStore, Conversation
from assistant_core.domain.exceptions import BusinessError, NotFoundError
from assistant_core.domain.models import ChatMessage
from assistant_core.tools.definitions import ToolCall


class JsonConversationStore(ConversationStore):
    """每个会话一个 JSON 文件：{root}/{conversation_id}.json。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def create(self, meta: Optional[Dict[str, Any]] = None) -> Conversation:
        return Conversation(id=f"c-{uuid4().hex[:12]}", meta=dict(meta or {}))

    def save(self, conversation: Conversation) -> None:
        path = self._path(conversation.id)
        tmp_path = self._root / f"{conversation.id}.{uuid4().hex}.json.tmp"
        obj = {
            "id": conversation.id,
            "created_at": conversation.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            "meta": conversation.meta,
            "messages": [self._message_to_dict(m) for m in conversation.messages],
        }
        try:
            tmp_path.write_text(json.dumps(obj, ensure_ascii=False, default=str), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def load(self, conversation_id: str) -> Conversation:
        path = self._path(conversation_id)
        if not path.exists():
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message=conversation_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            conv = Conversation(
                id=data["id"],
                created_at=datetime.fromisoformat(data["created_at"].replace("Z", "+00:00")),
                meta=data.get("meta") or {},
            )
            for item in data.get("messages") or []:
                conv.append(self._to_message(item))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=f"{conversation_id}: {e}")
        return conv

    def list_ids(self) -> List[str]:
        return sorted(p.stem for p in self._root.glob("*.json"))

    def _path(self, conversation_id: str) -> Path:
        if not conversation_id or "/" in conversation_id or "\\" in conversation_id or conversation_id.startswith("."):
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message=conversation_id)
        return self._root / f"{conversation_id}.json"

    @staticmethod
    def _message_to_dict(message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role, "content": message.content}
        if message.meta:
            payload["meta"] = message.meta
        if message.tool_calls:
            payload["tool_calls"] = [
                {"id": c.id, "name": c.name, "arguments": c.arguments} for c in message.tool_calls
            ]
        if message.tool_call_id:
            payload["tool_call_id"] = message.tool_call_id
        if message.name:
            payload["name"] = message.name
        return payload

    @staticmethod
    def _to_message(data: Dict[str, Any]) -> ChatMessage:
        calls = [
            ToolCall(id=c["id"], name=c["name"], arguments=c.get("arguments") or {})
            for c in data.get("tool_calls") or []
        ]
        return ChatMessage(
            role=data["role"],
            content=data.get("content") or "",
            meta=data.get("meta") or {},
            tool_calls=calls or None,
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
        )
