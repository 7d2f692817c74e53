from assistant_core.domain.conversation import Conversation
from assistant_core.domain.models import ChatMessage


def test_conversation_is_append_only():
    conv = Conversation(id="c1")
    assert conv.last() is None
    conv.append(ChatMessage(role="user", content="hi"))
    conv.append(ChatMessage(role="assistant", content="hello"))
    assert len(conv) == 2
    assert conv.last().content == "hello"
    assert isinstance(conv.messages, tuple)
    assert [m.role for m in conv.messages] == ["user", "assistant"]
