"""聊天列表使用的目录摘要视图。

每个存在 ConversationLog 的联系人对应一行：显示名、最后一条消息预览、
最后时间戳，以及是否需要人工关注。需要关注的排在前面，其余按时间倒序。
"""

from __future__ import annotations

from typing import List

from contact_core.domain.models import ContactSummary, Message
from contact_core.domain.stores import ConversationStore, DirectoryStore

# 机器人转人工时会说的话（pt-BR，与入站机器人的话术一致）
ATTENTION_PHRASES = (
    "técnico humano",
    "acionar um técnico",
    "falar com um atendente",
    "transferindo para um atendente",
    "ajuda humana",
)

# 只在最近这些消息里找显示名和关注标记
RECENT_WINDOW = 11

MEDIA_LABELS = {
    "image": "📷 Image",
    "video": "🎬 Video",
    "audio": "🎵 Audio",
    "document": "📄 Document",
}


def needs_attention(message: Message) -> bool:
    if message.needs_attention:
        return True
    if message.sender == "bot" and message.text:
        text = message.text.lower()
        return any(phrase in text for phrase in ATTENTION_PHRASES)
    return False


def preview_text(message: Message) -> str:
    if message.quoted_message:
        return f"↩️ {message.text}"
    if message.media_type:
        label = MEDIA_LABELS.get(message.media_type, "Media file")
        return f"{label}: {message.caption}" if message.caption else label
    return message.text or "(no text)"


def _timestamp(message: Message) -> int:
    try:
        return int(message.timestamp)
    except (TypeError, ValueError):
        return 0


def summarize(contact_id: str, messages: List[Message], directory_name: str | None = None) -> ContactSummary | None:
    if not messages:
        return None
    last = messages[-1]
    recent = list(reversed(messages[-RECENT_WINDOW:]))
    name = next((m.contact_name for m in recent if m.contact_name), None)
    return ContactSummary(
        id=contact_id,
        name=name or directory_name or contact_id.split("@")[0],
        last_message=preview_text(last),
        last_timestamp=_timestamp(last),
        needs_attention=any(needs_attention(m) for m in recent),
    )


def build_summaries(conversations: ConversationStore, directory: DirectoryStore) -> List[ContactSummary]:
    names = {c.id: c.name for c in directory.load()}
    summaries: List[ContactSummary] = []
    for contact_id in conversations.list_contact_ids():
        summary = summarize(contact_id, conversations.read_all(contact_id), names.get(contact_id))
        if summary is not None:
            summaries.append(summary)
    summaries.sort(key=lambda s: (not s.needs_attention, -s.last_timestamp))
    return summaries
