"""每个联系人一条只追加的消息序列（ConversationLog）。

键为 `chat:<contact_id>`，列表顺序即到达顺序。同一个键也会被外部入站消息生产者写入，
它使用 texto / tipo / fromMe / messageId 等字段，读取时统一映射为 Message。
存储错误直接以 StoreUnavailable 抛给调用方，本组件内部不重试。
"""

import json
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional
from uuid import uuid4

from contact_core.contacts.phone import is_valid_chat_id
from contact_core.domain.exceptions import ValidationError
from contact_core.domain.models import SENDERS, Message, QuotedMessage
from contact_core.domain.stores import KeyValueStore
from contact_core.infrastructure.logging.logger import logger

CHAT_KEY_PREFIX = "chat:"


def _now_ts() -> str:
    return str(int(time.time()))


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def media_type_of(message_type: Optional[str]) -> Optional[str]:
    if not message_type:
        return None
    for kind in ("image", "video", "audio", "document"):
        if kind in message_type:
            return kind
    return None


def message_to_stored(message: Message) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": message.id,
        "messageId": message.id,
        "contactId": message.contact_id,
        "text": message.text,
        "sender": message.sender,
        "timestamp": message.timestamp,
        "needsAttention": message.needs_attention,
    }
    optional = {
        "operatorName": message.operator_name,
        "instance": message.instance,
        "contactName": message.contact_name,
        "mediaType": message.media_type,
        "caption": message.caption,
        "status": message.status,
    }
    data.update({k: v for k, v in optional.items() if v is not None})
    if message.quoted_message:
        q = message.quoted_message
        data["quotedMessage"] = {"id": q.id, "text": q.text, "sender": q.sender}
    return data


def message_from_stored(raw: str, contact_id: str, index: int) -> Optional[Message]:
    """把存储中的一条记录解析为 Message，无法解析时返回 None。"""

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    sender = data.get("sender") or data.get("tipo")
    if _truthy(data.get("fromMe", False)) or sender == "operator":
        sender = "operator"
    elif sender not in SENDERS:
        sender = "user"

    timestamp = str(data.get("timestamp") or "")
    message_id = data.get("messageId") or data.get("id") or f"{timestamp or 0}-{index}"

    quoted = None
    quoted_raw = data.get("quotedMessage")
    if isinstance(quoted_raw, dict) and quoted_raw.get("id"):
        quoted_sender = quoted_raw.get("sender")
        quoted = QuotedMessage(
            id=str(quoted_raw["id"]),
            text=str(quoted_raw.get("text") or ""),
            sender=quoted_sender if quoted_sender in SENDERS else "user",
        )

    caption = data.get("caption")
    if "text" in data:
        text = data["text"]
    else:
        # 入站生产者的记录没有 text，媒体消息用 caption 兜底
        text = data.get("texto") or caption
    return Message(
        id=str(message_id),
        contact_id=contact_id,
        text=str(text or ""),
        sender=sender,
        timestamp=timestamp,
        operator_name=data.get("operatorName"),
        instance=data.get("instance"),
        contact_name=data.get("contactName"),
        media_type=data.get("mediaType") or media_type_of(data.get("messageType")),
        caption=caption,
        quoted_message=quoted,
        needs_attention=_truthy(data.get("needsAttention", False)),
        status=data.get("status"),
    )


class KvConversationStore:
    def __init__(self, kv: KeyValueStore, prefix: str = CHAT_KEY_PREFIX):
        self._kv = kv
        self._prefix = prefix

    def key_for(self, contact_id: str) -> str:
        return f"{self._prefix}{contact_id.strip()}"

    def append(self, contact_id: str, message: Message) -> Message:
        """追加一条消息到联系人日志末尾，返回补全了 id/timestamp 的消息。

        Raises:
            ValidationError: contact_id 不合法、消息字段不合法或调用方给出的 id 已存在。
            StoreUnavailable: 存储不可用。
        """

        contact_id = contact_id.strip()
        if not is_valid_chat_id(contact_id):
            raise ValidationError(code="INVALID_CHAT_ID", message=f"invalid contact id {contact_id!r}")
        if message.contact_id and message.contact_id.strip() != contact_id:
            raise ValidationError(
                code="INVALID_MESSAGE",
                message=f"message belongs to {message.contact_id!r}, not {contact_id!r}",
            )
        record = replace(
            message,
            contact_id=contact_id,
            id=message.id or uuid4().hex,
            timestamp=message.timestamp or _now_ts(),
        )
        record.validate()
        if message.id and any(m.id == message.id for m in self.read_all(contact_id)):
            raise ValidationError(
                code="DUPLICATE_MESSAGE_ID",
                message=f"message {message.id} already exists for {contact_id}",
            )
        length = self._kv.rpush(self.key_for(contact_id), json.dumps(message_to_stored(record), ensure_ascii=False))
        logger.info(
            "conversation.append",
            extra={"extra": {"contact_id": contact_id, "message_id": record.id, "sender": record.sender, "length": length}},
        )
        return record

    def read_all(self, contact_id: str) -> List[Message]:
        contact_id = contact_id.strip()
        items: List[Message] = []
        for index, raw in enumerate(self._kv.lrange(self.key_for(contact_id))):
            message = message_from_stored(raw, contact_id, index)
            if message is None:
                logger.warning(
                    "conversation.skip_unparseable",
                    extra={"extra": {"contact_id": contact_id, "index": index}},
                )
                continue
            items.append(message)
        return items

    def list_contact_ids(self) -> List[str]:
        return [key[len(self._prefix):] for key in self._kv.scan(self._prefix)]
