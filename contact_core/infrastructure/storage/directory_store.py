import json
from typing import List

from contact_core.contacts.dedup import dedupe
from contact_core.contacts.phone import is_valid_chat_id, to_chat_id
from contact_core.domain.exceptions import StoreUnavailable, ValidationError
from contact_core.domain.models import Contact, Directory
from contact_core.domain.stores import KeyValueStore
from contact_core.infrastructure.logging.logger import logger

DIRECTORY_KEY = "chatview:stored_contacts"


class KvDirectoryStore:
    """把整个目录作为一个 JSON 数组 `[{id, name}]` 存在单个键下。

    只有整体 load/save，没有局部更新；调用方自行 read-modify-write。
    并发的 read-modify-write 以最后一次 save 为准（last-writer-wins），不做冲突检测。
    """

    def __init__(self, kv: KeyValueStore, key: str = DIRECTORY_KEY):
        self._kv = kv
        self._key = key

    def load(self) -> Directory:
        raw = self._kv.get(self._key)
        if raw is None:
            return Directory()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreUnavailable(code="STORE_READ_ERROR", message=f"directory record is not valid JSON: {e}")
        if not isinstance(data, list):
            raise StoreUnavailable(code="STORE_READ_ERROR", message="directory record is not a JSON array")
        contacts: List[Contact] = []
        for item in data:
            contact = self._coerce(item)
            if contact is None:
                logger.warning("directory.skip_invalid_entry", extra={"extra": {"entry": item}})
                continue
            contacts.append(contact)
        return Directory(contacts=dedupe(contacts))

    def save(self, directory: Directory) -> None:
        contacts = dedupe(directory.contacts)
        for c in contacts:
            if not is_valid_chat_id(c.id):
                raise ValidationError(code="INVALID_CHAT_ID", message=f"invalid contact id {c.id!r}")
            if not c.name.strip():
                raise ValidationError(code="EMPTY_NAME", message=f"contact {c.id} has an empty name")
        payload = [c.to_dict() for c in contacts]
        self._kv.set(self._key, json.dumps(payload, ensure_ascii=False))
        logger.info("directory.save", extra={"extra": {"contacts": len(payload)}})

    @staticmethod
    def _coerce(item) -> Contact | None:
        if not isinstance(item, dict):
            return None
        if not isinstance(item.get("id"), str) or not isinstance(item.get("name"), str):
            return None
        contact = Contact.from_dict(item)
        if not contact.name:
            return None
        if is_valid_chat_id(contact.id):
            return contact
        # 旧记录可能是 5511...@s.whatsapp.net，统一迁移为 @c.us
        chat_id = to_chat_id(contact.id)
        if is_valid_chat_id(chat_id):
            return Contact(id=chat_id, name=contact.name)
        return None
