"""对外服务模块。

ContactService 显式持有一个键值存储句柄（connect/close 生命周期由调用方管理），
在其上组合目录存储、会话存储、导入流水线、摘要轮询、健康检查与文本理解协作方。
不使用模块级单例，测试时可以直接注入替身存储与 Provider。
"""

import json
from typing import List, Optional

from contact_core.assist import ContactFinder, ReplySuggester, ReplySuggestions, RetryPolicy
from contact_core.config.settings import settings
from contact_core.contacts.importer import DirectoryImporter, ImportResult
from contact_core.contacts.phone import is_valid_chat_id
from contact_core.contacts.summary import build_summaries
from contact_core.domain.exceptions import BusinessError, ValidationError
from contact_core.domain.models import Contact, ContactSummary, Directory, HealthStatus, Message, QuotedMessage
from contact_core.domain.stores import KeyValueStore
from contact_core.health.probe import probe_store
from contact_core.infrastructure.logging.logger import logger
from contact_core.infrastructure.storage.conversation_store import KvConversationStore
from contact_core.infrastructure.storage.directory_store import KvDirectoryStore
from contact_core.infrastructure.storage.kv_store import JsonKeyValueStore
from contact_core.infrastructure.storage.settings_store import KvSettingsStore
from contact_core.providers import create_provider
from contact_core.providers.base import ProviderClient
from contact_core.sync.poller import SyncPoller, directory_summary_poller

OUTBOX_KEY = "outbox:whatsapp"


class ContactService:
    def __init__(self, kv: KeyValueStore, cfg=None, provider: Optional[ProviderClient] = None):
        self._kv = kv
        self._settings = cfg or settings
        self._provider = provider
        self.directory = KvDirectoryStore(kv)
        self.conversations = KvConversationStore(kv)
        self.global_settings = KvSettingsStore(kv)
        self.importer = DirectoryImporter(self.directory, country_code=self._settings.default_country_code)

    @classmethod
    def open(cls, root: Optional[str] = None, cfg=None, provider: Optional[ProviderClient] = None) -> "ContactService":
        """连接默认的文件键值存储并返回服务实例。

        Raises:
            StoreUnavailable: 存储根目录不可用。
        """
        cfg = cfg or settings
        kv = JsonKeyValueStore(root=root or cfg.storage_root)
        kv.connect()
        return cls(kv, cfg=cfg, provider=provider)

    def close(self) -> None:
        self._kv.close()

    def __enter__(self) -> "ContactService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- 目录 ----

    def list_directory(self) -> Directory:
        return self.directory.load()

    def import_document(self, text: str, fmt: Optional[str] = None) -> ImportResult:
        try:
            return self.importer.import_document(text, fmt=fmt)
        except BusinessError as e:
            logger.error(f"Import failed: {e}", extra={"extra": {"code": e.code, "error": e.message}})
            raise

    def retry_import_save(self) -> Optional[ImportResult]:
        return self.importer.retry_save()

    def rename_contact(self, contact_id: str, name: str) -> Contact:
        name = " ".join((name or "").split())
        if not name:
            raise ValidationError(code="EMPTY_NAME", message="contact name must not be empty")
        directory = self.directory.load()
        if directory.get(contact_id) is None:
            raise BusinessError(code="CONTACT_NOT_FOUND", message=contact_id, http_status=404)
        renamed = Contact(id=contact_id, name=name)
        self.directory.save(Directory(contacts=[renamed if c.id == contact_id else c for c in directory]))
        return renamed

    def remove_contact(self, contact_id: str) -> bool:
        """从目录中删除联系人（整体重算后保存），不存在时返回 False。"""
        directory = self.directory.load()
        remaining = [c for c in directory if c.id != contact_id]
        if len(remaining) == len(directory):
            return False
        self.directory.save(Directory(contacts=remaining))
        return True

    # ---- 会话 ----

    def get_messages(self, contact_id: str) -> List[Message]:
        return self.conversations.read_all(contact_id)

    def record_message(self, contact_id: str, message: Message) -> Message:
        return self.conversations.append(contact_id, message)

    def send_operator_message(
        self,
        contact_id: str,
        text: str,
        operator_name: str,
        message_id: Optional[str] = None,
        quoted: Optional[QuotedMessage] = None,
    ) -> Message:
        """记录坐席消息并放入出站队列。

        实例名优先取该联系人最新一条消息上的 instance，其次取全局默认实例。

        Raises:
            ValidationError: 联系人 ID 不合法、消息为空或无法确定实例（NO_INSTANCE）。
            StoreUnavailable: 存储不可用。
        """

        contact_id = contact_id.strip()
        if not is_valid_chat_id(contact_id):
            raise ValidationError(code="INVALID_CHAT_ID", message=f"invalid contact id {contact_id!r}")
        if not (text or "").strip():
            raise ValidationError(code="INVALID_MESSAGE", message="message text must not be empty")
        try:
            instance = self._resolve_instance(contact_id)
            record = self.conversations.append(
                contact_id,
                Message(
                    id=message_id or "",
                    contact_id=contact_id,
                    text=text,
                    sender="operator",
                    timestamp="",
                    operator_name=operator_name,
                    instance=instance,
                    quoted_message=quoted,
                    status="sent",
                ),
            )
            self._kv.rpush(OUTBOX_KEY, json.dumps(self._outbound_payload(record), ensure_ascii=False))
        except BusinessError as e:
            logger.error(f"Send failed: {e}", extra={"extra": {
                "contact_id": contact_id,
                "code": e.code,
                "error": e.message,
            }})
            raise
        logger.info(
            "conversation.outbound_queued",
            extra={"extra": {"contact_id": contact_id, "message_id": record.id, "instance": instance}},
        )
        return record

    def _resolve_instance(self, contact_id: str) -> str:
        for message in reversed(self.conversations.read_all(contact_id)):
            if message.instance:
                return message.instance
        instance = self.global_settings.load().default_instance or self._settings.default_instance
        if not instance:
            raise ValidationError(
                code="NO_INSTANCE",
                message=(
                    f"No messaging instance could be determined for {contact_id}. "
                    "Set a default instance in the global settings."
                ),
            )
        return instance

    @staticmethod
    def _outbound_payload(record: Message) -> dict:
        payload = {
            "instance": record.instance,
            "remoteJid": record.contact_id,
            "text": f"*{record.operator_name}*\n{record.text}",
            "options": {"messageId": record.id},
        }
        if record.quoted_message:
            q = record.quoted_message
            payload["options"]["quoted"] = {
                "key": {"remoteJid": record.contact_id, "id": q.id, "fromMe": q.sender != "user"},
                "message": {"conversation": q.text},
            }
        return payload

    def list_summaries(self) -> List[ContactSummary]:
        return build_summaries(self.conversations, self.directory)

    def summary_poller(self, interval: Optional[float] = None, on_error=None) -> SyncPoller:
        return directory_summary_poller(
            self.conversations,
            self.directory,
            interval=interval if interval is not None else self._settings.poll_interval,
            on_error=on_error,
        )

    # ---- 健康检查 ----

    def check_store(self, timeout: Optional[float] = None) -> HealthStatus:
        return probe_store(self._kv, timeout=timeout if timeout is not None else self._settings.probe_timeout)

    # ---- 文本理解 ----

    def _client(self) -> ProviderClient:
        if self._provider is None:
            self._provider = create_provider(cfg=self._settings)
        return self._provider

    def find_contacts(self, search_term: str) -> List[Contact]:
        finder = ContactFinder(
            self._client(),
            model=self._settings.default_model,
            retry=RetryPolicy.from_settings(self._settings),
        )
        return finder.find(self.directory.load(), search_term)

    def suggest_replies(self, message: str) -> ReplySuggestions:
        suggester = ReplySuggester(
            self._client(),
            model=self._settings.default_model,
            retry=RetryPolicy.from_settings(self._settings),
        )
        return suggester.suggest(message)
