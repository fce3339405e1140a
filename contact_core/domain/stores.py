from typing import List, Optional, Protocol

from .models import Directory, Message


class KeyValueStore(Protocol):
    """共享键值存储的最小接口；缺失的键返回 None / 空列表，传输失败抛 StoreUnavailable。"""

    def connect(self) -> None:
        ...

    def close(self) -> None:
        ...

    def ping(self) -> bool:
        ...

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def rpush(self, key: str, value: str) -> int:
        ...

    def lrange(self, key: str) -> List[str]:
        ...

    def scan(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        ...


class DirectoryStore(Protocol):
    def load(self) -> Directory:
        ...

    def save(self, directory: Directory) -> None:
        ...


class ConversationStore(Protocol):
    def append(self, contact_id: str, message: Message) -> Message:
        ...

    def read_all(self, contact_id: str) -> List[Message]:
        ...

    def list_contact_ids(self) -> List[str]:
        ...
