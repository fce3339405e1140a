"""基于共享目录的键值存储。

- 普通值存放在 values/<quoted-key>.json，写入时先写临时文件再 os.replace，保证整体替换。
- 列表存放在 lists/<quoted-key>.jsonl，每个元素一行，rpush 只做追加。
- 键名经过 URL quote 转成文件名，scan 时再还原。

连接生命周期显式管理：connect() 之前或 close() 之后的任何操作都会抛 StoreUnavailable。
"""

import json
import os
import threading
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, unquote
from uuid import uuid4

from contact_core.config.settings import settings
from contact_core.domain.exceptions import StoreUnavailable
from contact_core.infrastructure.logging.logger import logger


class JsonKeyValueStore:
    def __init__(self, root: str | Path | None = None, create_root: bool = True):
        self._root = Path(root or settings.storage_root).expanduser().resolve()
        self._create_root = create_root
        self._connected = False
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        try:
            if self._create_root:
                for sub in ("values", "lists"):
                    (self._root / sub).mkdir(parents=True, exist_ok=True)
            if not self._root.is_dir():
                raise StoreUnavailable(code="STORE_UNREACHABLE", message=f"storage root {self._root} not found")
        except OSError as e:
            raise StoreUnavailable(code="STORE_UNREACHABLE", message=str(e))
        self._connected = True
        logger.info("kv.connected", extra={"extra": {"root": str(self._root)}})

    def close(self) -> None:
        self._connected = False

    def __enter__(self) -> "JsonKeyValueStore":
        self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def ping(self) -> bool:
        self._require()
        if not self._root.is_dir():
            raise StoreUnavailable(code="STORE_UNREACHABLE", message=f"storage root {self._root} not found")
        return True

    def get(self, key: str) -> Optional[str]:
        self._require()
        path = self._value_path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreUnavailable(code="STORE_READ_ERROR", message=str(e), key=key)

    def set(self, key: str, value: str) -> None:
        self._require()
        path = self._value_path(key)
        tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(value, encoding="utf-8")
                os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreUnavailable(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def rpush(self, key: str, value: str) -> int:
        """在列表末尾追加一个元素，返回追加后的长度。"""
        self._require()
        path = self._list_path(key)
        line = json.dumps(value, ensure_ascii=False)
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
                with path.open("r", encoding="utf-8") as f:
                    return sum(1 for raw in f if raw.strip())
        except OSError as e:
            raise StoreUnavailable(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def lrange(self, key: str) -> List[str]:
        """按追加顺序返回列表的全部元素；键不存在时返回空列表。"""
        self._require()
        path = self._list_path(key)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreUnavailable(code="STORE_READ_ERROR", message=str(e), key=key)
        items: List[str] = []
        for lineno, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue
            try:
                value = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("kv.corrupt_list_entry", extra={"extra": {"key": key, "line": lineno}})
                continue
            if isinstance(value, str):
                items.append(value)
        return items

    def scan(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        self._require()
        keys: set[str] = set()
        try:
            for sub, suffix in (("values", ".json"), ("lists", ".jsonl")):
                directory = self._root / sub
                if not directory.is_dir():
                    continue
                for entry in directory.iterdir():
                    if not entry.name.endswith(suffix):
                        continue
                    key = unquote(entry.name[: -len(suffix)])
                    if key.startswith(prefix):
                        keys.add(key)
        except OSError as e:
            raise StoreUnavailable(code="STORE_READ_ERROR", message=str(e))
        ordered = sorted(keys)
        return ordered[:limit] if limit is not None else ordered

    def _require(self) -> None:
        if not self._connected:
            raise StoreUnavailable(code="STORE_CLOSED", message="key-value store is not connected")

    def _value_path(self, key: str) -> Path:
        return self._root / "values" / f"{quote(key, safe='')}.json"

    def _list_path(self, key: str) -> Path:
        return self._root / "lists" / f"{quote(key, safe='')}.jsonl"
