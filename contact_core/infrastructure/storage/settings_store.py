import json
from dataclasses import dataclass

from contact_core.domain.exceptions import StoreUnavailable
from contact_core.domain.stores import KeyValueStore

GLOBAL_SETTINGS_KEY = "chatview:settings"


@dataclass
class GlobalSettings:
    """部署级共享设置，目前只有出站消息的默认实例。"""

    default_instance: str = ""


class KvSettingsStore:
    def __init__(self, kv: KeyValueStore, key: str = GLOBAL_SETTINGS_KEY):
        self._kv = kv
        self._key = key

    def load(self) -> GlobalSettings:
        raw = self._kv.get(self._key)
        if raw is None:
            return GlobalSettings()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreUnavailable(code="STORE_READ_ERROR", message=f"settings record is not valid JSON: {e}")
        if not isinstance(data, dict):
            return GlobalSettings()
        return GlobalSettings(default_instance=str(data.get("defaultInstance") or ""))

    def save(self, value: GlobalSettings) -> None:
        self._kv.set(self._key, json.dumps({"defaultInstance": value.default_instance}, ensure_ascii=False))
