"""只读的存储连通性检查。

无论存储卡住还是报错，都在 timeout 内返回 HealthStatus(connected=False, error=...)，
不会把异常抛给调用方。
"""

import json
from typing import Optional

from contact_core.config.settings import settings
from contact_core.domain.exceptions import BusinessError, Timeout
from contact_core.domain.models import HealthStatus
from contact_core.domain.stores import KeyValueStore
from contact_core.infrastructure.logging.logger import logger
from contact_core.infrastructure.storage.conversation_store import CHAT_KEY_PREFIX
from contact_core.infrastructure.timeouts import call_with_timeout


def _check(kv: KeyValueStore, sample_size: int) -> HealthStatus:
    if not kv.ping():
        return HealthStatus(connected=False, error="store ping returned a negative answer")
    status = HealthStatus(connected=True)
    status.sample_keys = kv.scan(CHAT_KEY_PREFIX, limit=sample_size)
    if status.sample_keys:
        status.first_key_content = json.dumps(kv.lrange(status.sample_keys[0]), ensure_ascii=False, indent=2)
    return status


def probe_store(kv: KeyValueStore, timeout: Optional[float] = None, sample_size: int = 5) -> HealthStatus:
    timeout = timeout if timeout is not None else settings.probe_timeout
    try:
        return call_with_timeout(lambda: _check(kv, sample_size), timeout, code="PROBE_TIMEOUT", label="store probe")
    except Timeout:
        logger.error("health.probe_timeout", extra={"extra": {"timeout": timeout}})
        return HealthStatus(
            connected=False,
            error=f"The store connection check timed out after {timeout} seconds. Check network access and storage_root.",
        )
    except BusinessError as e:
        logger.error("health.probe_failed", extra={"extra": {"code": e.code, "error": e.message}})
        return HealthStatus(connected=False, error=e.message)
    except Exception as e:
        logger.error("health.probe_failed", extra={"extra": {"error": repr(e)}})
        return HealthStatus(connected=False, error=str(e) or type(e).__name__)
