import threading
from typing import Any, Callable, Dict, TypeVar

from contact_core.domain.exceptions import Timeout

T = TypeVar("T")


def call_with_timeout(fn: Callable[[], T], timeout: float, *, code: str = "CALL_TIMEOUT", label: str = "call") -> T:
    """在后台线程中执行 fn，最多等待 timeout 秒。

    超时抛出 Timeout；fn 自身抛出的异常原样传给调用方。
    超时后后台线程不会被强行终止，其结果直接丢弃。
    """

    outcome: Dict[str, Any] = {}
    done = threading.Event()

    def runner() -> None:
        try:
            outcome["value"] = fn()
        except Exception as e:
            outcome["error"] = e
        finally:
            done.set()

    threading.Thread(target=runner, name=f"timeout-{label}", daemon=True).start()
    if not done.wait(timeout):
        raise Timeout(code=code, message=f"{label} did not finish within {timeout}s", timeout=timeout)
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]
