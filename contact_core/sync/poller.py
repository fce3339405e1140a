"""SyncPoller：定期刷新本地缓存的目录摘要视图。

- 启动后立即读取一次，之后每 interval 秒读取一次。
- 每次成功读取整体替换缓存，并把新快照放进 updates 队列（只有轮询线程写入）。
- 读取失败只记录日志并保留旧缓存，等待下一轮。
- stop() 之后不再发起新的读取；stop 前已在进行中的读取结果会被丢弃。
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

from contact_core.config.settings import settings
from contact_core.contacts.summary import build_summaries
from contact_core.domain.models import ContactSummary
from contact_core.domain.stores import ConversationStore, DirectoryStore
from contact_core.infrastructure.logging.logger import logger

T = TypeVar("T")


class SyncPoller(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[], T],
        interval: Optional[float] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        name: str = "sync-poller",
    ):
        self._fetch = fetch
        self._interval = interval if interval is not None else settings.poll_interval
        if self._interval <= 0:
            raise ValueError("poll interval must be positive")
        self._on_error = on_error
        self._name = name
        self._lock = threading.Lock()
        self._generation = 0
        self._snapshot: Optional[T] = None
        self._last_success: Optional[float] = None
        self._failures = 0
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.updates: "queue.Queue[T]" = queue.Queue(maxsize=1)

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def snapshot(self) -> Optional[T]:
        with self._lock:
            return self._snapshot

    @property
    def last_success(self) -> Optional[float]:
        return self._last_success

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise RuntimeError(f"{self._name} is already running")
        with self._lock:
            self._generation += 1
            generation = self._generation
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run, args=(generation, stop_event), name=self._name, daemon=True
        )
        self._thread.start()
        logger.info("poller.started", extra={"extra": {"name": self._name, "interval": self._interval}})

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            # 让在途读取的结果作废
            self._generation += 1
        if self._stop_event is not None:
            self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("poller.stopped", extra={"extra": {"name": self._name}})

    def __enter__(self) -> "SyncPoller[T]":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def refresh(self) -> bool:
        """在当前线程立即执行一次读取，成功返回 True。"""
        with self._lock:
            generation = self._generation
        return self._tick(generation)

    def _run(self, generation: int, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self._tick(generation)
            if stop_event.wait(self._interval):
                break

    def _tick(self, generation: int) -> bool:
        try:
            value = self._fetch()
        except Exception as e:
            with self._lock:
                if generation != self._generation:
                    logger.info("poller.discard_stale", extra={"extra": {"name": self._name}})
                    return False
                self._failures += 1
            logger.warning(
                "poller.tick_failed",
                extra={"extra": {"name": self._name, "error": repr(e), "failures": self._failures}},
            )
            if self._on_error is not None:
                try:
                    self._on_error(e)
                except Exception as cb_error:
                    logger.error("poller.on_error_failed", extra={"extra": {"error": repr(cb_error)}})
            return False
        with self._lock:
            if generation != self._generation:
                logger.info("poller.discard_stale", extra={"extra": {"name": self._name}})
                return False
            self._snapshot = value
            self._last_success = time.time()
        self._publish(value)
        return True

    def _publish(self, value: T) -> None:
        # 队列只保留最新快照
        try:
            self.updates.get_nowait()
        except queue.Empty:
            pass
        try:
            self.updates.put_nowait(value)
        except queue.Full:
            pass


def directory_summary_poller(
    conversations: ConversationStore,
    directory: DirectoryStore,
    interval: Optional[float] = None,
    on_error: Optional[Callable[[Exception], None]] = None,
) -> "SyncPoller[list[ContactSummary]]":
    return SyncPoller(
        lambda: build_summaries(conversations, directory),
        interval=interval,
        on_error=on_error,
        name="directory-summary-poller",
    )
