import threading
import time

import pytest

from contact_core.domain.exceptions import StoreUnavailable
from contact_core.sync.poller import SyncPoller


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_default_interval_comes_from_settings():
    assert SyncPoller(lambda: []).interval == 30


def test_non_positive_interval_rejected():
    with pytest.raises(ValueError):
        SyncPoller(lambda: [], interval=0)


def test_refresh_replaces_snapshot_and_publishes():
    values = iter([["a"], ["a", "b"]])
    poller = SyncPoller(lambda: next(values), interval=60)
    assert poller.refresh()
    assert poller.refresh()
    assert poller.snapshot == ["a", "b"]
    # 队列只保留最新快照
    assert poller.updates.get_nowait() == ["a", "b"]
    assert poller.updates.empty()


def test_failed_tick_keeps_previous_snapshot():
    calls = {"n": 0}
    errors = []

    def fetch():
        calls["n"] += 1
        if calls["n"] == 2:
            raise StoreUnavailable(code="STORE_UNREACHABLE", message="down")
        return calls["n"]

    poller = SyncPoller(fetch, interval=60, on_error=errors.append)
    poller.refresh()
    assert not poller.refresh()
    assert poller.snapshot == 1
    assert poller.failures == 1
    assert errors[0].code == "STORE_UNREACHABLE"
    poller.refresh()
    assert poller.snapshot == 3


def test_on_error_callback_failure_does_not_break_poller():
    def boom(_):
        raise RuntimeError("callback bug")

    poller = SyncPoller(lambda: 1 / 0, interval=60, on_error=boom)
    assert not poller.refresh()
    assert poller.failures == 1


def test_start_and_stop_halts_reads():
    calls = []
    poller = SyncPoller(lambda: calls.append(time.monotonic()) or len(calls), interval=0.02)
    poller.start()
    assert _wait_for(lambda: len(calls) >= 3)
    poller.stop(timeout=1.0)
    assert not poller.running
    seen = len(calls)
    time.sleep(0.1)
    assert len(calls) == seen


def test_start_twice_rejected():
    poller = SyncPoller(lambda: 1, interval=60)
    poller.start()
    try:
        with pytest.raises(RuntimeError):
            poller.start()
    finally:
        poller.stop(timeout=1.0)


def test_in_flight_result_discarded_after_stop():
    started = threading.Event()
    release = threading.Event()

    def fetch():
        started.set()
        release.wait(2.0)
        return ["late"]

    poller = SyncPoller(fetch, interval=60)
    poller.start()
    assert started.wait(1.0)
    thread = poller._thread
    poller.stop(timeout=0.1)
    release.set()
    thread.join(2.0)
    assert poller.snapshot is None
    assert poller.updates.empty()


def test_failure_after_stop_is_not_reported():
    started = threading.Event()
    release = threading.Event()
    errors = []

    def fetch():
        started.set()
        release.wait(2.0)
        raise StoreUnavailable(code="STORE_UNREACHABLE", message="down")

    poller = SyncPoller(fetch, interval=60, on_error=errors.append)
    poller.start()
    assert started.wait(1.0)
    thread = poller._thread
    poller.stop(timeout=0.1)
    release.set()
    thread.join(2.0)
    assert poller.failures == 0
    assert errors == []
