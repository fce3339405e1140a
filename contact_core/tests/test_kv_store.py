import json

import pytest

from contact_core.domain.exceptions import StoreUnavailable
from contact_core.infrastructure.storage.kv_store import JsonKeyValueStore


@pytest.fixture
def kv(tmp_path):
    store = JsonKeyValueStore(root=tmp_path / ".storage")
    store.connect()
    yield store
    store.close()


def test_get_missing_key_returns_none(kv):
    assert kv.get("chatview:stored_contacts") is None
    assert kv.lrange("chat:5511999998888@c.us") == []


def test_set_replaces_value(kv):
    kv.set("chatview:settings", json.dumps({"defaultInstance": "a"}))
    kv.set("chatview:settings", json.dumps({"defaultInstance": "b"}))
    assert json.loads(kv.get("chatview:settings")) == {"defaultInstance": "b"}
    assert not list((kv.root / "values").glob("*.tmp"))


def test_rpush_keeps_order_and_returns_length(kv):
    key = "chat:5511999998888@c.us"
    assert kv.rpush(key, '{"text": "one"}') == 1
    assert kv.rpush(key, "two\nlines") == 2
    assert kv.lrange(key) == ['{"text": "one"}', "two\nlines"]


def test_scan_by_prefix(kv):
    kv.rpush("chat:5511999998888@c.us", "a")
    kv.rpush("chat:5521987654321@c.us", "b")
    kv.set("chatview:settings", "{}")
    assert kv.scan("chat:") == ["chat:5511999998888@c.us", "chat:5521987654321@c.us"]
    assert kv.scan("chat:", limit=1) == ["chat:5511999998888@c.us"]
    assert kv.scan("chatview:") == ["chatview:settings"]


def test_corrupt_list_line_is_skipped(kv):
    key = "chat:5511999998888@c.us"
    kv.rpush(key, "first")
    path = next((kv.root / "lists").glob("*.jsonl"))
    with path.open("a", encoding="utf-8") as f:
        f.write('{"truncated\n')
    kv.rpush(key, "second")
    assert kv.lrange(key) == ["first", "second"]


def test_closed_store_is_unavailable(tmp_path):
    store = JsonKeyValueStore(root=tmp_path)
    with pytest.raises(StoreUnavailable) as exc:
        store.get("x")
    assert exc.value.code == "STORE_CLOSED"
    store.connect()
    store.close()
    with pytest.raises(StoreUnavailable):
        store.ping()


def test_missing_root_is_unreachable(tmp_path):
    store = JsonKeyValueStore(root=tmp_path / "missing", create_root=False)
    with pytest.raises(StoreUnavailable) as exc:
        store.connect()
    assert exc.value.code == "STORE_UNREACHABLE"


def test_context_manager(tmp_path):
    with JsonKeyValueStore(root=tmp_path) as store:
        assert store.ping()
    assert not store.connected
