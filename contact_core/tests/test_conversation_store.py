import json

import pytest

from contact_core.domain.exceptions import StoreUnavailable, ValidationError
from contact_core.domain.models import Message
from contact_core.infrastructure.storage.conversation_store import KvConversationStore
from contact_core.infrastructure.storage.kv_store import JsonKeyValueStore

ANA = "5511999998888@c.us"


@pytest.fixture
def kv(tmp_path):
    store = JsonKeyValueStore(root=tmp_path / ".storage")
    store.connect()
    return store


def _msg(text, sender="user", **kw):
    return Message(id=kw.pop("id", ""), contact_id=ANA, text=text, sender=sender, timestamp=kw.pop("timestamp", ""), **kw)


def test_read_all_on_empty_log(kv):
    assert KvConversationStore(kv).read_all(ANA) == []


def test_append_then_read_all_single_message(kv):
    store = KvConversationStore(kv)
    stored = store.append(ANA, _msg("olá", id="m1", timestamp="1700000000"))
    assert store.read_all(ANA) == [stored]
    assert stored.id == "m1"
    assert stored.timestamp == "1700000000"


def test_media_message_with_caption_reads_back_unchanged(kv):
    store = KvConversationStore(kv)
    stored = store.append(ANA, _msg("", id="m1", timestamp="1700000000", media_type="image", caption="foto"))
    assert store.read_all(ANA) == [stored]
    assert stored.text == ""


def test_append_assigns_id_and_timestamp(kv):
    stored = KvConversationStore(kv).append(ANA, _msg("hi"))
    assert stored.id
    assert stored.timestamp.isdigit()
    assert stored.contact_id == ANA


def test_sequential_appends_keep_order(kv):
    store = KvConversationStore(kv)
    senders = ["user", "bot", "user", "operator", "bot"]
    for i, sender in enumerate(senders):
        extra = {"operator_name": "Leandro"} if sender == "operator" else {}
        store.append(ANA, _msg(f"msg {i}", sender=sender, **extra))
    messages = store.read_all(ANA)
    assert [m.text for m in messages] == [f"msg {i}" for i in range(5)]
    assert [m.sender for m in messages] == senders
    assert len({m.id for m in messages}) == 5


def test_duplicate_message_id_rejected(kv):
    store = KvConversationStore(kv)
    store.append(ANA, _msg("a", id="m1"))
    with pytest.raises(ValidationError) as exc:
        store.append(ANA, _msg("b", id="m1"))
    assert exc.value.code == "DUPLICATE_MESSAGE_ID"
    assert len(store.read_all(ANA)) == 1


def test_operator_message_without_name_rejected(kv):
    with pytest.raises(ValidationError):
        KvConversationStore(kv).append(ANA, _msg("a", sender="operator"))


def test_invalid_contact_id_rejected(kv):
    with pytest.raises(ValidationError) as exc:
        KvConversationStore(kv).append("123", _msg("a"))
    assert exc.value.code == "INVALID_CHAT_ID"


def test_reads_inbound_producer_records(kv):
    key = f"chat:{ANA}"
    kv.rpush(key, json.dumps({
        "messageId": "wamid-1",
        "texto": "Oi, preciso de ajuda",
        "tipo": "user",
        "timestamp": "1700000000",
        "contactName": "Ana Silva",
        "instance": "loja-1",
    }))
    kv.rpush(key, "{broken json")
    kv.rpush(key, json.dumps({"id": "x2", "texto": "ok", "fromMe": "true", "timestamp": "1700000100"}))
    kv.rpush(key, json.dumps({"texto": "", "caption": "foto", "messageType": "imageMessage", "timestamp": "1700000200"}))
    messages = KvConversationStore(kv).read_all(ANA)
    assert [m.id for m in messages] == ["wamid-1", "x2", "1700000200-3"]
    assert messages[0].contact_name == "Ana Silva"
    assert messages[0].instance == "loja-1"
    assert messages[1].sender == "operator"
    assert messages[2].media_type == "image"
    assert messages[2].text == "foto"


def test_list_contact_ids(kv):
    store = KvConversationStore(kv)
    store.append(ANA, _msg("a"))
    store.append("5521987654321@c.us", Message(id="", contact_id="", text="b", sender="bot", timestamp=""))
    assert store.list_contact_ids() == [ANA, "5521987654321@c.us"]


def test_unavailable_store_surfaces_error(tmp_path):
    store = KvConversationStore(JsonKeyValueStore(root=tmp_path))
    with pytest.raises(StoreUnavailable):
        store.read_all(ANA)
    with pytest.raises(StoreUnavailable):
        store.append(ANA, _msg("a"))
