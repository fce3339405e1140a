from contact_core.contacts.phone import is_valid_chat_id, normalize_phone, to_chat_id


SAMPLES = [
    "+55 (11) 99999-8888",
    "55 11 3333.4444",
    "tel:+1-555-010-9999",
    "5511999998888@s.whatsapp.net",
    "  (21) 9 8765-4321 ext. 12 ",
    "no digits here",
    "",
]


def test_normalize_phone_keeps_only_digits():
    for raw in SAMPLES:
        assert normalize_phone(raw).isdigit() or normalize_phone(raw) == ""


def test_normalize_phone_is_idempotent():
    for raw in SAMPLES:
        once = normalize_phone(raw)
        assert normalize_phone(once) == once


def test_normalize_phone_empty_input():
    assert normalize_phone("") == ""
    assert to_chat_id("") == ""


def test_to_chat_id_formats_brazilian_mobile():
    assert to_chat_id("+55 (11) 99999-8888") == "5511999998888@c.us"


def test_to_chat_id_country_code_policy():
    assert to_chat_id("(11) 99999-8888", country_code="55") == "5511999998888@c.us"
    assert to_chat_id("+55 11 99999-8888", country_code="55") == "5511999998888@c.us"
    assert to_chat_id("11 99999-8888") == "11999998888@c.us"


def test_is_valid_chat_id():
    assert is_valid_chat_id("5511999998888@c.us")
    assert is_valid_chat_id("123456@c.us")
    assert not is_valid_chat_id("12345@c.us")
    assert not is_valid_chat_id("@c.us")
    assert not is_valid_chat_id("5511999998888@s.whatsapp.net")
    assert not is_valid_chat_id("55 11 99999@c.us")
    assert not is_valid_chat_id(None)
