import pytest

from contact_core.domain.exceptions import StoreUnavailable, ValidationError
from contact_core.domain.models import Contact, Directory, HealthStatus, Message


def test_operator_message_requires_operator_name():
    msg = Message(id="m1", contact_id="5511999998888@c.us", text="hi", sender="operator", timestamp="1")
    with pytest.raises(ValidationError) as exc:
        msg.validate()
    assert exc.value.code == "INVALID_MESSAGE"


def test_operator_name_only_for_operator():
    msg = Message(
        id="m1", contact_id="5511999998888@c.us", text="hi", sender="user", timestamp="1", operator_name="Ana"
    )
    with pytest.raises(ValidationError):
        msg.validate()


def test_unknown_sender_rejected():
    msg = Message(id="m1", contact_id="5511999998888@c.us", text="hi", sender="robot", timestamp="1")
    with pytest.raises(ValidationError):
        msg.validate()


def test_directory_helpers():
    d = Directory(contacts=[Contact(id="5511999998888@c.us", name="Ana"), Contact(id="5521987654321@c.us", name="Bia")])
    assert len(d) == 2
    assert "5511999998888@c.us" in d
    assert d.get("5521987654321@c.us").name == "Bia"
    assert d.get("missing") is None
    assert d.to_payload()[0] == {"id": "5511999998888@c.us", "name": "Ana"}


def test_health_status_wire_shape():
    status = HealthStatus(connected=False, error="down")
    assert status.to_dict() == {"connected": False, "error": "down", "sampleKeys": [], "firstKeyContent": None}


def test_store_unavailable_maps_to_503():
    err = StoreUnavailable(code="STORE_CLOSED", message="closed")
    assert err.http_status == 503
    assert ValidationError(code="X", message="y").http_status == 400
