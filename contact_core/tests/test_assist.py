import pytest

from contact_core.assist import ContactFinder, ReplySuggester, ReplySuggestions, RetryPolicy
from contact_core.assist.parsing import extract_json_object
from contact_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from contact_core.domain.models import ChatResult, Contact, Directory

DIRECTORY = Directory(contacts=[
    Contact(id="5511999998888@c.us", name="Ana Silva"),
    Contact(id="5521987654321@c.us", name="Bia Souza"),
])


class FakeProvider:
    name = "fake"

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def chat(self, req):
        self.requests.append(req)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ChatResult(provider=self.name, model=req.model, content=reply)


def test_extract_json_from_fenced_block():
    assert extract_json_object('```json\n{"contacts": []}\n```') == {"contacts": []}
    assert extract_json_object('Here you go: {"a": 1} hope it helps') == {"a": 1}


def test_extract_json_rejects_garbage():
    with pytest.raises(ValidationError) as exc:
        extract_json_object("no idea")
    assert exc.value.code == "INVALID_ASSIST_RESPONSE"


def test_find_contacts_drops_invalid_ids():
    provider = FakeProvider(
        '{"contacts": ['
        '{"name": "Ana Silva", "id": "5511999998888@c.us"},'
        '{"name": "Ghost", "id": "not-a-chat-id"},'
        '{"name": "Ana again", "id": "5511999998888@c.us"}]}'
    )
    matches = ContactFinder(provider, model="assist-chat").find(DIRECTORY, "ana")
    assert matches == [Contact(id="5511999998888@c.us", name="Ana Silva")]
    prompt = provider.requests[0].messages[0].content
    assert "Ana Silva (5511999998888@c.us)" in prompt
    assert "ana" in prompt


def test_find_contacts_skips_call_for_empty_input():
    provider = FakeProvider()
    finder = ContactFinder(provider, model="assist-chat")
    assert finder.find(Directory(), "ana") == []
    assert finder.find(DIRECTORY, "   ") == []
    assert provider.requests == []


def test_find_contacts_malformed_response():
    with pytest.raises(ValidationError):
        ContactFinder(FakeProvider('{"contacts": "ana"}'), model="assist-chat").find(DIRECTORY, "ana")


def test_retry_backs_off_then_succeeds():
    sleeps = []
    provider = FakeProvider(
        NetworkError(code="NETWORK_ERROR", message="reset"),
        RateLimitError(code="RATE_LIMIT", message="slow down"),
        '{"contacts": []}',
    )
    retry = RetryPolicy(max_attempts=3, delay=2.0, multiplier=2.0, sleep=sleeps.append)
    assert ContactFinder(provider, model="assist-chat", retry=retry).find(DIRECTORY, "bia") == []
    assert sleeps == [2.0, 4.0]


def test_retry_gives_up_after_max_attempts():
    sleeps = []
    provider = FakeProvider(*[NetworkError(code="NETWORK_ERROR", message="down")] * 3)
    retry = RetryPolicy(max_attempts=2, delay=0.5, sleep=sleeps.append)
    with pytest.raises(NetworkError):
        ContactFinder(provider, model="assist-chat", retry=retry).find(DIRECTORY, "bia")
    assert sleeps == [0.5]
    assert len(provider.requests) == 2


def test_retry_does_not_retry_api_errors():
    sleeps = []
    provider = FakeProvider(ApiError(code="API_ERROR", message="bad request"))
    with pytest.raises(ApiError):
        RetryPolicy(sleep=sleeps.append).run(lambda: provider.chat(None))
    assert sleeps == []


def test_reply_suggestions_normalization():
    parsed = ReplySuggestions.model_validate({"sentiment": "Furious", "suggestedReplies": ["  Olá! ", ""]})
    assert parsed.sentiment == "neutral"
    assert parsed.suggested_replies == ["Olá!"]


def test_suggest_replies():
    provider = FakeProvider('{"sentiment": "negative", "suggested_replies": ["Sinto muito", "Vou verificar"]}')
    result = ReplySuggester(provider, model="assist-chat").suggest("meu pedido não chegou")
    assert result.sentiment == "negative"
    assert result.suggested_replies == ["Sinto muito", "Vou verificar"]
    assert ReplySuggester(provider, model="assist-chat").suggest("  ") == ReplySuggestions()
