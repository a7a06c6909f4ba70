import json
import threading

import pytest
import requests

from price_calculator.errors import AssistantError, RateLimited, CreditsExhausted
from price_calculator.services.assistant_client import AssistantClient, SSELineBuffer


def _event(content):
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False) + "\n"


class FakeResponse:
    def __init__(self, status_code=200, chunks=()):
        self.status_code = status_code
        self.chunks = list(chunks)
        self.closed = False

    def iter_content(self, chunk_size=None):
        yield from self.chunks

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_buffer_handles_lines_split_across_chunks():
    buffer = SSELineBuffer()
    line = _event("Halo")
    assert buffer.feed(line[:10]) == []
    assert buffer.feed(line[10:]) == ["Halo"]


def test_buffer_skips_comments_blank_and_non_data_lines():
    buffer = SSELineBuffer()
    text = ": keep-alive\n\nevent: message\r\n" + _event("A").replace("\n", "\r\n") + _event("B")
    assert buffer.feed(text) == ["A", "B"]


def test_buffer_stops_at_done():
    buffer = SSELineBuffer()
    assert buffer.feed(_event("A") + "data: [DONE]\n" + _event("ignored")) == ["A"]
    assert buffer.done
    assert buffer.feed(_event("late")) == []


def test_buffer_ignores_deltas_without_content():
    buffer = SSELineBuffer()
    role_only = "data: " + json.dumps({"choices": [{"delta": {"role": "assistant"}}]}) + "\n"
    assert buffer.feed(role_only + "data: {\"choices\": []}\n" + _event("ok")) == ["ok"]


def test_unparsable_line_is_pushed_back_until_flush():
    buffer = SSELineBuffer()
    assert buffer.feed("data: {not json}\n" + _event("after")) == []
    assert buffer.feed(_event("more")) == []
    assert buffer.flush() == ["after", "more"]


def test_flush_parses_trailing_line_without_newline():
    buffer = SSELineBuffer()
    buffer.feed(_event("A").rstrip("\n"))
    assert buffer.flush() == ["A"]


def test_stream_chat_yields_deltas_and_posts_context(sofa):
    body = (_event("Harga ") + _event("wajar") + "data: [DONE]\n").encode("utf-8")
    response = FakeResponse(chunks=[body[:7], body[7:30], body[30:]])
    session = FakeSession(response)
    client = AssistantClient("https://assistant.test/chat", "secret", session=session)

    deltas = list(client.stream_chat([{"role": "user", "content": "Hai"}], [sofa] * 25, []))

    assert "".join(deltas) == "Harga wajar"
    url, kwargs = session.calls[0]
    assert kwargs["stream"] is True
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert len(kwargs["json"]["products"]) == 20
    assert kwargs["json"]["products"][0]["basePrice"] == 100000
    assert response.closed


def test_multibyte_characters_split_across_chunks():
    body = _event("Rp 1.000 ± murah").encode("utf-8")
    split = body.index("±".encode("utf-8")) + 1
    client = AssistantClient("u", session=FakeSession(FakeResponse(chunks=[body[:split], body[split:]])))
    assert "".join(client.stream_chat([])) == "Rp 1.000 ± murah"


@pytest.mark.parametrize("status,error", [(429, RateLimited), (402, CreditsExhausted), (500, AssistantError)])
def test_http_errors_are_mapped(status, error):
    client = AssistantClient("u", session=FakeSession(FakeResponse(status_code=status)))
    with pytest.raises(error) as exc:
        list(client.stream_chat([{"role": "user", "content": "x"}]))
    assert exc.type is error


def test_connection_failure_maps_to_assistant_error():
    client = AssistantClient("u", session=FakeSession(requests.ConnectionError("down")))
    with pytest.raises(AssistantError):
        list(client.stream_chat([]))


def test_cancel_stops_stream():
    cancel = threading.Event()
    chunks = [_event("satu").encode(), _event("dua").encode()]
    client = AssistantClient("u", session=FakeSession(FakeResponse(chunks=chunks)))

    received = []
    for delta in client.stream_chat([], cancel=cancel):
        received.append(delta)
        cancel.set()

    assert received == ["satu"]
