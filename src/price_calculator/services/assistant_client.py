"""
Streaming client for the AI pricing assistant.

The endpoint answers with server-sent events in the OpenAI chat-completions
delta format. Chunks may split lines (and UTF-8 sequences) anywhere, so bytes
are decoded incrementally and only complete lines are parsed.
"""
import codecs
import json
import logging
import threading
from typing import Iterable, Iterator, Optional

import requests

from ..engine.models import Product, Customer
from ..errors import AssistantError, RateLimited, CreditsExhausted

logger = logging.getLogger(__name__)

MAX_CONTEXT_PRODUCTS = 20
MAX_CONTEXT_CUSTOMERS = 10


class SSELineBuffer:
    """
    Incremental SSE decoder yielding content deltas.

    A complete line that fails to parse is pushed back and retried once more
    data has arrived; flush() makes a last pass at end of stream.
    """

    def __init__(self):
        self._buffer = ""
        self.done = False

    def feed(self, text: str) -> list[str]:
        if self.done:
            return []
        self._buffer += text
        deltas = []
        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            try:
                content = self._parse_line(line)
            except ValueError:
                self._buffer = line + "\n" + self._buffer
                break
            if content:
                deltas.append(content)
        return deltas

    def flush(self) -> list[str]:
        """Parse whatever is left; lines that still fail are dropped."""
        remaining, self._buffer = self._buffer, ""
        deltas = []
        for line in remaining.split("\n"):
            if self.done:
                break
            try:
                content = self._parse_line(line)
            except ValueError:
                logger.debug("Dropping unparsable stream line: %r", line)
                continue
            if content:
                deltas.append(content)
        return deltas

    def _parse_line(self, line: str) -> Optional[str]:
        if line.endswith("\r"):
            line = line[:-1]
        if line.startswith(":") or line.strip() == "":
            return None
        if not line.startswith("data: "):
            return None

        payload = line[6:].strip()
        if payload == "[DONE]":
            self.done = True
            return None

        parsed = json.loads(payload)
        try:
            return parsed["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            return None


def product_context(products: Iterable[Product]) -> list[dict]:
    return [
        {"id": p.id, "name": p.name, "basePrice": p.base_price, "category": p.category, "unit": p.unit}
        for p in list(products)[:MAX_CONTEXT_PRODUCTS]
    ]


def customer_context(customers: Iterable[Customer]) -> list[dict]:
    return [{"id": c.id, "name": c.name} for c in list(customers)[:MAX_CONTEXT_CUSTOMERS]]


class AssistantClient:
    """One chat request per call, streamed; no retries."""

    def __init__(self, url: str, api_key: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: float = 60):
        self.url = url
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def stream_chat(
        self,
        messages: list[dict],
        products: Iterable[Product] = (),
        customers: Iterable[Customer] = (),
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[str]:
        """
        Yield assistant content deltas as they arrive.

        Setting `cancel` stops reading after the current chunk. Output already
        yielded stays with the caller when the stream fails midway.
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "messages": messages,
            "products": product_context(products),
            "customers": customer_context(customers),
        }

        try:
            response = self.session.post(self.url, json=body, headers=headers, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise AssistantError("Failed to connect to AI assistant") from e

        with response:
            if response.status_code == 429:
                raise RateLimited()
            if response.status_code == 402:
                raise CreditsExhausted()
            if response.status_code >= 400:
                logger.warning("Assistant returned HTTP %s", response.status_code)
                raise AssistantError("Failed to connect to AI assistant")

            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            buffer = SSELineBuffer()
            try:
                for chunk in response.iter_content(chunk_size=None):
                    if cancel is not None and cancel.is_set():
                        logger.info("Assistant stream cancelled")
                        return
                    yield from buffer.feed(decoder.decode(chunk))
                    if buffer.done:
                        return
            except requests.RequestException as e:
                raise AssistantError("Assistant stream interrupted") from e

            yield from buffer.feed(decoder.decode(b"", final=True))
            yield from buffer.flush()
