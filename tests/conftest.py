"""
Shared fixtures: fake OpenRouter client, canned HTML pages, in-memory store.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from models import RawPage
from store import MemoryStore
from summarizer import Summarizer


ARTICLE_HTML = """
<html>
  <head><title>Release notes</title></head>
  <body>
    <nav><a href="/">Home</a> <a href="/docs">Docs</a></nav>
    <main>
      <h1>Release notes</h1>
      <p>{body}</p>
    </main>
    <footer>Copyright Example Corp</footer>
  </body>
</html>
"""


def make_page(body: str = "Version 1.0 is out, with faster startup and fewer bugs.",
              url: str = "https://example.com/page") -> RawPage:
    return RawPage(
        url=url,
        html=ARTICLE_HTML.format(body=body),
        content_type="text/html; charset=utf-8",
        status_code=200,
    )


def completion(content):
    """Shape of an OpenAI chat completion response."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeOpenAI:
    """Stands in for openai.OpenAI; each create() call consumes the next scripted reply.

    A reply that is an Exception instance is raised, anything else is returned
    as the completion content.
    """

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return completion(reply)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_summarizer(sleeps):
    def factory(replies=None, client=...):
        if client is ...:
            client = FakeOpenAI(replies or [])
        return Summarizer(client, model="test-model", sleep=sleeps.append)
    return factory


@pytest.fixture
def fetcher():
    fake = MagicMock()
    fake.fetch.return_value = make_page()
    return fake
