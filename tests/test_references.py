from types import SimpleNamespace

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from askdocs.llm import MockChatClient
from askdocs.prompting import SUMMARY_SYSTEM_PROMPT
from askdocs.references import (
    MissingQueryInputError,
    TavilySearchClient,
    WebSearchError,
    WebSearchNotConfiguredError,
    clamp_result_limit,
    derive_query,
    extract_hostname,
    find_references,
    summarize_document_one_liner,
)

from conftest import FakeResponse, FakeSearchClient, FakeSession


def _document(content="Body text", title="Title", file_name="file.txt"):
    return SimpleNamespace(content=content, title=title, file_name=file_name)


def _failing_summarizer(content, *, fallback):
    raise AssertionError("summarizer must not be called")


def test_explicit_query_wins_and_is_trimmed():
    derived = derive_query(_document(), "  climate policy  ", summarizer=_failing_summarizer)

    assert derived.query == "climate policy"
    assert derived.summary_used is False


def test_blank_query_falls_back_to_summary():
    calls = []

    def summarizer(content, *, fallback):
        calls.append((content, fallback))
        return "A short summary"

    derived = derive_query(_document(title="  "), "   ", summarizer=summarizer)

    assert derived.query == "A short summary"
    assert derived.summary_used is True
    assert calls == [("Body text", "file.txt")]


@pytest.mark.parametrize(
    "document",
    [
        _document(content="", title="", file_name=""),
        _document(title="", file_name=""),
        _document(content=""),
    ],
)
def test_missing_inputs_raise(document):
    with pytest.raises(MissingQueryInputError, match="Provide a `query`"):
        derive_query(document, "", summarizer=_failing_summarizer)


def test_blank_content_falls_back_to_label():
    client = MockChatClient()

    derived = derive_query(
        _document(content="  \n "),
        None,
        summarizer=lambda content, *, fallback: summarize_document_one_liner(client, content, fallback),
    )

    assert derived.query == "Title"
    assert derived.summary_used is True
    assert client.calls == []


def test_summarizer_errors_propagate():
    def summarizer(content, *, fallback):
        raise RuntimeError("model down")

    with pytest.raises(RuntimeError, match="model down"):
        derive_query(_document(), None, summarizer=summarizer)


def test_summarize_document_one_liner_uses_chat_client():
    client = MockChatClient()

    summary = summarize_document_one_liner(client, "Quarterly revenue report", "fallback")

    assert summary.startswith("MOCK_ANSWER:")
    call = client.calls[0]
    assert call["system_prompt"] == SUMMARY_SYSTEM_PROMPT
    assert call["max_tokens"] == 80
    assert call["temperature"] == 0.3
    assert "Quarterly revenue report" in call["message"]


def test_summarize_document_one_liner_returns_fallback():
    class BlankClient(MockChatClient):
        def chat(self, message, **kwargs):
            return "   "

    assert summarize_document_one_liner(MockChatClient(), "  ", "label") == "label"
    assert summarize_document_one_liner(BlankClient(), "content", "label") == "label"


@pytest.mark.parametrize(
    ("limit", "expected"),
    [
        (None, 5),
        ("3", 5),
        (float("nan"), 5),
        (True, 5),
        (0, 1),
        (-4, 1),
        (3.9, 3),
        (8, 8),
        (100, 8),
    ],
)
def test_clamp_result_limit(limit, expected):
    assert clamp_result_limit(limit) == expected


def test_extract_hostname():
    assert extract_hostname("https://www.example.com/page") == "example.com"
    assert extract_hostname("https://docs.python.org/3/") == "docs.python.org"
    assert extract_hostname("not a url") is None
    assert extract_hostname(None) is None


def test_tavily_client_requires_api_key():
    client = TavilySearchClient(None, session=FakeSession())

    with pytest.raises(WebSearchNotConfiguredError, match="TAVILY_API_KEY"):
        client.search("query", 3)


def test_tavily_client_maps_results():
    payload = {
        "results": [
            {"title": "  Guide  ", "url": "https://www.example.com/a", "content": "Body", "score": 0.8},
            {"title": "", "url": "https://other.org/b", "snippet": "Other"},
            {"title": "", "url": "", "content": ""},
            {"title": "Extra", "url": "https://extra.net"},
        ]
    }
    session = FakeSession(FakeResponse(200, payload))
    client = TavilySearchClient("secret", endpoint="https://search.test/api", session=session)

    references = client.search("python testing", 3)

    assert [ref.title for ref in references] == ["Guide", "https://other.org/b", "Untitled"]
    assert references[0].source == "example.com"
    assert references[0].snippet == "Body"
    assert references[0].score == 0.8
    assert references[1].snippet == "Other"
    assert references[2].source is None
    assert references[0].fetched_at.endswith("Z")

    call = session.calls[0]
    assert call["url"] == "https://search.test/api"
    assert call["json"] == {"query": "python testing", "search_depth": "basic", "max_results": 3}
    assert call["headers"]["Authorization"] == "Bearer secret"


def test_tavily_client_raises_on_error_status():
    session = FakeSession(FakeResponse(429, {}, text="rate limited"))
    client = TavilySearchClient("secret", session=session)

    with pytest.raises(WebSearchError, match=r"Web reference search failed \(429\): rate limited"):
        client.search("query", 2)


def test_tavily_client_wraps_network_errors():
    session = FakeSession(error=RequestsConnectionError("unreachable"))
    client = TavilySearchClient("secret", session=session)

    with pytest.raises(WebSearchError):
        client.search("query", 2)


def test_find_references_clamps_limit_and_reports_query():
    search_client = FakeSearchClient()

    result = find_references(
        _document(),
        None,
        50,
        summarizer=lambda content, *, fallback: "Document about things",
        search_client=search_client,
    )

    assert search_client.calls == [("Document about things", 8)]
    assert result.query_used == "Document about things"
    assert result.query_summary == "Document about things"
    assert result.summary_used is True
    assert len(result.references) == 8


def test_find_references_propagates_search_errors():
    search_client = FakeSearchClient()
    search_client.error = WebSearchError("boom")

    with pytest.raises(WebSearchError):
        find_references(_document(), "query", None, summarizer=_failing_summarizer, search_client=search_client)
