import json

import httpx
import pytest

from storyflow.config import JiraConfig
from storyflow.errors import NotFoundError, TransientError, ValidationError
from storyflow.integrations import JiraClient, map_priority, text_to_adf

CONFIG = JiraConfig(base_url="https://example.atlassian.net", email="bot@example.com", api_token="t")


def _client(handler) -> JiraClient:
    http = httpx.AsyncClient(
        base_url=CONFIG.base_url, transport=httpx.MockTransport(handler)
    )
    return JiraClient(CONFIG, client=http)


def test_map_priority():
    assert map_priority("critical") == "Highest"
    assert map_priority("LOW") == "Low"
    assert map_priority(None) == "Medium"
    assert map_priority("unknown") == "Medium"


def test_text_to_adf_paragraphs():
    doc = text_to_adf("first\n\nsecond")
    assert doc["type"] == "doc"
    assert [p["content"][0]["text"] for p in doc["content"]] == ["first", "second"]


def test_unconfigured_client_is_rejected():
    with pytest.raises(ValidationError):
        JiraClient(JiraConfig())


@pytest.mark.asyncio
async def test_create_test_issue_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "10001", "key": "QA-1"})

    client = _client(handler)
    issue = await client.create_test_issue(
        {
            "title": "Reset link is emailed",
            "steps": [{"action": "Request reset", "expected": "Email arrives"}],
            "expected_result": "Link received",
            "priority": "high",
        },
        "QA",
    )

    fields = seen["body"]["fields"]
    assert issue["key"] == "QA-1"
    assert seen["path"] == "/rest/api/3/issue"
    assert fields["project"] == {"key": "QA"}
    assert fields["summary"] == "[TC] Reset link is emailed"
    assert fields["issuetype"] == {"name": "Test"}
    assert fields["priority"] == {"name": "High"}
    assert "Request reset" in json.dumps(fields["description"])


@pytest.mark.asyncio
async def test_search_and_comment():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path == "/rest/api/3/search":
            return httpx.Response(200, json={"issues": [{"key": "QA-1"}]})
        return httpx.Response(201, json={"id": "c1"})

    client = _client(handler)
    issues = await client.search("project = QA", fields=["summary"])
    await client.add_comment("QA-1", "Synced")

    assert issues == [{"key": "QA-1"}]
    assert calls[0].url.params["jql"] == "project = QA"
    assert calls[1].url.path == "/rest/api/3/issue/QA-1/comment"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error",
    [(404, NotFoundError), (503, TransientError), (429, TransientError), (400, ValidationError)],
)
async def test_error_statuses_map_to_errors(status, error):
    client = _client(lambda request: httpx.Response(status, json={"errorMessages": ["x"]}))
    with pytest.raises(error):
        await client.get_issue("QA-9")


@pytest.mark.asyncio
async def test_network_errors_are_transient():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransientError):
        await _client(handler).get_issue("QA-1")
