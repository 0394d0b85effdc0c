"""Async Jira Cloud REST client used to publish workflow artifacts."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import JiraConfig
from ..errors import NotFoundError, TransientError, ValidationError

logger = logging.getLogger(__name__)

PRIORITY_NAMES = {
    "low": "Low",
    "medium": "Medium",
    "high": "High",
    "critical": "Highest",
}


def map_priority(priority: Optional[str]) -> str:
    return PRIORITY_NAMES.get((priority or "").lower(), "Medium")


def text_to_adf(text: str) -> Dict[str, Any]:
    """Wrap plain text in an Atlassian Document Format document, one paragraph per block."""
    paragraphs = [block for block in text.split("\n\n") if block.strip()] or [""]
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": block}] if block else []}
            for block in paragraphs
        ],
    }


def story_description(story: Dict[str, Any]) -> str:
    parts = [str(story.get("description", ""))]
    criteria = story.get("acceptance_criteria") or story.get("acceptanceCriteria") or []
    if criteria:
        parts.append("Acceptance Criteria:\n" + "\n".join(f"- {c}" for c in criteria))
    if story.get("business_value"):
        parts.append(f"Business Value:\n{story['business_value']}")
    if story.get("technical_notes"):
        parts.append(f"Technical Notes:\n{story['technical_notes']}")
    return "\n\n".join(p for p in parts if p)


def testcase_description(case: Dict[str, Any]) -> str:
    steps = "\n".join(
        f"{i}. {step.get('action', '')}\n   Expected: {step.get('expected', '')}"
        for i, step in enumerate(case.get("steps") or [], start=1)
    )
    return (
        f"Description:\n{case.get('description') or ''}\n\n"
        f"Preconditions:\n{case.get('preconditions') or 'None'}\n\n"
        f"Test Steps:\n{steps or 'None'}\n\n"
        f"Expected Result:\n{case.get('expected_result') or ''}\n\n"
        f"Postconditions:\n{case.get('postconditions') or 'None'}"
    )


class JiraClient:
    """Thin wrapper over the Jira REST API v3 with basic auth."""

    def __init__(self, config: JiraConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        if not config.configured:
            raise ValidationError("Jira base_url, email and api_token must be configured")
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            auth=(config.email, config.api_token),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            timeout=config.timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Jira request {method} {path} failed: {e}")
            raise TransientError(f"Jira request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"Jira resource {path} not found")
        if response.status_code >= 500 or response.status_code == 429:
            raise TransientError(f"Jira returned {response.status_code}")
        if response.status_code >= 400:
            raise ValidationError(
                f"Jira rejected the request ({response.status_code})",
                errors=[response.text],
            )
        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    async def create_issue(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        issue = await self._request("POST", "/rest/api/3/issue", json={"fields": fields})
        logger.info(f"Created Jira issue {issue.get('key')}")
        return issue

    async def get_issue(self, key: str) -> Dict[str, Any]:
        return await self._request("GET", f"/rest/api/3/issue/{key}")

    async def search(self, jql: str, fields: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        params = {"jql": jql}
        if fields:
            params["fields"] = ",".join(fields)
        data = await self._request("GET", "/rest/api/3/search", params=params)
        return (data or {}).get("issues", [])

    async def add_comment(self, key: str, text: str) -> None:
        await self._request(
            "POST", f"/rest/api/3/issue/{key}/comment", json={"body": text_to_adf(text)}
        )

    async def create_story_issue(self, story: Dict[str, Any], project_key: str) -> Dict[str, Any]:
        return await self.create_issue(
            {
                "project": {"key": project_key},
                "summary": story.get("title") or "Untitled story",
                "description": text_to_adf(story_description(story)),
                "issuetype": {"name": "Story"},
                "labels": ["auto-generated", "user-story"],
            }
        )

    async def create_test_issue(self, case: Dict[str, Any], project_key: str) -> Dict[str, Any]:
        return await self.create_issue(
            {
                "project": {"key": project_key},
                "summary": f"[TC] {case.get('title', 'Untitled test case')}",
                "description": text_to_adf(testcase_description(case)),
                "issuetype": {"name": "Test"},
                "priority": {"name": map_priority(case.get("priority"))},
                "labels": ["auto-generated", "test-case"],
            }
        )
