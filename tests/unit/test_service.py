"""Workflow service facade tests."""

import pytest

from conftest import STORY_REQUIREMENTS, ScriptedStep, satisfied
from storyflow.contracts import WorkflowStatus
from storyflow.errors import NotFoundError, TransientError, ValidationError
from storyflow.retrieval import DocumentRetriever, InMemoryVectorIndex
from storyflow.service import WorkflowService

CASES = [{"title": "Case A"}, {"title": "Case B"}]


class RecordingTracker:
    def __init__(self, fail_on=()):
        self.created = []
        self.fail_on = set(fail_on)
        self.calls = 0

    def _issue(self, kind, artifact, project_key):
        self.calls += 1
        if self.calls in self.fail_on:
            raise TransientError("Jira is unavailable")
        self.created.append((kind, artifact, project_key))
        return {"key": f"{project_key}-{len(self.created)}"}

    async def create_story_issue(self, story, project_key):
        return self._issue("story", story, project_key)

    async def create_test_issue(self, case, project_key):
        return self._issue("test", case, project_key)


@pytest.fixture
def service(make_engine):
    engine = make_engine(
        story_steps={"review_approval": ScriptedStep(satisfied({"story": {"title": "Done"}}))},
        test_case_steps={"validating": ScriptedStep(satisfied({"testCases": CASES}))},
    )
    return WorkflowService(engine, tracker=RecordingTracker())


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "project_id, user_id, requirements",
    [("", "u", {}), ("p", None, {}), ("p", "u", ["not", "a", "mapping"])],
)
async def test_start_validates_arguments(service, project_id, user_id, requirements):
    with pytest.raises(ValidationError):
        await service.start_workflow(project_id, user_id, requirements)


@pytest.mark.asyncio
async def test_start_rejects_unknown_kind(service):
    with pytest.raises(ValidationError):
        await service.start_workflow("p", "u", {}, kind="epic")


@pytest.mark.asyncio
async def test_reads_return_none_for_unknown_ids(service):
    assert await service.get_workflow("missing") is None
    assert await service.get_current_step("missing") is None
    assert await service.get_result("missing") is None


@pytest.mark.asyncio
async def test_mutations_raise_for_unknown_ids(service):
    with pytest.raises(NotFoundError):
        await service.advance_workflow("missing", "requirements_analysis", {})
    with pytest.raises(NotFoundError):
        await service.fail_workflow("missing", "boom")


@pytest.mark.asyncio
async def test_advance_requires_step(service):
    wf = await service.start_workflow("p", "u", STORY_REQUIREMENTS)
    with pytest.raises(ValidationError):
        await service.advance_workflow(wf.id, "", {})


@pytest.mark.asyncio
async def test_result_available_only_after_completion(service):
    wf = await service.start_workflow("p", "u", STORY_REQUIREMENTS)
    assert await service.get_result(wf.id) is None

    for _ in range(4):
        step = await service.get_current_step(wf.id)
        await service.advance_workflow(wf.id, step, {})

    assert await service.get_current_step(wf.id) == "completed"
    assert await service.get_result(wf.id) == {"story": {"title": "Done"}}


@pytest.mark.asyncio
async def test_list_workflows_filters(service):
    a = await service.start_workflow("p1", "u1", STORY_REQUIREMENTS)
    b = await service.start_workflow("p1", "u2", STORY_REQUIREMENTS)
    await service.start_workflow("p2", "u1", STORY_REQUIREMENTS)
    await service.fail_workflow(b.id, "abandoned")

    assert [wf.id for wf in await service.list_workflows(project_id="p1")] == [a.id, b.id]
    assert [wf.id for wf in await service.list_workflows(project_id="p1", status="failed")] == [b.id]
    assert len(await service.list_workflows(user_id="u1")) == 2
    with pytest.raises(ValidationError):
        await service.list_workflows(status="bogus")


@pytest.mark.asyncio
async def test_sync_story_to_tracker(service):
    wf = await service.start_workflow("p", "u", STORY_REQUIREMENTS)
    with pytest.raises(ValidationError):
        await service.sync_to_tracker(wf.id, "PROJ")

    for _ in range(4):
        await service.advance_workflow(wf.id, await service.get_current_step(wf.id), {})
    tracker = await service.sync_to_tracker(wf.id, "PROJ")

    assert tracker == {"projectKey": "PROJ", "issueKeys": ["PROJ-1"]}
    assert service.tracker.created[0][1] == {"title": "Done"}
    stored = await service.get_workflow(wf.id)
    assert stored.metadata["tracker"] == tracker


@pytest.mark.asyncio
async def test_sync_test_cases_creates_one_issue_each(service):
    wf = await service.start_workflow("p", "u", {"storyDetails": {"title": "x"}}, kind="test_case")
    for _ in range(3):
        await service.advance_workflow(wf.id, await service.get_current_step(wf.id), {})

    tracker = await service.sync_to_tracker(wf.id, "QA")

    assert tracker["issueKeys"] == ["QA-1", "QA-2"]
    assert [c[0] for c in service.tracker.created] == ["test", "test"]


@pytest.mark.asyncio
async def test_sync_without_tracker_is_validation_error(make_engine):
    service = WorkflowService(make_engine())
    wf = await service.start_workflow("p", "u", STORY_REQUIREMENTS)
    await service.complete_workflow(wf.id, {"story": {}})

    with pytest.raises(ValidationError):
        await service.sync_to_tracker(wf.id, "PROJ")


@pytest.mark.asyncio
async def test_rewind_and_fail_through_service(service):
    wf = await service.start_workflow("p", "u", STORY_REQUIREMENTS)
    await service.advance_workflow(wf.id, "requirements_analysis", {})

    rewound = await service.rewind_workflow(wf.id, "requirements_analysis")
    failed = await service.fail_workflow(wf.id, "stuck", "no answer")

    assert rewound.current_step == "requirements_analysis"
    assert failed.status == WorkflowStatus.FAILED
    assert failed.failure.diagnostic == "no answer"


@pytest.mark.asyncio
async def test_interrupted_sync_records_created_issues_and_resumes(service):
    service.tracker.fail_on = {2}
    wf = await service.start_workflow("p", "u", {"storyDetails": {"title": "x"}}, kind="test_case")
    for _ in range(3):
        await service.advance_workflow(wf.id, await service.get_current_step(wf.id), {})

    with pytest.raises(TransientError):
        await service.sync_to_tracker(wf.id, "QA")
    stored = await service.get_workflow(wf.id)
    assert stored.metadata["tracker"] == {"projectKey": "QA", "issueKeys": ["QA-1"]}

    tracker = await service.sync_to_tracker(wf.id, "QA")

    assert tracker == {"projectKey": "QA", "issueKeys": ["QA-1", "QA-2"]}
    assert [c[1] for c in service.tracker.created] == CASES


@pytest.mark.asyncio
async def test_repeated_sync_creates_no_duplicates(service):
    wf = await service.start_workflow("p", "u", STORY_REQUIREMENTS)
    await service.complete_workflow(wf.id, {"story": {"title": "Done"}})

    first = await service.sync_to_tracker(wf.id, "PROJ")
    second = await service.sync_to_tracker(wf.id, "PROJ")

    assert first == second == {"projectKey": "PROJ", "issueKeys": ["PROJ-1"]}
    assert len(service.tracker.created) == 1


class CountingEmbedder:
    async def embed(self, text):
        return [1.0, float(len(text))]


@pytest.mark.asyncio
async def test_add_project_document_indexes_chunks(make_engine):
    index = InMemoryVectorIndex()
    service = WorkflowService(make_engine(), retriever=DocumentRetriever(CountingEmbedder(), index))

    indexed = await service.add_project_document(
        "p1", "Users reset passwords by email. Links expire.", title="Auth"
    )

    assert indexed["projectId"] == "p1"
    assert indexed["chunks"] == 1
    hits = await service.retriever.search("reset", project_id="p1")
    assert hits[0].metadata["document_id"] == indexed["documentId"]
    assert hits[0].metadata["title"] == "Auth"


@pytest.mark.asyncio
async def test_add_project_document_needs_retriever_and_content(make_engine, service):
    with pytest.raises(ValidationError):
        await service.add_project_document("p1", "Some text")
    configured = WorkflowService(
        make_engine(), retriever=DocumentRetriever(CountingEmbedder(), InMemoryVectorIndex())
    )
    with pytest.raises(ValidationError):
        await configured.add_project_document("p1", "   ")
