from storyflow.contracts import (
    StepRecord,
    WorkflowContext,
    WorkflowPatch,
    WorkflowState,
    WorkflowStatus,
)


def test_context_merge_is_append_only_for_requirements():
    base = WorkflowContext(requirements={"title": "A", "tags": ["x"]})
    update = WorkflowContext(requirements={"title": "B", "persona": "admin"})

    merged = base.merged(update)

    assert merged.requirements == {"title": "A", "tags": ["x"], "persona": "admin"}
    assert base.requirements == {"title": "A", "tags": ["x"]}


def test_context_merge_replaces_steps_per_key():
    base = WorkflowContext(
        steps={
            "one": StepRecord(result={"v": 1}),
            "two": StepRecord(result={"v": 2}),
        }
    )
    merged = base.merged(WorkflowContext(steps={"two": StepRecord(result={"v": 3})}))

    assert merged.steps["one"].result == {"v": 1}
    assert merged.steps["two"].result == {"v": 3}


def test_context_merge_does_not_share_objects():
    base = WorkflowContext(requirements={"tags": ["x"]})
    merged = base.merged(WorkflowContext())
    merged.requirements["tags"].append("y")

    assert base.requirements["tags"] == ["x"]


def test_results_exclude_terminal_records():
    context = WorkflowContext(
        steps={
            "story_creation": StepRecord(result={"title": "Draft"}),
            "completed": StepRecord(result={"story": {}}),
        }
    )
    assert context.results() == {"story_creation": {"title": "Draft"}}


def test_apply_only_touches_set_fields():
    state = WorkflowState(
        project_id="p", user_id="u", current_step="analyzing", metadata={"a": 1}
    )

    updated = state.apply(WorkflowPatch(metadata={"b": 2}))

    assert updated.current_step == "analyzing"
    assert updated.status == WorkflowStatus.IN_PROGRESS
    assert updated.metadata == {"a": 1, "b": 2}
    assert updated.version == 2
    assert state.version == 1


def test_result_only_when_completed():
    state = WorkflowState(
        project_id="p",
        user_id="u",
        current_step="completed",
        status=WorkflowStatus.FAILED,
        context=WorkflowContext(steps={"completed": StepRecord(result={"x": 1})}),
    )
    assert state.result is None
    assert state.is_terminal

    done = state.model_copy(update={"status": WorkflowStatus.COMPLETED})
    assert done.result == {"x": 1}


def test_context_merge_extends_lists_with_new_items():
    base = WorkflowContext(requirements={"acceptanceCriteria": ["A"]})

    merged = base.merged(WorkflowContext(requirements={"acceptanceCriteria": ["A", "B"]}))

    assert merged.requirements["acceptanceCriteria"] == ["A", "B"]
    assert base.requirements["acceptanceCriteria"] == ["A"]


def test_context_merge_fills_empty_values():
    base = WorkflowContext(requirements={"title": "", "acceptanceCriteria": [], "owner": None})
    update = WorkflowContext(
        requirements={"title": "Reset", "acceptanceCriteria": ["Link sent"], "owner": "ops"}
    )

    merged = base.merged(update)

    assert merged.requirements == {
        "title": "Reset",
        "acceptanceCriteria": ["Link sent"],
        "owner": "ops",
    }


def test_context_merge_keeps_non_empty_scalars():
    base = WorkflowContext(requirements={"title": "A", "points": 3})

    merged = base.merged(WorkflowContext(requirements={"title": "", "points": 5}))

    assert merged.requirements == {"title": "A", "points": 3}


def test_apply_drops_named_steps():
    state = WorkflowState(
        project_id="p",
        user_id="u",
        current_step="failed",
        status=WorkflowStatus.FAILED,
        context=WorkflowContext(
            steps={"analyzing": StepRecord(iterations=2), "failed": StepRecord(error="x")}
        ),
    )

    updated = state.apply(
        WorkflowPatch(current_step="analyzing", status=WorkflowStatus.IN_PROGRESS, drop_steps=["failed"])
    )

    assert updated.failure is None
    assert updated.context.steps["analyzing"].iterations == 2
    assert state.failure is not None
