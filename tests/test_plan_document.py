from __future__ import annotations

import pytest

from solaris.domain.errors import InvalidTransitionError, PlanFormatError
from solaris.domain.plan.plan_document import EMPTY_SECTION, PlanDocument, PlanStatus, PlanStep, requests_completion


def launch_plan() -> PlanDocument:
    return PlanDocument.new("Launch", "Ship the beta", ["Write docs", "Cut release", "Announce"])


def test_new_plan_renders_the_fixed_grammar():
    text = launch_plan().render()

    assert text.startswith("# Plan: Launch\n\n## Objective\nShip the beta\n\n## Status: in_progress\n")
    assert "- [ ] Step 1: Write docs\n- [ ] Step 2: Cut release\n- [ ] Step 3: Announce" in text
    assert "## Current Step: 1" in text
    assert f"## Notes\n{EMPTY_SECTION}" in text
    assert f"## Documents Created\n{EMPTY_SECTION}" in text


def test_parse_reads_back_rendered_plan():
    plan = launch_plan().mark_step(1)
    plan = plan.model_copy(update={"notes": ["Docs reviewed"], "documents_created": ["README (text)"]})

    parsed = PlanDocument.parse(plan.render())

    assert parsed == plan
    assert parsed.current_step == 2


def test_parse_handles_nested_and_unnumbered_steps():
    text = (
        "# Plan: Migrate\n\n"
        "## Objective\nMove the database\n\n"
        "## Status: In Progress\n\n"
        "## Steps\n"
        "- [x] Step 1: Snapshot\n"
        "  - [ ] Verify snapshot\n"
        "- [X] Step 3: Switch\n\n"
        "## Notes\n(none yet)\n"
    )

    plan = PlanDocument.parse(text)

    assert plan.status == PlanStatus.IN_PROGRESS
    assert [(s.index, s.level, s.done) for s in plan.steps] == [(1, 0, True), (2, 1, False), (3, 0, True)]
    assert plan.steps[1].description == "Verify snapshot"
    assert plan.notes == []
    assert plan.documents_created == []


def test_missing_required_section_is_rejected():
    text = launch_plan().render().replace("## Notes", "## Remarks")

    with pytest.raises(PlanFormatError, match="notes"):
        PlanDocument.parse(text)


def test_unknown_status_is_rejected():
    text = launch_plan().render().replace("## Status: in_progress", "## Status: paused")

    with pytest.raises(PlanFormatError):
        PlanDocument.parse(text)


def test_completed_is_terminal():
    done = launch_plan().transition_to(PlanStatus.COMPLETED)

    assert done.transition_to(PlanStatus.COMPLETED).status == PlanStatus.COMPLETED
    with pytest.raises(InvalidTransitionError):
        done.transition_to(PlanStatus.IN_PROGRESS)


def test_mark_step_rejects_unknown_index():
    with pytest.raises(InvalidTransitionError):
        launch_plan().mark_step(7)


def test_current_step_is_none_when_everything_is_done():
    plan = launch_plan().mark_step(1).mark_step(2).mark_step(3)

    assert plan.current_step is None
    assert "## Current Step: none" in plan.render()


def test_revision_may_add_steps_and_complete():
    previous = launch_plan()
    revised = previous.model_copy(update={
        "steps": previous.steps + [PlanStep(index=4, description="Retrospective")],
        "status": PlanStatus.COMPLETED,
    })

    revised.check_revision(previous, "Add a retrospective and complete the plan")


def test_completion_needs_a_description_that_asks_for_it():
    previous = launch_plan()
    completed = previous.mark_step(1).transition_to(PlanStatus.COMPLETED)

    for description in (None, "Mark step 1 complete", "Step 2 is done, add notes"):
        with pytest.raises(InvalidTransitionError):
            completed.check_revision(previous, description)

    completed.check_revision(previous, "Mark the plan as completed")
    previous.mark_step(1).check_revision(previous, "Mark step 1 complete")


@pytest.mark.parametrize("description, expected", [
    ("Complete the plan", True),
    ("All steps are done", True),
    ("Set plan status to completed", True),
    ("We're finished", True),
    ("Mark step 1 complete", False),
    ("Mark step 3 as done in the plan", False),
    ("Add a step for QA", False),
])
def test_requests_completion(description, expected):
    assert requests_completion(description) is expected


def test_revision_may_not_drop_or_renumber_steps():
    previous = launch_plan()

    dropped = previous.model_copy(update={"steps": previous.steps[:2]})
    with pytest.raises(InvalidTransitionError):
        dropped.check_revision(previous)

    gapped = previous.model_copy(update={
        "steps": [previous.steps[0], previous.steps[1].model_copy(update={"index": 5}), previous.steps[2]]
    })
    with pytest.raises(InvalidTransitionError):
        gapped.check_revision(previous)


def test_revision_may_not_reopen_a_completed_plan():
    previous = launch_plan().transition_to(PlanStatus.COMPLETED)

    with pytest.raises(InvalidTransitionError):
        launch_plan().check_revision(previous)
