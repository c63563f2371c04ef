"""
Structured plan documents.

A plan is stored as Markdown with a fixed grammar::

    # Plan: <title>

    ## Objective
    <free text>

    ## Status: in_progress

    ## Steps
    - [ ] Step 1: <description>
      - [x] Step 2: <nested description>

    ## Current Step: 1

    ## Notes
    - <note>

    ## Documents Created
    - <document>

Step lines are indented two spaces per nesting level. ``Current Step`` is
derived from the steps and ignored when parsing. Updates always re-serialize
the whole structure; there are no partial patches.
"""

from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum
import re

from solaris.domain.errors import InvalidTransitionError, PlanFormatError

EMPTY_SECTION = "(none yet)"

_TITLE_RE = re.compile(r"^#\s+Plan:\s*(?P<title>.*?)\s*$")
_SECTION_RE = re.compile(r"^##\s+(?P<name>[^:]+?)\s*(?::\s*(?P<value>.*?))?\s*$")
_STEP_RE = re.compile(
    r"^(?P<indent>\s*)[-*]\s+\[(?P<mark>[ xX])\]\s+(?:Step\s+(?P<index>\d+)\s*[:.]\s*)?(?P<description>.*?)\s*$"
)
_COMPLETION_RE = re.compile(r"\b(complete[ds]?|completion|finish(?:ed|es)?|done|wrap(?:ped)? up)\b", re.IGNORECASE)
_PLAN_COMPLETION_RE = re.compile(
    r"\b(?:complete|finish|wrap up|close out)\s+(?:the\s+|this\s+)?(?:whole\s+|entire\s+)?(?:plan|objective)\b"
    r"|\b(?:plan|objective)\s+(?:is\s+|as\s+)?(?:now\s+)?(?:complete|completed|done|finished)\b"
    r"|\bplan\s+(?:status\s+)?(?:as|to)\s+(?:complete|completed|done|finished)\b"
    r"|\ball\s+(?:the\s+)?(?:steps|tasks)\s+(?:are\s+)?(?:now\s+)?(?:complete|completed|done|finished)\b"
    r"|\bstatus\s*(?:to|:)\s*completed?\b",
    re.IGNORECASE
)
_STEP_WORD_RE = re.compile(r"\bsteps?\b", re.IGNORECASE)


def requests_completion(description: str) -> bool:
    """Whether an update description asks to complete the plan itself, not a single step"""

    if _PLAN_COMPLETION_RE.search(description):
        return True
    return bool(_COMPLETION_RE.search(description)) and not _STEP_WORD_RE.search(description)


class PlanStatus(str, Enum):
    """Plan status; completed is terminal"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    def can_transition_to(self, target: "PlanStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    PlanStatus.IN_PROGRESS: {PlanStatus.IN_PROGRESS, PlanStatus.COMPLETED},
    PlanStatus.COMPLETED: {PlanStatus.COMPLETED},
}


class PlanStep(BaseModel):
    """A single plan step"""
    index: int = Field(ge=1, description="Stable 1-based step number")
    description: str
    done: bool = False
    level: int = Field(0, ge=0, description="Nesting depth")

    def render(self) -> str:
        mark = "x" if self.done else " "
        return f"{'  ' * self.level}- [{mark}] Step {self.index}: {self.description}"


class PlanDocument(BaseModel):
    """Parsed form of a plan document"""
    title: str
    objective: str
    status: PlanStatus = PlanStatus.IN_PROGRESS
    steps: List[PlanStep] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    documents_created: List[str] = Field(default_factory=list)

    @classmethod
    def new(cls, title: str, objective: str, steps: List[str]) -> "PlanDocument":
        """A fresh plan with every step pending"""
        return cls(
            title=title,
            objective=objective,
            steps=[PlanStep(index=i, description=text) for i, text in enumerate(steps, start=1)]
        )

    @property
    def current_step(self) -> Optional[int]:
        for step in self.steps:
            if not step.done:
                return step.index
        return None

    def render(self) -> str:
        """Canonical Markdown serialization"""

        steps = "\n".join(step.render() for step in self.steps) or EMPTY_SECTION
        current = self.current_step
        notes = "\n".join(f"- {note}" for note in self.notes) or EMPTY_SECTION
        documents = "\n".join(f"- {doc}" for doc in self.documents_created) or EMPTY_SECTION

        return (
            f"# Plan: {self.title}\n\n"
            f"## Objective\n{self.objective}\n\n"
            f"## Status: {self.status.value}\n\n"
            f"## Steps\n{steps}\n\n"
            f"## Current Step: {current if current is not None else 'none'}\n\n"
            f"## Notes\n{notes}\n\n"
            f"## Documents Created\n{documents}\n"
        )

    @classmethod
    def parse(cls, text: str) -> "PlanDocument":
        """Parse plan Markdown; raises PlanFormatError on a missing section"""

        title = None
        status = None
        sections = {}
        current = None

        for line in text.splitlines():
            title_match = _TITLE_RE.match(line)
            if title_match and title is None:
                title = title_match.group("title")
                current = None
                continue

            section_match = _SECTION_RE.match(line)
            if section_match:
                name = section_match.group("name").strip().lower()
                value = section_match.group("value")
                if name == "status":
                    status = re.sub(r"[\s-]+", "_", (value or "").strip().lower())
                    current = None
                elif name == "current step":
                    current = None
                else:
                    current = name
                    sections.setdefault(name, [])
                continue

            if current is not None:
                sections[current].append(line)

        missing = [
            name for name, present in (
                ("objective", "objective" in sections),
                ("status", status is not None),
                ("steps", "steps" in sections),
                ("notes", "notes" in sections),
            ) if not present
        ]
        if missing:
            raise PlanFormatError(f"Plan is missing required sections: {', '.join(missing)}")

        try:
            plan_status = PlanStatus(status)
        except ValueError:
            raise PlanFormatError(f"Unknown plan status: {status!r}")

        return cls(
            title=title or "",
            objective="\n".join(sections["objective"]).strip(),
            status=plan_status,
            steps=_parse_steps(sections["steps"]),
            notes=_parse_bullets(sections["notes"]),
            documents_created=_parse_bullets(sections.get("documents created", []))
        )

    def mark_step(self, index: int, done: bool = True) -> "PlanDocument":
        """Copy of the plan with one step's done flag changed"""

        if not any(step.index == index for step in self.steps):
            raise InvalidTransitionError(f"Plan has no step {index}")
        steps = [
            step.model_copy(update={"done": done}) if step.index == index else step
            for step in self.steps
        ]
        return self.model_copy(update={"steps": steps})

    def transition_to(self, status: PlanStatus) -> "PlanDocument":
        if not self.status.can_transition_to(status):
            raise InvalidTransitionError(
                f"Plan status cannot change from {self.status.value} to {status.value}"
            )
        return self.model_copy(update={"status": status})

    def check_revision(self, previous: "PlanDocument", description: Optional[str] = None):
        """Validate this plan as the successor of ``previous``.

        The status must follow the state machine and step indices must stay
        stable: numbered from 1 without gaps, and no earlier step dropped.
        A plan only becomes completed when ``description`` asks for it.
        """

        if not previous.status.can_transition_to(self.status):
            raise InvalidTransitionError(
                f"Plan status cannot change from {previous.status.value} to {self.status.value}"
            )

        if (
            previous.status != PlanStatus.COMPLETED
            and self.status == PlanStatus.COMPLETED
            and not (description and requests_completion(description))
        ):
            raise InvalidTransitionError(
                "Plan can only be completed by an update that asks for completion",
                {"description": description}
            )

        indices = [step.index for step in self.steps]
        if indices != list(range(1, len(indices) + 1)):
            raise InvalidTransitionError(f"Plan step indices must be consecutive from 1, got {indices}")

        if len(self.steps) < len(previous.steps):
            raise InvalidTransitionError(
                f"Plan revision dropped steps: had {len(previous.steps)}, now {len(self.steps)}"
            )


def _parse_steps(lines: List[str]) -> List[PlanStep]:
    steps = []
    for line in lines:
        match = _STEP_RE.match(line)
        if not match:
            continue
        indent = len(match.group("indent").expandtabs(2))
        index = match.group("index")
        steps.append(PlanStep(
            index=int(index) if index else len(steps) + 1,
            description=match.group("description"),
            done=match.group("mark") in ("x", "X"),
            level=indent // 2
        ))
    return steps


def _parse_bullets(lines: List[str]) -> List[str]:
    items = []
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped == EMPTY_SECTION:
            continue
        if stripped[0] in "-*":
            stripped = stripped[1:].strip()
        items.append(stripped)
    return items
