from typing import Dict, Optional

from solaris.domain.models.document import DocumentKind

TEXT_PROMPT = """
Write about the given topic. Markdown is supported. Use headings wherever appropriate.
"""

CODE_PROMPT = """
You are a Python code generator that creates self-contained, executable code snippets.
Each snippet should be complete and runnable on its own, prefer print() to display
outputs, avoid external dependencies, and never use input() or network access.
"""

SHEET_PROMPT = """
You are a spreadsheet creation assistant. Create a spreadsheet in csv format based on
the given prompt. The spreadsheet should contain meaningful column headers and data.
"""

PLAN_PROMPT = """
You are a planning assistant. Create a structured plan document in Markdown format.

The plan MUST follow this exact structure:

# Plan: <title>

## Objective
<clear statement of what needs to be accomplished>

## Status: in_progress

## Steps
- [ ] Step 1: <description>
- [ ] Step 2: <description>

## Current Step: 1

## Notes
- Plan created

## Documents Created
(none yet)

Keep steps concrete and actionable. Never renumber or remove existing steps.
Do not add any preamble or explanation outside the plan structure.
"""

IMAGE_PROMPT = """
Describe the requested image as a detailed generation prompt: subject, composition,
style, lighting and palette. Output only the prompt text.
"""

PRESENTATION_PROMPT = """
You are a presentation creator. Generate a slide presentation using Markdown.
Use "---" on its own line to separate slides, start with a # title slide, use ##
for slide titles, keep each slide to 3-6 bullet points and end with a summary slide.
Theme directives go at the top of a slide as HTML comments, e.g. <!-- theme: dark -->.
"""

WEBVIEW_PROMPT = """
You are a web designer. Produce one self-contained HTML document (inline CSS and
JavaScript, no external requests) for the requested banner, poster or dashboard.
Output only the HTML.
"""

SYSTEM_PROMPTS: Dict[DocumentKind, str] = {
    DocumentKind.TEXT: TEXT_PROMPT,
    DocumentKind.CODE: CODE_PROMPT,
    DocumentKind.SHEET: SHEET_PROMPT,
    DocumentKind.PLAN: PLAN_PROMPT,
    DocumentKind.IMAGE: IMAGE_PROMPT,
    DocumentKind.PRESENTATION: PRESENTATION_PROMPT,
    DocumentKind.WEBVIEW: WEBVIEW_PROMPT,
}

MEDIA_TYPES: Dict[DocumentKind, str] = {
    DocumentKind.TEXT: "document",
    DocumentKind.CODE: "code snippet",
    DocumentKind.SHEET: "spreadsheet",
    DocumentKind.PLAN: "plan document",
    DocumentKind.IMAGE: "image description",
    DocumentKind.PRESENTATION: "slide presentation (Markdown with --- separators)",
    DocumentKind.WEBVIEW: "interactive HTML document",
}

if not set(SYSTEM_PROMPTS) == set(MEDIA_TYPES) == set(DocumentKind):
    raise RuntimeError("Every document kind needs a system prompt and a media type")


def update_document_prompt(current_content: Optional[str], kind: DocumentKind) -> str:
    """System prompt for rewriting an existing document"""

    prompt = (
        f"Improve the following contents of the {MEDIA_TYPES[kind]} based on the given prompt.\n"
        "Always return the complete revised content, never a partial patch.\n\n"
        f"{current_content or ''}"
    )
    if kind == DocumentKind.PLAN:
        prompt += "\n\n" + PLAN_PROMPT.strip()
    return prompt
