"""Print-safe HTML rendering of a finished report."""

import html
import re
from typing import Any

from pydantic_ai import Agent

from leakwatch.agents import get_presentation_agent
from leakwatch.logging import get_logger
from leakwatch.models import StructuredReport

log = get_logger("leakwatch.presentation")

DOCTYPE = "<!DOCTYPE html>"

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)


def wrap_html(body: str, title: str = "Report") -> str:
    """Minimal complete document around an HTML fragment."""
    return (
        f'{DOCTYPE}<html><head><meta charset="UTF-8"><title>{html.escape(title)}</title></head>'
        f"<body>{body}</body></html>"
    )


def normalize_html_document(text: str) -> str:
    """Coerce model output into a full HTML document that starts with a doctype."""
    text = text.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group("body").strip()

    lowered = text.lower()
    if lowered.startswith("<!doctype html"):
        return text
    if lowered.startswith("<html"):
        return f"{DOCTYPE}{text}"
    return wrap_html(text)


def build_presentation_prompt(report: StructuredReport, recipient: str) -> str:
    return (
        "Generate the official investigation report as HTML from the JSON data below.\n"
        f"Recipient for the cover page: {recipient}\n\n"
        f"Report data:\n{report.model_dump_json(indent=2)}"
    )


async def render_report_html(
    report: StructuredReport,
    recipient: str,
    *,
    agent: Agent[Any, str] | None = None,
) -> str:
    """Ask the presentation agent for a table-only HTML report.

    Never raises: a failed call yields an error document in the same skeleton.
    """
    _agent = agent or get_presentation_agent()
    try:
        result = await _agent.run(build_presentation_prompt(report, recipient))
    except Exception as e:
        log.error("presentation.failed", error=str(e))
        return wrap_html(
            f"<h1>Report generation error</h1><p>{html.escape(str(e))}</p>",
            title="Report generation error",
        )
    document = normalize_html_document(result.output)
    log.info("presentation.completed", size=len(document))
    return document
