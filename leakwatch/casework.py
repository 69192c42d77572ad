"""AI write-ups for the legal and evaluation views of a case."""

import hashlib
from datetime import datetime, timezone
from typing import Any

from pydantic_ai import Agent

from leakwatch.agents import get_audit_trail_agent, get_provider_summary_agent
from leakwatch.exceptions import SummaryError
from leakwatch.logging import get_logger
from leakwatch.models import AuditEventDraft, AuditEventKind, AuditTrailDraft, AuditTrailEntry, Case

log = get_logger("leakwatch.casework")

UNCHAINED_HASH = "N/A"
GENESIS_HASH = "0" * 64


def build_audit_trail_prompt(case: Case) -> str:
    return (
        "Case data:\n"
        f"- Title: {case.title}\n"
        f"- Author: {case.author}\n"
        f"- Journal: {case.journal}\n"
        f"- Risk score: {case.risk_score}\n"
        f"- Status: {case.status.value}\n"
        f"- LLM provider: {case.llm_provider or 'unknown'}\n"
        f"- Last detection: {case.last_detection_date}"
    )


def chain_entries(drafts: list[AuditEventDraft]) -> list[AuditTrailEntry]:
    """Order drafts by time and link each to the previous one with a SHA-256 digest."""
    entries: list[AuditTrailEntry] = []
    previous = GENESIS_HASH
    for draft in sorted(drafts, key=lambda d: d.timestamp):
        digest = hashlib.sha256(
            "|".join([previous, draft.timestamp.isoformat(), draft.kind.value, draft.title, draft.details]).encode()
        ).hexdigest()
        entries.append(AuditTrailEntry(**draft.model_dump(), hash=digest))
        previous = digest
    return entries


def _error_entry() -> AuditTrailEntry:
    return AuditTrailEntry(
        timestamp=datetime.now(timezone.utc),
        title="Audit trail generation error",
        details="An error occurred while the AI generated the audit trail.",
        kind=AuditEventKind.ALERT,
        hash=UNCHAINED_HASH,
    )


async def generate_audit_trail(
    case: Case,
    *,
    agent: Agent[Any, AuditTrailDraft] | None = None,
) -> list[AuditTrailEntry]:
    """Five to seven hash-chained timeline entries for `case`.

    Never raises: a failed agent call yields a single alert entry whose hash is "N/A".
    """
    _agent = agent or get_audit_trail_agent()
    try:
        result = await _agent.run(build_audit_trail_prompt(case))
    except Exception as e:
        log.warning("audit_trail.failed", case_id=case.id, error=str(e))
        return [_error_entry()]
    entries = chain_entries(result.output.entries)
    log.info("audit_trail.completed", case_id=case.id, entries=len(entries))
    return entries


async def summarize_providers(providers: list[str], *, agent: Agent[Any, str] | None = None) -> str:
    """Legal-report paragraph on the selected LLM providers.

    Raises:
        SummaryError: When the agent call fails.
    """
    _agent = agent or get_provider_summary_agent()
    try:
        result = await _agent.run(f"LLM providers under investigation: {', '.join(providers)}")
    except Exception as e:
        log.error("provider_summary.failed", providers=providers, error=str(e))
        raise SummaryError(reason=str(e)) from e
    return result.output.strip()
