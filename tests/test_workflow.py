"""Tests for investigation orchestration."""

import asyncio
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from pydantic_ai import Agent
from pydantic_ai.models.test import TestModel

from leakwatch.events import ProgressEvent, ProgressKind
from leakwatch.exceptions import SearchError, SynthesisError
from leakwatch.models import (
    ConclusionAndRecommendations,
    CurrentAnalysis,
    DocumentSource,
    DomainVulnerabilityFinding,
    DomainVulnerabilityScan,
    InvestigationTarget,
    LlmTraceAnalysis,
    LlmTraceFinding,
    ReportSynthesis,
    RiskLevel,
    RiskParameter,
    RiskScore,
    SearchHit,
    SearchHits,
    Severity,
    StructuredReport,
)
from leakwatch.workflow import (
    ANALYSIS_ERROR_PROVIDER,
    ANALYSIS_ERROR_VULNERABILITY,
    EXPOSED_CONTENT_MIN_SCORE,
    QUICK_LOOK_FALLBACK,
    STEP_SCAN,
    build_broad_pdf_query,
    build_generic_query,
    build_pdf_query,
    generate_quick_look,
    investigation_steps,
    merge_search_hits,
    run_investigation,
)

DOMAIN_TARGET = InvestigationTarget(domain="example.co.jp")
DOCUMENT_TARGET = InvestigationTarget(
    document=DocumentSource(name="protein_structure_prediction.pdf", text="Improving protein structure prediction.")
)


# --- Fixture Factories ---


def _hits(prefix: str, count: int) -> list[SearchHit]:
    return [SearchHit(title=f"{prefix} {i}", url=f"https://example.co.jp/{prefix}/{i}.pdf") for i in range(count)]


def _run_result(output: Any) -> Any:
    return type("RunResult", (), {"output": output})()


def _make_trace_agent() -> Agent[None, LlmTraceAnalysis]:
    analysis = LlmTraceAnalysis(
        findings=[LlmTraceFinding(provider="OpenAI", risk=RiskLevel.MEDIUM, evidence="General public information")]
    )
    return Agent(TestModel(custom_output_args=analysis.model_dump(mode="json")), output_type=LlmTraceAnalysis)


def _make_vulnerability_agent() -> Agent[None, DomainVulnerabilityScan]:
    scan = DomainVulnerabilityScan(
        findings=[
            DomainVulnerabilityFinding(
                vulnerability="Server version disclosure",
                severity=Severity.INFORMATIONAL,
                description="Server header reports the version.",
            )
        ]
    )
    return Agent(TestModel(custom_output_args=scan.model_dump(mode="json")), output_type=DomainVulnerabilityScan)


def _make_search_agent(
    pdf_hits: list[SearchHit],
    broad_hits: list[SearchHit] | None = None,
    generic_hits: list[SearchHit] | None = None,
) -> tuple[Agent[None, SearchHits], list[str]]:
    """Search agent answering by query shape; also returns the list of queries it saw."""
    agent = Agent(TestModel(custom_output_args={"hits": []}), output_type=SearchHits)
    queries: list[str] = []

    async def run(query: str, **kwargs: Any) -> Any:
        queries.append(query)
        if "filetype:pdf" in query:
            hits = pdf_hits
        elif "(pdf OR" in query:
            hits = broad_hits or []
        else:
            hits = generic_hits or []
        return _run_result(SearchHits(hits=list(hits)))

    agent.run = AsyncMock(side_effect=run)
    return agent, queries


def _make_synthesis(overall_risk: RiskLevel = RiskLevel.LOW, content_score: int = 20) -> ReportSynthesis:
    return ReportSynthesis(
        title="Hacking risk and security vulnerability report",
        executive_summary="Summary",
        overall_risk=overall_risk,
        risk_scoring=[
            RiskScore(parameter=RiskParameter.CONTENT_EXPOSURE, score=content_score, justification="j"),
            RiskScore(parameter=RiskParameter.LLM_TRAINING_INCLUSION, score=30, justification="j"),
            RiskScore(parameter=RiskParameter.DOMAIN_SECURITY, score=40, justification="j"),
        ],
        current_analysis=CurrentAnalysis(background="Automated OSINT investigation."),
        conclusion_and_recommendations=ConclusionAndRecommendations(conclusion="Conclusion"),
    )


def _make_synthesis_agent(synthesis: ReportSynthesis | None = None) -> Agent[None, ReportSynthesis]:
    synthesis = synthesis or _make_synthesis()
    return Agent(TestModel(custom_output_args=synthesis.model_dump(mode="json")), output_type=ReportSynthesis)


async def _investigate(target: InvestigationTarget, **overrides: Any) -> tuple[StructuredReport, list[ProgressEvent]]:
    events: list[ProgressEvent] = []
    agents: dict[str, Any] = {
        "trace_agent": _make_trace_agent(),
        "vulnerability_agent": _make_vulnerability_agent(),
        "search_agent": _make_search_agent(_hits("pdf", 6))[0],
        "synthesis_agent": _make_synthesis_agent(),
    }
    agents.update(overrides)
    report = await run_investigation(target, on_progress=events.append, **agents)
    return report, events


# --- Query builders ---


def test__generic_query__document_includes_excerpt() -> None:
    query = build_generic_query(DOCUMENT_TARGET)
    assert query == '"protein structure prediction" OR "Improving protein structure prediction...."'


def test__generic_query__domain_only_is_quoted_domain() -> None:
    assert build_generic_query(DOMAIN_TARGET) == '"example.co.jp"'


def test__pdf_queries__site_prefix_only_with_domain() -> None:
    assert build_pdf_query(DOMAIN_TARGET) == 'site:example.co.jp "example.co.jp" filetype:pdf'
    assert build_pdf_query(DOCUMENT_TARGET) == '"protein structure prediction" filetype:pdf'
    assert build_broad_pdf_query(DOMAIN_TARGET).startswith("site:example.co.jp ")
    assert '(pdf OR "download" OR "paper")' in build_broad_pdf_query(DOCUMENT_TARGET)


def test__investigation_steps__skip_scan_without_domain() -> None:
    assert STEP_SCAN in investigation_steps(DOMAIN_TARGET)
    assert STEP_SCAN not in investigation_steps(DOCUMENT_TARGET)


def test__merge_search_hits__dedupes_by_url_in_first_seen_order() -> None:
    first = [SearchHit(title="a", url="https://x/1"), SearchHit(title="b", url="https://x/2")]
    second = [SearchHit(title="dup", url="https://x/2"), SearchHit(title="c", url="https://x/3")]

    merged = merge_search_hits(first, second)

    assert [h.url for h in merged] == ["https://x/1", "https://x/2", "https://x/3"]
    assert merged[1].title == "b"


# --- Orchestration ---


@pytest.mark.asyncio
async def test__document_only__skips_scan_and_leaves_vulnerabilities_empty() -> None:
    vulnerability_agent = _make_vulnerability_agent()
    vulnerability_agent.run = AsyncMock()

    report, events = await _investigate(DOCUMENT_TARGET, vulnerability_agent=vulnerability_agent)

    vulnerability_agent.run.assert_not_called()
    assert report.investigation_results.domain_vulnerability_analysis is None
    assert ProgressKind.VULN_RESULT not in [e.kind for e in events]


@pytest.mark.asyncio
async def test__enough_pdf_hits__no_broadened_search() -> None:
    search_agent, queries = _make_search_agent(_hits("pdf", 5))

    report, _ = await _investigate(DOMAIN_TARGET, search_agent=search_agent)

    assert not any("(pdf OR" in q for q in queries)
    assert len(report.investigation_results.found_pdfs) == 5


@pytest.mark.asyncio
async def test__few_pdf_hits__broadened_search_merged_without_duplicates() -> None:
    direct = _hits("pdf", 2)
    broad = [direct[1], *_hits("broad", 2)]
    search_agent, queries = _make_search_agent(direct, broad_hits=broad)

    report, events = await _investigate(DOMAIN_TARGET, search_agent=search_agent)

    assert sum("(pdf OR" in q for q in queries) == 1
    urls = [p.url for p in report.investigation_results.found_pdfs]
    assert urls == [direct[0].url, direct[1].url, broad[1].url, broad[2].url]
    assert any("additional search" in e.message for e in events)


@pytest.mark.asyncio
async def test__generic_results__truncated_to_ten() -> None:
    search_agent, _ = _make_search_agent(_hits("pdf", 5), generic_hits=_hits("web", 15))

    report, _ = await _investigate(DOMAIN_TARGET, search_agent=search_agent)

    assert len(report.investigation_results.search_results) == 10


@pytest.mark.asyncio
async def test__pdfs_found__risk_forced_high_and_exposure_floored() -> None:
    synthesis_agent = _make_synthesis_agent(_make_synthesis(overall_risk=RiskLevel.LOW, content_score=10))

    report, _ = await _investigate(DOMAIN_TARGET, synthesis_agent=synthesis_agent)

    assert report.overall_risk == RiskLevel.HIGH
    assert report.score_for(RiskParameter.CONTENT_EXPOSURE).score == EXPOSED_CONTENT_MIN_SCORE
    assert report.score_for(RiskParameter.DOMAIN_SECURITY).score == 40


@pytest.mark.asyncio
async def test__no_pdfs__synthesized_risk_kept() -> None:
    search_agent, _ = _make_search_agent([])

    report, _ = await _investigate(DOMAIN_TARGET, search_agent=search_agent)

    assert report.investigation_results.found_pdfs == []
    assert report.overall_risk == RiskLevel.LOW


@pytest.mark.asyncio
async def test__trace_failure__single_sentinel_and_report_still_produced() -> None:
    trace_agent = _make_trace_agent()
    trace_agent.run = AsyncMock(side_effect=RuntimeError("model unavailable"))

    report, events = await _investigate(DOMAIN_TARGET, trace_agent=trace_agent)

    findings = report.investigation_results.llm_trace_analysis
    assert len(findings) == 1
    assert findings[0].provider == ANALYSIS_ERROR_PROVIDER
    assert findings[0].risk == RiskLevel.UNKNOWN
    assert events[-1].kind == ProgressKind.SUCCESS


@pytest.mark.asyncio
async def test__scan_failure__single_sentinel_finding() -> None:
    vulnerability_agent = _make_vulnerability_agent()
    vulnerability_agent.run = AsyncMock(side_effect=RuntimeError("boom"))

    report, _ = await _investigate(DOMAIN_TARGET, vulnerability_agent=vulnerability_agent)

    findings = report.investigation_results.domain_vulnerability_analysis
    assert findings is not None and len(findings) == 1
    assert findings[0].vulnerability == ANALYSIS_ERROR_VULNERABILITY
    assert findings[0].severity == Severity.UNKNOWN


@pytest.mark.asyncio
async def test__domain_with_six_pdfs__end_to_end() -> None:
    search_agent, queries = _make_search_agent(_hits("pdf", 6))

    report, events = await _investigate(DOMAIN_TARGET, search_agent=search_agent)

    assert report.overall_risk == RiskLevel.HIGH
    assert len(report.investigation_results.found_pdfs) == 6
    assert not any("(pdf OR" in q for q in queries)
    assert report.investigation_results.domain_vulnerability_analysis is not None

    kinds = [e.kind for e in events]
    assert kinds[0] == ProgressKind.STATUS
    assert kinds.index(ProgressKind.LLM_RESULT) < kinds.index(ProgressKind.VULN_RESULT)
    assert kinds[-1] == ProgressKind.SUCCESS
    assert ProgressKind.ERROR not in kinds


@pytest.mark.asyncio
async def test__synthesis_failure__emits_error_event_and_raises() -> None:
    synthesis_agent = _make_synthesis_agent()
    synthesis_agent.run = AsyncMock(side_effect=RuntimeError("invalid JSON"))
    events: list[ProgressEvent] = []

    with pytest.raises(SynthesisError, match="invalid JSON"):
        await run_investigation(
            DOMAIN_TARGET,
            on_progress=events.append,
            trace_agent=_make_trace_agent(),
            vulnerability_agent=_make_vulnerability_agent(),
            search_agent=_make_search_agent(_hits("pdf", 6))[0],
            synthesis_agent=synthesis_agent,
        )

    assert events[-1].kind == ProgressKind.ERROR
    assert [e.kind for e in events].count(ProgressKind.ERROR) == 1


@pytest.mark.asyncio
async def test__search_failure__raises_search_error() -> None:
    search_agent = Agent(TestModel(custom_output_args={"hits": []}), output_type=SearchHits)
    search_agent.run = AsyncMock(side_effect=RuntimeError("quota exceeded"))
    events: list[ProgressEvent] = []

    with pytest.raises(SearchError):
        await run_investigation(
            DOMAIN_TARGET,
            on_progress=events.append,
            trace_agent=_make_trace_agent(),
            vulnerability_agent=_make_vulnerability_agent(),
            search_agent=search_agent,
            synthesis_agent=_make_synthesis_agent(),
        )

    assert events[-1].kind == ProgressKind.ERROR


@pytest.mark.asyncio
async def test__progress_events__timestamps_are_ordered() -> None:
    _, events = await _investigate(DOMAIN_TARGET)

    timestamps = [e.timestamp for e in events]
    assert timestamps == sorted(timestamps)
    assert all(t.tzinfo is not None and t <= datetime.now(timezone.utc) for t in timestamps)


@pytest.mark.asyncio
async def test__default_agents__resolved_from_getters() -> None:
    search_agent, _ = _make_search_agent(_hits("pdf", 6))
    with (
        patch("leakwatch.workflow.get_trace_agent", return_value=_make_trace_agent()),
        patch("leakwatch.workflow.get_vulnerability_agent", return_value=_make_vulnerability_agent()),
        patch("leakwatch.workflow.get_search_agent", return_value=search_agent),
        patch("leakwatch.workflow.get_synthesis_agent", return_value=_make_synthesis_agent()),
    ):
        report = await run_investigation(DOMAIN_TARGET)

    assert isinstance(report, StructuredReport)


# --- Quick look ---


@pytest.mark.asyncio
async def test__quick_look__returns_agent_text() -> None:
    agent = Agent(TestModel(custom_output_text="  Public PDFs may be indexed. Run the full investigation.  "))

    summary = await generate_quick_look("example.co.jp", agent=agent)

    assert summary == "Public PDFs may be indexed. Run the full investigation."


@pytest.mark.asyncio
async def test__quick_look__failure_returns_fallback() -> None:
    agent = Agent(TestModel(custom_output_text="unused"))
    agent.run = AsyncMock(side_effect=RuntimeError("down"))

    assert await generate_quick_look("example.co.jp", agent=agent) == QUICK_LOOK_FALLBACK


# --- Scoring and search task cleanup ---


@pytest.mark.asyncio
async def test__synthesis_with_duplicate_scores__raises_synthesis_error() -> None:
    synthesis = _make_synthesis().model_dump(mode="json")
    synthesis["risk_scoring"] = [
        {"parameter": "domain_security", "score": 40, "justification": "j"},
        {"parameter": "domain_security", "score": 40, "justification": "j"},
        {"parameter": "llm_training_inclusion", "score": 30, "justification": "j"},
    ]
    synthesis_agent = Agent(TestModel(custom_output_args=synthesis), output_type=ReportSynthesis)

    with pytest.raises(SynthesisError):
        await _investigate(DOMAIN_TARGET, synthesis_agent=synthesis_agent)


@pytest.mark.asyncio
async def test__unvalidated_synthesis_output__rechecked_before_report() -> None:
    valid = _make_synthesis()
    missing_exposure = ReportSynthesis.model_construct(
        **{**dict(valid), "risk_scoring": [s for s in valid.risk_scoring if s.parameter != RiskParameter.CONTENT_EXPOSURE]}
    )
    synthesis_agent = _make_synthesis_agent()
    synthesis_agent.run = AsyncMock(return_value=_run_result(missing_exposure))

    with pytest.raises(SynthesisError, match="exactly once"):
        await _investigate(DOMAIN_TARGET, synthesis_agent=synthesis_agent)


@pytest.mark.asyncio
async def test__pdfs_found__every_report_carries_floored_exposure_score() -> None:
    report, _ = await _investigate(DOMAIN_TARGET)

    exposure = [s for s in report.risk_scoring if s.parameter == RiskParameter.CONTENT_EXPOSURE]
    assert len(exposure) == 1
    assert exposure[0].score >= EXPOSED_CONTENT_MIN_SCORE


def _failing_search_agent(generic: Any) -> Agent[None, SearchHits]:
    agent = Agent(TestModel(custom_output_args={"hits": []}), output_type=SearchHits)

    async def run(query: str, **kwargs: Any) -> Any:
        if "filetype:pdf" in query:
            await asyncio.sleep(0.01)
            raise RuntimeError("pdf search down")
        return await generic()

    agent.run = AsyncMock(side_effect=run)
    return agent


async def _generic_search_task(search_agent: Agent[None, SearchHits]) -> asyncio.Task:
    tasks: list[asyncio.Task] = []
    create_task = asyncio.create_task

    def record(coro: Any, **kwargs: Any) -> asyncio.Task:
        task = create_task(coro, **kwargs)
        tasks.append(task)
        return task

    with patch("leakwatch.workflow.asyncio.create_task", side_effect=record):
        with pytest.raises(SearchError, match="pdf search down"):
            await _investigate(DOMAIN_TARGET, search_agent=search_agent)

    generic = [t for t in tasks if t.get_coro().__qualname__ == "_search"]
    assert len(generic) == 1
    return generic[0]


@pytest.mark.asyncio
async def test__pdf_search_failure__pending_generic_search_is_cancelled_and_awaited() -> None:
    async def slow() -> Any:
        await asyncio.sleep(10)
        return _run_result(SearchHits())

    task = await _generic_search_task(_failing_search_agent(slow))

    assert task.done()
    assert task.cancelled()


@pytest.mark.asyncio
async def test__pdf_search_failure__failed_generic_search_is_collected() -> None:
    async def broken() -> Any:
        raise RuntimeError("generic search down")

    task = await _generic_search_task(_failing_search_agent(broken))

    assert task.done()
    assert isinstance(task.exception(), SearchError)
