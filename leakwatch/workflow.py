"""Investigation workflow: trace, scan, search and synthesis stages."""

import asyncio
import contextlib
import json
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from pydantic import BaseModel
from pydantic_ai import Agent

from leakwatch.agents import (
    get_quick_look_agent,
    get_search_agent,
    get_synthesis_agent,
    get_trace_agent,
    get_vulnerability_agent,
)
from leakwatch.events import ProgressEvent, ProgressKind, ProgressSink, discard_progress
from leakwatch.exceptions import SearchError, SynthesisError
from leakwatch.logging import bind_investigation_context, get_logger
from leakwatch.models import (
    DomainVulnerabilityFinding,
    DomainVulnerabilityScan,
    FoundPdf,
    InvestigationResults,
    InvestigationTarget,
    LlmTraceAnalysis,
    LlmTraceFinding,
    ReportSynthesis,
    RiskLevel,
    RiskParameter,
    SearchHit,
    SearchHits,
    Severity,
    StructuredReport,
)

log = get_logger("leakwatch.workflow")

# A first PDF search with fewer hits than this triggers the broadened search.
MIN_PDF_HITS = 5
MAX_GENERIC_RESULTS = 10
DOCUMENT_EXCERPT_CHARS = 100
EXPOSED_CONTENT_MIN_SCORE = 80

ANALYSIS_ERROR_PROVIDER = "Analysis error"
ANALYSIS_ERROR_VULNERABILITY = "Analysis error"
QUICK_LOOK_FALLBACK = (
    "An error occurred during the AI analysis. Please retry with the full investigation."
)

STEP_TRACE = "LLM training data trace"
STEP_SCAN = "Domain vulnerability scan"
STEP_SEARCH = "Web exposure search"
STEP_SYNTHESIS = "Final report synthesis"


def investigation_steps(target: InvestigationTarget) -> list[str]:
    scan = [STEP_SCAN] if target.domain else []
    return [STEP_TRACE, *scan, STEP_SEARCH, STEP_SYNTHESIS]


def _stage_ms(start: float) -> int:
    return int((perf_counter() - start) * 1000)


def _to_json(items: list[BaseModel] | None) -> str:
    if items is None:
        return "(not applicable)"
    return json.dumps([item.model_dump(mode="json") for item in items], ensure_ascii=False, indent=2)


# --- Prompts ---


def build_trace_prompt(target: InvestigationTarget) -> str:
    if target.document is not None:
        subject = f"```\n{target.document.text}\n```"
        evidence_rule = (
            "Quote, verbatim, the single sentence of the text above that is most relevant "
            "as the evidence."
        )
    else:
        subject = f"domain '{target.topic}'"
        evidence_rule = f"Always use the text 'General public information about {subject}' as the evidence."
    return (
        "Analyse whether the following content is likely to be substantially contained in the "
        "training data of major LLM providers and list the providers at risk.\n\n"
        f"Subject:\n{subject}\n\n"
        f"Evidence rule:\n{evidence_rule}"
    )


def build_vulnerability_prompt(domain: str) -> str:
    return (
        f"Diagnose the domain '{domain}' for concrete security concerns discoverable from public "
        "information. Report only what observable evidence supports."
    )


def build_generic_query(target: InvestigationTarget) -> str:
    if target.document is not None:
        excerpt = target.document.text[:DOCUMENT_EXCERPT_CHARS]
        return f'"{target.topic}" OR "{excerpt}..."'
    return f'"{target.topic}"'


def _site_prefix(target: InvestigationTarget) -> str:
    return f"site:{target.domain} " if target.domain else ""


def build_pdf_query(target: InvestigationTarget) -> str:
    return f'{_site_prefix(target)}"{target.topic}" filetype:pdf'


def build_broad_pdf_query(target: InvestigationTarget) -> str:
    return f'{_site_prefix(target)}"{target.topic}" (pdf OR "download" OR "paper")'


def build_synthesis_prompt(
    target: InvestigationTarget,
    search_results: list[SearchHit],
    pdf_hits: list[SearchHit],
    trace_findings: list[LlmTraceFinding],
    vulnerability_findings: list[DomainVulnerabilityFinding] | None,
    investigated_at: datetime,
) -> str:
    return (
        "Write the investigation report from the following data.\n\n"
        f"Investigation target: {target.label}\n"
        f"Web index status (search results): {_to_json(search_results)}\n"
        f"PDFs found on the domain: {_to_json(pdf_hits)}\n"
        f"LLM training data trace: {_to_json(trace_findings)}\n"
        f"Domain vulnerability scan: {_to_json(vulnerability_findings)}\n"
        f"Investigated at: {investigated_at.isoformat()}\n\n"
        f"Title the report 'Hacking risk and security vulnerability report for {target.label}'. "
        "Add evidence trail entries (EV-001, EV-002, ...) for each completed stage with sources "
        "llm_trace, domain_scan, web_search or pdf_analysis."
    )


# --- Merge and post-conditions ---


def merge_search_hits(*hit_lists: list[SearchHit]) -> list[SearchHit]:
    """Concatenate hit lists, keeping the first hit seen for each URL."""
    seen: set[str] = set()
    merged: list[SearchHit] = []
    for hits in hit_lists:
        for hit in hits:
            if hit.url in seen:
                continue
            seen.add(hit.url)
            merged.append(hit)
    return merged


def apply_exposure_rules(report: StructuredReport) -> StructuredReport:
    """Force the verdict to high when any PDF was found on the web."""
    if not report.investigation_results.found_pdfs:
        return report

    scoring = [
        score.model_copy(update={"score": max(score.score, EXPOSED_CONTENT_MIN_SCORE)})
        if score.parameter == RiskParameter.CONTENT_EXPOSURE
        else score
        for score in report.risk_scoring
    ]
    if report.overall_risk != RiskLevel.HIGH:
        log.warning(
            "investigation.synthesis.risk_escalated",
            reported=report.overall_risk.value,
            pdf_count=len(report.investigation_results.found_pdfs),
        )
    return report.model_copy(update={"overall_risk": RiskLevel.HIGH, "risk_scoring": scoring})


# --- Stages ---


async def _trace_stage(agent: Agent[Any, LlmTraceAnalysis], target: InvestigationTarget) -> list[LlmTraceFinding]:
    try:
        result = await agent.run(build_trace_prompt(target))
        return result.output.findings
    except Exception as e:
        log.warning("investigation.trace.failed", error=str(e))
        return [
            LlmTraceFinding(
                provider=ANALYSIS_ERROR_PROVIDER,
                risk=RiskLevel.UNKNOWN,
                evidence="An error occurred during the AI analysis.",
            )
        ]


async def _vulnerability_stage(
    agent: Agent[Any, DomainVulnerabilityScan], domain: str
) -> list[DomainVulnerabilityFinding]:
    try:
        result = await agent.run(build_vulnerability_prompt(domain))
        return result.output.findings
    except Exception as e:
        log.warning("investigation.scan.failed", domain=domain, error=str(e))
        return [
            DomainVulnerabilityFinding(
                vulnerability=ANALYSIS_ERROR_VULNERABILITY,
                severity=Severity.UNKNOWN,
                description="An error occurred during the AI vulnerability scan.",
            )
        ]


async def _search(agent: Agent[Any, SearchHits], query: str) -> list[SearchHit]:
    try:
        result = await agent.run(query)
    except Exception as e:
        log.error("investigation.search.failed", query=query, error=str(e))
        raise SearchError(query=query, reason=str(e)) from e
    return result.output.hits


async def _search_stage(
    agent: Agent[Any, SearchHits],
    target: InvestigationTarget,
    emit: ProgressSink,
) -> tuple[list[SearchHit], list[SearchHit]]:
    """Run the generic search alongside the PDF searches; returns (generic, pdfs)."""
    emit(ProgressEvent(kind=ProgressKind.STATUS, message="Investigating public exposure on the web..."))
    generic_task = asyncio.create_task(_search(agent, build_generic_query(target)))

    try:
        pdf_query = build_pdf_query(target)
        emit(ProgressEvent(kind=ProgressKind.STATUS, message=f"Searching for public PDFs ({pdf_query})..."))
        pdf_hits = merge_search_hits(await _search(agent, pdf_query))
        emit(ProgressEvent(kind=ProgressKind.INFO, message=f"Direct search found {len(pdf_hits)} PDF(s)."))

        if len(pdf_hits) < MIN_PDF_HITS:
            emit(
                ProgressEvent(
                    kind=ProgressKind.STATUS,
                    message="Few results found, running an additional search with broader keywords...",
                )
            )
            broad_hits = await _search(agent, build_broad_pdf_query(target))
            pdf_hits = merge_search_hits(pdf_hits, broad_hits)
            emit(
                ProgressEvent(
                    kind=ProgressKind.INFO,
                    message=f"After the additional search, {len(pdf_hits)} PDF(s) found in total.",
                )
            )

        generic_hits = await generic_task
    except BaseException:
        generic_task.cancel()
        # Collect the generic search outcome; its own failure is superseded by this one.
        with contextlib.suppress(BaseException):
            await generic_task
        raise

    return generic_hits[:MAX_GENERIC_RESULTS], pdf_hits


async def _synthesis_stage(agent: Agent[Any, ReportSynthesis], prompt: str) -> ReportSynthesis:
    try:
        result = await agent.run(prompt)
        return ReportSynthesis.model_validate(result.output.model_dump())
    except Exception as e:
        log.error("investigation.synthesis.failed", error=str(e))
        raise SynthesisError(reason=str(e)) from e


# --- Orchestration ---


async def run_investigation(
    target: InvestigationTarget,
    *,
    on_progress: ProgressSink | None = None,
    trace_agent: Agent[Any, LlmTraceAnalysis] | None = None,
    vulnerability_agent: Agent[Any, DomainVulnerabilityScan] | None = None,
    search_agent: Agent[Any, SearchHits] | None = None,
    synthesis_agent: Agent[Any, ReportSynthesis] | None = None,
) -> StructuredReport:
    """Run the full investigation against one target.

    Stages run in order: LLM trace, domain vulnerability scan (domains only),
    web/PDF search, report synthesis. Trace and scan failures are replaced by a
    single "analysis error" finding; search and synthesis failures are fatal.

    Args:
        target: Domain and/or document to investigate.
        on_progress: Called synchronously, in order, with every ProgressEvent.
        trace_agent: Override default trace agent (for testing).
        vulnerability_agent: Override default vulnerability agent (for testing).
        search_agent: Override default search agent (for testing).
        synthesis_agent: Override default synthesis agent (for testing).

    Returns:
        StructuredReport assembled from the synthesis and the raw stage outputs.

    Raises:
        SearchError: When a web search call fails.
        SynthesisError: When the final report cannot be produced.
    """
    emit = on_progress or discard_progress
    bind_investigation_context(target.label)

    _trace_agent = trace_agent or get_trace_agent()
    _vulnerability_agent = vulnerability_agent or get_vulnerability_agent()
    _search_agent = search_agent or get_search_agent()
    _synthesis_agent = synthesis_agent or get_synthesis_agent()

    workflow_start = perf_counter()
    log.info("investigation.started", has_domain=target.domain is not None, has_document=target.document is not None)
    emit(ProgressEvent(kind=ProgressKind.STATUS, message=f"Starting investigation of {target.label}..."))

    try:
        # Stage 1: LLM trace
        stage_start = perf_counter()
        emit(ProgressEvent(kind=ProgressKind.STATUS, message="Starting LLM training data trace..."))
        trace_findings = await _trace_stage(_trace_agent, target)
        emit(
            ProgressEvent(
                kind=ProgressKind.LLM_RESULT,
                message="LLM trace analysis results:",
                payload=[f.model_dump(mode="json") for f in trace_findings],
            )
        )
        log.info("investigation.trace.completed", duration_ms=_stage_ms(stage_start), findings=len(trace_findings))

        # Stage 2: domain vulnerability scan
        vulnerability_findings: list[DomainVulnerabilityFinding] | None = None
        if target.domain:
            stage_start = perf_counter()
            emit(
                ProgressEvent(
                    kind=ProgressKind.STATUS,
                    message=f"Starting vulnerability scan of domain '{target.domain}'...",
                )
            )
            vulnerability_findings = await _vulnerability_stage(_vulnerability_agent, target.domain)
            emit(
                ProgressEvent(
                    kind=ProgressKind.VULN_RESULT,
                    message="Domain vulnerability scan results:",
                    payload=[f.model_dump(mode="json") for f in vulnerability_findings],
                )
            )
            log.info(
                "investigation.scan.completed",
                duration_ms=_stage_ms(stage_start),
                findings=len(vulnerability_findings),
            )

        # Stage 3: web and PDF search
        stage_start = perf_counter()
        search_results, pdf_hits = await _search_stage(_search_agent, target, emit)
        log.info(
            "investigation.search.completed",
            duration_ms=_stage_ms(stage_start),
            search_results=len(search_results),
            pdf_hits=len(pdf_hits),
        )

        # Stage 4: synthesis
        stage_start = perf_counter()
        emit(ProgressEvent(kind=ProgressKind.STATUS, message="Combining all data into the final report..."))
        investigated_at = datetime.now(timezone.utc)
        synthesis = await _synthesis_stage(
            _synthesis_agent,
            build_synthesis_prompt(
                target, search_results, pdf_hits, trace_findings, vulnerability_findings, investigated_at
            ),
        )
        report = apply_exposure_rules(
            StructuredReport(
                **synthesis.model_dump(),
                investigation_results=InvestigationResults(
                    steps=investigation_steps(target),
                    search_results=search_results,
                    found_pdfs=[FoundPdf(title=hit.title, url=hit.url) for hit in pdf_hits],
                    llm_trace_analysis=trace_findings,
                    domain_vulnerability_analysis=vulnerability_findings,
                ),
            )
        )
        log.info(
            "investigation.synthesis.completed",
            duration_ms=_stage_ms(stage_start),
            overall_risk=report.overall_risk.value,
        )
    except Exception as e:
        log.error("investigation.failed", error_type=type(e).__name__, error=str(e))
        emit(ProgressEvent(kind=ProgressKind.ERROR, message=f"A fatal error occurred during the investigation: {e}"))
        raise

    emit(ProgressEvent(kind=ProgressKind.SUCCESS, message="The final report was generated successfully."))
    log.info("investigation.completed", total_ms=_stage_ms(workflow_start))
    return report


async def generate_quick_look(target: str, *, agent: Agent[Any, str] | None = None) -> str:
    """Short teaser summary for the landing page; falls back to a fixed message on error."""
    _agent = agent or get_quick_look_agent()
    try:
        result = await _agent.run(f"Target:\n{target}\n\nWrite the short summary for this target.")
    except Exception as e:
        log.warning("quick_look.failed", error=str(e))
        return QUICK_LOOK_FALLBACK
    return result.output.strip()
