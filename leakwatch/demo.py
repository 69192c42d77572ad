"""Demo mode fixtures for exploring the service without a store or API keys."""

from datetime import datetime, timezone
from functools import lru_cache
from typing import AsyncIterator

from leakwatch.config import Settings, get_settings
from leakwatch.datasource import case_row, report_row
from leakwatch.events import CompleteEvent, ProgressEvent, ProgressKind
from leakwatch.logging import get_logger
from leakwatch.models import (
    Case,
    CasePhase,
    CaseStatus,
    ConclusionAndRecommendations,
    CurrentAnalysis,
    DomainVulnerabilityFinding,
    EvidenceItem,
    EvidenceSource,
    FoundPdf,
    GeneratedReport,
    InvestigationResults,
    InvestigationTarget,
    Issue,
    LlmProviderRisk,
    LlmTraceFinding,
    NewCase,
    NewReport,
    Priority,
    Recommendation,
    ReportFormat,
    ReportStatus,
    RiskLevel,
    RiskParameter,
    RiskScore,
    SearchHit,
    Severity,
    StructuredReport,
    Trace,
)
from leakwatch.workflow import investigation_steps

log = get_logger("leakwatch.demo")

DEMO_DOMAIN = "example.co.jp"

_DEMO_CASES = (
    Case(
        id=1,
        title="Improving protein structure prediction accuracy with deep learning",
        author="Satoshi Tanaka",
        journal="Transactions of the Japanese Society for Artificial Intelligence",
        risk_score=92,
        phase=CasePhase.III,
        status=CaseStatus.PUBLISHED,
        last_detection_date="2024-07-21",
        llm_provider="GPT-4",
    ),
    Case(
        id=2,
        title="Emergence of cooperative behaviour in multi-agent reinforcement learning",
        author="Kenichi Sato",
        journal="Japanese Journal of Applied Physics",
        risk_score=85,
        phase=CasePhase.II,
        status=CaseStatus.UNDER_REVIEW,
        last_detection_date="2024-07-19",
        llm_provider="Claude 3",
    ),
    Case(
        id=3,
        title="Fast solutions to optimisation problems with quantum annealing",
        author="Yuko Suzuki",
        journal="Annual Meeting of the Molecular Biology Society of Japan",
        risk_score=75,
        phase=CasePhase.IV,
        status=CaseStatus.PUBLISHED,
        last_detection_date="2024-06-30",
        llm_provider="Gemini Advanced",
    ),
    Case(
        id=4,
        title="A stochastic model of intracellular signal transduction",
        author="Ayumi Ito",
        journal="Biophysical Society of Japan",
        risk_score=68,
        phase=CasePhase.I,
        status=CaseStatus.ACCEPTED_UNPUBLISHED,
        last_detection_date="2024-07-22",
        llm_provider="N/A",
    ),
    Case(
        id=5,
        title="On the interpretability of Transformer models",
        author="Yudai Watanabe",
        journal="Transactions of the Japanese Society for Artificial Intelligence",
        risk_score=55,
        phase=CasePhase.II,
        status=CaseStatus.PUBLISHED,
        last_detection_date="2024-07-15",
        llm_provider="GPT-4",
    ),
    Case(
        id=6,
        title="Predicting off-target effects of CRISPR/Cas9 genome editing",
        author="Misaki Nakamura",
        journal="Annual Meeting of the Molecular Biology Society of Japan",
        risk_score=45,
        phase=CasePhase.I,
        status=CaseStatus.UNPUBLISHED,
        last_detection_date="2024-07-20",
        llm_provider="N/A",
    ),
)

_DEMO_LLM_PROVIDER_RISKS = (
    LlmProviderRisk(name="Google Search Index", trace_count=150, cumulative_sda=0, highest_risk=RiskLevel.HIGH, confidence_score=99),
    LlmProviderRisk(name="GPT-4", trace_count=48, cumulative_sda=85.2, highest_risk=RiskLevel.HIGH, confidence_score=95),
    LlmProviderRisk(name="Claude 3", trace_count=32, cumulative_sda=79.8, highest_risk=RiskLevel.HIGH, confidence_score=92),
    LlmProviderRisk(name="Gemini Advanced", trace_count=25, cumulative_sda=75.1, highest_risk=RiskLevel.MEDIUM, confidence_score=88),
    LlmProviderRisk(name="Llama 3", trace_count=15, cumulative_sda=68.4, highest_risk=RiskLevel.MEDIUM, confidence_score=85),
    LlmProviderRisk(name="Command R+", trace_count=8, cumulative_sda=62.5, highest_risk=RiskLevel.LOW, confidence_score=80),
)

_DEMO_TRACES = (
    Trace(id=1, target="Protein structure prediction model", fingerprint_similarity=88, structural_dependency=92, paraphrase_score=75, llm_provider="GPT-4"),
    Trace(id=2, target="Reinforcement learning reward function", fingerprint_similarity=82, structural_dependency=85, paraphrase_score=68, llm_provider="Claude 3"),
    Trace(id=3, target="Quantum annealing algorithm", fingerprint_similarity=70, structural_dependency=75, paraphrase_score=80, llm_provider="Gemini Advanced"),
)

_DEMO_REPORTS = (
    GeneratedReport(
        id="REP-2024-002",
        case_id=10,
        case_title="Applying graph neural networks to molecular design",
        risk_score=95,
        llm_providers=["Gemini Advanced"],
        generated_at=datetime(2024, 7, 23, 10, 15, tzinfo=timezone.utc),
        format=ReportFormat.PDF,
        status=ReportStatus.ARCHIVED,
        version=1,
    ),
    GeneratedReport(
        id="REP-2024-001",
        case_id=1,
        case_title="Improving protein structure prediction accuracy with deep learning",
        risk_score=92,
        llm_providers=["GPT-4", "Claude 3"],
        generated_at=datetime(2024, 7, 22, 14, 30, tzinfo=timezone.utc),
        format=ReportFormat.PDF,
        status=ReportStatus.ARCHIVED,
        version=2,
    ),
)


def get_demo_cases() -> list[Case]:
    """The six demo cases, always the same records in the same order."""
    return list(_DEMO_CASES)


def get_demo_llm_provider_risks() -> list[LlmProviderRisk]:
    return list(_DEMO_LLM_PROVIDER_RISKS)


def get_demo_traces() -> list[Trace]:
    return list(_DEMO_TRACES)


def get_demo_reports() -> list[GeneratedReport]:
    """Demo report records, newest first."""
    return list(_DEMO_REPORTS)


def is_demo_mode_allowed(settings: Settings | None = None) -> bool:
    """Check if demo mode is allowed in the current environment.

    Demo responses are only served in development and staging.
    """
    return (settings or get_settings()).demo_allowed


class DemoDataSource:
    """Serves the fixed fixtures; writes live in this instance's memory only."""

    def __init__(self) -> None:
        self._cases = get_demo_cases()
        self._reports = get_demo_reports()

    async def list_cases(self) -> list[Case]:
        return list(self._cases)

    async def get_case(self, case_id: int) -> Case | None:
        return next((c for c in self._cases if c.id == case_id), None)

    async def add_case(self, new_case: NewCase) -> Case | None:
        next_id = max((c.id for c in self._cases), default=0) + 1
        case = Case.model_validate(
            {**case_row(new_case), "id": next_id, "created_at": datetime.now(timezone.utc)}
        )
        self._cases.append(case)
        log.info("demo.case_added", case_id=case.id)
        return case

    async def list_llm_provider_risks(self) -> list[LlmProviderRisk]:
        return get_demo_llm_provider_risks()

    async def list_traces(self) -> list[Trace]:
        return get_demo_traces()

    async def list_reports(self) -> list[GeneratedReport]:
        return sorted(self._reports, key=lambda r: r.generated_at, reverse=True)

    async def add_report(self, new_report: NewReport) -> GeneratedReport | None:
        now = datetime.now(timezone.utc)
        report_id = f"REP-{now.year}-{len(self._reports) + 1:03d}"
        report = GeneratedReport.model_validate(report_row(new_report, report_id, now))
        self._reports.append(report)
        log.info("demo.report_added", report_id=report.id)
        return report


@lru_cache(maxsize=1)
def get_demo_report() -> StructuredReport:
    """Cached demo report for a domain with publicly exposed PDFs."""
    now = datetime(2024, 7, 22, 9, 0, tzinfo=timezone.utc)
    pdfs = [
        FoundPdf(title="Annual research bulletin 2023", url=f"https://{DEMO_DOMAIN}/files/bulletin2023.pdf"),
        FoundPdf(title="Lab seminar slides (draft)", url=f"https://{DEMO_DOMAIN}/lab/seminar_draft.pdf"),
    ]
    return StructuredReport(
        title=f"Investigation report: public exposure of domain '{DEMO_DOMAIN}'",
        executive_summary=(
            f"Two PDF documents hosted on {DEMO_DOMAIN} are publicly downloadable and indexed by search engines. "
            "The material appears in results of general web searches, so it is reachable by crawlers that collect "
            "LLM training data. The domain also exposes server version information in its response headers."
        ),
        overall_risk=RiskLevel.HIGH,
        risk_scoring=[
            RiskScore(
                parameter=RiskParameter.CONTENT_EXPOSURE,
                score=90,
                justification="Two PDFs were found through public search queries.",
            ),
            RiskScore(
                parameter=RiskParameter.LLM_TRAINING_INCLUSION,
                score=70,
                justification="Indexed public documents are a common source for LLM training corpora.",
            ),
            RiskScore(
                parameter=RiskParameter.DOMAIN_SECURITY,
                score=45,
                justification="Only informational disclosures were observed from public signals.",
            ),
        ],
        current_analysis=CurrentAnalysis(
            background=(
                "This investigation is an automated OSINT review based on public search results and publicly "
                "observable signals. It cannot see content behind authentication."
            ),
            issues=[
                Issue(issue="Unintended public PDF", impact="Unpublished research can be read and reused by third parties."),
                Issue(issue="Server version disclosure", impact="Attackers can match the version against known vulnerabilities."),
            ],
        ),
        investigation_results=InvestigationResults(
            steps=investigation_steps(InvestigationTarget(domain=DEMO_DOMAIN)),
            search_results=[
                SearchHit(title=p.title, url=p.url, snippet="Available for download.") for p in pdfs
            ],
            found_pdfs=pdfs,
            llm_trace_analysis=[
                LlmTraceFinding(
                    provider="OpenAI",
                    risk=RiskLevel.MEDIUM,
                    evidence=f"General public information about domain '{DEMO_DOMAIN}'",
                ),
                LlmTraceFinding(
                    provider="Google",
                    risk=RiskLevel.MEDIUM,
                    evidence=f"General public information about domain '{DEMO_DOMAIN}'",
                ),
            ],
            domain_vulnerability_analysis=[
                DomainVulnerabilityFinding(
                    vulnerability="Server version disclosure",
                    severity=Severity.INFORMATIONAL,
                    description="The Server response header reports the exact web server version.",
                )
            ],
        ),
        evidence_trail=[
            EvidenceItem(evidence_id="EV-001", description="LLM trace analysis completed", source=EvidenceSource.LLM_TRACE, timestamp=now),
            EvidenceItem(evidence_id="EV-002", description="Domain scan completed", source=EvidenceSource.DOMAIN_SCAN, timestamp=now),
            EvidenceItem(evidence_id="EV-003", description="Two public PDFs found", source=EvidenceSource.PDF_ANALYSIS, timestamp=now),
        ],
        conclusion_and_recommendations=ConclusionAndRecommendations(
            conclusion="The domain exposes research documents to the public web and to LLM training crawlers.",
            recommendations=[
                Recommendation(
                    priority=Priority.HIGH,
                    action="Remove or password-protect the exposed PDFs and request search engine removal.",
                    rationale="The documents are reachable by anyone today.",
                ),
                Recommendation(
                    priority=Priority.MEDIUM,
                    action="Disallow AI crawlers in robots.txt and hide the server version header.",
                    rationale="Reduces future collection and fingerprinting.",
                ),
            ],
        ),
    )


def demo_report_for(target: InvestigationTarget) -> StructuredReport:
    """The demo report shaped for `target`; document-only targets carry no scan results."""
    report = get_demo_report()
    if target.domain is not None:
        return report
    results = report.investigation_results.model_copy(
        update={"steps": investigation_steps(target), "domain_vulnerability_analysis": None}
    )
    return report.model_copy(
        update={
            "title": f"Investigation report: public exposure of {target.label}",
            "investigation_results": results,
            "evidence_trail": [e for e in report.evidence_trail if e.source != EvidenceSource.DOMAIN_SCAN],
        }
    )


def get_demo_progress(target: InvestigationTarget) -> list[ProgressEvent]:
    """Progress log matching the demo report, for the streaming endpoint."""
    results = demo_report_for(target).investigation_results
    events = [
        ProgressEvent(kind=ProgressKind.STATUS, message=f"Starting investigation of {target.label}..."),
        ProgressEvent(
            kind=ProgressKind.LLM_RESULT,
            message="LLM training data trace completed.",
            payload=[f.model_dump(mode="json") for f in results.llm_trace_analysis],
        ),
    ]
    if results.domain_vulnerability_analysis is not None:
        events.append(
            ProgressEvent(
                kind=ProgressKind.VULN_RESULT,
                message="Domain vulnerability scan completed.",
                payload=[f.model_dump(mode="json") for f in results.domain_vulnerability_analysis],
            )
        )
    events += [
        ProgressEvent(kind=ProgressKind.INFO, message=f"Found {len(results.found_pdfs)} PDF documents."),
        ProgressEvent(kind=ProgressKind.STATUS, message="Synthesizing the final report..."),
        ProgressEvent(kind=ProgressKind.SUCCESS, message="Investigation report generated."),
    ]
    return events


async def generate_demo_sse_stream(target: InvestigationTarget) -> AsyncIterator[str]:
    """Demo SSE stream: the progress log instantly, then the demo report."""
    for event in get_demo_progress(target):
        yield event.to_sse().format()
    yield CompleteEvent(data=demo_report_for(target).model_dump(mode="json")).format()
