"""Pydantic models for the exposure investigation workflow."""

import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TOPIC_PLACEHOLDER = "the provided material"


# --- Enumerations ---


class RiskLevel(str, Enum):
    """Risk grade used for trace findings and the overall report verdict."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """Severity grade for domain vulnerability findings."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFORMATIONAL = "informational"
    UNKNOWN = "unknown"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskParameter(str, Enum):
    """The fixed set of scored dimensions in every report."""

    CONTENT_EXPOSURE = "content_exposure"
    LLM_TRAINING_INCLUSION = "llm_training_inclusion"
    DOMAIN_SECURITY = "domain_security"


class EvidenceSource(str, Enum):
    WEB_SEARCH = "web_search"
    PDF_ANALYSIS = "pdf_analysis"
    LLM_TRACE = "llm_trace"
    DOMAIN_SCAN = "domain_scan"


class PlanName(str, Enum):
    """Remediation plan tiers offered in a cost estimate."""

    STANDARD = "standard"
    EXPEDITED = "expedited"
    EMERGENCY = "emergency"


# --- Investigation target ---

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


class DocumentSource(BaseModel):
    """A document submitted for investigation, with its extracted text."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        min_length=1,
        description="Original file name of the document",
        examples=["protein_structure_prediction.pdf"],
    )
    text: str = Field(
        min_length=1,
        description="Plain text extracted from the document",
        examples=["Improving protein structure prediction accuracy with deep learning..."],
    )


class InvestigationTarget(BaseModel):
    """What a single investigation run looks at: a domain, a document, or both."""

    model_config = ConfigDict(frozen=True)

    domain: str | None = Field(
        default=None,
        max_length=253,
        description="Public domain to scan and search within",
        examples=["example.co.jp"],
    )
    document: DocumentSource | None = Field(
        default=None,
        description="Document whose text is traced against LLM training data",
    )

    @field_validator("domain", mode="before")
    @classmethod
    def normalise_domain(cls, v: str | None) -> str | None:
        """Strip scheme, path and whitespace; empty strings become None."""
        if not isinstance(v, str):
            return v
        v = _SCHEME_RE.sub("", v.strip()).split("/", 1)[0].strip().lower()
        return v or None

    @model_validator(mode="after")
    def require_domain_or_document(self) -> "InvestigationTarget":
        if self.domain is None and self.document is None:
            raise ValueError("an investigation needs a domain or a document")
        return self

    @property
    def topic(self) -> str:
        """Search topic: the document name without extension, else the domain."""
        if self.document is not None:
            name = re.sub(r"\.pdf$", "", self.document.name, flags=re.IGNORECASE)
            return name.replace("_", " ")
        return self.domain or TOPIC_PLACEHOLDER

    @property
    def label(self) -> str:
        parts = []
        if self.domain:
            parts.append(f"domain '{self.domain}'")
        if self.document is not None:
            parts.append(f"file '{self.document.name}'")
        return " and ".join(parts)

    @classmethod
    def from_case(cls, case: "Case") -> "InvestigationTarget":
        """Build a document target for an existing case record."""
        return cls(
            document=DocumentSource(
                name=case.title,
                text=f"Paper content: {case.title} by {case.author}",
            )
        )


# --- Stage findings ---


class LlmTraceFinding(BaseModel):
    """One LLM provider suspected of having the content in its training data."""

    provider: str = Field(description="LLM provider name", examples=["OpenAI"])
    risk: RiskLevel = Field(description="Likelihood that the content was trained on", examples=["high"])
    evidence: str = Field(
        description="Sentence quoted from the document, or a note on the public information used",
        examples=["General public information about domain 'example.co.jp'"],
    )


class LlmTraceAnalysis(BaseModel):
    """Trace agent output."""

    findings: list[LlmTraceFinding] = Field(default_factory=list)


class DomainVulnerabilityFinding(BaseModel):
    """A security concern backed by a publicly observable signal."""

    vulnerability: str = Field(examples=["Exposed .git directory"])
    severity: Severity = Field(examples=["high"])
    description: str = Field(
        description="Concrete risk plus the evidence it was derived from",
        examples=["GET /.git/HEAD returns a ref, so the repository history is downloadable."],
    )


class DomainVulnerabilityScan(BaseModel):
    """Vulnerability agent output."""

    findings: list[DomainVulnerabilityFinding] = Field(default_factory=list)


class SearchHit(BaseModel):
    """A single web search citation."""

    title: str = Field(default="Untitled", examples=["Annual research bulletin 2023"])
    url: str = Field(min_length=1, examples=["https://example.co.jp/files/bulletin2023.pdf"])
    snippet: str = Field(default="", examples=["...the full paper is available for download..."])


class SearchHits(BaseModel):
    """Search agent output."""

    hits: list[SearchHit] = Field(default_factory=list)


class FoundPdf(BaseModel):
    """A publicly reachable PDF, listed in the report's investigation results."""

    title: str
    url: str
    risk: RiskLevel = RiskLevel.HIGH
    summary: str = "Confirmed as publicly available on the web."


# --- Structured report ---


class RiskScore(BaseModel):
    parameter: RiskParameter
    score: int = Field(ge=0, le=100, description="0 (no exposure) to 100 (confirmed exposure)", examples=[85])
    justification: str


class Issue(BaseModel):
    issue: str = Field(examples=["Unintended public PDF"])
    impact: str = Field(examples=["Intellectual property leaks before publication"])


class CurrentAnalysis(BaseModel):
    background: str = Field(description="Scope and limits of the automated OSINT investigation first")
    issues: list[Issue] = Field(default_factory=list)


class InvestigationResults(BaseModel):
    """Raw stage outputs carried verbatim into the report."""

    steps: list[str] = Field(default_factory=list)
    search_results: list[SearchHit] = Field(default_factory=list)
    found_pdfs: list[FoundPdf] = Field(default_factory=list)
    llm_trace_analysis: list[LlmTraceFinding] = Field(default_factory=list)
    domain_vulnerability_analysis: list[DomainVulnerabilityFinding] | None = Field(
        default=None,
        description="None when no domain was investigated",
    )


class EvidenceItem(BaseModel):
    evidence_id: str = Field(examples=["EV-001"])
    description: str = Field(examples=["LLM trace analysis completed"])
    source: EvidenceSource
    timestamp: datetime


class Recommendation(BaseModel):
    priority: Priority
    action: str
    rationale: str


class ConclusionAndRecommendations(BaseModel):
    conclusion: str
    recommendations: list[Recommendation] = Field(default_factory=list)


class ReportSynthesis(BaseModel):
    """Narrative fields written by the synthesis agent."""

    title: str = Field(description="Report title naming the investigation target")
    executive_summary: str = Field(description="Three to four factual sentences, no reassurance")
    overall_risk: RiskLevel
    risk_scoring: list[RiskScore] = Field(
        description="One score per parameter: content_exposure, llm_training_inclusion, domain_security",
    )
    current_analysis: CurrentAnalysis
    evidence_trail: list[EvidenceItem] = Field(default_factory=list)
    conclusion_and_recommendations: ConclusionAndRecommendations

    @model_validator(mode="after")
    def one_score_per_parameter(self) -> "ReportSynthesis":
        scored = [score.parameter for score in self.risk_scoring]
        if sorted(scored) != sorted(RiskParameter):
            raise ValueError(
                "risk_scoring must score each of "
                f"{', '.join(p.value for p in RiskParameter)} exactly once, got {[p.value for p in scored]}"
            )
        return self


class StructuredReport(ReportSynthesis):
    """Terminal artifact of an investigation run."""

    investigation_results: InvestigationResults

    def score_for(self, parameter: RiskParameter) -> RiskScore | None:
        return next((s for s in self.risk_scoring if s.parameter == parameter), None)


# --- Cost estimation ---


class CostRange(BaseModel):
    min: int = Field(ge=0, examples=[150000])
    max: int = Field(ge=0, examples=[450000])
    currency: str = Field(default="JPY", examples=["JPY"])

    @model_validator(mode="after")
    def check_order(self) -> "CostRange":
        if self.min > self.max:
            raise ValueError(f"minimum cost {self.min} exceeds maximum {self.max}")
        return self


class FixEstimationPlan(BaseModel):
    plan_name: PlanName
    delivery_time: str = Field(examples=["5-10 business days"])
    total_cost: CostRange
    description: str
    features: list[str] = Field(default_factory=list)


class FixEstimation(BaseModel):
    """Three remediation plans priced from a finished report."""

    plans: list[FixEstimationPlan] = Field(min_length=3, max_length=3)
    summary: str

    @model_validator(mode="after")
    def one_plan_per_tier(self) -> "FixEstimation":
        names = {plan.plan_name for plan in self.plans}
        if names != set(PlanName):
            raise ValueError("estimate must contain exactly one standard, expedited and emergency plan")
        return self


# --- Store records ---


class CasePhase(str, Enum):
    I = "I"  # noqa: E741
    II = "II"
    III = "III"
    IV = "IV"


class CaseStatus(str, Enum):
    PUBLISHED = "published"
    UNDER_REVIEW = "under_review"
    UNPUBLISHED = "unpublished"
    ACCEPTED_UNPUBLISHED = "accepted_unpublished"


class NewCase(BaseModel):
    """Write shape for a case; the store assigns id and created_at."""

    title: str = Field(min_length=1)
    author: str
    journal: str
    risk_score: int = Field(ge=0, le=100)
    phase: CasePhase
    status: CaseStatus
    llm_provider: str | None = None
    last_detection_date: str | None = Field(default=None, description="ISO date; defaults to today on insert")


class Case(NewCase):
    id: int
    last_detection_date: str
    created_at: datetime | None = None


class AuditEventKind(str, Enum):
    REGISTRATION = "registration"
    DETECTION = "detection"
    EVALUATION = "evaluation"
    AMENDMENT = "amendment"
    ALERT = "alert"


class AuditEventDraft(BaseModel):
    """One timeline entry as written by the audit trail agent."""

    timestamp: datetime = Field(examples=["2024-07-21T09:30:00Z"])
    title: str = Field(examples=["LLM output similarity detected"])
    details: str = Field(examples=["GPT-4 output matched 88% of the abstract's structure."])
    kind: AuditEventKind


class AuditTrailDraft(BaseModel):
    """Audit trail agent output."""

    entries: list[AuditEventDraft] = Field(min_length=5, max_length=7)


class AuditTrailEntry(AuditEventDraft):
    """Timeline entry chained to its predecessor by a SHA-256 digest."""

    hash: str = Field(description="Hex SHA-256 of the previous hash and this entry, or 'N/A'")


class LlmProviderRisk(BaseModel):
    name: str
    trace_count: int
    cumulative_sda: float
    highest_risk: RiskLevel
    confidence_score: int


class Trace(BaseModel):
    id: int
    target: str
    fingerprint_similarity: int
    structural_dependency: int
    paraphrase_score: int
    llm_provider: str


class ReportFormat(str, Enum):
    PDF = "PDF"
    XML = "XML"


class ReportStatus(str, Enum):
    ARCHIVED = "archived"
    PENDING_REVIEW = "pending_review"


class NewReport(BaseModel):
    """Write shape for promoting an investigation into a report record."""

    case_id: int
    case_title: str
    risk_score: int = Field(ge=0, le=100)
    llm_providers: list[str] = Field(default_factory=list)
    format: ReportFormat = ReportFormat.PDF
    status: ReportStatus = ReportStatus.PENDING_REVIEW
    version: int = Field(default=1, ge=1)


class GeneratedReport(NewReport):
    id: str = Field(examples=["REP-2024-001"])
    generated_at: datetime


# --- Delivery ---


class DeliveryResult(BaseModel):
    """Outcome of an email delivery attempt; failures are values, not exceptions."""

    success: bool
    message: str
