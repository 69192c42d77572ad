"""Shared fixtures."""

from datetime import datetime, timezone

import pytest

from leakwatch.models import (
    ConclusionAndRecommendations,
    CurrentAnalysis,
    EvidenceItem,
    EvidenceSource,
    FoundPdf,
    InvestigationResults,
    LlmTraceFinding,
    RiskLevel,
    RiskParameter,
    RiskScore,
    StructuredReport,
)


@pytest.fixture
def report() -> StructuredReport:
    return StructuredReport(
        title="Hacking risk and security vulnerability report for domain 'example.co.jp'",
        executive_summary="One public PDF was found.",
        overall_risk=RiskLevel.HIGH,
        risk_scoring=[
            RiskScore(parameter=RiskParameter.CONTENT_EXPOSURE, score=85, justification="PDF found"),
            RiskScore(parameter=RiskParameter.LLM_TRAINING_INCLUSION, score=60, justification="Indexed"),
            RiskScore(parameter=RiskParameter.DOMAIN_SECURITY, score=30, justification="No signals"),
        ],
        current_analysis=CurrentAnalysis(background="Automated OSINT investigation."),
        investigation_results=InvestigationResults(
            found_pdfs=[FoundPdf(title="Bulletin", url="https://example.co.jp/bulletin.pdf")],
            llm_trace_analysis=[LlmTraceFinding(provider="OpenAI", risk=RiskLevel.MEDIUM, evidence="e")],
        ),
        evidence_trail=[
            EvidenceItem(
                evidence_id="EV-001",
                description="PDF found",
                source=EvidenceSource.PDF_ANALYSIS,
                timestamp=datetime(2024, 7, 22, tzinfo=timezone.utc),
            )
        ],
        conclusion_and_recommendations=ConclusionAndRecommendations(conclusion="Remove the PDF."),
    )
