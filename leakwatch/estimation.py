"""Remediation cost estimate for a finished report."""

import json
from typing import Any

from pydantic_ai import Agent

from leakwatch.agents import get_estimation_agent
from leakwatch.exceptions import EstimationError
from leakwatch.logging import get_logger
from leakwatch.models import FixEstimation, StructuredReport

log = get_logger("leakwatch.estimation")


def build_estimation_prompt(report: StructuredReport) -> str:
    results = report.investigation_results
    vulnerabilities = (
        json.dumps([f.model_dump(mode="json") for f in results.domain_vulnerability_analysis], ensure_ascii=False)
        if results.domain_vulnerability_analysis is not None
        else "null"
    )
    traces = json.dumps([f.model_dump(mode="json") for f in results.llm_trace_analysis], ensure_ascii=False)
    return (
        "Estimate remediation for this security investigation report.\n"
        f"- Overall risk: {report.overall_risk.value}\n"
        f"- Public PDFs: {len(results.found_pdfs)}\n"
        f"- LLM training data risk: {traces}\n"
        f"- Domain vulnerabilities: {vulnerabilities}"
    )


async def estimate_fix_cost(
    report: StructuredReport,
    *,
    agent: Agent[Any, FixEstimation] | None = None,
) -> FixEstimation:
    """One-shot estimate of three remediation plans.

    Raises:
        EstimationError: When the agent call fails or returns an invalid estimate.
    """
    _agent = agent or get_estimation_agent()
    try:
        result = await _agent.run(build_estimation_prompt(report))
    except Exception as e:
        log.error("estimation.failed", error=str(e))
        raise EstimationError(reason=str(e)) from e
    log.info("estimation.completed", plans=[p.plan_name.value for p in result.output.plans])
    return result.output
