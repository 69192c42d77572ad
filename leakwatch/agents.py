"""PydanticAI agents backing each AI call of the investigation service."""

import os
from functools import lru_cache
from typing import Any

from pydantic_ai import Agent, WebSearchTool

from leakwatch.models import (
    AuditTrailDraft,
    DomainVulnerabilityScan,
    FixEstimation,
    LlmTraceAnalysis,
    ReportSynthesis,
    SearchHits,
)

_FALLBACK_MODEL = "google-gla:gemini-2.5-flash"

DEFAULT_TRACE_MODEL = os.getenv("LEAKWATCH_TRACE_MODEL", _FALLBACK_MODEL)
DEFAULT_SCAN_MODEL = os.getenv("LEAKWATCH_SCAN_MODEL", _FALLBACK_MODEL)
DEFAULT_SEARCH_MODEL = os.getenv("LEAKWATCH_SEARCH_MODEL", _FALLBACK_MODEL)
DEFAULT_SYNTHESIS_MODEL = os.getenv("LEAKWATCH_SYNTHESIS_MODEL", _FALLBACK_MODEL)
DEFAULT_PRESENTATION_MODEL = os.getenv("LEAKWATCH_PRESENTATION_MODEL", _FALLBACK_MODEL)
DEFAULT_ESTIMATION_MODEL = os.getenv("LEAKWATCH_ESTIMATION_MODEL", _FALLBACK_MODEL)
DEFAULT_QUICK_LOOK_MODEL = os.getenv("LEAKWATCH_QUICK_LOOK_MODEL", _FALLBACK_MODEL)
DEFAULT_AUDIT_TRAIL_MODEL = os.getenv("LEAKWATCH_AUDIT_TRAIL_MODEL", _FALLBACK_MODEL)
DEFAULT_PROVIDER_SUMMARY_MODEL = os.getenv("LEAKWATCH_PROVIDER_SUMMARY_MODEL", _FALLBACK_MODEL)


def create_trace_agent(model: Any = DEFAULT_TRACE_MODEL) -> Agent[None, LlmTraceAnalysis]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You assess whether content is likely to be present, substantially
        verbatim, in the training data of major LLM providers (OpenAI, Anthropic, Google,
        Meta and others).
        For every provider you suspect, return:
        - provider: the company name
        - risk: high, medium or low
        - evidence: text produced exactly as the evidence rule in the request says
        Only list providers you have a reason to suspect.""",
        output_type=LlmTraceAnalysis,
        instrument=True,
        name="trace_agent",
    )


@lru_cache(maxsize=1)
def get_trace_agent(model: str = DEFAULT_TRACE_MODEL) -> Agent[None, LlmTraceAnalysis]:
    """Cached getter for production."""
    return create_trace_agent(model)


def create_vulnerability_agent(model: Any = DEFAULT_SCAN_MODEL) -> Agent[None, DomainVulnerabilityScan]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You are a strictly evidence-driven security analyst for corporate
        and academic websites. Report only concerns that can be derived from publicly
        observable signals.
        Rules you must never break:
        - Evidence first: every finding's description states the concrete signal it is
          based on (e.g. "HTML source references /wp-content/").
        - No speculation: never claim a technology (WordPress, Drupal, a framework, a
          server) is in use without such a signal. No WordPress findings unless
          wp-content, wp-login.php or a generator meta tag was observed.
        - Prefer realistic, frequently exploited issues: ransomware entry points and
          direct information leaks.
        Check in order:
        1. Technology stack traces in HTML, HTTP headers and scripts.
        2. Leaked version numbers and known CVEs for those versions.
        3. Misconfiguration: a public .git directory, admin paths disclosed in
           robots.txt, outdated JavaScript libraries with known XSS issues.
        Return each finding with vulnerability, severity (high, medium, low,
        informational) and description. Omit anything without evidence.""",
        output_type=DomainVulnerabilityScan,
        instrument=True,
        name="vulnerability_agent",
    )


@lru_cache(maxsize=1)
def get_vulnerability_agent(model: str = DEFAULT_SCAN_MODEL) -> Agent[None, DomainVulnerabilityScan]:
    """Cached getter for production."""
    return create_vulnerability_agent(model)


def create_search_agent(model: Any = DEFAULT_SEARCH_MODEL) -> Agent[None, SearchHits]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You run the given web search query verbatim, including any
        site: and filetype: operators, and report what the search returned.
        For each result return its title, its exact URL and a short snippet.
        Do not invent results and do not rewrite URLs. Return an empty list when
        the search finds nothing.""",
        builtin_tools=[WebSearchTool()],
        output_type=SearchHits,
        instrument=True,
        name="search_agent",
    )


@lru_cache(maxsize=1)
def get_search_agent(model: str = DEFAULT_SEARCH_MODEL) -> Agent[None, SearchHits]:
    """Cached getter for production."""
    return create_search_agent(model)


def create_synthesis_agent(model: Any = DEFAULT_SYNTHESIS_MODEL) -> Agent[None, ReportSynthesis]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You are a sceptical, persistent digital forensics investigator.
        Your client is convinced a leak has already happened; your job is to look for
        the evidence and write an objective, cautious report free of careless optimism.
        Rules:
        1. Assume exposure is likely. Absence of evidence is never evidence of absence.
        2. Never write that there is "no problem", "low risk" or "no leak was found".
        3. When no direct evidence was found, say: "Within the scope of this automated
           investigation no direct evidence was found. This does not prove that no
           leak exists." and state the limits of the investigation.
        4. A single public PDF is conclusive evidence that the content is on the web:
           overall_risk must be high, content_exposure must score at least 80 and
           llm_training_inclusion must be rated medium or higher.
        5. current_analysis.background opens with the scope and limits: this is an
           automated OSINT investigation of public information; internal leaks, the
           dark web and content not indexed by search engines are out of its reach.
        Score exactly three parameters from 0 to 100: content_exposure,
        llm_training_inclusion, domain_security. Recommendations carry a priority
        (high, medium, low), an action and its rationale.""",
        output_type=ReportSynthesis,
        instrument=True,
        name="synthesis_agent",
    )


@lru_cache(maxsize=1)
def get_synthesis_agent(model: str = DEFAULT_SYNTHESIS_MODEL) -> Agent[None, ReportSynthesis]:
    """Cached getter for production."""
    return create_synthesis_agent(model)


def create_presentation_agent(model: Any = DEFAULT_PRESENTATION_MODEL) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You turn investigation report data into a formal client-facing
        report written as a complete HTML document.
        Hard constraints, because the downstream PDF renderer cannot lay out modern CSS:
        - Build the entire layout with <table> elements only, like an email template.
        - Never use CSS flexbox or grid. Avoid float and position.
        - Inline style attributes only. No <style> tags, no images, no external links.
        - Emit <html>, a <head> declaring UTF-8, and <body>.
        - Start with a cover page naming the recipient, then a clickable table of
          contents linking to each section.
        Return only the HTML document.""",
        output_type=str,
        instrument=True,
        name="presentation_agent",
    )


@lru_cache(maxsize=1)
def get_presentation_agent(model: str = DEFAULT_PRESENTATION_MODEL) -> Agent[None, str]:
    """Cached getter for production."""
    return create_presentation_agent(model)


def create_estimation_agent(model: Any = DEFAULT_ESTIMATION_MODEL) -> Agent[None, FixEstimation]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You are a senior project manager at a web security consultancy.
        From a security investigation report, propose exactly three remediation plans:
        - standard: regular turnaround, lowest cost, issues handled in sequence
        - expedited: work starts within 24 hours, surcharge for the guaranteed turnaround
        - emergency: immediate response including expert consulting and a
          recurrence-prevention plan
        Pricing: the base rate is 15,000 JPY per hour; apply x1.5 for expedited and
        x2.5 for emergency. Give a realistic min and max total cost in JPY for each
        plan, a delivery time, a description and concrete features. Close with a two
        to three sentence summary of the estimate and its assumptions.""",
        output_type=FixEstimation,
        instrument=True,
        name="estimation_agent",
    )


@lru_cache(maxsize=1)
def get_estimation_agent(model: str = DEFAULT_ESTIMATION_MODEL) -> Agent[None, FixEstimation]:
    """Cached getter for production."""
    return create_estimation_agent(model)


def create_quick_look_agent(model: Any = DEFAULT_QUICK_LOOK_MODEL) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You introduce an AI site security diagnosis product to a visitor.
        In two to three sentences about the given target:
        - never assert that there is no problem or that the risk is low;
        - gently point out the potential risks (hacking, ransomware, information leaks);
        - conclude that a detailed and accurate analysis requires the full investigation.""",
        output_type=str,
        instrument=True,
        name="quick_look_agent",
    )


@lru_cache(maxsize=1)
def get_quick_look_agent(model: str = DEFAULT_QUICK_LOOK_MODEL) -> Agent[None, str]:
    """Cached getter for production."""
    return create_quick_look_agent(model)


def create_audit_trail_agent(model: Any = DEFAULT_AUDIT_TRAIL_MODEL) -> Agent[None, AuditTrailDraft]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You are a system logger producing the audit trail of a research
        misuse case for a legal file.
        From the case data, write five to seven timeline entries in chronological order.
        Each entry has:
        - timestamp: ISO 8601, consistent with the case's last detection date
        - title: a short event name
        - details: one or two factual sentences
        - kind: registration, detection, evaluation, amendment or alert
        Start with the case registration. Do not invent parties other than the author
        and the named LLM provider.""",
        output_type=AuditTrailDraft,
        instrument=True,
        name="audit_trail_agent",
    )


@lru_cache(maxsize=1)
def get_audit_trail_agent(model: str = DEFAULT_AUDIT_TRAIL_MODEL) -> Agent[None, AuditTrailDraft]:
    """Cached getter for production."""
    return create_audit_trail_agent(model)


def create_provider_summary_agent(model: Any = DEFAULT_PROVIDER_SUMMARY_MODEL) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You write the AI summary section of a legal report on suspected
        copyright infringement by LLM providers.
        The findings behind every request are the same: the author's text and the
        outputs of the named LLMs are highly similar, so infringement is likely.
        Write one concise paragraph in a professional, objective tone. Name each
        provider under investigation. Do not give legal advice.""",
        output_type=str,
        instrument=True,
        name="provider_summary_agent",
    )


@lru_cache(maxsize=1)
def get_provider_summary_agent(model: str = DEFAULT_PROVIDER_SUMMARY_MODEL) -> Agent[None, str]:
    """Cached getter for production."""
    return create_provider_summary_agent(model)


def clear_agent_cache() -> None:
    """Clear all agent caches."""
    get_trace_agent.cache_clear()
    get_vulnerability_agent.cache_clear()
    get_search_agent.cache_clear()
    get_synthesis_agent.cache_clear()
    get_presentation_agent.cache_clear()
    get_estimation_agent.cache_clear()
    get_quick_look_agent.cache_clear()
    get_audit_trail_agent.cache_clear()
    get_provider_summary_agent.cache_clear()
