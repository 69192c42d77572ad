"""AI Site Security Diagnosis - investigates public web and LLM exposure of domains and documents"""

__version__ = "0.1.0"

from leakwatch.agents import (
    clear_agent_cache,
    create_audit_trail_agent,
    create_estimation_agent,
    create_presentation_agent,
    create_provider_summary_agent,
    create_quick_look_agent,
    create_search_agent,
    create_synthesis_agent,
    create_trace_agent,
    create_vulnerability_agent,
    get_audit_trail_agent,
    get_estimation_agent,
    get_presentation_agent,
    get_provider_summary_agent,
    get_quick_look_agent,
    get_search_agent,
    get_synthesis_agent,
    get_trace_agent,
    get_vulnerability_agent,
)
from leakwatch.casework import generate_audit_trail, summarize_providers
from leakwatch.exceptions import (
    EstimationError,
    InvalidRecipientError,
    InvestigationError,
    NavigationError,
    SearchError,
    SummaryError,
    SynthesisError,
)
from leakwatch.models import (
    DomainVulnerabilityFinding,
    FixEstimation,
    InvestigationTarget,
    LlmTraceFinding,
    SearchHit,
    StructuredReport,
)
from leakwatch.server import get_app
from leakwatch.workflow import generate_quick_look, run_investigation

__all__ = [
    # Models
    "InvestigationTarget",
    "LlmTraceFinding",
    "DomainVulnerabilityFinding",
    "SearchHit",
    "StructuredReport",
    "FixEstimation",
    # Agent factories
    "create_trace_agent",
    "create_vulnerability_agent",
    "create_search_agent",
    "create_synthesis_agent",
    "create_presentation_agent",
    "create_estimation_agent",
    "create_quick_look_agent",
    "create_audit_trail_agent",
    "create_provider_summary_agent",
    # Agent getters
    "get_trace_agent",
    "get_vulnerability_agent",
    "get_search_agent",
    "get_synthesis_agent",
    "get_presentation_agent",
    "get_estimation_agent",
    "get_quick_look_agent",
    "get_audit_trail_agent",
    "get_provider_summary_agent",
    # Cache management
    "clear_agent_cache",
    # Exceptions
    "InvestigationError",
    "SearchError",
    "SynthesisError",
    "EstimationError",
    "InvalidRecipientError",
    "NavigationError",
    "SummaryError",
    # Workflow
    "run_investigation",
    "generate_quick_look",
    # Casework
    "generate_audit_trail",
    "summarize_providers",
    # Server
    "get_app",
]
