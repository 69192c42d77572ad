"""Domain-specific exceptions for the investigation service."""


class InvestigationError(Exception):
    """Base exception for unrecoverable investigation failures."""


class SearchError(InvestigationError):
    """Raised when the web/PDF search stage fails."""

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"Web search failed for '{query}': {reason}")


class SynthesisError(InvestigationError):
    """Raised when the final report cannot be generated or parsed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to synthesize investigation report: {reason}")


class EstimationError(Exception):
    """Raised when a remediation cost estimate cannot be produced."""

    user_message = "The AI cost estimate could not be generated. Please try again."

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to estimate remediation cost: {reason}")


class SummaryError(Exception):
    """Raised when the LLM provider summary for a legal report cannot be produced."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to summarise LLM providers: {reason}")


class InvalidRecipientError(ValueError):
    """Raised when a report recipient is not a usable email address."""

    def __init__(self, recipient: str) -> None:
        self.recipient = recipient
        super().__init__(f"Not a valid email address: '{recipient}'")


class NavigationError(Exception):
    """Raised when a view transition is not allowed from the current state."""

    def __init__(self, event: str, view: str, reason: str) -> None:
        self.event = event
        self.view = view
        self.reason = reason
        super().__init__(f"Cannot handle '{event}' from view '{view}': {reason}")
