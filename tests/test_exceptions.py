"""Tests for domain exceptions."""

from leakwatch.exceptions import (
    EstimationError,
    InvalidRecipientError,
    InvestigationError,
    NavigationError,
    SearchError,
    SynthesisError,
)


def test__search_error__message_and_attributes() -> None:
    error = SearchError(query='"example.co.jp"', reason="quota exceeded")
    assert isinstance(error, InvestigationError)
    assert error.query == '"example.co.jp"'
    assert str(error) == "Web search failed for '\"example.co.jp\"': quota exceeded"


def test__synthesis_error__is_investigation_error() -> None:
    error = SynthesisError(reason="invalid JSON")
    assert isinstance(error, InvestigationError)
    assert "invalid JSON" in str(error)


def test__estimation_error__carries_user_message() -> None:
    error = EstimationError(reason="timeout")
    assert not isinstance(error, InvestigationError)
    assert error.user_message
    assert "timeout" in str(error)


def test__invalid_recipient__is_value_error() -> None:
    error = InvalidRecipientError("not-an-email")
    assert isinstance(error, ValueError)
    assert error.recipient == "not-an-email"


def test__navigation_error__names_event_and_view() -> None:
    error = NavigationError("LOGOUT", "landing", "not allowed from this view")
    assert str(error) == "Cannot handle 'LOGOUT' from view 'landing': not allowed from this view"
