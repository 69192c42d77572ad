"""Finite-state view router for the dashboard UI.

States are named views, transitions are explicit `NavigationEvent`s. Each
transition declares the views it may start from and the guards it must pass;
anything else raises `NavigationError`. The router also owns the busy flag
that keeps a session to one investigation in flight.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from leakwatch.exceptions import NavigationError
from leakwatch.logging import get_logger
from leakwatch.models import InvestigationTarget

log = get_logger("leakwatch.navigation")


class View(str, Enum):
    LANDING = "landing"
    DASHBOARD = "dashboard"
    DETECTION = "detection"
    EVALUATION = "evaluation"
    REPORTS = "reports"
    LEGAL = "legal"
    SETTINGS = "settings"
    QUICK_INVESTIGATION = "quick_investigation"
    INQUIRY = "inquiry"


class NavigationEvent(str, Enum):
    START_DIAGNOSIS = "START_DIAGNOSIS"
    SUBMIT_TARGET = "SUBMIT_TARGET"
    START_NEW = "START_NEW"
    LOGIN = "LOGIN"
    ENTER_DEMO = "ENTER_DEMO"
    LOGOUT = "LOGOUT"
    OPEN_VIEW = "OPEN_VIEW"
    SELECT_CASE = "SELECT_CASE"
    OPEN_INQUIRY = "OPEN_INQUIRY"


GUEST_VIEWS = frozenset({View.LANDING, View.QUICK_INVESTIGATION, View.DETECTION, View.INQUIRY})
MEMBER_VIEWS = frozenset(
    {View.DASHBOARD, View.DETECTION, View.EVALUATION, View.REPORTS, View.LEGAL, View.SETTINGS}
)
CASE_VIEWS = frozenset({View.EVALUATION, View.LEGAL})
ALL_VIEWS = frozenset(View)


class SessionState(BaseModel):
    """Snapshot of one UI session; every transition produces a new snapshot."""

    model_config = ConfigDict(frozen=True)

    view: View = View.LANDING
    signed_in: bool = False
    demo: bool = False
    case_ids: tuple[int, ...] = ()
    selected_case_id: int | None = None
    target: InvestigationTarget | None = None
    busy: bool = False

    @property
    def is_member(self) -> bool:
        """Signed in, or browsing the demo dataset."""
        return self.signed_in or self.demo

    @property
    def first_case_id(self) -> int | None:
        return self.case_ids[0] if self.case_ids else None


# A guard returns the refusal reason, or None when the transition may proceed.
Guard = Callable[[SessionState, dict[str, Any]], str | None]
Apply = Callable[[SessionState, dict[str, Any]], SessionState]


def _not_busy(state: SessionState, params: dict[str, Any]) -> str | None:
    return "an investigation is already running" if state.busy else None


def _is_guest(state: SessionState, params: dict[str, Any]) -> str | None:
    return "already signed in" if state.is_member else None


def _is_member(state: SessionState, params: dict[str, Any]) -> str | None:
    return None if state.is_member else "requires a signed-in or demo session"


def _has_target(state: SessionState, params: dict[str, Any]) -> str | None:
    return None if isinstance(params.get("target"), InvestigationTarget) else "requires an investigation target"


def _view_reachable(state: SessionState, params: dict[str, Any]) -> str | None:
    view = params.get("view")
    if not isinstance(view, View):
        return "requires a destination view"
    allowed = MEMBER_VIEWS if state.is_member else GUEST_VIEWS - {View.DETECTION}
    if view not in allowed:
        return f"view '{view.value}' is not available in this session"
    if view in CASE_VIEWS and state.selected_case_id is None:
        return f"view '{view.value}' requires a selected case"
    return None


def _known_case(state: SessionState, params: dict[str, Any]) -> str | None:
    case_id = params.get("case_id")
    if case_id is None or case_id not in state.case_ids:
        return f"unknown case {case_id!r}"
    if params.get("view", View.LEGAL) not in CASE_VIEWS:
        return "a case can only be opened in the evaluation or legal view"
    return None


def _sign_in(demo: bool) -> Apply:
    def apply(state: SessionState, params: dict[str, Any]) -> SessionState:
        case_ids = tuple(params.get("case_ids", ()))
        return SessionState(
            view=View.DASHBOARD,
            signed_in=not demo,
            demo=demo,
            case_ids=case_ids,
            selected_case_id=case_ids[0] if case_ids else None,
        )

    return apply


def _open_view(state: SessionState, params: dict[str, Any]) -> SessionState:
    view = params["view"]
    selected = state.selected_case_id if view in CASE_VIEWS else state.first_case_id
    return state.model_copy(update={"view": view, "selected_case_id": selected})


@dataclass(frozen=True)
class Transition:
    sources: frozenset[View]
    guards: tuple[Guard, ...]
    apply: Apply


TRANSITIONS: dict[NavigationEvent, Transition] = {
    NavigationEvent.START_DIAGNOSIS: Transition(
        sources=frozenset({View.LANDING, View.DETECTION, View.INQUIRY}),
        guards=(_is_guest, _not_busy),
        apply=lambda s, p: s.model_copy(update={"view": View.QUICK_INVESTIGATION}),
    ),
    NavigationEvent.SUBMIT_TARGET: Transition(
        sources=frozenset({View.LANDING, View.QUICK_INVESTIGATION}),
        guards=(_not_busy, _has_target),
        apply=lambda s, p: s.model_copy(update={"view": View.DETECTION, "target": p["target"]}),
    ),
    NavigationEvent.START_NEW: Transition(
        sources=frozenset({View.DETECTION}),
        guards=(_not_busy,),
        apply=lambda s, p: SessionState(),
    ),
    NavigationEvent.LOGIN: Transition(
        sources=GUEST_VIEWS,
        guards=(_is_guest, _not_busy),
        apply=_sign_in(demo=False),
    ),
    NavigationEvent.ENTER_DEMO: Transition(
        sources=GUEST_VIEWS,
        guards=(_is_guest, _not_busy),
        apply=_sign_in(demo=True),
    ),
    NavigationEvent.LOGOUT: Transition(
        sources=MEMBER_VIEWS,
        guards=(_is_member, _not_busy),
        apply=lambda s, p: SessionState(),
    ),
    NavigationEvent.OPEN_VIEW: Transition(
        sources=ALL_VIEWS,
        guards=(_not_busy, _view_reachable),
        apply=_open_view,
    ),
    NavigationEvent.SELECT_CASE: Transition(
        sources=frozenset({View.DASHBOARD, View.REPORTS, View.LEGAL, View.EVALUATION}),
        guards=(_is_member, _known_case),
        apply=lambda s, p: s.model_copy(
            update={"view": p.get("view", View.LEGAL), "selected_case_id": p["case_id"]}
        ),
    ),
    NavigationEvent.OPEN_INQUIRY: Transition(
        sources=GUEST_VIEWS,
        guards=(_is_guest,),
        apply=lambda s, p: s.model_copy(update={"view": View.INQUIRY}),
    ),
}


class ViewRouter:
    """Holds the current session state and applies navigation events to it."""

    def __init__(self, state: SessionState | None = None) -> None:
        self.state = state or SessionState()

    @property
    def view(self) -> View:
        return self.state.view

    def can_dispatch(self, event: NavigationEvent, **params: Any) -> bool:
        return self._refusal(event, params) is None

    def dispatch(self, event: NavigationEvent, **params: Any) -> SessionState:
        """Apply `event` to the current state.

        Raises:
            NavigationError: When the event is not allowed from the current view or a guard refuses it.
        """
        reason = self._refusal(event, params)
        if reason is not None:
            log.warning("navigation.refused", event=event.value, view=self.state.view.value, reason=reason)
            raise NavigationError(event.value, self.state.view.value, reason)

        previous = self.state.view
        self.state = TRANSITIONS[event].apply(self.state, params)
        log.debug("navigation.transition", event=event.value, source=previous.value, destination=self.state.view.value)
        return self.state

    def begin_investigation(self) -> None:
        """Mark an investigation as in flight; a second one is refused until it finishes."""
        if self.state.busy:
            raise NavigationError("begin_investigation", self.state.view.value, "an investigation is already running")
        if self.state.view != View.DETECTION:
            raise NavigationError("begin_investigation", self.state.view.value, "investigations run from the detection view")
        self.state = self.state.model_copy(update={"busy": True})

    def finish_investigation(self) -> None:
        self.state = self.state.model_copy(update={"busy": False})

    def _refusal(self, event: NavigationEvent, params: dict[str, Any]) -> str | None:
        transition = TRANSITIONS[event]
        if self.state.view not in transition.sources:
            return "not allowed from this view"
        for guard in transition.guards:
            reason = guard(self.state, params)
            if reason is not None:
                return reason
        return None
