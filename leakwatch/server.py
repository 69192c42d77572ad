"""FastAPI application for the exposure investigation service."""

import asyncio
from typing import AsyncIterator
from urllib.parse import quote

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from leakwatch import __version__
from leakwatch.casework import generate_audit_trail, summarize_providers
from leakwatch.config import Environment, Settings, get_settings
from leakwatch.datasource import DataSource, select_data_source
from leakwatch.delivery import export_report
from leakwatch.demo import demo_report_for, generate_demo_sse_stream, is_demo_mode_allowed
from leakwatch.estimation import estimate_fix_cost
from leakwatch.events import CompleteEvent, ErrorEvent, HeartbeatEvent, ProgressEvent, SSEEvent
from leakwatch.exceptions import EstimationError, InvalidRecipientError, InvestigationError, SummaryError
from leakwatch.logging import configure_structlog, get_logger
from leakwatch.mailer import ReportMailer
from leakwatch.models import (
    AuditTrailEntry,
    Case,
    DocumentSource,
    FixEstimation,
    GeneratedReport,
    InvestigationTarget,
    LlmProviderRisk,
    NewCase,
    NewReport,
    StructuredReport,
    Trace,
)
from leakwatch.presentation import render_report_html
from leakwatch.workflow import generate_quick_look, run_investigation

log = get_logger("leakwatch.server")

# SSE Configuration
HEARTBEAT_INTERVAL = 30  # seconds
MAX_DURATION = 600  # 10 minutes
MAX_QUEUE_SIZE = 100

MAX_URL_LENGTH = 2048

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}

STORE_UNAVAILABLE_DETAIL = "The data store is unavailable. Please try again later."


# --- Request/Response schemas ---


class InvestigationRequest(BaseModel):
    """Incoming investigation request: a domain, a document, or both."""

    domain: str | None = Field(
        default=None,
        max_length=MAX_URL_LENGTH,
        description="Domain or URL to investigate; scheme and path are ignored",
        examples=["example.co.jp"],
    )
    document_name: str | None = Field(
        default=None,
        description="File name of the uploaded document",
        examples=["protein_structure_prediction.pdf"],
    )
    document_text: str | None = Field(
        default=None,
        description="Text extracted from the uploaded document",
    )

    def to_target(self) -> InvestigationTarget:
        document = None
        if self.document_text:
            document = DocumentSource(name=self.document_name or "document.pdf", text=self.document_text)
        return InvestigationTarget(domain=self.domain, document=document)


class QuickLookRequest(BaseModel):
    target: str = Field(
        min_length=1,
        max_length=1000,
        description="Domain or paper title to summarise",
        examples=["example.co.jp"],
    )


class QuickLookResponse(BaseModel):
    summary: str


class ProviderSummaryRequest(BaseModel):
    providers: list[str] = Field(
        min_length=1,
        description="LLM providers selected for the legal report",
        examples=[["GPT-4", "Claude 3"]],
    )


class ProviderSummaryResponse(BaseModel):
    summary: str


class ReportRequest(BaseModel):
    report: StructuredReport


class RecipientReportRequest(ReportRequest):
    recipient: str = Field(description="Email address the report is addressed to", examples=["security@example.co.jp"])


class ErrorResponse(BaseModel):
    """Structured error response."""

    error: str = Field(
        description="Error type (SearchError, SynthesisError, EstimationError, SummaryError, InvalidRecipientError, ValidationError, InternalServerError)",
        examples=["SynthesisError"],
    )
    detail: str = Field(
        description="User-friendly error message explaining what went wrong",
        examples=["Unable to generate the investigation report. Please try again."],
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status", examples=["ok"])
    version: str = Field(default="", description="Service version (only included in /health endpoint)", examples=["0.1.0"])


# --- Exception handlers ---

_SAFE_ERROR_MESSAGES: dict[str, str] = {
    "SearchError": "Unable to search the web for exposed content. Please try again.",
    "SynthesisError": "Unable to generate the investigation report. Please try again.",
    "EstimationError": EstimationError.user_message,
    "InvalidRecipientError": "Please enter a valid email address.",
    "SummaryError": "The AI summary could not be generated. Please try again.",
}

_DEFAULT_ERROR_MESSAGE = "An error occurred processing your request."


def _get_safe_error_message(exc: Exception) -> str:
    return _SAFE_ERROR_MESSAGES.get(type(exc).__name__, _DEFAULT_ERROR_MESSAGE)


async def _handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    error_type = type(exc).__name__
    log.warning("request.domain_error", error_type=error_type, detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error=error_type, detail=_get_safe_error_message(exc)).model_dump(),
    )


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    log.warning("request.validation_error", detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="ValidationError", detail=str(exc)).model_dump(),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unexpected_error", error=str(exc))
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="InternalServerError", detail="An unexpected error occurred.").model_dump(),
    )


# --- Dependencies ---


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_data_source(request: Request) -> DataSource:
    """The data source chosen for this application, selected on first use."""
    state = request.app.state
    if state.data_source is None:
        state.data_source = select_data_source(state.settings)
    return state.data_source


def get_mailer(settings: Settings = Depends(get_app_settings)) -> ReportMailer:
    return ReportMailer(settings.mailer_config())


def _require_demo_allowed(settings: Settings) -> None:
    if not is_demo_mode_allowed(settings):
        raise HTTPException(status_code=403, detail="Demo mode not available in this environment")


def _stored(record: BaseModel | None) -> BaseModel:
    if record is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORE_UNAVAILABLE_DETAIL)
    return record


# --- App factory ---


def get_app(settings: Settings | None = None, data_source: DataSource | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_structlog(testing=settings.environment == Environment.DEVELOPMENT)

    application = FastAPI(
        title="AI Site Security Diagnosis",
        description="""
Investigates whether a domain or a research document is exposed on the public web
and in LLM training data.

## Overview

An investigation runs four stages against one target:

1. **LLM trace** - Which LLM providers likely trained on the content
2. **Domain scan** - Publicly observable security weaknesses (domain targets only)
3. **Web search** - Generic and PDF-focused searches, merged and de-duplicated
4. **Synthesis** - One structured report with scored risk parameters

The finished report can be rendered to HTML, exported as an A4 PDF and emailed,
or priced into three remediation plans.
        """,
        version=__version__,
    )
    application.state.settings = settings
    application.state.data_source = data_source

    application.add_exception_handler(InvestigationError, _handle_domain_error)
    application.add_exception_handler(EstimationError, _handle_domain_error)
    application.add_exception_handler(InvalidRecipientError, _handle_domain_error)
    application.add_exception_handler(SummaryError, _handle_domain_error)
    application.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, _handle_unexpected_error)

    error_responses = {
        422: {"description": "Investigation or validation error", "model": ErrorResponse},
        500: {"description": "Internal server error", "model": ErrorResponse},
    }

    @application.post(
        "/investigations",
        response_model=StructuredReport,
        summary="Run an investigation",
        description="""
Runs the full investigation and returns the structured report.

Whenever at least one public PDF is found the overall risk is `high` and the
content exposure score is at least 80.
        """,
        tags=["Investigations"],
        responses=error_responses,
    )
    async def investigate(
        body: InvestigationRequest,
        demo: bool = Query(default=False, description="Serve the fixed demo report (development/staging only)"),
        settings: Settings = Depends(get_app_settings),
    ) -> StructuredReport:
        target = body.to_target()
        if demo:
            _require_demo_allowed(settings)
            log.warning("demo_mode_active", target=target.label, endpoint="/investigations")
            return demo_report_for(target)
        return await run_investigation(target)

    @application.post(
        "/investigations/stream",
        response_class=StreamingResponse,
        responses={
            200: {
                "description": "Server-Sent Events stream of investigation progress",
                "content": {"text/event-stream": {"example": "event: progress\ndata: {...}\n\n"}},
            },
            422: {"model": ErrorResponse},
        },
        summary="Run an investigation with streaming progress",
        description="""
Runs the investigation and streams its progress log via SSE.

**Event Types:**
- `progress`: One entry of the investigation log (status, success, error, info, llm-result, vuln-result)
- `: keepalive` comment every 30s
- `complete`: Final StructuredReport
- `error`: Safe error message when the investigation fails

**Connection:** Closes after completion or after 10 minutes. Disconnecting cancels the investigation.
        """,
        tags=["Investigations"],
    )
    async def investigate_stream(
        request: Request,
        body: InvestigationRequest,
        demo: bool = Query(default=False, description="Stream the fixed demo events (development/staging only)"),
        settings: Settings = Depends(get_app_settings),
    ) -> StreamingResponse:
        target = body.to_target()
        if demo:
            _require_demo_allowed(settings)
            log.warning("demo_mode_active", target=target.label, endpoint="/investigations/stream")
            return StreamingResponse(
                generate_demo_sse_stream(target), media_type="text/event-stream", headers=SSE_HEADERS
            )

        async def event_generator() -> AsyncIterator[str]:
            event_queue: asyncio.Queue[SSEEvent] = asyncio.Queue(maxsize=MAX_QUEUE_SIZE)
            investigation_complete = asyncio.Event()

            def on_progress(event: ProgressEvent) -> None:
                try:
                    event_queue.put_nowait(event.to_sse())
                except asyncio.QueueFull:
                    log.warning("event_queue_full", kind=event.kind.value)

            async def run_investigation_task() -> None:
                try:
                    report = await run_investigation(target, on_progress=on_progress)
                    await event_queue.put(CompleteEvent(data=report.model_dump(mode="json")))
                except Exception as e:
                    log.error("investigation_error", error=str(e), exc_info=True)
                    await event_queue.put(
                        ErrorEvent(data={"error": _get_safe_error_message(e), "error_type": type(e).__name__})
                    )
                finally:
                    investigation_complete.set()

            investigation_task = asyncio.create_task(run_investigation_task())

            loop = asyncio.get_running_loop()
            start_time = loop.time()
            next_heartbeat = start_time + HEARTBEAT_INTERVAL

            try:
                while not investigation_complete.is_set():
                    current_time = loop.time()
                    elapsed = current_time - start_time

                    if elapsed > MAX_DURATION:
                        log.warning("stream_timeout", elapsed=elapsed, max=MAX_DURATION)
                        investigation_task.cancel()
                        yield ErrorEvent(
                            data={
                                "error": "Investigation timeout - exceeded 10 minutes",
                                "error_type": "TimeoutError",
                            }
                        ).format()
                        break

                    if await request.is_disconnected():
                        log.info("client_disconnected", elapsed=elapsed)
                        investigation_task.cancel()
                        break

                    if current_time >= next_heartbeat:
                        yield HeartbeatEvent().format()
                        next_heartbeat += HEARTBEAT_INTERVAL

                    try:
                        event = await asyncio.wait_for(event_queue.get(), timeout=0.1)
                        yield event.format()
                    except asyncio.TimeoutError:
                        continue

                # Drain remaining events in queue
                while not event_queue.empty():
                    yield event_queue.get_nowait().format()

            finally:
                investigation_task.cancel()
                try:
                    await asyncio.wait_for(investigation_task, timeout=10.0)
                except asyncio.CancelledError:
                    log.info("investigation_cancelled")
                except asyncio.TimeoutError:
                    log.error("investigation_cancellation_timeout")
                except Exception as e:
                    log.exception("investigation_failed_during_cleanup", error=str(e))

        return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)

    @application.post(
        "/quick-look",
        response_model=QuickLookResponse,
        summary="Short exposure teaser",
        description="Two to three sentences about a domain or paper title, ending with a recommendation to run the full investigation.",
        tags=["Investigations"],
    )
    async def quick_look(body: QuickLookRequest) -> QuickLookResponse:
        return QuickLookResponse(summary=await generate_quick_look(body.target))

    @application.post(
        "/reports/html",
        response_class=HTMLResponse,
        summary="Render a report as HTML",
        description="Table-based, print-safe HTML document for a finished report.",
        tags=["Reports"],
    )
    async def report_html(body: RecipientReportRequest) -> HTMLResponse:
        return HTMLResponse(await render_report_html(body.report, body.recipient))

    @application.post(
        "/reports/estimate",
        response_model=FixEstimation,
        summary="Estimate remediation cost",
        description="Three remediation plans (standard, expedited, emergency) priced from a finished report.",
        tags=["Reports"],
        responses=error_responses,
    )
    async def report_estimate(body: ReportRequest) -> FixEstimation:
        return await estimate_fix_cost(body.report)

    @application.post(
        "/reports/export",
        response_class=Response,
        summary="Export a report as PDF and email it",
        description="""
Returns the A4 PDF. The email outcome is reported in the `X-Email-Delivered`
(`true`/`false`) and `X-Email-Message` (URL-encoded) headers; the PDF is returned
even when the email could not be sent.
        """,
        tags=["Reports"],
        responses={200: {"content": {"application/pdf": {}}}, **error_responses},
    )
    async def report_export(
        body: RecipientReportRequest,
        mailer: ReportMailer = Depends(get_mailer),
    ) -> Response:
        export = await export_report(body.report, body.recipient, mailer=mailer)
        return Response(
            content=export.pdf,
            media_type="application/pdf",
            headers={
                "Content-Disposition": f'attachment; filename="{export.file_name}"',
                "X-Email-Delivered": "true" if export.delivery.success else "false",
                "X-Email-Message": quote(export.delivery.message),
            },
        )

    @application.get("/cases", response_model=list[Case], summary="List cases", tags=["Cases"])
    async def list_cases(data_source: DataSource = Depends(get_data_source)) -> list[Case]:
        return await data_source.list_cases()

    @application.get("/cases/{case_id}", response_model=Case, summary="Get a case", tags=["Cases"])
    async def get_case(case_id: int, data_source: DataSource = Depends(get_data_source)) -> Case:
        case = await data_source.get_case(case_id)
        if case is None:
            raise HTTPException(status_code=404, detail=f"Case {case_id} not found")
        return case

    @application.get(
        "/cases/{case_id}/audit-trail",
        response_model=list[AuditTrailEntry],
        summary="Audit trail of a case",
        description="""
Five to seven AI-written timeline entries for the case, oldest first, each linked to
the previous one by a SHA-256 digest. When generation fails a single alert entry
with hash `N/A` is returned.
        """,
        tags=["Cases"],
    )
    async def case_audit_trail(
        case_id: int, data_source: DataSource = Depends(get_data_source)
    ) -> list[AuditTrailEntry]:
        case = await data_source.get_case(case_id)
        if case is None:
            raise HTTPException(status_code=404, detail=f"Case {case_id} not found")
        return await generate_audit_trail(case)

    @application.post(
        "/cases",
        response_model=Case,
        status_code=status.HTTP_201_CREATED,
        summary="Register a case",
        tags=["Cases"],
    )
    async def add_case(body: NewCase, data_source: DataSource = Depends(get_data_source)) -> Case:
        return _stored(await data_source.add_case(body))

    @application.get(
        "/llm-provider-risks",
        response_model=list[LlmProviderRisk],
        summary="Risk per LLM provider",
        tags=["Dashboard"],
    )
    async def list_llm_provider_risks(data_source: DataSource = Depends(get_data_source)) -> list[LlmProviderRisk]:
        return await data_source.list_llm_provider_risks()

    @application.post(
        "/llm-provider-risks/summary",
        response_model=ProviderSummaryResponse,
        summary="Legal-report summary for selected providers",
        description="One professional paragraph on likely infringement by the selected LLM providers.",
        tags=["Dashboard"],
        responses=error_responses,
    )
    async def provider_summary(body: ProviderSummaryRequest) -> ProviderSummaryResponse:
        return ProviderSummaryResponse(summary=await summarize_providers(body.providers))

    @application.get("/traces", response_model=list[Trace], summary="Trace records", tags=["Dashboard"])
    async def list_traces(data_source: DataSource = Depends(get_data_source)) -> list[Trace]:
        return await data_source.list_traces()

    @application.get(
        "/reports",
        response_model=list[GeneratedReport],
        summary="Generated reports, newest first",
        tags=["Reports"],
    )
    async def list_reports(data_source: DataSource = Depends(get_data_source)) -> list[GeneratedReport]:
        return await data_source.list_reports()

    @application.post(
        "/reports",
        response_model=GeneratedReport,
        status_code=status.HTTP_201_CREATED,
        summary="Promote an investigation into a report record",
        tags=["Reports"],
    )
    async def add_report(body: NewReport, data_source: DataSource = Depends(get_data_source)) -> GeneratedReport:
        return _stored(await data_source.add_report(body))

    @application.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="General health check endpoint that returns service status and version.",
        tags=["Health"],
    )
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @application.get(
        "/health/liveness",
        response_model=HealthResponse,
        summary="Liveness Probe",
        description="Returns 200 OK if the service is running and can accept requests.",
        tags=["Health"],
    )
    async def liveness() -> HealthResponse:
        return HealthResponse(status="alive")

    @application.get(
        "/health/readiness",
        response_model=HealthResponse,
        summary="Readiness Probe",
        description="Returns 200 OK if the service is ready to handle investigation requests.",
        tags=["Health"],
    )
    async def readiness() -> HealthResponse:
        return HealthResponse(status="ready")

    return application


app = get_app()
