"""Case, trace and report records behind the dashboard.

Callers depend on the `DataSource` protocol; the live implementation talks to the
hosted Supabase store, the demo implementation (leakwatch.demo) serves fixed
fixtures. Which one is used is decided once, by `select_data_source`.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Callable, Protocol, TypeVar
from uuid import uuid4

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel, ValidationError
from supabase import Client, create_client

from leakwatch.config import Settings
from leakwatch.logging import get_logger
from leakwatch.models import Case, GeneratedReport, LlmProviderRisk, NewCase, NewReport, Trace

log = get_logger("leakwatch.datasource")

CASES_TABLE = "cases"
LLM_PROVIDER_RISKS_TABLE = "llm_provider_risks"
TRACES_TABLE = "traces"
REPORTS_TABLE = "reports"

STORAGE_ERRORS = (APIError, httpx.HTTPError, ValidationError)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DataSource(Protocol):
    async def list_cases(self) -> list[Case]: ...

    async def get_case(self, case_id: int) -> Case | None: ...

    async def add_case(self, new_case: NewCase) -> Case | None: ...

    async def list_llm_provider_risks(self) -> list[LlmProviderRisk]: ...

    async def list_traces(self) -> list[Trace]: ...

    async def list_reports(self) -> list[GeneratedReport]: ...

    async def add_report(self, new_report: NewReport) -> GeneratedReport | None: ...


def case_row(new_case: NewCase) -> dict[str, Any]:
    """Row to insert for a new case; detection date defaults to today."""
    row = new_case.model_dump(mode="json")
    row["last_detection_date"] = new_case.last_detection_date or date.today().isoformat()
    return row


def report_row(new_report: NewReport, report_id: str, generated_at: datetime) -> dict[str, Any]:
    row = new_report.model_dump(mode="json")
    row["id"] = report_id
    row["generated_at"] = generated_at.isoformat()
    return row


class LiveDataSource:
    """Reads and writes the hosted store. Failures degrade to empty results."""

    def __init__(self, client: Client) -> None:
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "LiveDataSource":
        if not settings.store_configured:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be provided.")
        return cls(create_client(settings.supabase_url, settings.supabase_key))

    async def _execute(self, build: Callable[[Client], Any]) -> list[dict[str, Any]]:
        response = await asyncio.to_thread(lambda: build(self.client).execute())
        return response.data or []

    async def _read(
        self,
        table: str,
        model: type[ModelT],
        build: Callable[[Client], Any],
    ) -> list[ModelT]:
        try:
            rows = await self._execute(build)
            return [model.model_validate(row) for row in rows]
        except STORAGE_ERRORS as e:
            log.error("datasource.read_failed", table=table, error=str(e))
            return []

    async def list_cases(self) -> list[Case]:
        return await self._read(CASES_TABLE, Case, lambda c: c.table(CASES_TABLE).select("*").order("id"))

    async def get_case(self, case_id: int) -> Case | None:
        cases = await self._read(
            CASES_TABLE,
            Case,
            lambda c: c.table(CASES_TABLE).select("*").eq("id", case_id).limit(1),
        )
        return cases[0] if cases else None

    async def add_case(self, new_case: NewCase) -> Case | None:
        row = case_row(new_case)
        try:
            rows = await self._execute(lambda c: c.table(CASES_TABLE).insert(row))
            return Case.model_validate(rows[0]) if rows else None
        except STORAGE_ERRORS as e:
            log.error("datasource.write_failed", table=CASES_TABLE, error=str(e))
            return None

    async def list_llm_provider_risks(self) -> list[LlmProviderRisk]:
        return await self._read(
            LLM_PROVIDER_RISKS_TABLE,
            LlmProviderRisk,
            lambda c: c.table(LLM_PROVIDER_RISKS_TABLE).select("*"),
        )

    async def list_traces(self) -> list[Trace]:
        return await self._read(TRACES_TABLE, Trace, lambda c: c.table(TRACES_TABLE).select("*").order("id"))

    async def list_reports(self) -> list[GeneratedReport]:
        return await self._read(
            REPORTS_TABLE,
            GeneratedReport,
            lambda c: c.table(REPORTS_TABLE).select("*").order("generated_at", desc=True),
        )

    async def add_report(self, new_report: NewReport) -> GeneratedReport | None:
        now = datetime.now(timezone.utc)
        row = report_row(new_report, f"REP-{now.year}-{uuid4().hex[:6].upper()}", now)
        try:
            rows = await self._execute(lambda c: c.table(REPORTS_TABLE).insert(row))
            return GeneratedReport.model_validate(rows[0]) if rows else None
        except STORAGE_ERRORS as e:
            log.error("datasource.write_failed", table=REPORTS_TABLE, error=str(e))
            return None


def select_data_source(settings: Settings) -> DataSource:
    """Pick the data source for this process: demo fixtures or the hosted store."""
    if settings.demo_mode:
        from leakwatch.demo import DemoDataSource

        log.info("datasource.selected", source="demo")
        return DemoDataSource()
    log.info("datasource.selected", source="live")
    return LiveDataSource.from_settings(settings)
