"""Tests for the hosted-store data source and its selection."""

from unittest.mock import MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from leakwatch.config import Settings
from leakwatch.datasource import LiveDataSource, case_row, select_data_source
from leakwatch.demo import DemoDataSource
from leakwatch.models import CasePhase, CaseStatus, NewCase, NewReport

CASE_ROW = {
    "id": 1,
    "title": "Protein folding",
    "author": "Satoshi Tanaka",
    "journal": "J",
    "risk_score": 92,
    "phase": "III",
    "status": "published",
    "last_detection_date": "2024-07-21",
    "llm_provider": "GPT-4",
    "created_at": "2024-07-21T10:00:00+00:00",
}

REPORT_ROW = {
    "id": "REP-2024-001",
    "case_id": 1,
    "case_title": "Protein folding",
    "risk_score": 92,
    "llm_providers": ["GPT-4"],
    "generated_at": "2024-07-22T14:30:00+00:00",
    "format": "PDF",
    "status": "archived",
    "version": 2,
}


def _new_case() -> NewCase:
    return NewCase(
        title="Protein folding",
        author="Satoshi Tanaka",
        journal="J",
        risk_score=92,
        phase=CasePhase.III,
        status=CaseStatus.PUBLISHED,
    )


def _client_returning(data: list[dict]) -> MagicMock:
    """Supabase client whose every query chain executes to `data`."""
    client = MagicMock()
    query = MagicMock()
    for method in ("select", "order", "eq", "limit", "insert"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=data)
    client.table.return_value = query
    return client


def _client_raising(error: Exception) -> MagicMock:
    client = _client_returning([])
    client.table.return_value.execute.side_effect = error
    return client


@pytest.mark.asyncio
async def test__list_cases__maps_rows_to_models() -> None:
    client = _client_returning([CASE_ROW])

    cases = await LiveDataSource(client).list_cases()

    assert cases[0].title == "Protein folding"
    assert cases[0].phase == CasePhase.III
    client.table.assert_called_with("cases")
    client.table.return_value.order.assert_called_with("id")


@pytest.mark.asyncio
async def test__list_reports__ordered_newest_first() -> None:
    client = _client_returning([REPORT_ROW])

    reports = await LiveDataSource(client).list_reports()

    assert reports[0].id == "REP-2024-001"
    client.table.return_value.order.assert_called_with("generated_at", desc=True)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        APIError({"message": "relation does not exist", "code": "42P01", "hint": None, "details": None}),
        httpx.ConnectError("connection refused"),
    ],
)
async def test__reads__degrade_on_storage_errors(error: Exception) -> None:
    source = LiveDataSource(_client_raising(error))

    assert await source.list_cases() == []
    assert await source.get_case(1) is None
    assert await source.list_llm_provider_risks() == []
    assert await source.list_traces() == []
    assert await source.list_reports() == []


@pytest.mark.asyncio
async def test__reads__degrade_on_malformed_rows() -> None:
    source = LiveDataSource(_client_returning([{"id": "not-a-case"}]))

    assert await source.list_cases() == []


@pytest.mark.asyncio
async def test__get_case__missing_row_is_none() -> None:
    assert await LiveDataSource(_client_returning([])).get_case(99) is None


@pytest.mark.asyncio
async def test__add_case__returns_stored_row() -> None:
    client = _client_returning([CASE_ROW])

    case = await LiveDataSource(client).add_case(_new_case())

    assert case is not None and case.id == 1
    inserted = client.table.return_value.insert.call_args.args[0]
    assert inserted["last_detection_date"]
    assert "id" not in inserted


@pytest.mark.asyncio
async def test__writes__degrade_to_none() -> None:
    source = LiveDataSource(_client_raising(httpx.ConnectError("down")))

    assert await source.add_case(_new_case()) is None
    assert await source.add_report(NewReport(case_id=1, case_title="t", risk_score=50)) is None


def test__case_row__keeps_explicit_detection_date() -> None:
    row = case_row(_new_case().model_copy(update={"last_detection_date": "2024-01-01"}))
    assert row["last_detection_date"] == "2024-01-01"
    assert row["phase"] == "III"


def test__select_data_source__demo_mode_uses_fixtures() -> None:
    assert isinstance(select_data_source(Settings(demo_mode=True, _env_file=None)), DemoDataSource)


def test__select_data_source__live_requires_store_credentials() -> None:
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        select_data_source(Settings(demo_mode=False, supabase_url=None, supabase_key=None, _env_file=None))
