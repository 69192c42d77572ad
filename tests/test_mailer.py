"""Tests for report email delivery."""

import base64
import json

import httpx
import pytest

from leakwatch.config import MailerConfig
from leakwatch.mailer import MISSING_KEY_MESSAGE, RESEND_API_ENDPOINT, ReportMailer

PDF = b"%PDF-1.7 test"


def _client(handler, requests: list[httpx.Request]) -> httpx.AsyncClient:
    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(record))


@pytest.mark.asyncio
async def test__send__posts_attachment_with_bearer_key() -> None:
    requests: list[httpx.Request] = []
    client = _client(lambda r: httpx.Response(200, json={"id": "email-1"}), requests)
    mailer = ReportMailer(MailerConfig(api_key="re_test"), client=client)

    result = await mailer.send_report("a@example.co.jp", PDF, "report.pdf")

    assert result.success is True
    assert len(requests) == 1
    request = requests[0]
    assert str(request.url) == RESEND_API_ENDPOINT
    assert request.headers["Authorization"] == "Bearer re_test"
    body = json.loads(request.content)
    assert body["to"] == ["a@example.co.jp"]
    assert body["attachments"][0]["filename"] == "report.pdf"
    assert base64.b64decode(body["attachments"][0]["content"]) == PDF


@pytest.mark.asyncio
async def test__send__missing_key_makes_no_request() -> None:
    requests: list[httpx.Request] = []
    client = _client(lambda r: httpx.Response(200), requests)
    mailer = ReportMailer(MailerConfig(api_key=None), client=client)

    result = await mailer.send_report("a@example.co.jp", PDF, "report.pdf")

    assert result.success is False
    assert result.message == MISSING_KEY_MESSAGE
    assert requests == []


@pytest.mark.asyncio
async def test__send__api_rejection_carries_message() -> None:
    requests: list[httpx.Request] = []
    client = _client(lambda r: httpx.Response(422, json={"message": "Invalid `to` field"}), requests)
    mailer = ReportMailer(MailerConfig(api_key="re_test"), client=client)

    result = await mailer.send_report("a@example.co.jp", PDF, "report.pdf")

    assert result.success is False
    assert "Invalid `to` field" in result.message


@pytest.mark.asyncio
async def test__send__transport_error_is_a_failure_result() -> None:
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    mailer = ReportMailer(MailerConfig(api_key="re_test"), client=_client(fail, []))

    result = await mailer.send_report("a@example.co.jp", PDF, "report.pdf")

    assert result.success is False
    assert "connection refused" in result.message


def test__payload__uses_configured_envelope() -> None:
    mailer = ReportMailer(MailerConfig(api_key="k", sender="Lab <lab@example.co.jp>", subject="Report"))

    payload = mailer.build_payload("a@example.co.jp", PDF, "r.pdf")

    assert payload["from"] == "Lab <lab@example.co.jp>"
    assert payload["subject"] == "Report"
