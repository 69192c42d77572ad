"""PDF export of a report and its delivery by email."""

import asyncio
import re
from typing import Any

from pydantic import BaseModel
from pydantic_ai import Agent

from leakwatch.exceptions import InvalidRecipientError
from leakwatch.logging import get_logger
from leakwatch.mailer import ReportMailer
from leakwatch.models import DeliveryResult, StructuredReport
from leakwatch.presentation import render_report_html

log = get_logger("leakwatch.delivery")

PDF_FILE_NAME = "ai-site-security-diagnosis-report.pdf"
A4_PAGE_CSS = "@page { size: A4; margin: 0; }"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ReportExport(BaseModel):
    """The rendered PDF plus the outcome of emailing it."""

    file_name: str
    pdf: bytes
    delivery: DeliveryResult


def validate_recipient(recipient: str) -> str:
    recipient = recipient.strip()
    if not _EMAIL_RE.match(recipient):
        raise InvalidRecipientError(recipient)
    return recipient


def render_pdf(document: str) -> bytes:
    """Render an HTML document to A4 PDF bytes with WeasyPrint."""
    from weasyprint import CSS, HTML

    return HTML(string=document).write_pdf(stylesheets=[CSS(string=A4_PAGE_CSS)])


async def export_report(
    report: StructuredReport,
    recipient: str,
    *,
    mailer: ReportMailer,
    presentation_agent: Agent[Any, str] | None = None,
) -> ReportExport:
    """Render the report to PDF and email it; the PDF is returned whatever the email outcome.

    Raises:
        InvalidRecipientError: When `recipient` is not an email address.
    """
    recipient = validate_recipient(recipient)

    document = await render_report_html(report, recipient, agent=presentation_agent)
    pdf = await asyncio.to_thread(render_pdf, document)
    log.info("delivery.pdf_rendered", size=len(pdf))

    delivery = await mailer.send_report(recipient, pdf, PDF_FILE_NAME)
    if not delivery.success:
        log.warning("delivery.email_failed", message=delivery.message)
    return ReportExport(file_name=PDF_FILE_NAME, pdf=pdf, delivery=delivery)
