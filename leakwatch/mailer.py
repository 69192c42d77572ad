"""Report delivery through the Resend email API."""

import base64

import httpx

from leakwatch.config import MailerConfig
from leakwatch.logging import get_logger
from leakwatch.models import DeliveryResult

log = get_logger("leakwatch.mailer")

RESEND_API_ENDPOINT = "https://api.resend.com/emails"
MISSING_KEY_MESSAGE = "The Resend API key is not configured. Register a key in the settings first."

EMAIL_BODY = """
<p>The AI site security diagnosis report you requested is complete.</p>
<p>Please find the report attached as a PDF file.</p>
<br>
<p>--</p>
<p><strong>AI Site Security Diagnosis</strong></p>
"""


class ReportMailer:
    """Sends finished report PDFs; every outcome is returned as a DeliveryResult."""

    def __init__(self, config: MailerConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client

    def build_payload(self, recipient: str, pdf_bytes: bytes, file_name: str) -> dict:
        return {
            "from": self.config.sender,
            "to": [recipient],
            "subject": self.config.subject,
            "html": EMAIL_BODY,
            "attachments": [
                {
                    "filename": file_name,
                    "content": base64.b64encode(pdf_bytes).decode("ascii"),
                }
            ],
        }

    async def send_report(self, recipient: str, pdf_bytes: bytes, file_name: str) -> DeliveryResult:
        if not self.config.api_key:
            log.warning("mailer.not_configured")
            return DeliveryResult(success=False, message=MISSING_KEY_MESSAGE)

        payload = self.build_payload(recipient, pdf_bytes, file_name)
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        try:
            if self._client is not None:
                response = await self._client.post(RESEND_API_ENDPOINT, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(RESEND_API_ENDPOINT, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log.error("mailer.transport_error", error=str(e))
            return DeliveryResult(success=False, message=f"An error occurred while sending the email: {e}")

        if not response.is_success:
            detail = _error_detail(response)
            log.error("mailer.rejected", status_code=response.status_code, detail=detail)
            return DeliveryResult(success=False, message=f"Failed to send the email: {detail}")

        log.info("mailer.sent", status_code=response.status_code)
        return DeliveryResult(success=True, message="The email was sent successfully.")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or str(response.status_code)
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or str(response.status_code)
