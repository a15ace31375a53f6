"""
Deliver an exported document to a client through the Resend email API.

The attachment arrives as the exporter's inline form (a base64 data URL).
Provider and transport failures are mapped to a small set of categories so
the API can tell a misconfigured server apart from a bad request.
"""

import base64
import binascii
from html import escape
import httpx
from loguru import logger
from pydantic import BaseModel, Field, field_validator
from ..core.config import settings
from ..core.errors import EmailDeliveryError
from ..models.document import DocumentKind, EMAIL_PATTERN

DATA_URL_PREFIXES = ("data:application/pdf;base64,", "data:application/pdf;filename=")


class EmailRequest(BaseModel):
    recipient_email: str = Field(max_length=255)
    attachment_data: str = Field(min_length=1)
    recipient_name: str = Field(default="", max_length=200)
    sender_business_name: str = Field(min_length=1, max_length=200)
    document_number: str = Field(min_length=1, max_length=100)
    document_kind: DocumentKind = DocumentKind.INVOICE

    @field_validator("recipient_email")
    @classmethod
    def check_recipient(cls, value: str) -> str:
        value = value.strip()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address format")
        return value


class EmailReceipt(BaseModel):
    success: bool
    message: str
    email_id: str | None = None


def decode_attachment(data: str) -> bytes:
    """Accept ``data:application/pdf[;filename=...];base64,<b64>`` or bare base64."""
    if data.startswith(DATA_URL_PREFIXES):
        header, sep, payload = data.partition(",")
        if not sep or ";base64" not in header:
            raise EmailDeliveryError(
                "Invalid PDF format. Please try generating the PDF again.",
                category="malformed_attachment",
            )
    else:
        payload = data

    payload = payload.strip()
    if not payload:
        raise EmailDeliveryError("No PDF data found", category="malformed_attachment")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EmailDeliveryError(
            "Invalid PDF format. Please try generating the PDF again.",
            category="malformed_attachment",
        ) from exc


def classify_provider_error(status_code: int | None, message: str) -> str:
    lowered = message.lower()
    if "testing emails" in lowered or "verify a domain" in lowered:
        return "sandbox_restricted"
    if status_code in (401, 403) or "api key" in lowered:
        return "misconfigured"
    if "too large" in lowered:
        return "oversized_attachment"
    return "generic"


CATEGORY_MESSAGES = {
    "sandbox_restricted": "Email service is in testing mode. Send to the account owner's address, or verify a domain for production use.",
    "misconfigured": "Email service configuration error. Please contact support.",
    "oversized_attachment": "PDF file is too large for email. Please try generating a smaller PDF.",
    "generic": "Failed to send email",
}


def render_email_html(request: EmailRequest) -> str:
    label = request.document_kind.value.capitalize()
    business = escape(request.sender_business_name)
    return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2 style="color: #333;">Your {label} from {business}</h2>
          <p>Dear {escape(request.recipient_name) or 'Valued Customer'},</p>
          <p>Please find your {request.document_kind.value} attached to this email.</p>
          <p><strong>{label} Number:</strong> {escape(request.document_number)}</p>
          <p>Thank you for your business!</p>
          <br>
          <p>Best regards,<br>{business}</p>
          <hr style="margin-top: 20px; border: none; border-top: 1px solid #eee;">
          <p style="font-size: 12px; color: #666;">
            This email was sent automatically from InvoiceMax.
            If you have any questions, please contact {business} directly.
          </p>
        </div>
    """


class EmailDispatcher:
    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        sender: str | None = None,
        max_attachment_bytes: int | None = None,
        timeout: float | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.api_url = api_url or settings.email_api_url
        self.sender = sender or settings.email_from
        self.max_attachment_bytes = max_attachment_bytes or settings.email_max_attachment_bytes
        self.timeout = timeout or settings.email_timeout_seconds

    async def send(self, request: EmailRequest) -> EmailReceipt:
        if not self.api_key:
            logger.error("Email API key is not configured")
            raise EmailDeliveryError("Email service not configured. Please contact support.", category="misconfigured")

        if len(request.attachment_data) > self.max_attachment_bytes:
            logger.error(
                "Attachment too large",
                size=len(request.attachment_data),
                max_size=self.max_attachment_bytes,
            )
            raise EmailDeliveryError(
                "PDF file is too large for email attachment. Please reduce the file size.",
                category="oversized_attachment",
                size=len(request.attachment_data),
            )

        pdf_bytes = decode_attachment(request.attachment_data)
        label = request.document_kind.value.capitalize()
        filename = f"{request.document_kind.value}-{request.document_number}.pdf"
        payload = {
            "from": self.sender,
            "to": [request.recipient_email],
            "subject": f"Your {label} from {request.sender_business_name}",
            "html": render_email_html(request),
            "attachments": [
                {"filename": filename, "content": base64.b64encode(pdf_bytes).decode("ascii")},
            ],
        }
        logger.info(
            "Sending document email",
            recipient=request.recipient_email,
            document_number=request.document_number,
            kind=request.document_kind.value,
            attachment_bytes=len(pdf_bytes),
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            logger.error("Email transport error", error=repr(exc))
            raise EmailDeliveryError("Failed to send email", category="generic", error=repr(exc)) from exc

        if r.status_code >= 400:
            try:
                detail = r.json().get("message") or r.text
            except ValueError:
                detail = r.text
            category = classify_provider_error(r.status_code, detail)
            logger.error("Email provider rejected message", http_status=r.status_code, detail=detail, category=category)
            raise EmailDeliveryError(CATEGORY_MESSAGES[category], category=category, http_status=r.status_code, detail=detail)

        try:
            email_id = r.json().get("id")
        except (ValueError, AttributeError) as exc:
            logger.error("Email provider returned an unreadable response", http_status=r.status_code, body=r.text[:200])
            raise EmailDeliveryError(CATEGORY_MESSAGES["generic"], category="generic", http_status=r.status_code, detail=r.text) from exc
        logger.info("Email sent", email_id=email_id, recipient=request.recipient_email)
        return EmailReceipt(
            success=True,
            message=f"{label} sent successfully to {request.recipient_email}",
            email_id=email_id,
        )


# Global instance (in production, use dependency injection)
email_dispatcher = EmailDispatcher()
