from __future__ import annotations

import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from testmgmt.models.otp import OtpPurpose

LOGGER = logging.getLogger(__name__)

RESEND_SEND_ENDPOINT = "https://api.resend.com/emails"
PRODUCT_NAME = "AIQUAA Test Management"

_SUBJECTS = {
    OtpPurpose.verify_email: f"Verify your email - {PRODUCT_NAME}",
    OtpPurpose.reset_password: f"Password reset - {PRODUCT_NAME}",
}


class EmailSendError(RuntimeError):
    pass


class EmailNotifier:
    """Delivers OTP codes by email through the Resend HTTP API.

    ``send`` never raises for delivery problems; it reports them as
    ``False`` so the caller can treat delivery as best effort.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        ttl_minutes: int = 10,
        timeout: int = 10,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._ttl_minutes = ttl_minutes
        self._timeout = timeout
        if not api_key:
            LOGGER.warning("RESEND_API_KEY is not configured; emails are disabled")

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def send(self, destination: str, code: str, purpose: OtpPurpose) -> bool:
        if not self.enabled:
            LOGGER.warning("Email service disabled, OTP not sent to %s", destination)
            return False
        try:
            message_id = self._post(destination, code, OtpPurpose(purpose))
        except EmailSendError as exc:
            LOGGER.error("Failed to send OTP email to %s: %s", destination, exc)
            return False
        LOGGER.info("Email sent to %s - id: %s", destination, message_id)
        return True

    def _post(self, destination: str, code: str, purpose: OtpPurpose) -> str:
        payload = json.dumps(
            {
                "from": self._sender,
                "to": [destination],
                "subject": _SUBJECTS[purpose],
                "html": build_body(code, purpose, self._ttl_minutes),
            }
        ).encode("utf-8")
        request = Request(
            RESEND_SEND_ENDPOINT,
            data=payload,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout) as response:
                body = response.read().decode("utf-8")
        except HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")
            LOGGER.error("Resend API error: %s", error_body)
            raise EmailSendError(f"Resend API returned {exc.code}") from exc
        except (URLError, TimeoutError) as exc:
            raise EmailSendError("Failed to reach Resend API") from exc

        try:
            return json.loads(body).get("id", "")
        except ValueError:
            return ""


def build_body(code: str, purpose: OtpPurpose, ttl_minutes: int) -> str:
    if purpose == OtpPurpose.verify_email:
        title = "Verify your email"
        intro = (
            f"Thanks for signing up for {PRODUCT_NAME}. "
            "Use the following code to finish your registration:"
        )
        footer = "If you did not request this code, you can safely ignore this email."
    else:
        title = "Password reset"
        intro = (
            "We received a request to reset your password. "
            "Use the following code to continue:"
        )
        footer = (
            "If you did not ask to reset your password, ignore this email "
            "and your account will stay secure. Never share this code with anyone."
        )
    return (
        "<!DOCTYPE html>"
        '<html><head><meta charset="utf-8">'
        f"<title>{title}</title></head>"
        '<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<h1>{PRODUCT_NAME}</h1>"
        f"<h2>{title}</h2>"
        f"<p>{intro}</p>"
        '<p style="font-size: 32px; letter-spacing: 8px; font-weight: bold;">'
        f"{code}</p>"
        f"<p><strong>Note:</strong> this code expires in {ttl_minutes} minutes.</p>"
        f'<p style="color: #999; font-size: 12px;">{footer}</p>'
        "</body></html>"
    )
