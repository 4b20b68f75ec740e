import asyncio
import random
from typing import Any, Protocol

import httpx
from pydantic import BaseModel

from taskgate.core.config import brevo_logger
from taskgate.core.exceptions.types import AppException


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html: str) -> bool: ...


class Contact(BaseModel):
    email: str
    name: str | None = None


class BrevoEmailSender:
    """
    Transactional email over the Brevo HTTP API.

    ``send`` reports delivery as a bool. Transient failures (5xx, 429,
    transport errors) are retried with jittered exponential backoff first.
    """

    _BACKOFF_BASE: float = 1.0
    _BACKOFF_MAX: float = 30.0
    _JITTER: float = 0.2  # +/-20%

    def __init__(
        self,
        api_key: str,
        sender_email: str,
        sender_name: str,
        base_url: str = "https://api.brevo.com/v3",
        timeout: float = 30.0,
        max_attempts: int = 3,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.sender = Contact(email=sender_email, name=sender_name)
        self.max_attempts = max_attempts
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=httpx.Timeout(timeout)
        )
        brevo_logger.info("Brevo HTTP client initialized")

    async def aclose(self) -> None:
        await self._client.aclose()
        brevo_logger.info("Brevo HTTP client closed")

    def _compute_backoff(
        self, attempt: int, err_headers: httpx.Headers | None = None
    ) -> float:
        """
        Seconds to wait before retry ``attempt`` (1-based).

        Honors Brevo's ``x-sib-ratelimit-reset`` header when present, up to
        ``_BACKOFF_MAX``; otherwise ``_BACKOFF_BASE * 2 ** (attempt - 1)``
        capped at ``_BACKOFF_MAX`` with jitter.
        """
        if err_headers and "x-sib-ratelimit-reset" in err_headers:
            try:
                reset = float(err_headers["x-sib-ratelimit-reset"])
                return min(max(reset, 0.0), self._BACKOFF_MAX)
            except ValueError:
                pass
        base = min(self._BACKOFF_BASE * (2 ** (attempt - 1)), self._BACKOFF_MAX)
        return base * random.uniform(1 - self._JITTER, 1 + self._JITTER)

    def _auth_headers(self) -> dict[str, str]:
        return {
            "api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self, method: str, endpoint: str, *, json: dict[str, Any] | None = None
    ) -> dict[str, Any] | str:
        """
        Perform a Brevo API request with retry/backoff.

        Raises:
            AppException: On non-retriable 4xx responses, or once retries are
                exhausted for 5xx, 429 and network errors.
        """
        attempts = self.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                resp = await self._client.request(
                    method, endpoint, headers=self._auth_headers(), json=json
                )
                resp.raise_for_status()
                try:
                    body = resp.json()
                except ValueError:
                    body = resp.text
                brevo_logger.info(f"Brevo response: {body}")
                return body

            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                err_body = exc.response.text

                if 500 <= status < 600 or status == 429:
                    wait = self._compute_backoff(attempt, exc.response.headers)
                    brevo_logger.warning(
                        f"{status} from Brevo; attempt {attempt}/{attempts}; wait={wait:.1f}s; body={err_body}"
                    )
                    if attempt < attempts:
                        await asyncio.sleep(wait)
                        continue
                    brevo_logger.error(f"Brevo error after retries: {status}: {err_body}")
                    raise AppException(
                        f"Brevo error after retries: {status}"
                    ) from exc

                brevo_logger.error(f"4xx error {status}: {err_body}")
                raise AppException(f"HTTP error {status}: {err_body}") from exc

            except (httpx.TimeoutException, httpx.TransportError) as exc:
                wait = self._compute_backoff(attempt)
                brevo_logger.warning(
                    f"Timeout/transport error; attempt {attempt}/{attempts}; wait={wait:.1f}s; err={exc}"
                )
                if attempt < attempts:
                    await asyncio.sleep(wait)
                    continue
                brevo_logger.error(f"Network error after retries: {exc}")
                raise AppException("Brevo network error after retries") from exc

        raise AppException(
            f"Unexpected state: no response after {attempts} attempts"
        )

    async def send(self, to: str, subject: str, html: str) -> bool:
        payload = {
            "sender": self.sender.model_dump(exclude_none=True),
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
        }
        try:
            await self._request("POST", "/smtp/email", json=payload)
        except AppException as e:
            brevo_logger.error(f"Failed to send email '{subject}' to {to}: {e.message}")
            return False
        return True
