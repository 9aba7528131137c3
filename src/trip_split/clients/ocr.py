"""Client for an external OCR service."""

import logging
from collections.abc import Callable

import httpx

from ..exceptions import OcrCancelledError, OcrError
from ..models import OcrResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class CancellationToken:
    """Cooperative cancellation flag, checked at each progress point."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        """Request cancellation."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class OcrClient:
    """
    Async client for a text-recognition HTTP service.

    Contract: ``POST <api_url>`` with a multipart ``file`` and a ``language``
    form field; the service answers ``{"text": "..."}``.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        language: str = "eng",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the OCR client."""
        self.api_url = api_url
        self.language = language

        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.client = httpx.AsyncClient(
            headers=headers, timeout=timeout, transport=transport
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def recognize(
        self,
        image: bytes,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
        filename: str = "receipt.jpg",
    ) -> OcrResult:
        """
        Recognize the text in a receipt image.

        Progress is reported as a fraction: 0.0 before upload, 0.5 once the
        service answered, 1.0 when the text is decoded.

        Args:
            image: Raw image bytes
            on_progress: Optional callback receiving progress in [0, 1]
            cancel_token: Optional token checked at each progress point
            filename: File name sent with the upload

        Returns:
            The recognized text

        Raises:
            OcrError: If the request fails, times out, or the response is unusable
            OcrCancelledError: If the token was cancelled
        """
        if not image:
            raise OcrError("No image data to recognize", hint="Choose an image file.")

        self._report(0.0, on_progress, cancel_token)

        try:
            response = await self.client.post(
                self.api_url,
                files={"file": (filename, image)},
                data={"language": self.language},
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise OcrError("Text recognition timed out") from e
        except httpx.HTTPStatusError as e:
            raise OcrError(
                f"OCR service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise OcrError(f"OCR request failed: {e}") from e

        self._report(0.5, on_progress, cancel_token)

        try:
            payload = response.json()
        except ValueError as e:
            raise OcrError("OCR service returned a non-JSON response") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise OcrError("OCR response did not contain any text")

        self._report(1.0, on_progress, cancel_token)

        logger.info(f"Recognized {len(text.splitlines())} lines of text")
        return OcrResult(text=text)

    @staticmethod
    def _report(
        fraction: float,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            logger.info("Text recognition cancelled")
            raise OcrCancelledError()
        if on_progress is not None:
            on_progress(fraction)
