"""
LMS API client.

Adapter from the engine's collaborator protocols onto the LMS REST API:

- POST /grades                      record an attempt (returns attempts_count)
- GET  /lessons/{id}                 lesson document with its blocks
- GET  /lessons/{id}/feedback        tutor feedback text
- POST /lessons/{id}/interactions    media view/play events
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from exercise_engine.errors import (
    AttemptsExhaustedError,
    GradingServiceError,
    LessonLoadError,
    ServiceTimeoutError,
    TutorServiceError,
)
from exercise_engine.lesson import Lesson

from .services import AttemptRecord, InteractionEvent


class LmsClient:
    """HTTP client for the LMS grading, tutor and interaction endpoints."""

    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        user_id: str | None = None,
        course_id: str | None = None,
        timeout_ms: int = 10000,
        retry_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ):
        """
        Initialize LMS client.

        Args:
            api_url: Base URL for the LMS API
            token: Bearer token for the learner session
            user_id: Learner the grades are recorded for
            course_id: Course the lessons belong to
            timeout_ms: Request timeout in milliseconds
            retry_attempts: Number of tries for retryable failures
            backoff_seconds: First retry delay, doubled on each retry
        """
        self.api_url = api_url.rstrip("/")
        self.user_id = user_id
        self.course_id = course_id
        self.timeout_seconds = timeout_ms / 1000.0
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_seconds = backoff_seconds

        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=True,
        )

    async def __aenter__(self) -> LmsClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        idempotent: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request with retry and exponential backoff.

        Idempotent requests retry on timeouts, transport errors and 5xx.
        Non-idempotent requests only retry when the connection was never
        established, so a request the server may have processed is not
        sent twice. 4xx responses are never retried.

        Raises:
            httpx.HTTPError: The last failure once retries are exhausted
        """
        send = self.client.post if method == "POST" else self.client.get
        url = f"{self.api_url}{path}"
        last_error: httpx.HTTPError | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = await send(url, **kwargs)
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code < 500 or not idempotent:
                    raise
                logger.warning(
                    f"LMS server error {e.response.status_code} on {method} {path} "
                    f"(attempt {attempt + 1}/{self.retry_attempts})"
                )

            except httpx.ConnectError as e:
                last_error = e
                logger.warning(
                    f"LMS unreachable on {method} {path} "
                    f"(attempt {attempt + 1}/{self.retry_attempts}): {e}"
                )

            except httpx.TimeoutException as e:
                last_error = e
                if not idempotent:
                    raise
                logger.warning(
                    f"LMS timeout on {method} {path} (attempt {attempt + 1}/{self.retry_attempts})"
                )

            except httpx.RequestError as e:
                last_error = e
                if not idempotent:
                    raise
                logger.warning(
                    f"LMS request error on {method} {path} "
                    f"(attempt {attempt + 1}/{self.retry_attempts}): {e}"
                )

            if attempt < self.retry_attempts - 1:
                await asyncio.sleep(self.backoff_seconds * 2 ** attempt)

        logger.error(f"LMS {method} {path} failed after {self.retry_attempts} attempts: {last_error}")
        if last_error is None:
            raise RuntimeError(f"LMS {method} {path} was never attempted")
        raise last_error

    # =========================================================================
    # GradingService
    # =========================================================================

    async def record_attempt(self, lesson_id: str, block_id: str, score: float) -> AttemptRecord:
        """Record one graded attempt and return the LMS attempt count."""
        payload = {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "lesson_id": lesson_id,
            "score": score,
            "metadata": {"block_id": block_id},
        }
        try:
            response = await self._request("POST", "/grades", idempotent=False, json=payload)
        except httpx.TimeoutException as e:
            raise ServiceTimeoutError(f"Grading service timed out for {block_id}") from e
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 403:
                raise AttemptsExhaustedError(_error_message(e.response)) from e
            raise GradingServiceError(
                f"Grading service returned {e.response.status_code}: {_error_message(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise GradingServiceError(f"Grading service unavailable: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise GradingServiceError(f"Grading service returned a non-JSON body for {block_id}") from e
        attempts = data.get("attempts_count") if isinstance(data, dict) else None
        if not isinstance(attempts, int):
            raise GradingServiceError("Grading service response has no attempts_count")
        return AttemptRecord(attempts_used=attempts, score=data.get("score"))

    # =========================================================================
    # TutorService
    # =========================================================================

    async def get_feedback(self, lesson_id: str) -> str:
        try:
            response = await self._request("GET", f"/lessons/{lesson_id}/feedback")
        except httpx.HTTPError as e:
            raise TutorServiceError(f"Feedback unavailable for lesson {lesson_id}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise TutorServiceError(f"Feedback for lesson {lesson_id} is not JSON") from e
        text = data.get("response") if isinstance(data, dict) else None
        if not text:
            raise TutorServiceError(f"Empty feedback for lesson {lesson_id}")
        return text

    # =========================================================================
    # MediaInteractionReporter
    # =========================================================================

    async def record_interaction(self, lesson_id: str, event: InteractionEvent) -> None:
        """Fire-and-forget: failures are logged, never raised."""
        try:
            await self._request("POST", f"/lessons/{lesson_id}/interactions", json=event.to_dict())
        except httpx.HTTPError as e:
            logger.warning(f"Could not report {event.event_type} for lesson {lesson_id}: {e}")

    # =========================================================================
    # LessonLoader
    # =========================================================================

    async def load(self, lesson_id: str) -> Lesson:
        try:
            response = await self._request("GET", f"/lessons/{lesson_id}")
        except httpx.HTTPError as e:
            raise LessonLoadError(f"Could not fetch lesson {lesson_id}: {e}") from e
        try:
            data = response.json()
        except ValueError as e:
            raise LessonLoadError(f"Lesson {lesson_id} is not JSON") from e
        return Lesson.from_raw(data)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)
