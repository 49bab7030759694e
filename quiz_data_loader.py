"""
Source Record Loader
====================
Fetches the quiz definition, current submission and attempt history
concurrently. No caching and no retry: a failed fetch fails the request.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from quiz_settings import Settings, get_settings


class DataLoadError(RuntimeError):
    """A source record could not be fetched or decoded"""


@dataclass(frozen=True)
class QuizData:
    quiz: Dict[str, Any]
    submission: Dict[str, Any]
    history: List[Dict[str, Any]]


async def fetch_record(client: httpx.AsyncClient, url: str) -> Any:
    try:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        raise DataLoadError(f"HTTP error! status: {exc.response.status_code} ({url})") from exc
    except httpx.HTTPError as exc:
        raise DataLoadError(f"Failed to fetch data: {exc} ({url})") from exc
    except ValueError as exc:
        raise DataLoadError(f"Invalid JSON from {url}: {exc}") from exc


async def load_quiz_data(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> QuizData:
    settings = settings or get_settings()
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=settings.request_timeout, follow_redirects=True)

    try:
        quiz, submission, history = await asyncio.gather(
            fetch_record(client, settings.quiz_url),
            fetch_record(client, settings.submission_url),
            fetch_record(client, settings.history_url),
        )
    finally:
        if owns_client:
            await client.aclose()

    if not isinstance(history, list):
        raise DataLoadError("Historical data must be an array")

    logger.debug("Loaded quiz data: {} historical attempts", len(history))
    return QuizData(quiz=quiz, submission=submission, history=history)
