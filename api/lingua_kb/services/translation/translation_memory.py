"""Translation-memory client for the Crowdin REST API (v2).

Fetching the full memory means building the project, waiting for the build,
then downloading a zip of per-file CSVs with one column per language. The
result is cached for ``TRANSLATION_MEMORY_TTL_SECONDS``.
"""

import asyncio
import csv
import io
import logging
import zipfile
from typing import Awaitable, Callable, Dict, List, Optional

import httpx
from lingua_kb.core.config import Settings
from lingua_kb.core.exceptions import (
    ConfigurationError,
    LinguaKBError,
    TranslationMemoryError,
)
from lingua_kb.models.language import TranslationMemoryItem
from lingua_kb.services.retry import RetryExecutor
from lingua_kb.services.translation.cache import TTLCache

logger = logging.getLogger(__name__)

CACHE_KEY = "all-translations"
NON_LANGUAGE_COLUMNS = {"Key", "Context"}


def parse_bundle(archive: bytes) -> List[TranslationMemoryItem]:
    """Flatten every CSV file of a build archive into translation-memory items."""
    items: List[TranslationMemoryItem] = []
    with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
        for name in bundle.namelist():
            if not name.lower().endswith(".csv"):
                continue
            content = bundle.read(name).decode("utf-8-sig")
            for row in csv.DictReader(io.StringIO(content)):
                key = (row.get("Key") or "").strip()
                if not key:
                    continue
                translations = {
                    column: value
                    for column, value in row.items()
                    if column and column not in NON_LANGUAGE_COLUMNS and value
                }
                items.append(TranslationMemoryItem(key=key, translations=translations))
    return items


class TranslationMemoryClient:
    """Downloads and caches the project's full translation memory."""

    def __init__(
        self,
        token: str,
        project_id: int,
        api_url: str = "https://api.crowdin.com/api/v2",
        http_client: Optional[httpx.AsyncClient] = None,
        retry: Optional[RetryExecutor] = None,
        cache: Optional[TTLCache] = None,
        ttl_seconds: float = 15 * 60,
        poll_interval: float = 1.0,
        max_polls: int = 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not token:
            raise ConfigurationError("CROWDIN_TOKEN")
        if not project_id:
            raise ConfigurationError("CROWDIN_PROJECT_ID")
        self.project_id = project_id
        self.api_url = api_url.rstrip("/")
        self.http = http_client or httpx.AsyncClient(timeout=30.0)
        self.headers = {"Authorization": f"Bearer {token}"}
        self.retry = retry or RetryExecutor()
        self.cache = cache if cache is not None else TTLCache(maxsize=1)
        self.ttl_seconds = ttl_seconds
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: Settings, retry: Optional[RetryExecutor] = None
    ) -> "TranslationMemoryClient":
        return cls(
            token=settings.CROWDIN_TOKEN,
            project_id=settings.CROWDIN_PROJECT_ID,
            api_url=settings.CROWDIN_API_URL,
            retry=retry,
            ttl_seconds=settings.TRANSLATION_MEMORY_TTL_SECONDS,
            poll_interval=settings.TRANSLATION_MEMORY_POLL_INTERVAL,
            max_polls=settings.TRANSLATION_MEMORY_MAX_POLLS,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.http.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429 or status >= 500:
                raise TranslationMemoryError(f"{method} {url} returned {status}") from e
            raise LinguaKBError(
                f"Translation memory request {method} {url} rejected with {status}",
                error_code="TRANSLATION_MEMORY_REJECTED",
            ) from e
        except httpx.HTTPError as e:
            raise TranslationMemoryError(f"{method} {url} failed: {e}") from e

    async def _api(self, method: str, path: str) -> Dict:
        response = await self._request(
            method, f"{self.api_url}/projects/{self.project_id}{path}", headers=self.headers
        )
        return response.json().get("data", {})

    async def build_project(self) -> int:
        logger.info(f"Building translation memory for project {self.project_id}")
        data = await self._api("POST", "/translations/builds")
        return int(data["id"])

    async def wait_for_build(self, build_id: int) -> None:
        """Poll the build status until it finishes, at most ``max_polls`` times.

        Raises:
            TranslationMemoryError: If the build fails or does not finish in time
        """
        for poll in range(1, self.max_polls + 1):
            data = await self._api("GET", f"/translations/builds/{build_id}")
            status = data.get("status")
            if status == "finished":
                logger.info(f"Translation memory build {build_id} finished after {poll} poll(s)")
                return
            if status in {"failed", "canceled"}:
                raise TranslationMemoryError(f"Build {build_id} ended with status '{status}'")
            await self._sleep(self.poll_interval)
        raise TranslationMemoryError(
            f"Build {build_id} did not finish after {self.max_polls} polls"
        )

    async def download_build(self, build_id: int) -> List[TranslationMemoryItem]:
        data = await self._api("GET", f"/translations/builds/{build_id}/download")
        archive = await self._request("GET", data["url"])
        try:
            items = parse_bundle(archive.content)
        except zipfile.BadZipFile as e:
            raise TranslationMemoryError(f"Build {build_id} archive is not a zip file") from e
        logger.info(f"Downloaded {len(items)} translation memory strings from build {build_id}")
        return items

    async def _fetch(self) -> List[TranslationMemoryItem]:
        build_id = await self.build_project()
        await self.wait_for_build(build_id)
        return await self.download_build(build_id)

    async def fetch_all_translations(self, force_refresh: bool = False) -> List[TranslationMemoryItem]:
        """Return the full translation memory, rebuilding it when the cache is stale."""

        async def load() -> List[TranslationMemoryItem]:
            return await self.retry.run(self._fetch, label="translation_memory.fetch")

        return await self.cache.get_or_refresh(
            CACHE_KEY, self.ttl_seconds, load, force_refresh=force_refresh
        )

    async def aclose(self) -> None:
        await self.http.aclose()
