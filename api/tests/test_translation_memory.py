"""Tests for the translation-memory client (build, poll, download, parse, cache)."""

import io
import zipfile
from typing import List

import httpx
import pytest
from lingua_kb.core.exceptions import (
    ConfigurationError,
    LinguaKBError,
    TranslationMemoryError,
)

API = "https://tm.example.com/api/v2"
DOWNLOAD_URL = "https://downloads.example.com/build-7.zip"


def make_archive(files=None) -> bytes:
    files = files or {
        "strings/items.csv": (
            "Key,Context,en,fr,de\n"
            "Rune_1_Name,weapon rune,Fire Rune,Rune de feu,\n"
            ",,orphan,orphelin,\n"
        ),
        "strings/talents.csv": "Key,en,fr\nTalent_1_Name,Fury,Furie\n",
        "README.txt": "ignored",
    }
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content.encode("utf-8-sig") if name.endswith(".csv") else content)
    return buffer.getvalue()


class FakeTranslationMemoryAPI:
    """Serves the build/poll/download sequence of the translation-memory API."""

    def __init__(self, statuses: List[str], archive: bytes = b""):
        self.statuses = list(statuses)
        self.archive = archive or make_archive()
        self.requests: List[httpx.Request] = []
        self.build_failures = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path.endswith("/projects/42/translations/builds"):
            if self.build_failures:
                self.build_failures -= 1
                return httpx.Response(503, json={"error": "busy"})
            return httpx.Response(201, json={"data": {"id": 7, "status": "inProgress"}})
        if path.endswith("/translations/builds/7/download"):
            return httpx.Response(200, json={"data": {"url": DOWNLOAD_URL}})
        if path.endswith("/translations/builds/7"):
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json={"data": {"id": 7, "status": status}})
        if str(request.url) == DOWNLOAD_URL:
            return httpx.Response(200, content=self.archive)
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def make_client(fast_retry):
    from lingua_kb.services.translation.translation_memory import TranslationMemoryClient

    sleeps: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def _make(api: FakeTranslationMemoryAPI, max_polls: int = 5):
        client = TranslationMemoryClient(
            token="secret",
            project_id=42,
            api_url=API,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(api)),
            retry=fast_retry,
            ttl_seconds=900,
            poll_interval=2.0,
            max_polls=max_polls,
            sleep=fake_sleep,
        )
        client.sleeps = sleeps
        return client

    return _make


class TestParseBundle:
    def test_flattens_csv_files(self):
        from lingua_kb.services.translation.translation_memory import parse_bundle

        items = parse_bundle(make_archive())

        assert [item.key for item in items] == ["Rune_1_Name", "Talent_1_Name"]
        assert items[0].translations == {"en": "Fire Rune", "fr": "Rune de feu"}
        assert items[1].translations == {"en": "Fury", "fr": "Furie"}


class TestTranslationMemoryClient:
    def test_requires_credentials(self):
        from lingua_kb.services.translation.translation_memory import TranslationMemoryClient

        with pytest.raises(ConfigurationError):
            TranslationMemoryClient(token="", project_id=42)
        with pytest.raises(ConfigurationError):
            TranslationMemoryClient(token="secret", project_id=0)

    @pytest.mark.asyncio
    async def test_build_poll_download(self, make_client):
        api = FakeTranslationMemoryAPI(["inProgress", "inProgress", "finished"])
        client = make_client(api)

        items = await client.fetch_all_translations()

        assert [item.key for item in items] == ["Rune_1_Name", "Talent_1_Name"]
        assert client.sleeps == [2.0, 2.0]
        assert api.requests[0].headers["Authorization"] == "Bearer secret"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_result_is_cached_until_forced(self, make_client):
        api = FakeTranslationMemoryAPI(["finished"])
        client = make_client(api)

        await client.fetch_all_translations()
        request_count = len(api.requests)
        await client.fetch_all_translations()
        assert len(api.requests) == request_count

        await client.fetch_all_translations(force_refresh=True)
        assert len(api.requests) == request_count * 2

    @pytest.mark.asyncio
    async def test_polling_is_bounded(self, make_client):
        api = FakeTranslationMemoryAPI(["inProgress"])
        client = make_client(api, max_polls=3)

        with pytest.raises(TranslationMemoryError):
            await client.wait_for_build(7)

        assert len(client.sleeps) == 3

    @pytest.mark.asyncio
    async def test_failed_build_raises(self, make_client):
        client = make_client(FakeTranslationMemoryAPI(["failed"]))

        with pytest.raises(TranslationMemoryError):
            await client.wait_for_build(7)

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, make_client):
        api = FakeTranslationMemoryAPI(["finished"])
        api.build_failures = 2
        client = make_client(api)

        items = await client.fetch_all_translations()

        assert len(items) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, make_client):
        api = FakeTranslationMemoryAPI(["finished"])
        client = make_client(api)
        client.project_id = 99

        with pytest.raises(LinguaKBError) as exc_info:
            await client.fetch_all_translations()

        assert exc_info.value.error_code == "TRANSLATION_MEMORY_REJECTED"
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_corrupt_archive_raises(self, make_client):
        client = make_client(FakeTranslationMemoryAPI(["finished"], archive=b"not a zip"))

        with pytest.raises(TranslationMemoryError):
            await client.download_build(7)
