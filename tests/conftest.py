"""
Pytest Configuration and Fixtures

In-memory stand-ins for the four collaborators of the query pipeline
(embedding model, vector index, note store, completion model), plus the
session-scoped fixtures used by live tests against a running stack.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be before any mindnotes imports.
#
# 1. Load .env first so that Docker-matching credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "mindnotes",
    "POSTGRES_PASSWORD": "mindnotes_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "mindnotes_db",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import asyncio  # noqa: E402
import math  # noqa: E402
import re  # noqa: E402
import time  # noqa: E402
import uuid  # noqa: E402
import zlib  # noqa: E402
from collections.abc import Generator, Iterable  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from mindnotes.core.errors import (  # noqa: E402
    CompletionFailure,
    DocumentStoreError,
    VectorIndexError,
)
from mindnotes.models import Note  # noqa: E402
from mindnotes.repositories.vectors import (  # noqa: E402
    OwnerFilter,
    VectorIndex,
    VectorMatch,
    VectorMetadata,
)
from mindnotes.services.embeddings import EmbeddingClient  # noqa: E402
from mindnotes.services.llm import CompletionClient  # noqa: E402

BASE_URL = "http://localhost:8000"

FAKE_DIMENSION = 64


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbedder(EmbeddingClient):
    """
    Deterministic bag-of-words embedder.

    Each lowercase word is hashed (crc32) into one of ``FAKE_DIMENSION``
    buckets, so texts sharing words get a positive cosine similarity and
    texts sharing none score 0.
    """

    def __init__(self, fail_times: int = 0, delay: float = 0.0, fail_always: bool = False):
        super().__init__(dimension=FAKE_DIMENSION)
        self.fail_times = fail_times
        self.fail_always = fail_always
        self.delay = delay
        self.calls: list[str] = []

    async def _embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_always or len(self.calls) <= self.fail_times:
            raise ConnectionError("embedding provider unreachable")
        vector = [0.0] * FAKE_DIMENSION
        for word in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(word.encode()) % FAKE_DIMENSION] += 1.0
        return vector


def _cosine(a: list[float], b: list[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if not norm:
        return 0.0
    return sum(x * y for x, y in zip(a, b, strict=True)) / norm


class InMemoryVectorIndex(VectorIndex):
    """
    Dict-backed vector index with switchable failures.

    ``ignore_owner_filter`` simulates a misbehaving index that leaks other
    owners' matches, to exercise the pipeline's second owner check.
    """

    def __init__(self) -> None:
        self.entries: dict[uuid.UUID, tuple[list[float], VectorMetadata]] = {}
        self.failing: set[str] = set()
        self.ignore_owner_filter = False
        self.delay = 0.0

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise VectorIndexError(f"{operation} failed")

    async def upsert(self, session, id, vector, metadata) -> None:
        self._check("upsert")
        self.entries[id] = (list(vector), metadata)

    async def delete(self, session, id) -> None:
        self._check("delete")
        self.entries.pop(id, None)

    async def query(self, session, vector, top_k, owner_filter: OwnerFilter) -> list[VectorMatch]:
        if self.delay:
            await asyncio.sleep(self.delay)
        self._check("query")
        matches = [
            VectorMatch(id=id, score=round(_cosine(vector, stored), 4), metadata=metadata)
            for id, (stored, metadata) in self.entries.items()
            if self.ignore_owner_filter or metadata.owner_id == owner_filter.owner_id
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    async def ids_for_owner(self, session, owner_id) -> set[uuid.UUID]:
        self._check("ids_for_owner")
        return {id for id, (_, metadata) in self.entries.items() if metadata.owner_id == owner_id}


class InMemoryNoteStore:
    """
    Note store with the NoteRepository interface, minus the database.

    ``leak_other_owners`` makes ``find_by_ids`` ignore the owner scope.
    """

    def __init__(self) -> None:
        self.notes: dict[uuid.UUID, Note] = {}
        self.fail = False
        self.leak_other_owners = False
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def add(self, owner_id: str, content: str, pinned: bool = False) -> Note:
        now = self._tick()
        note = Note(
            id=uuid.uuid4(),
            owner_id=owner_id,
            content=content,
            pinned=pinned,
            created_at=now,
            updated_at=now,
        )
        self.notes[note.id] = note
        return note

    async def create(self, session, owner_id: str, content: str) -> Note:
        return self.add(owner_id, content.strip())

    async def update(self, session, note: Note, *, content=None, pinned=None) -> Note:
        if content is not None:
            note.content = content.strip()
        if pinned is not None:
            note.pinned = pinned
        note.updated_at = self._tick()
        return note

    async def delete(self, session, note_id, owner_id) -> bool:
        note = await self.get(session, note_id, owner_id)
        if note is None:
            return False
        del self.notes[note_id]
        return True

    async def get(self, session, note_id, owner_id) -> Note | None:
        note = self.notes.get(note_id)
        if note is None or note.owner_id != owner_id:
            return None
        return note

    async def list_for_owner(self, session, owner_id, page=1, limit=20):
        own = [n for n in self.notes.values() if n.owner_id == owner_id]
        own.sort(key=lambda n: (not n.pinned, -n.created_at.timestamp()))
        start = (page - 1) * limit
        return own[start : start + limit], len(own)

    async def find_by_ids(self, session, ids: Iterable[uuid.UUID], owner_id: str) -> list[Note]:
        if self.fail:
            raise DocumentStoreError("store offline")
        found = [self.notes[i] for i in ids if i in self.notes]
        if self.leak_other_owners:
            return found
        return [n for n in found if n.owner_id == owner_id]

    async def iter_owner_notes(self, session, owner_id, batch_size=100):
        for note in sorted(self.notes.values(), key=lambda n: n.id):
            if note.owner_id == owner_id:
                yield note

    async def owner_ids(self, session) -> list[str]:
        return sorted({n.owner_id for n in self.notes.values()})


class FakeCompletion(CompletionClient):
    """Completion model that records prompts and returns a canned reply."""

    def __init__(self, reply: str = "Friday at 3pm, don't forget!", fail: bool = False):
        self.reply = reply
        self.fail = fail
        self.delay = 0.0
        self.prompts: list[str] = []

    async def _complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise CompletionFailure("model overloaded")
        return self.reply


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def store() -> InMemoryNoteStore:
    return InMemoryNoteStore()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture(scope="session")
def wait_for_api():
    """
    Block until the API is ready or timeout expires.

    Polls /health endpoint with 1s intervals for up to 30s.
    Fails the test session if API is unreachable (Docker likely not running).
    """
    url = f"{BASE_URL}/health"
    timeout = 30
    start = time.time()

    print("\n[Test] Waiting for API...")
    while time.time() - start < timeout:
        try:
            res = httpx.get(url, timeout=1.0)
            if res.status_code == 200:
                print("API Ready")
                return
        except httpx.RequestError:
            time.sleep(1)

    pytest.fail("API unreachable. Docker is likely down.")


@pytest.fixture(scope="session")
def api_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """
    HTTP client for live tests, authenticated through the gateway header.

    Yields:
        httpx.Client: Session-scoped client, automatically closed after tests.
    """
    headers = {"X-User-Id": f"live-{uuid.uuid4().hex[:8]}"}
    with httpx.Client(base_url=f"{BASE_URL}/api/v1", headers=headers, timeout=30.0) as client:
        yield client
