"""Shared fixtures: fast timers, an in-memory sandbox and clients wired to it."""

from pathlib import Path
import sys

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from candidate_pipeline.client import ApiClient, Services, StaticCredentialProvider  # noqa: E402
from candidate_pipeline.client.services import UploadFile  # noqa: E402
from candidate_pipeline.core.config import Settings  # noqa: E402
from candidate_pipeline.main import create_app  # noqa: E402
from candidate_pipeline.sandbox.store import SandboxStore  # noqa: E402

CORPUS = "\n".join(
    [
        "Asha Rao | asha@acme.io | +91 98450 00001 | Python, Kubernetes, AWS | 6 years",
        "Ben Ortiz | ben@acme.io | +1 555 0102 | Python, Django | 4 years",
        "Chen Li | chen@acme.io | +1 555 0103 | Kubernetes, Go | 5 years",
        "Dana Kim | dana@acme.io | +1 555 0104 | Figma, Sketch | 3 years",
        "Eli Park | eli@acme.io | +1 555 0105 | Python, Kubernetes | 2 years",
    ]
)

TOKEN = "test-token"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        API_BASE_URL="http://sandbox",
        API_TOKEN=TOKEN,
        HTTP_TIMEOUT_SECONDS=5.0,
        POLL_INTERVAL_SECONDS=0.01,
        PROCESSING_TIMEOUT_SECONDS=2.0,
        STATUS_ROTATE_SECONDS=0.01,
        PROGRESS_TICK_SECONDS=0.01,
        NOTICE_TTL_SECONDS=3.0,
        UPDATE_TRANSITION_SECONDS=0.0,
    )


@pytest.fixture
def store() -> SandboxStore:
    return SandboxStore()


@pytest.fixture
def sandbox_app(store, fast_settings):
    return create_app(store=store, config=fast_settings)


def _connect(app, config: Settings, token: str | None) -> Services:
    client = ApiClient(
        StaticCredentialProvider(token),
        transport=httpx.ASGITransport(app=app),
        config=config,
    )
    return Services.over(client)


@pytest.fixture
async def services(anyio_backend, sandbox_app, fast_settings):
    bundle = _connect(sandbox_app, fast_settings, TOKEN)
    yield bundle
    await bundle.aclose()


@pytest.fixture
async def anonymous_services(anyio_backend, sandbox_app, fast_settings):
    bundle = _connect(sandbox_app, fast_settings, None)
    yield bundle
    await bundle.aclose()


@pytest.fixture
def jd_pdf() -> UploadFile:
    return UploadFile("job-description.pdf", b"%PDF-1.4 platform engineer", "application/pdf")


@pytest.fixture
def search_id(store) -> int:
    """A search over ``CORPUS`` whose shortlist is indices [0, 4, 1]."""
    body = store.shortlist(
        {
            "searchName": "Platform hiring",
            "jobRole": "Platform Engineer",
            "skills": "Python, Kubernetes",
            "rawData": CORPUS,
            "numCandidates": "3",
        }
    )
    return body["search_id"]


@pytest.fixture
def seed_candidates(store, search_id):
    """Factory adding candidates straight into the sandbox store."""

    def _seed(*rows):
        created = []
        for name, score, *rest in rows:
            skills = rest[0] if rest else "Python"
            handle = "".join(ch for ch in name.split()[0].lower() if ch.isalnum())
            email = f"{handle}{len(created)}@acme.io"
            body = store.create_candidate(
                {
                    "search_id": search_id,
                    "name": name,
                    "email": email,
                    "phone": "+1 555 0100",
                    "skills": skills,
                    "match_score": score,
                }
            )
            created.append(body["candidate"]["id"])
        return created

    return _seed
