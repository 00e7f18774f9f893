"""Shared fixtures.

Environment overrides are applied before ``inkpress`` is imported so the
module-level settings and logging setup in ``inkpress.main`` pick them up.
"""

import os


os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_REQUESTS"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RECONCILE_INTERVAL_SECONDS"] = "0"

from collections.abc import Awaitable, Callable, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from inkpress.auth.permissions import UserRole  # noqa: E402
from inkpress.auth.security import TokenService  # noqa: E402
from inkpress.auth.service import AuthService  # noqa: E402
from inkpress.comments.service import CommentService  # noqa: E402
from inkpress.config import Settings  # noqa: E402
from inkpress.core.database import InMemoryStore, ResilientStore  # noqa: E402
from inkpress.counters.service import CounterEngine  # noqa: E402
from inkpress.main import create_app  # noqa: E402
from inkpress.posts.models import Post, PostStatus  # noqa: E402
from inkpress.posts.schemas import PostCreateRequest  # noqa: E402
from inkpress.posts.service import PostService  # noqa: E402
from inkpress.tags.service import TagService  # noqa: E402


TEST_SIGNING_KEY = "test-signing-key-with-at-least-32-characters"
PRIVILEGED_KEY = "test-privileged-key"
DEFAULT_PASSWORD = "secret-password"


# ==============================================================================
# Services over an in-memory store
# ==============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SIGNING_KEY)


@pytest.fixture
def counters(store: InMemoryStore) -> CounterEngine:
    return CounterEngine(store)


@pytest.fixture
def tag_service(store: InMemoryStore) -> TagService:
    return TagService(store)


@pytest.fixture
def post_service(
    store: InMemoryStore, tag_service: TagService, counters: CounterEngine
) -> PostService:
    return PostService(store, tag_service, counters)


@pytest.fixture
def comment_service(store: InMemoryStore, counters: CounterEngine) -> CommentService:
    return CommentService(store, counters)


@pytest.fixture
def auth_service(store: InMemoryStore, token_service: TokenService) -> AuthService:
    return AuthService(store, token_service, privileged_signup_key=PRIVILEGED_KEY)


@pytest.fixture
def make_post(post_service: PostService) -> Callable[..., Awaitable[Post]]:
    """Factory creating posts through the service."""

    async def _make(
        title: str = "A Post Worth Reading",
        content: str = "Some content that is long enough to be a post body.",
        status: PostStatus = PostStatus.PUBLISHED,
        tags: list[str] | None = None,
        author_id: str = "author-1",
    ) -> Post:
        return await post_service.create(
            author_id,
            PostCreateRequest(title=title, content=content, status=status, tags=tags or []),
        )

    return _make


# ==============================================================================
# HTTP client
# ==============================================================================


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        environment="testing",
        auth_secret_key=TEST_SIGNING_KEY,
        privileged_signup_key=PRIVILEGED_KEY,
        reconcile_interval_seconds=0,
        upload_dir=str(tmp_path / "uploads"),
        log_to_file=False,
        log_requests=False,
    )


@pytest.fixture
def client(app_settings: Settings) -> Iterator[TestClient]:
    app = create_app(app_settings, store=ResilientStore(InMemoryStore()))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client: TestClient) -> Callable[..., dict[str, str]]:
    """Register a user over HTTP and return its id and bearer headers."""
    counter = {"n": 0}

    def _signup(role: UserRole = UserRole.MEMBER, email: str | None = None) -> dict:
        counter["n"] += 1
        payload = {
            "name": f"User {counter['n']}",
            "email": email or f"user{counter['n']}@example.com",
            "password": DEFAULT_PASSWORD,
            "role": role.value,
        }
        if role != UserRole.MEMBER:
            payload["privileged_key"] = PRIVILEGED_KEY
        response = client.post("/v1/auth/signup", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "id": body["user"]["id"],
            "email": payload["email"],
            "headers": {"Authorization": f"Bearer {body['access_token']}"},
        }

    return _signup
