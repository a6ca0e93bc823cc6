import os
import secrets
import sys
import tempfile
from pathlib import Path
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'creator_rewards' resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Console logging only; uploads go to a throwaway directory
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("BLOB_STORE_DIR", tempfile.mkdtemp(prefix="creator_rewards_blobs_"))

from creator_rewards.main import app  # noqa: E402
from creator_rewards.database import Base  # noqa: E402
from creator_rewards.api import deps  # noqa: E402
"""Pytest fixtures and factories.

Important: SQLAlchemy relationship configuration requires all model modules to be imported
before Base.metadata.create_all(), otherwise back_populates targets might not exist yet.
"""
from creator_rewards.models.db import (  # noqa: E402
    Brand, Campaign, User, Reward, Submission, VideoStats,
)
from creator_rewards.models.db.enums import CampaignStatus, SubmissionStatus, UserRole  # noqa: E402
from creator_rewards.services import blob_store as _blob_store_mod  # noqa: E402
from creator_rewards.services.blob_store import LocalBlobStore  # noqa: E402
from creator_rewards.utils.circuit_breaker import GLOBAL_CIRCUIT_BREAKER  # noqa: E402

# File-based SQLite so request sessions and the notification sink's own
# sessions see the same data.
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_creator_rewards.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# The notification sink opens sessions through creator_rewards.database.SessionLocal
# at call time; point it at the test database.
import creator_rewards.database as _app_database  # noqa: E402
_app_database.SessionLocal = TestingSessionLocal  # type: ignore

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF"


@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_creator_rewards.db")
    except OSError:
        pass


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _isolate_test_state(create_test_db, tmp_path, monkeypatch):
    """Per-test isolation.

    Resets:
        - Every table (global tiers in particular are shared by all tier-less campaigns).
        - In-memory circuit breaker so failures do not spill into later tests.
        - Blob store, redirected to the test's tmp_path.
    """
    GLOBAL_CIRCUIT_BREAKER.reset()
    monkeypatch.setattr(
        _blob_store_mod,
        "_default_store",
        LocalBlobStore(str(tmp_path / "blobs"), "http://testserver/files"),
    )
    yield
    GLOBAL_CIRCUIT_BREAKER.reset()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# Override dependency
def _override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

app.dependency_overrides[deps.get_db] = _override_get_db


@pytest.fixture()
def client():
    return TestClient(app)


# ---------- Test doubles ----------

class RecordingNotifier:
    """Captures notifications instead of persisting them."""

    def __init__(self):
        self.sent: list[tuple[int, object, dict, dict]] = []

    def notify(self, user_id, notification_type, payload=None, data=None) -> bool:
        self.sent.append((user_id, notification_type, payload or {}, data or {}))
        return True

    def notify_many(self, user_ids, notification_type, payload=None, data=None) -> int:
        return sum(1 for uid in user_ids if self.notify(uid, notification_type, payload, data))

    def types_for(self, user_id: int) -> list:
        return [t for uid, t, _, _ in self.sent if uid == user_id]


class MemoryBlobStore:
    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.stored = 0

    def store(self, data: bytes, filename: str, content_type: str) -> str:
        self.stored += 1
        url = f"memory://invoices/{self.stored}-{filename}"
        self.files[url] = data
        return url

    def delete(self, url: str) -> None:
        self.files.pop(url, None)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def blob_store():
    return MemoryBlobStore()


# ---------- Data factory helpers ----------

@pytest.fixture()
def brand_factory(db_session):
    def _create(name: str | None = None):
        brand = Brand(name=name or f"Brand {secrets.token_hex(3)}")
        db_session.add(brand)
        db_session.commit()
        db_session.refresh(brand)
        return brand
    return _create


@pytest.fixture()
def user_factory(db_session):
    def _create(
        role: UserRole = UserRole.CREATOR,
        *,
        brand: Brand | None = None,
        name: str | None = None,
        referred_by: User | None = None,
        referral_percentage: int = 10,
    ):
        suffix = secrets.token_hex(4)
        user = User(
            name=name or f"{role.value.title()} {suffix}",
            email=f"{role.value.lower()}_{suffix}@example.com",
            api_key=f"key_{secrets.token_hex(12)}",
            role=role,
            brand_id=brand.id if brand is not None else None,
            referral_code=secrets.token_hex(3).upper(),
            referral_percentage=referral_percentage,
            referred_by_id=referred_by.id if referred_by is not None else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create


@pytest.fixture()
def campaign_factory(db_session):
    def _create(
        brand: Brand,
        tiers: list[tuple[int, int, bool]] | None = None,
        *,
        status: CampaignStatus = CampaignStatus.ACTIVE,
        title: str | None = None,
    ):
        campaign = Campaign(
            brand_id=brand.id,
            title=title or f"Campaign {secrets.token_hex(2)}",
            description="",
            status=status,
        )
        campaign.rewards = [
            Reward(views_target=target, amount_eur=amount, allow_multiple_videos=multi)
            for target, amount, multi in (tiers or [])
        ]
        db_session.add(campaign)
        db_session.commit()
        db_session.refresh(campaign)
        return campaign
    return _create


@pytest.fixture()
def global_tier_factory(db_session):
    def _create(views_target: int, amount_eur: int, allow_multiple_videos: bool = True):
        reward = Reward(
            campaign_id=None,
            views_target=views_target,
            amount_eur=amount_eur,
            allow_multiple_videos=allow_multiple_videos,
        )
        db_session.add(reward)
        db_session.commit()
        db_session.refresh(reward)
        return reward
    return _create


@pytest.fixture()
def submission_factory(db_session):
    def _create(
        campaign: Campaign,
        creator: User,
        views: int = 0,
        *,
        status: SubmissionStatus = SubmissionStatus.ACCEPTED,
        video_id: str | None = None,
        ads_code: str | None = None,
    ):
        submission = Submission(
            campaign_id=campaign.id,
            creator_id=creator.id,
            tiktok_video_id=video_id or secrets.token_hex(8),
            status=status,
            ads_code=ads_code,
        )
        submission.stats = VideoStats(views=views, likes=0, comments=0, shares=0)
        db_session.add(submission)
        db_session.commit()
        db_session.refresh(submission)
        return submission
    return _create


@pytest.fixture()
def set_views(db_session):
    def _set(submission: Submission, views: int):
        submission.stats.views = views
        db_session.commit()
    return _set


def auth(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {user.api_key}"}
