import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from typing import Optional

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.crud.auth import hash_password, open_session
from app.crud.pairings import respond_request, send_request
from app.crud.user import create_user
from app.models import Base, Pairing, User
from app.storage import LocalBlobStore

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSession = sessionmaker(bind=engine, autoflush=False)

TZ = "Etc/UTC"
PASSWORD = "correct-horse"
# pbkdf2 is slow, hash once per run
PASSWORD_HASH = hash_password(PASSWORD)


def utc(hour: int, minute: int = 0, day: int = 19, month: int = 10, year: int = 2026) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class DbTestCase(unittest.TestCase):
    def setUp(self) -> None:
        Base.metadata.drop_all(engine)
        Base.metadata.create_all(engine)
        self.db = TestingSession()

    def tearDown(self) -> None:
        self.db.close()

    def make_user(self, username: str, tz: str = TZ, deadline: Optional[str] = None, available: bool = True) -> User:
        user = create_user(self.db, f"{username}@example.com", PASSWORD_HASH, username, tz)
        user.deadline = deadline
        user.is_available = available
        self.db.commit()
        self.db.refresh(user)
        return user

    def make_pairing(self, first: User, second: User, now: datetime) -> Pairing:
        request = send_request(self.db, first, second.id, now)
        return respond_request(self.db, request.id, second, True, now)

    def reload(self, obj):
        self.db.expire_all()
        self.db.refresh(obj)
        return obj


class ApiTestCase(DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        from fastapi.testclient import TestClient

        from api_main import app
        from app.api.deps import get_db, get_now, get_storage

        self.now = utc(12)
        self.upload_dir = tempfile.mkdtemp()
        self.store = LocalBlobStore(self.upload_dir, "http://testserver")

        def override_db():
            db = TestingSession()
            try:
                yield db
            finally:
                db.close()

        self.app = app
        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_now] = lambda: self.now
        app.dependency_overrides[get_storage] = lambda: self.store
        self.client = TestClient(app)

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()
        shutil.rmtree(self.upload_dir, ignore_errors=True)
        super().tearDown()

    def auth(self, user: User) -> dict:
        session = open_session(self.db, user, self.now)
        return {"Authorization": f"Bearer {session.token}"}
