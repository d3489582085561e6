import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document, ensure_indexes, get_db
from main import app
from media import UploadError, get_media_store
from notifications import NotificationError, get_notifier
from schemas import ROLES_LIST, User
from security import ACCESS_COOKIE, create_session_token, hash_password
from settings import get_settings

# ---------- FAKE EXTERNAL SERVICES ----------


class FakeMediaStore:
    """Stands in for Cloudinary; records every upload and delete."""

    def __init__(self):
        self.uploads = []
        self.destroyed = []
        self.failing_ids = set()
        self.fail_on_upload = None  # 1-based upload number that should fail

    def upload(self, fileobj, folder, filename=None):
        number = len(self.uploads) + 1
        if self.fail_on_upload == number:
            raise UploadError("Invalid image file")
        public_id = f"{folder}/asset{number}"
        self.uploads.append(public_id)
        return {
            "secure_url": f"https://res.cloudinary.com/demo/{public_id}.png",
            "format": "png",
            "original_filename": filename,
            "public_id": public_id,
        }

    def destroy(self, public_id):
        self.destroyed.append(public_id)
        return public_id not in self.failing_ids


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    def dispatch(self, notification):
        if self.fail:
            raise NotificationError("notification service unavailable")
        self.sent.append(notification)
        return {"data": {"acknowledged": True}}


# ---------- TEST FIXTURES ----------


@pytest.fixture
def db():
    database = mongomock.MongoClient()["kora_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def media_store():
    return FakeMediaStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(db, media_store, notifier):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_media_store] = lambda: media_store
    app.dependency_overrides[get_notifier] = lambda: notifier
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# ---------- TEST DATA HELPERS ----------


@pytest.fixture
def make_user(db):
    def _make_user(email="jane@mail.com", password="Secret123!", verified=True, disabled=False, admin=False):
        roles = {"User": ROLES_LIST["User"]}
        if admin:
            roles["Admin"] = ROLES_LIST["Admin"]
        user = User(
            email=email,
            password=hash_password(password),
            phone_no="+2348000000000",
            roles=roles,
            is_verified=verified,
            account_disabled=disabled,
        )
        return create_document(db, "user", user)

    return _make_user


def auth_headers(user):
    token = create_session_token(str(user["_id"]), user["roles"].values(), get_settings())
    return {"Cookie": f"{ACCESS_COOKIE}={token}"}


@pytest.fixture
def user_headers(make_user):
    return auth_headers(make_user(email="member@mail.com"))


@pytest.fixture
def admin_headers(make_user):
    return auth_headers(make_user(email="admin@mail.com", admin=True))
