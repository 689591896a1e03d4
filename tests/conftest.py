import mongomock
import pytest
from fastapi.testclient import TestClient

from auth_service import SessionService, UserService, hash_password
from errors import UpstreamUnavailable
from main import create_app
from media import MediaAsset
from post_service import PostService
from profile_service import ProfileService
from project_service import ProjectService


class FakeMediaHost:
    """Stands in for Cloudinary; remembers what was uploaded and deleted."""

    def __init__(self):
        self.uploads = []
        self.deleted = []
        self.files = {}
        self.fail_deletes = False
        self._count = 0

    def _upload(self, data, folder, resource_type):
        self._count += 1
        public_id = f"{folder}/asset{self._count}"
        url = f"https://cdn.test/{public_id}"
        self.uploads.append((resource_type, public_id))
        self.files[url] = data
        return MediaAsset(url=url, public_id=public_id)

    def _delete(self, public_id, resource_type):
        if self.fail_deletes:
            raise UpstreamUnavailable("Media delete failed")
        self.deleted.append((resource_type, public_id))
        return {"result": "ok"}

    def upload_image(self, data, folder="portfolio"):
        return self._upload(data, folder, "image")

    def upload_document(self, data, folder="portfolio"):
        return self._upload(data, folder, "raw")

    def delete_image(self, public_id):
        return self._delete(public_id, "image")

    def delete_document(self, public_id):
        return self._delete(public_id, "raw")

    def fetch(self, url):
        if url not in self.files:
            raise UpstreamUnavailable("Failed to fetch media")
        return self.files[url]

    @property
    def deleted_ids(self):
        return [public_id for _, public_id in self.deleted]


@pytest.fixture
def db():
    return mongomock.MongoClient().get_database("portfolio_test")


@pytest.fixture
def media():
    return FakeMediaHost()


@pytest.fixture
def users(db):
    return UserService(db)


@pytest.fixture
def sessions(db):
    return SessionService(db)


@pytest.fixture
def posts(db):
    return PostService(db)


@pytest.fixture
def projects(db, media):
    return ProjectService(db, media)


@pytest.fixture
def profile(db, media):
    return ProfileService(db, media)


@pytest.fixture
def client(db, media):
    return TestClient(create_app(db=db, media=media))


def make_user(users, username="jane", email="jane@example.com", phone="0123456789", password="secret123", is_admin=False):
    return users.create_user(
        username=username,
        email=email,
        phone_number=phone,
        gender="female",
        password_hash=hash_password(password),
        is_admin=is_admin,
    )


@pytest.fixture
def admin_headers(users, sessions):
    admin = make_user(users, username="owner", email="owner@example.com", phone="9999999999", is_admin=True)
    token = sessions.create_session(admin["id"])["token"]
    return {"Authorization": f"Bearer {token}"}
