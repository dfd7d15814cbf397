from types import SimpleNamespace

import pytest

from habitproof import create_app, db, socketio
from habitproof.auth import generate_token
from habitproof.config import TestConfig
from habitproof.errors import UpstreamFailure
from habitproof.models import User


class FakeBlobStore:
    """Stands in for the bucket; remembers what it was asked to store."""

    def __init__(self):
        self.uploads = []
        self.fail_with = None

    def upload(self, local_path, filename, content_type):
        with open(local_path, "rb") as f:
            data = f.read()
        self.uploads.append({
            "local_path": local_path,
            "filename": filename,
            "content_type": content_type,
            "data": data,
        })
        if self.fail_with:
            raise UpstreamFailure("Upload failed", self.fail_with)
        return f"https://storage.googleapis.com/test-bucket/proofs/{len(self.uploads)}_{filename}"


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def upload_folder(tmp_path):
    return str(tmp_path / "uploads")


@pytest.fixture
def app(blob_store, upload_folder):
    class Config(TestConfig):
        UPLOAD_FOLDER = upload_folder

    app = create_app(Config, blob_store=blob_store)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(name):
        with app.app_context():
            user = User(
                google_id=f"google-{name}",
                display_name=name.title(),
                email=f"{name}@example.com",
                avatar=f"https://example.com/{name}.png"
            )
            db.session.add(user)
            db.session.commit()
            token = generate_token(user.id, user.email)
            return SimpleNamespace(
                id=user.id,
                name=user.display_name,
                headers={"Authorization": f"Bearer {token}"}
            )
    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def socket_client(app):
    clients = []

    def _connect(user=None):
        sc = socketio.test_client(app)
        if user is not None:
            sc.emit("register", user.id)
        clients.append(sc)
        return sc

    yield _connect
    for sc in clients:
        if sc.is_connected():
            sc.disconnect()
