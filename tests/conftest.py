"""Shared test fixtures for the annotation server and editor."""

import io
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from annotation_editor.errors import ApiError
from annotation_server.core.auth import AuthService, Session
from annotation_server.core.config import AuthSettings, ExportSettings, ServerConfig
from annotation_server.core.media import MediaStore
from annotation_server.core.repository import Repository
from annotation_server.core.store import DocumentStore
from annotation_server.main import create_app

PASSWORD = "secret-password"
FAST_AUTH = AuthSettings(hash_iterations=1000)


def png_bytes(width: int = 64, height: int = 48, color=(200, 30, 30)) -> bytes:
    """Encode a solid-color PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def config(tmp_path) -> ServerConfig:
    """Server config writing under a temporary directory."""
    return ServerConfig(
        storage={
            "data_dir": str(tmp_path / "documents"),
            "uploads_dir": str(tmp_path / "uploads"),
            "persist": False,
        },
        auth=FAST_AUTH.model_dump(),
    )


@pytest.fixture
def api(config):
    """Test client with startup events run."""
    with TestClient(create_app(config)) as client:
        yield client


def register(api, email: str) -> dict:
    """Sign up and log in; returns Authorization headers."""
    response = api.post(
        "/signUp", json={"email": email, "password": PASSWORD, "confirmPassword": PASSWORD}
    )
    assert response.status_code == 201, response.text
    response = api.post("/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def owner(api) -> dict:
    return register(api, "owner@example.com")


@pytest.fixture
def project(api, owner) -> dict:
    """A project with two labels, created by ``owner``."""
    car = api.post("/labels", json={"name": "car", "color": "#FF0000"}, headers=owner).json()
    tree = api.post("/labels", json={"name": "tree", "color": "#0f0"}, headers=owner).json()
    response = api.post(
        "/projects",
        json={"name": "Streets", "description": "street scenes", "labels": [car["id"], tree["id"]]},
        headers=owner,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def image(api, owner, project) -> dict:
    """One uploaded 64x48 image in ``project``."""
    response = api.post(
        f"/projects/{project['id']}/images",
        files=[("files", ("street.png", png_bytes(), "image/png"))],
        headers=owner,
    )
    assert response.status_code == 201, response.text
    return response.json()["images"][0]


@pytest.fixture
def store() -> DocumentStore:
    return DocumentStore(Path("unused"), persist=False)


@pytest.fixture
def media(tmp_path) -> MediaStore:
    return MediaStore(tmp_path / "uploads")


@pytest.fixture
def repository(store, media) -> Repository:
    return Repository(store, media, page_size=2)


@pytest.fixture
def auth(store) -> AuthService:
    return AuthService(store, FAST_AUTH)


@pytest.fixture
def session(auth) -> Session:
    auth.sign_up("owner@example.com", PASSWORD, PASSWORD)
    return auth.login("owner@example.com", PASSWORD)


@pytest.fixture
def export_settings() -> ExportSettings:
    return ExportSettings()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeClient:
    """In-memory stand-in for AnnotationClient recording every call."""

    def __init__(self, annotations=None):
        self.server = list(annotations or [])
        self.calls = []
        self.fail = set()
        self._next_id = 1

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise ApiError(500, f"{name} failed")

    def list_annotations(self, image_id):
        self._call("list_annotations", image_id)
        return [dict(a) for a in self.server]

    def save_annotations(self, image_id, annotations):
        self._call("save_annotations", image_id, annotations)
        for annotation in annotations:
            self.server.append(dict(annotation, id=f"a{self._next_id}"))
            self._next_id += 1
        return [dict(a) for a in self.server]

    def update_annotation(self, annotation_id, data):
        self._call("update_annotation", annotation_id, data)
        for annotation in self.server:
            if annotation["id"] == annotation_id:
                annotation.update(data)
                return dict(annotation)

    def set_annotation_label(self, annotation_id, label_id):
        self._call("set_annotation_label", annotation_id, label_id)
        for annotation in self.server:
            if annotation["id"] == annotation_id:
                annotation["label"] = {"id": label_id} if label_id else None
                return dict(annotation)

    def delete_annotation(self, annotation_id):
        self._call("delete_annotation", annotation_id)
        self.server = [a for a in self.server if a["id"] != annotation_id]

    def names(self):
        return [call[0] for call in self.calls]
