"""Shared fixtures: every test gets its own data root under tmp_path"""
import pytest
from fastapi.testclient import TestClient

from chunked_recorder.core import Settings
from chunked_recorder.main import create_app
from chunked_recorder.services import RecordingService


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATA_ROOT=tmp_path / "data",
        STATIC_DIR=tmp_path / "no-static",
        MAX_CHUNK_SIZE=1024 * 1024,
    )


@pytest.fixture
def service(settings):
    service = RecordingService.from_settings(settings)
    service.prepare_storage()
    return service


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def upload_chunk(client):
    """POST one chunk through the HTTP API"""
    def _upload(session_id, chunk_index, data: bytes):
        return client.post(
            "/upload-chunk",
            data={"sessionId": session_id, "chunkIndex": str(chunk_index)},
            files={"chunk": (f"chunk_{chunk_index}.webm", data, "video/webm")},
        )
    return _upload
