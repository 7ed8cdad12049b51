"""HTTP tests for the video, transcoding and history routes.

The app runs against in-memory stores; tokens are real HS256 tokens.
"""

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings as app_settings
from app.core.container import ServiceContainer
from app.core.errors import EncodeFailure
from app.core.dependencies import get_video_repository
from app.main import create_app
from app.modules.auth.jwt import TokenUse, create_token

from fakes import FakeEncoder, FakeVideoRepository, InMemoryBlobStore, InMemoryHistoryLog

API = app_settings.API_V1_PREFIX


def auth(email: str, token_use: TokenUse = TokenUse.ACCESS) -> dict:
    return {"Authorization": f"Bearer {create_token(email, token_use)}"}


@pytest.fixture
def stores(tmp_path):
    return {
        "videos": FakeVideoRepository(),
        "blobs": InMemoryBlobStore(),
        "history": InMemoryHistoryLog(),
        "encoder": FakeEncoder(str(tmp_path)),
    }


@pytest.fixture
def client(stores):
    container = ServiceContainer(
        database=None,
        blobs=stores["blobs"],
        history_log=stores["history"],
        encoder=stores["encoder"],
        settings=app_settings,
    )
    app = create_app(container)
    app.dependency_overrides[get_video_repository] = lambda: stores["videos"]
    return TestClient(app)


def upload(client: TestClient, stores, email: str, filename: str = "party.mp4", description: str = "Birthday party") -> str:
    response = client.post(
        f"{API}/videos/uploads",
        json={"filename": filename, "contentType": "video/mp4", "description": description},
        headers=auth(email),
    )
    assert response.status_code == 201, response.text
    source_key = response.json()["source_key"]
    stores["blobs"].objects[source_key] = b"source"
    return source_key


class TestPublicEndpoints:
    def test_health(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_metrics(self, client) -> None:
        client.get(f"{API}/videos/qualities")
        client.get("/health")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert f'endpoint="{API}/videos/qualities"' in response.text
        assert 'endpoint="/health"' not in response.text

    def test_qualities(self, client) -> None:
        response = client.get(f"{API}/videos/qualities")
        assert response.status_code == 200
        body = response.json()
        assert [q["quality"] for q in body] == ["low", "medium", "high"]
        assert body[1]["resolution"] == "1280x720"


class TestAuthentication:
    def test_missing_token_is_401(self, client) -> None:
        response = client.get(f"{API}/videos")
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"

    def test_bad_token_is_401(self, client) -> None:
        response = client.get(f"{API}/history", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_id_token_is_accepted(self, client) -> None:
        response = client.get(f"{API}/videos", headers=auth("a@example.com", TokenUse.ID))
        assert response.status_code == 200
        assert response.json() == []


class TestUploadAndTranscode:
    def test_upload_descriptor(self, client, stores) -> None:
        response = client.post(
            f"{API}/videos/uploads",
            json={"filename": "clip.mov", "contentType": "video/quicktime", "description": "Clip"},
            headers=auth("a@example.com"),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["method"] == "PUT"
        assert body["source_key"].endswith("-clip.mov")
        assert body["source_key"] in body["upload_url"]
        assert body["headers"] == {"Content-Type": "video/quicktime"}
        assert "x-correlation-id" in response.headers

    def test_upload_validation_error(self, client, stores) -> None:
        response = client.post(
            f"{API}/videos/uploads",
            json={"filename": "clip.mov", "contentType": "video/mp4"},
            headers=auth("a@example.com"),
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        assert "description" in response.json()["message"]
        assert stores["videos"].rows == []

    def test_end_to_end(self, client, stores) -> None:
        owner = "alice@example.com"
        source_key = upload(client, stores, owner)

        response = client.post(
            f"{API}/videos/transcode",
            json={"videoKey": source_key, "quality": "medium"},
            headers=auth(owner),
        )
        assert response.status_code == 200, response.text
        transcoded_key = response.json()["transcoded_key"]
        assert transcoded_key != source_key

        listing = client.get(f"{API}/videos", headers=auth(owner)).json()
        transcoded = [v for v in listing if v["transcoded_url"]]
        assert len(transcoded) == 1
        assert transcoded[0]["description"] == "Birthday party - Transcoded"
        assert transcoded[0]["quality"] == "medium"
        assert transcoded[0]["status"] == "transcoded"

        history = client.get(f"{API}/history", headers=auth(owner)).json()
        assert [h["status"] for h in history] == ["uploading", "transcoded"]
        assert history[1]["video_key"] == transcoded_key

        url = client.get(
            f"{API}/videos/{transcoded[0]['id']}/url", params={"download": "true"}, headers=auth(owner)
        ).json()
        assert transcoded_key in url["url"]
        assert url["url"].endswith("&download=1")
        assert url["expires_in"] == app_settings.DOWNLOAD_URL_TTL_SECONDS

    def test_invalid_quality_is_400(self, client, stores) -> None:
        source_key = upload(client, stores, "a@example.com")
        response = client.post(
            f"{API}/videos/transcode",
            json={"videoKey": source_key, "quality": "ultra"},
            headers=auth("a@example.com"),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_quality"

    def test_unknown_source_is_404(self, client) -> None:
        response = client.post(
            f"{API}/videos/transcode",
            json={"videoKey": "1700000000000-deadbeef-none.mp4", "quality": "low"},
            headers=auth("a@example.com"),
        )
        assert response.status_code == 404

    def test_other_owners_source_is_403(self, client, stores) -> None:
        source_key = upload(client, stores, "a@example.com")
        response = client.post(
            f"{API}/videos/transcode",
            json={"videoKey": source_key, "quality": "low"},
            headers=auth("b@example.com"),
        )
        assert response.status_code == 403

    def test_encode_failure_is_502(self, client, stores) -> None:
        source_key = upload(client, stores, "a@example.com")
        stores["encoder"].failure = EncodeFailure("Encoder exited with status 1", diagnostics="bad input")

        response = client.post(
            f"{API}/videos/transcode",
            json={"videoKey": source_key, "quality": "low"},
            headers=auth("a@example.com"),
        )
        assert response.status_code == 502
        assert response.json() == {"error": "encode_failure", "message": "Encoder exited with status 1"}

    def test_history_outage_is_503(self, client, stores) -> None:
        stores["history"].fail_append = True
        response = client.post(
            f"{API}/videos/uploads",
            json={"filename": "a.mp4", "contentType": "video/mp4", "description": "A"},
            headers=auth("a@example.com"),
        )
        assert response.status_code == 503
        assert stores["videos"].rows == []


class TestReads:
    def test_other_owners_video_url_is_404(self, client, stores) -> None:
        upload(client, stores, "a@example.com")
        video_id = stores["videos"].rows[0].id

        response = client.get(f"{API}/videos/{video_id}/url", headers=auth("b@example.com"))

        assert response.status_code == 404

    def test_empty_history_is_empty_list(self, client) -> None:
        response = client.get(f"{API}/history", headers=auth("new@example.com"))
        assert response.status_code == 200
        assert response.json() == []
