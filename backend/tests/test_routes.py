import base64

import pytest
from fastapi.testclient import TestClient

from timeline_studio.app import create_app
from timeline_studio.config import Settings

OWNER = {"X-User-Id": "user-owner", "X-User-Email": "owner@example.com", "X-User-Name": "Olive Owner"}
FRIEND = {"X-User-Id": "user-friend", "X-User-Email": "friend@example.com"}
STRANGER = {"X-User-Id": "user-stranger", "X-User-Email": "stranger@example.com"}
ADMIN = {"X-User-Id": "user-admin"}


def timeline_body(**overrides):
    body = {
        "title": "Moon Landing",
        "start": "1961-05-25T00:00:00Z",
        "end": "1969-07-20T00:00:00Z",
        "events": [{"title": "Apollo 11 https://example.com/a11", "date": "1969-07-20T20:17:00Z"}],
    }
    body.update(overrides)
    return body


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_PATH=str(tmp_path / "api.db"),
        MEDIA_ROOT=str(tmp_path / "media"),
        MAX_TIMELINES_PER_USER=2,
        ADMIN_USER_IDS=["user-admin"],
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


def create_timeline(client, headers=OWNER, **overrides):
    response = client.post("/api/timelines/", json=timeline_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["timeline_id"]


class TestTimelineRoutes:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_create_requires_identity(self, client):
        response = client.post("/api/timelines/", json=timeline_body())
        assert response.status_code == 401

    def test_create_load_and_list(self, client):
        timeline_id = create_timeline(client)

        loaded = client.get(f"/api/timelines/{timeline_id}", headers=OWNER).json()
        listed = client.get("/api/timelines/", headers=OWNER).json()

        assert loaded["title"] == "Moon Landing"
        assert loaded["is_owner"] is True
        assert loaded["events"][0]["plain_title"] == "Apollo 11 https://example.com/a11"
        assert 'target="_blank"' in loaded["events"][0]["title"]
        assert [t["id"] for t in listed] == [timeline_id]
        assert listed[0]["event_count"] == 1

    def test_invalid_body(self, client):
        response = client.post(
            "/api/timelines/",
            json=timeline_body(start="2000-01-01T00:00:00Z", end="1999-01-01T00:00:00Z"),
            headers=OWNER,
        )
        assert response.status_code == 422

    def test_unsafe_event_id(self, client):
        events = [{"id": "../../../../x", "title": "Escape", "date": "1969-07-20T20:17:00Z"}]
        response = client.post("/api/timelines/", json=timeline_body(events=events), headers=OWNER)

        assert response.status_code == 422
        assert client.get("/api/timelines/", headers=OWNER).json() == []

    def test_status_codes(self, client):
        timeline_id = create_timeline(client)

        assert client.get(f"/api/timelines/{timeline_id}", headers=STRANGER).status_code == 403
        assert client.get(f"/api/timelines/{timeline_id}").status_code == 403
        assert client.get("/api/timelines/missing", headers=OWNER).status_code == 404
        assert client.put(
            f"/api/timelines/{timeline_id}", json=timeline_body(), headers=STRANGER
        ).status_code == 403
        assert client.delete(f"/api/timelines/{timeline_id}", headers=STRANGER).status_code == 403

    def test_quota(self, client):
        create_timeline(client)
        create_timeline(client)
        response = client.post("/api/timelines/", json=timeline_body(), headers=OWNER)

        assert response.status_code == 403
        assert "limit" in response.json()["detail"]

    def test_update_and_delete(self, client):
        timeline_id = create_timeline(client)

        updated = client.put(
            f"/api/timelines/{timeline_id}", json=timeline_body(title="Renamed"), headers=OWNER
        )
        assert updated.json()["revision"] == 2

        deleted = client.delete(f"/api/timelines/{timeline_id}", headers=OWNER)
        assert deleted.json() == {"status": "deleted", "timeline_id": timeline_id}
        assert client.get(f"/api/timelines/{timeline_id}", headers=OWNER).status_code == 404

    def test_privacy_and_public_list(self, client):
        timeline_id = create_timeline(client)

        response = client.put(
            f"/api/timelines/{timeline_id}/privacy", json={"is_public": True}, headers=OWNER
        )
        public = client.get("/api/timelines/public?limit=5").json()

        assert response.json()["is_public"] is True
        assert [t["id"] for t in public] == [timeline_id]
        assert client.get(f"/api/timelines/{timeline_id}").status_code == 200
        assert client.get("/api/timelines/public?limit=0").status_code == 422

    def test_event_image_is_served(self, client, make_image):
        data = make_image()
        event = {
            "title": "Photo",
            "date": "1969-07-20T20:17:00Z",
            "image": {
                "file_name": "eagle.png",
                "content_type": "image/png",
                "data": base64.b64encode(data).decode(),
            },
        }
        response = client.post("/api/timelines/", json=timeline_body(events=[event]), headers=OWNER)
        timeline_id = response.json()["timeline_id"]

        stored = client.get(f"/api/timelines/{timeline_id}", headers=OWNER).json()["events"][0]
        image = client.get(stored["image_url"])

        assert response.json()["media_issues"] == []
        assert image.status_code == 200
        assert image.content == data


class TestCollaboratorRoutes:
    def test_share_flow(self, client):
        timeline_id = create_timeline(client)
        base = f"/api/timelines/{timeline_id}/collaborators"

        added = client.post(base, json={"email": "Friend@Example.com", "role": "editor"}, headers=OWNER)
        shared = client.get("/api/timelines/shared", headers=FRIEND).json()
        edited = client.put(f"/api/timelines/{timeline_id}", json=timeline_body(title="Ours"), headers=FRIEND)
        demoted = client.put(f"{base}/friend@example.com", json={"role": "viewer"}, headers=OWNER)
        removed = client.delete(f"{base}/friend@example.com", headers=OWNER)

        assert added.status_code == 201
        assert added.json() == [{"email": "friend@example.com", "role": "editor"}]
        assert [t["id"] for t in shared] == [timeline_id]
        assert edited.status_code == 200
        assert demoted.json()[0]["role"] == "viewer"
        assert removed.json() == []
        assert client.get(base, headers=FRIEND).status_code == 403

    def test_validation_errors(self, client):
        timeline_id = create_timeline(client)
        base = f"/api/timelines/{timeline_id}/collaborators"

        bad_role = client.post(base, json={"email": "a@example.com", "role": "admin"}, headers=OWNER)
        bad_email = client.post(base, json={"email": "nope", "role": "viewer"}, headers=OWNER)

        assert bad_role.status_code == 400
        assert bad_email.status_code == 400


class TestBackgroundRoutes:
    def test_upload_list_delete(self, client, make_image):
        body = {
            "image": {
                "file_name": "bg.png",
                "content_type": "image/png",
                "data": base64.b64encode(make_image()).decode(),
            }
        }

        uploaded = client.post("/api/backgrounds/", json=body, headers=OWNER)
        path = uploaded.json()["path"]
        listed = client.get("/api/backgrounds/", headers=OWNER).json()

        assert uploaded.status_code == 201
        assert [b["path"] for b in listed] == [path]
        assert client.delete(f"/api/backgrounds/{path}", headers=STRANGER).status_code == 403
        assert client.delete(f"/api/backgrounds/{path}", headers=OWNER).status_code == 200
        assert client.delete(f"/api/backgrounds/{path}", headers=OWNER).status_code == 404

    def test_bad_base64(self, client):
        body = {"image": {"file_name": "bg.png", "content_type": "image/png", "data": "%%%"}}
        assert client.post("/api/backgrounds/", json=body, headers=OWNER).status_code == 422


class TestMaintenanceRoutes:
    def test_cleanup_queue(self, client):
        assert client.get("/api/maintenance/media-cleanup", headers=ADMIN).json() == []
        drained = client.post("/api/maintenance/media-cleanup", headers=ADMIN)
        assert drained.json() == {"deleted": [], "failed": []}

    def test_anonymous_requests_are_rejected(self, client):
        assert client.get("/api/maintenance/media-cleanup").status_code == 401
        assert client.post("/api/maintenance/media-cleanup").status_code == 401

    def test_non_admin_requests_are_rejected(self, client):
        assert client.get("/api/maintenance/media-cleanup", headers=OWNER).status_code == 403
        assert client.post("/api/maintenance/media-cleanup", headers=OWNER).status_code == 403
