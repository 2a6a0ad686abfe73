import pytest

from timeline_studio.errors import AuthError, PermissionDeniedError, PrivateAccessError
from timeline_studio.models import Requester, Role, Timeline
from timeline_studio.services import access


@pytest.fixture
def timeline():
    return Timeline(
        title="Space Race",
        start="1955-01-01T00:00:00+00:00",
        end="1975-01-01T00:00:00+00:00",
        owner_id="user-owner",
        owner_email="owner@example.com",
        collaborators=["editor@example.com", "viewer@example.com"],
        collaborator_roles={"editor@example.com": "editor", "viewer@example.com": "viewer"},
    )


class TestResolveRole:
    def test_owner_by_id(self, timeline):
        assert access.resolve_role(timeline, "user-owner", None) == Role.OWNER

    def test_collaborator_email_is_case_insensitive(self, timeline):
        assert access.resolve_role(timeline, "someone", "  Editor@Example.COM ") == Role.EDITOR
        assert access.resolve_role(timeline, "someone", "viewer@example.com") == Role.VIEWER

    def test_role_without_membership_grants_nothing(self, timeline):
        timeline.collaborator_roles["ghost@example.com"] = "editor"
        assert access.resolve_role(timeline, "ghost", "ghost@example.com") == Role.NONE

    def test_member_without_role_grants_nothing(self, timeline):
        timeline.collaborators.append("norole@example.com")
        assert access.resolve_role(timeline, "x", "norole@example.com") == Role.NONE

    def test_anonymous(self, timeline):
        assert access.role_of(timeline, None) == Role.NONE


class TestChecks:
    def test_private_read_denied_to_stranger(self, timeline):
        stranger = Requester(id="user-stranger", email="stranger@example.com")
        with pytest.raises(PrivateAccessError):
            access.require_read(timeline, stranger)

    def test_public_read_allowed_to_anyone(self, timeline):
        timeline.is_public = True
        assert access.require_read(timeline, None) == Role.NONE
        assert access.can_read(timeline, Requester(id="user-stranger"))

    def test_viewer_cannot_write(self, timeline):
        viewer = Requester(id="user-viewer", email="viewer@example.com")
        assert access.can_read(timeline, viewer)
        assert not access.can_write(timeline, viewer)
        with pytest.raises(PermissionDeniedError):
            access.require_write(timeline, viewer)

    def test_editor_cannot_manage_collaborators(self, timeline):
        editor = Requester(id="user-editor", email="editor@example.com")
        assert access.can_edit(timeline, editor)
        assert not access.can_manage_collaborators(timeline, editor)
        with pytest.raises(PermissionDeniedError):
            access.require_owner(timeline, editor)

    def test_permission_denied_is_a_permission_error(self, timeline):
        with pytest.raises(PermissionError):
            access.require_owner(timeline, Requester(id="user-editor"))

    def test_require_requester(self):
        with pytest.raises(AuthError):
            access.require_requester(None)
        with pytest.raises(AuthError):
            access.require_requester(Requester(id=""))

    def test_require_admin(self):
        admin = Requester(id="user-admin")
        assert access.require_admin(admin, ["user-admin"]) is admin
        with pytest.raises(AuthError):
            access.require_admin(None, ["user-admin"])
        with pytest.raises(PermissionDeniedError):
            access.require_admin(Requester(id="user-owner"), ["user-admin"])
        with pytest.raises(PermissionDeniedError):
            access.require_admin(admin, [])
