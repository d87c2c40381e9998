"""Tests for API routes."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from rollcall.models import (
    AttendanceRecord,
    AttendanceStatus,
    CheckinSession,
    EventConfig,
    ExcuseLink,
    ModerationLink,
)


def start(client: TestClient, event: EventConfig, token=None) -> dict:
    response = client.post(
        "/attendance-start",
        json={"eventId": str(event.id), "token": token or event.current_token},
    )
    return response.json()


def submit(client: TestClient, session_id: str, identity: str = "device-1", **extra):
    body = {
        "sessionId": session_id,
        "attendeeName": "Ada Lovelace",
        "attendeeEmail": "ada@example.com",
        "clientIdentity": identity,
    }
    body.update(extra)
    return client.post("/attendance-submit", json=body)


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"


class TestAttendanceStart:
    def test_authorized(self, client: TestClient, rotating_event: EventConfig):
        response = client.post(
            "/attendance-start",
            json={"eventId": str(rotating_event.id), "token": rotating_event.current_token},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["authorized"] is True
        assert data["sessionId"]
        assert data["sessionExpiresAt"].endswith("+00:00")
        assert data["event"]["name"] == "Rotating Event"
        assert data["event"]["rotating_qr_enabled"] is True

    def test_unknown_event(self, client: TestClient):
        response = client.post("/attendance-start", json={"eventId": str(uuid4()), "token": "static"})

        assert response.status_code == 404
        assert response.json() == {"authorized": False, "reason": "not_found"}

    def test_stale_token(self, client: TestClient, rotating_event: EventConfig):
        response = client.post(
            "/attendance-start", json={"eventId": str(rotating_event.id), "token": "old_123"}
        )

        assert response.status_code == 410
        assert response.json() == {"authorized": False, "reason": "expired"}

    def test_inactive_event(self, client: TestClient, session: Session, static_event: EventConfig):
        static_event.active = False
        session.add(static_event)
        session.commit()

        assert start(client, static_event, token="static") == {"authorized": False, "reason": "inactive"}

    def test_malformed_body(self, client: TestClient):
        response = client.post("/attendance-start", json={"eventId": "not-a-uuid"})

        assert response.status_code == 400
        assert response.json() == {"authorized": False, "reason": "invalid_request"}


class TestAttendanceSubmit:
    def test_success(self, client: TestClient, session: Session, static_event: EventConfig):
        session_id = start(client, static_event)["sessionId"]

        response = submit(client, session_id)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        record = session.exec(select(AttendanceRecord)).one()
        assert record.status == AttendanceStatus.verified

    def test_session_used(self, client: TestClient, static_event: EventConfig):
        session_id = start(client, static_event)["sessionId"]
        submit(client, session_id)

        response = submit(client, session_id, identity="device-2")

        assert response.status_code == 409
        assert response.json() == {"success": False, "reason": "session_used"}

    def test_already_submitted(self, client: TestClient, static_event: EventConfig):
        submit(client, start(client, static_event)["sessionId"])

        response = submit(client, start(client, static_event)["sessionId"])

        assert response.status_code == 409
        assert response.json() == {"success": False, "reason": "already_submitted"}

    def test_missing_identity(self, client: TestClient, static_event: EventConfig):
        session_id = start(client, static_event)["sessionId"]

        response = submit(client, session_id, identity="")

        assert response.json() == {"success": False, "reason": "missing_identity"}

    def test_suspicious_still_succeeds(
        self, client: TestClient, session: Session, geofenced_event: EventConfig
    ):
        session_id = start(client, geofenced_event)["sessionId"]

        response = submit(client, session_id, location={"lat": 40.001, "lng": -74.0})

        assert response.json() == {"success": True}
        record = session.exec(select(AttendanceRecord)).one()
        assert record.status == AttendanceStatus.suspicious

    def test_out_of_range_location(self, client: TestClient, static_event: EventConfig):
        session_id = start(client, static_event)["sessionId"]

        response = submit(client, session_id, location={"lat": 95.0, "lng": 0.0})

        assert response.status_code == 400
        assert response.json() == {"success": False, "reason": "invalid_request"}

    def test_unknown_session(self, client: TestClient):
        response = submit(client, str(uuid4()))

        assert response.status_code == 404
        assert response.json() == {"success": False, "reason": "session_invalid"}


class TestModeratorState:
    def test_state_with_attendance(
        self,
        client: TestClient,
        session: Session,
        moderated_event: EventConfig,
        moderation_link: ModerationLink,
    ):
        submit(client, start(client, moderated_event)["sessionId"])

        response = client.post(
            "/moderator-state",
            json={"eventId": str(moderated_event.id), "token": moderation_link.token},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["authorized"] is True
        assert data["event"]["name"] == "Moderated Event"
        assert len(data["attendance"]) == 1
        assert data["attendance"][0]["status"] == "verified"

    def test_without_attendance(
        self, client: TestClient, moderated_event: EventConfig, moderation_link: ModerationLink
    ):
        response = client.post(
            "/moderator-state",
            json={
                "eventId": str(moderated_event.id),
                "token": moderation_link.token,
                "includeAttendance": False,
            },
        )

        assert "attendance" not in response.json()

    def test_event_hides_token_and_lease(
        self,
        client: TestClient,
        session: Session,
        moderated_event: EventConfig,
        moderation_link: ModerationLink,
    ):
        moderated_event.host_device_id = "display-1"
        session.add(moderated_event)
        session.commit()

        response = client.post(
            "/moderator-state",
            json={"eventId": str(moderated_event.id), "token": moderation_link.token},
        )

        event = response.json()["event"]
        assert event["moderation_enabled"] is True
        for field in ("current_token", "token_expires_at", "host_device_id", "host_lease_expires_at"):
            assert field not in event
        assert "static" not in response.text

    def test_unknown_token(self, client: TestClient, moderated_event: EventConfig):
        response = client.post(
            "/moderator-state", json={"eventId": str(moderated_event.id), "token": "nope"}
        )

        assert response.status_code == 404
        assert response.json() == {"authorized": False, "reason": "link_not_found"}

    def test_inactive_link(
        self,
        client: TestClient,
        session: Session,
        moderated_event: EventConfig,
        moderation_link: ModerationLink,
    ):
        moderation_link.is_active = False
        session.add(moderation_link)
        session.commit()

        response = client.post(
            "/moderator-state",
            json={"eventId": str(moderated_event.id), "token": moderation_link.token},
        )

        assert response.json() == {"authorized": False, "reason": "link_inactive"}


class TestModeratorAction:
    @pytest.fixture(name="record")
    def record_fixture(self, session: Session, moderated_event: EventConfig) -> AttendanceRecord:
        record = AttendanceRecord(
            event_id=moderated_event.id,
            attendee_name="Ada Lovelace",
            attendee_email="ada@example.com",
            client_identity="device-1",
            status=AttendanceStatus.suspicious,
            suspicious_reason="location access denied",
        )
        session.add(record)
        session.commit()
        session.refresh(record)
        return record

    def action(self, client: TestClient, event: EventConfig, link: ModerationLink, **body):
        payload = {"eventId": str(event.id), "token": link.token}
        payload.update(body)
        return client.post("/moderator-action", json=payload)

    def test_clear_record(
        self,
        client: TestClient,
        moderated_event: EventConfig,
        moderation_link: ModerationLink,
        record: AttendanceRecord,
    ):
        response = self.action(
            client,
            moderated_event,
            moderation_link,
            action="update_status",
            recordId=str(record.id),
            newStatus="cleared",
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["record"]["status"] == "cleared"
        assert data["record"]["suspicious_reason"] is None

    def test_invalid_transition_uses_error_field(
        self,
        client: TestClient,
        moderated_event: EventConfig,
        moderation_link: ModerationLink,
        record: AttendanceRecord,
    ):
        response = self.action(
            client,
            moderated_event,
            moderation_link,
            action="update_status",
            recordId=str(record.id),
            newStatus="excused",
        )

        assert response.status_code == 409
        assert response.json() == {"success": False, "error": "invalid_transition"}

    def test_missing_record_id(
        self, client: TestClient, moderated_event: EventConfig, moderation_link: ModerationLink
    ):
        response = self.action(client, moderated_event, moderation_link, action="delete_record")

        assert response.json() == {"success": False, "error": "invalid_request"}

    def test_unknown_action(
        self, client: TestClient, moderated_event: EventConfig, moderation_link: ModerationLink
    ):
        response = self.action(client, moderated_event, moderation_link, action="update_event")

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "invalid_request"}

    def test_delete_record(
        self,
        client: TestClient,
        session: Session,
        moderated_event: EventConfig,
        moderation_link: ModerationLink,
        record: AttendanceRecord,
    ):
        record_id = record.id

        response = self.action(
            client, moderated_event, moderation_link, action="delete_record", recordId=str(record_id)
        )

        assert response.json() == {"success": True}
        assert session.get(AttendanceRecord, record_id) is None

    def test_add_and_search(
        self, client: TestClient, moderated_event: EventConfig, moderation_link: ModerationLink
    ):
        response = self.action(
            client,
            moderated_event,
            moderation_link,
            action="add_attendee",
            attendeeName="Grace Hopper",
            attendeeEmail="grace@example.com",
        )
        assert response.json()["record"]["source"] == "moderator"

        response = self.action(
            client, moderated_event, moderation_link, action="search_attendees", query="hop"
        )

        assert response.json() == {
            "success": True,
            "attendees": [{"attendee_name": "Grace Hopper", "attendee_email": "grace@example.com"}],
        }

    def test_moderation_disabled_takes_effect_immediately(
        self,
        client: TestClient,
        session: Session,
        moderated_event: EventConfig,
        moderation_link: ModerationLink,
        record: AttendanceRecord,
    ):
        moderated_event.moderation_enabled = False
        session.add(moderated_event)
        session.commit()

        response = self.action(
            client,
            moderated_event,
            moderation_link,
            action="update_status",
            recordId=str(record.id),
            newStatus="cleared",
        )

        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "moderation_disabled"}
        session.refresh(record)
        assert record.status == AttendanceStatus.suspicious


class TestExcuseRoutes:
    def test_excuse_start(
        self, client: TestClient, moderated_event: EventConfig, excuse_link: ExcuseLink
    ):
        response = client.post(
            "/excuse-start", json={"eventId": str(moderated_event.id), "token": excuse_link.token}
        )

        data = response.json()
        assert data["authorized"] is True
        assert data["event"]["name"] == "Moderated Event"
        assert data["event"]["link_label"] == "Team chat"

    def test_excuse_submit(
        self,
        client: TestClient,
        session: Session,
        moderated_event: EventConfig,
        excuse_link: ExcuseLink,
    ):
        response = client.post(
            "/excuse-submit",
            json={
                "eventId": str(moderated_event.id),
                "token": excuse_link.token,
                "attendeeName": "Ada",
                "attendeeEmail": "ada@example.com",
            },
        )

        assert response.json() == {"success": True}
        record = session.exec(select(AttendanceRecord)).one()
        assert record.status == AttendanceStatus.excused

    def test_excuse_disabled(
        self,
        client: TestClient,
        session: Session,
        moderated_event: EventConfig,
        excuse_link: ExcuseLink,
    ):
        moderated_event.excuse_links_enabled = False
        session.add(moderated_event)
        session.commit()

        response = client.post(
            "/excuse-start", json={"eventId": str(moderated_event.id), "token": excuse_link.token}
        )

        assert response.json() == {"authorized": False, "reason": "excuse_disabled"}


class TestDisplayRoutes:
    def test_requires_organizer_key(self, client: TestClient, rotating_event: EventConfig):
        response = client.post(f"/display/{rotating_event.id}/rotate", json={"deviceId": "display-1"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "reason": "unauthorized"}

        response = client.post(
            f"/display/{rotating_event.id}/rotate",
            json={"deviceId": "display-1"},
            headers={"X-Organizer-Key": "wrong"},
        )
        assert response.status_code == 401
        assert response.json() == {"success": False, "reason": "unauthorized"}

    def test_rejected_key_changes_nothing(
        self, client: TestClient, session: Session, rotating_event: EventConfig
    ):
        token = rotating_event.current_token

        response = client.post(f"/display/{rotating_event.id}/stop", headers={"X-Organizer-Key": "wrong"})

        assert response.json() == {"success": False, "reason": "unauthorized"}
        session.refresh(rotating_event)
        assert rotating_event.active is True
        assert rotating_event.current_token == token

    def test_lease_held(
        self, client: TestClient, rotating_event: EventConfig, organizer_headers: dict
    ):
        response = client.post(
            f"/display/{rotating_event.id}/lease",
            json={"deviceId": "display-2"},
            headers=organizer_headers,
        )

        assert response.status_code == 409
        assert response.json() == {"success": False, "reason": "lease_held"}

    def test_holder_rotates(
        self, client: TestClient, rotating_event: EventConfig, organizer_headers: dict
    ):
        old_token = rotating_event.current_token

        response = client.post(
            f"/display/{rotating_event.id}/rotate",
            json={"deviceId": "display-1"},
            headers=organizer_headers,
        )

        data = response.json()
        assert data["success"] is True
        assert data["token"] != old_token
        assert data["hostDeviceId"] == "display-1"
        assert data["leaseLive"] is True

        assert start(client, rotating_event, token=old_token)["reason"] == "expired"
        assert start(client, rotating_event, token=data["token"])["authorized"] is True

    def test_release_then_take_over(
        self, client: TestClient, rotating_event: EventConfig, organizer_headers: dict
    ):
        response = client.post(
            f"/display/{rotating_event.id}/lease/release",
            json={"deviceId": "display-1"},
            headers=organizer_headers,
        )
        assert response.json() == {"success": True, "released": True}

        response = client.post(
            f"/display/{rotating_event.id}/lease",
            json={"deviceId": "display-2"},
            headers=organizer_headers,
        )
        assert response.json()["hostDeviceId"] == "display-2"

    def test_stop_then_start(
        self,
        client: TestClient,
        session: Session,
        rotating_event: EventConfig,
        organizer_headers: dict,
    ):
        token = rotating_event.current_token

        response = client.post(f"/display/{rotating_event.id}/stop", headers=organizer_headers)
        assert response.json()["active"] is False
        assert start(client, rotating_event, token=token)["reason"] == "inactive"

        response = client.post(
            f"/display/{rotating_event.id}/start",
            json={"deviceId": "display-3"},
            headers=organizer_headers,
        )
        data = response.json()
        assert data["active"] is True
        assert data["hostDeviceId"] == "display-3"
        assert start(client, rotating_event, token=data["token"])["authorized"] is True

    def test_unknown_event(self, client: TestClient, organizer_headers: dict):
        response = client.post(f"/display/{uuid4()}/stop", headers=organizer_headers)

        assert response.status_code == 404
        assert response.json() == {"success": False, "reason": "not_found"}

    def test_stop_blocks_open_sessions(
        self,
        client: TestClient,
        session: Session,
        static_event: EventConfig,
        organizer_headers: dict,
    ):
        session_id = start(client, static_event)["sessionId"]
        client.post(f"/display/{static_event.id}/stop", headers=organizer_headers)

        assert submit(client, session_id).json() == {"success": False, "reason": "inactive"}
        assert session.exec(select(CheckinSession)).one().used_at is None
