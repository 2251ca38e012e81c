import pytest
from datetime import date
from fastapi import status

THIS_YEAR = date.today().year


def _submit(client, headers, policy, start=None, end=None, **extra):
    start = start or date(THIS_YEAR, 3, 2)
    end = end or date(THIS_YEAR, 3, 6)
    return client.post(
        "/api/leave/requests",
        headers=headers,
        json={"policy_id": policy.id, "start_date": start.isoformat(), "end_date": end.isoformat(), **extra},
    )


class TestIdentity:

    def test_missing_session_is_unauthorized(self, client, workspace):
        response = client.get("/api/workspaces/acme/leave/policies")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"success": False, "errors": [{"msg": "Unauthorized", "code": "UNAUTHORIZED"}]}

    def test_unknown_session_user(self, client, workspace):
        response = client.get("/api/workspaces/acme/leave/policies", headers={"X-User-Email": "ghost@acme.io"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_session_email_is_case_insensitive(self, client, db_session, policy, member):
        member.email = "Dev.Mixed@Acme.io"
        db_session.commit()
        response = client.get("/api/workspaces/acme/leave/policies", headers={"X-User-Email": "dev.mixed@acme.io"})
        assert response.status_code == status.HTTP_200_OK

    def test_outsider_is_forbidden(self, client, policy, outsider, headers_for):
        response = client.get("/api/workspaces/acme/leave/policies", headers=headers_for(outsider))
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["errors"][0]["code"] == "ACCESS_DENIED"


class TestPolicyEndpoints:

    def test_member_lists_policies(self, client, policy, member, headers_for):
        response = client.get("/api/workspaces/acme/leave/policies", headers=headers_for(member))
        assert response.status_code == status.HTTP_200_OK
        assert [p["name"] for p in response.json()] == ["Annual Leave"]

    def test_paginated_listing(self, client, policy, member, headers_for):
        response = client.get(
            "/api/workspaces/acme/leave/policies/paginated",
            params={"take": 5, "skip": 0},
            headers=headers_for(member),
        )
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["pagination"]["total"] == 1
        assert body["data"][0]["leave_request_count"] == 0

    def test_manager_creates_updates_and_deletes(self, client, workspace, manager, headers_for):
        headers = headers_for(manager)
        created = client.post("/api/leave/policies", headers=headers, json={
            "workspace_id": "acme",
            "name": "Sick Leave",
            "is_paid": True,
            "track_in": "DAYS",
            "accrual_type": "DOES_NOT_ACCRUE",
            "accrual_amount": 10,
        })
        assert created.status_code == status.HTTP_201_CREATED
        policy_id = created.json()["id"]

        updated = client.put(f"/api/leave/policies/{policy_id}", headers=headers, json={"group": "Health"})
        assert updated.status_code == status.HTTP_200_OK
        assert updated.json()["group"] == "Health"

        deleted = client.delete(f"/api/leave/policies/{policy_id}", headers=headers)
        assert deleted.status_code == status.HTTP_200_OK
        assert client.get(f"/api/leave/policies/{policy_id}", headers=headers).status_code == 404

    def test_member_cannot_create_policy(self, client, workspace, member, headers_for):
        response = client.post("/api/leave/policies", headers=headers_for(member), json={
            "workspace_id": workspace.id,
            "name": "Free Days",
            "is_paid": True,
            "track_in": "DAYS",
            "accrual_type": "FIXED",
        })
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["errors"][0]["code"] == "INSUFFICIENT_PERMISSION"

    def test_duplicate_name_conflicts(self, client, policy, manager, headers_for):
        response = client.post("/api/leave/policies", headers=headers_for(manager), json={
            "workspace_id": policy.workspace_id,
            "name": "Annual Leave",
            "is_paid": True,
            "track_in": "DAYS",
            "accrual_type": "FIXED",
        })
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_policy_in_use_cannot_be_deleted(self, client, policy, member, manager, headers_for):
        _submit(client, headers_for(member), policy)
        response = client.delete(f"/api/leave/policies/{policy.id}", headers=headers_for(manager))
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["errors"][0]["details"] == {"leave_request_count": 1}

    def test_invalid_payload_is_422(self, client, workspace, manager, headers_for):
        response = client.post("/api/leave/policies", headers=headers_for(manager), json={"workspace_id": "acme"})
        assert response.status_code == 422
        assert response.json()["success"] is False


class TestRequestEndpoints:

    def test_submit_approve_and_read_balance(self, client, policy, member, manager, headers_for):
        submitted = _submit(client, headers_for(member), policy, notes="Family trip")
        assert submitted.status_code == status.HTTP_201_CREATED
        leave = submitted.json()["data"]
        assert leave["status"] == "PENDING"
        assert leave["user"]["email"] == member.email
        assert leave["policy"]["name"] == "Annual Leave"

        approved = client.post(
            f"/api/leave/requests/{leave['id']}/approve",
            headers=headers_for(manager),
            json={"notes": "Enjoy"},
        )
        assert approved.status_code == status.HTTP_200_OK
        assert approved.json()["data"]["status"] == "APPROVED"
        assert approved.json()["data"]["reviewed_by_id"] == manager.id
        assert approved.json()["failed_side_effects"] == []

        again = client.post(f"/api/leave/requests/{leave['id']}/reject", headers=headers_for(manager))
        assert again.status_code == status.HTTP_409_CONFLICT
        assert again.json()["errors"][0]["code"] == "INVALID_STATE"

        balances = client.get(
            "/api/workspaces/acme/leave/balances", params={"year": THIS_YEAR}, headers=headers_for(member)
        )
        assert balances.status_code == status.HTTP_200_OK
        assert balances.json()[0]["balance"] == 20.0
        assert balances.json()[0]["total_used"] == 5.0

    def test_invalid_dates_are_400(self, client, policy, member, headers_for):
        response = _submit(client, headers_for(member), policy, start=date(THIS_YEAR, 3, 6), end=date(THIS_YEAR, 3, 2))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["code"] == "VALIDATION_ERROR"

    def test_member_cannot_approve(self, client, policy, member, colleague, headers_for):
        leave_id = _submit(client, headers_for(member), policy).json()["data"]["id"]
        response = client.post(f"/api/leave/requests/{leave_id}/approve", headers=headers_for(colleague))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_requester_cancels(self, client, policy, member, headers_for):
        leave_id = _submit(client, headers_for(member), policy).json()["data"]["id"]
        response = client.post(f"/api/leave/requests/{leave_id}/cancel", headers=headers_for(member))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["status"] == "CANCELED"

    def test_queue_summary_and_mine(self, client, policy, member, colleague, manager, headers_for):
        first = _submit(client, headers_for(member), policy).json()["data"]["id"]
        _submit(client, headers_for(colleague), policy, start=date(THIS_YEAR, 4, 6), end=date(THIS_YEAR, 4, 6))
        client.post(f"/api/leave/requests/{first}/reject", headers=headers_for(manager))

        queue = client.get(
            "/api/workspaces/acme/leave/requests", params={"take": 10, "skip": 0}, headers=headers_for(manager)
        )
        assert queue.status_code == status.HTTP_200_OK
        assert [r["status"] for r in queue.json()["data"]] == ["PENDING", "REJECTED"]
        assert queue.json()["pagination"]["total"] == 2

        filtered = client.get(
            "/api/workspaces/acme/leave/requests", params={"status": "REJECTED"}, headers=headers_for(manager)
        )
        assert [r["id"] for r in filtered.json()["data"]] == [first]

        summary = client.get("/api/workspaces/acme/leave/requests/summary", headers=headers_for(manager))
        assert summary.json() == {"pending": 1, "approved": 0, "rejected": 1, "canceled": 0, "total": 2}

        mine = client.get("/api/workspaces/acme/leave/requests/mine", headers=headers_for(member))
        assert [r["id"] for r in mine.json()] == [first]

    def test_queue_requires_manage_leave(self, client, policy, member, headers_for):
        response = client.get("/api/workspaces/acme/leave/requests", headers=headers_for(member))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_outsider_is_denied_queue_summary_and_review(self, client, policy, member, outsider, headers_for):
        leave_id = _submit(client, headers_for(member), policy).json()["data"]["id"]
        for response in (
            client.get("/api/workspaces/acme/leave/requests", headers=headers_for(outsider)),
            client.get("/api/workspaces/acme/leave/requests/summary", headers=headers_for(outsider)),
            client.post(f"/api/leave/requests/{leave_id}/approve", headers=headers_for(outsider)),
        ):
            assert response.status_code == status.HTTP_403_FORBIDDEN
            assert response.json()["errors"][0]["code"] == "ACCESS_DENIED"

    def test_bad_window_is_400(self, client, policy, manager, headers_for):
        response = client.get("/api/workspaces/acme/leave/requests", params={"take": 0}, headers=headers_for(manager))
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestNotificationEndpoints:

    def test_read_and_mark_notifications(self, client, policy, member, manager, headers_for):
        leave_id = _submit(client, headers_for(member), policy).json()["data"]["id"]
        client.post(f"/api/leave/requests/{leave_id}/approve", headers=headers_for(manager))

        inbox = client.get("/api/notifications", headers=headers_for(member))
        assert inbox.status_code == status.HTTP_200_OK
        assert len(inbox.json()) == 1
        notification = inbox.json()[0]
        assert notification["is_read"] is False
        assert notification["leave_request_id"] == leave_id

        marked = client.patch(f"/api/notifications/{notification['id']}/read", headers=headers_for(member))
        assert marked.json()["is_read"] is True
        assert client.get("/api/notifications", params={"unread_only": True}, headers=headers_for(member)).json() == []

    def test_cannot_mark_someone_elses_notification(self, client, policy, member, manager, headers_for):
        _submit(client, headers_for(member), policy)
        alert = client.get("/api/notifications", headers=headers_for(manager)).json()[0]
        response = client.patch(f"/api/notifications/{alert['id']}/read", headers=headers_for(member))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_mark_all_read(self, client, policy, member, manager, headers_for):
        _submit(client, headers_for(member), policy)
        _submit(client, headers_for(member), policy, start=date(THIS_YEAR, 6, 1), end=date(THIS_YEAR, 6, 1))

        response = client.post("/api/notifications/mark-all-read", headers=headers_for(manager))
        assert response.status_code == status.HTTP_200_OK
        assert all(n["is_read"] for n in client.get("/api/notifications", headers=headers_for(manager)).json())
