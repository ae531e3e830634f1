import uuid

import pytest
from httpx import AsyncClient

from fleet_alerts.core.security import create_access_token

BASE = "/api/v1/alerts"


def _payload(device, title="Low Battery", severity="HIGH"):
    return {"deviceId": str(device.id), "title": title, "message": "15%", "severity": severity}


async def _create(client, headers, device, **kwargs):
    response = await client.post(BASE, json=_payload(device, **kwargs), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client: AsyncClient):
    response = await client.get(BASE)
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(client: AsyncClient):
    response = await client.get(BASE, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_non_access_token_is_unauthorized(client: AsyncClient, owner):
    token = create_access_token(subject=str(owner.id), extra_claims={"role": "USER", "type": "refresh"})
    response = await client.get(BASE, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Create / get
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_returns_camel_case_alert(client: AsyncClient, owner_headers, device, owner, publisher):
    body = await _create(client, owner_headers, device)
    assert body["status"] == "ACTIVE"
    assert body["deviceId"] == str(device.id)
    assert body["userId"] == str(owner.id)
    assert body["acknowledgedAt"] is None
    assert body["resolvedAt"] is None
    assert body["device"]["name"] == "Cold Room Probe"
    assert publisher.events[0].alert["id"] == body["id"]


@pytest.mark.asyncio
async def test_create_duplicate_is_conflict(client: AsyncClient, owner_headers, device):
    await _create(client, owner_headers, device)
    response = await client.post(BASE, json=_payload(device), headers=owner_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "DUPLICATE"


@pytest.mark.asyncio
async def test_create_on_foreign_device_is_forbidden(client: AsyncClient, owner_headers, other_device):
    response = await client.post(BASE, json=_payload(other_device), headers=owner_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "FORBIDDEN", "message": "Access denied", "details": []}


@pytest.mark.asyncio
async def test_create_on_unknown_device_is_not_found(client: AsyncClient, owner_headers, device):
    payload = _payload(device) | {"deviceId": str(uuid.uuid4())}
    response = await client.post(BASE, json=payload, headers=owner_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_create_for_unregistered_actor_is_store_error(client: AsyncClient, device):
    token = create_access_token(subject=str(uuid.uuid4()), extra_claims={"role": "ADMIN"})
    response = await client.post(
        BASE, json=_payload(device), headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 500
    assert response.json() == {"error": "STORE_ERROR", "message": "Storage operation failed", "details": []}


@pytest.mark.asyncio
async def test_create_validation_lists_every_field(client: AsyncClient, owner_headers):
    response = await client.post(
        BASE,
        json={"deviceId": "d1", "title": "", "message": "x" * 1001, "severity": "URGENT"},
        headers=owner_headers,
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION"
    fields = {d["field"] for d in body["details"]}
    assert {"body.deviceId", "body.title", "body.message", "body.severity"} <= fields


@pytest.mark.asyncio
async def test_get_alert_includes_device_location(client: AsyncClient, owner_headers, device):
    created = await _create(client, owner_headers, device)
    response = await client.get(f"{BASE}/{created['id']}", headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["device"]["location"] == "Warehouse 4"


@pytest.mark.asyncio
async def test_get_foreign_alert_is_forbidden_but_admin_allowed(
    client: AsyncClient, owner_headers, other_headers, admin_headers, device
):
    created = await _create(client, owner_headers, device)
    assert (await client.get(f"{BASE}/{created['id']}", headers=other_headers)).status_code == 403
    assert (await client.get(f"{BASE}/{created['id']}", headers=admin_headers)).status_code == 200


@pytest.mark.asyncio
async def test_get_unknown_alert_is_not_found(client: AsyncClient, owner_headers):
    response = await client.get(f"{BASE}/{uuid.uuid4()}", headers=owner_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_malformed_alert_id_is_validation_error(client: AsyncClient, owner_headers):
    response = await client.get(f"{BASE}/not-a-uuid", headers=owner_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION"


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_acknowledge_twice_is_state_conflict(client: AsyncClient, owner_headers, device):
    created = await _create(client, owner_headers, device)
    first = await client.post(f"{BASE}/{created['id']}/acknowledge", headers=owner_headers)
    assert first.status_code == 200
    second = await client.post(f"{BASE}/{created['id']}/acknowledge", headers=owner_headers)
    assert second.status_code == 400
    assert second.json()["error"] == "STATE_CONFLICT"


@pytest.mark.asyncio
async def test_resolve_without_body(client: AsyncClient, owner_headers, device):
    created = await _create(client, owner_headers, device)
    response = await client.post(f"{BASE}/{created['id']}/resolve", headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "RESOLVED"
    assert response.json()["resolutionNotes"] is None


@pytest.mark.asyncio
async def test_resolve_notes_too_long(client: AsyncClient, owner_headers, device):
    created = await _create(client, owner_headers, device)
    response = await client.post(
        f"{BASE}/{created['id']}/resolve",
        json={"resolutionNotes": "n" * 1001},
        headers=owner_headers,
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "body.resolutionNotes"


@pytest.mark.asyncio
async def test_alert_lifecycle_end_to_end(client: AsyncClient, owner_headers, device, publisher):
    created = await _create(client, owner_headers, device)

    acked = await client.post(f"{BASE}/{created['id']}/acknowledge", headers=owner_headers)
    assert acked.json()["status"] == "ACKNOWLEDGED"
    assert acked.json()["acknowledgedAt"] is not None

    resolved = await client.post(
        f"{BASE}/{created['id']}/resolve",
        json={"resolutionNotes": "Replaced battery"},
        headers=owner_headers,
    )
    assert resolved.status_code == 200
    body = resolved.json()
    assert body["status"] == "RESOLVED"
    assert body["resolutionNotes"] == "Replaced battery"
    assert body["acknowledgedAt"] == acked.json()["acknowledgedAt"]

    again = await client.post(f"{BASE}/{created['id']}/acknowledge", headers=owner_headers)
    assert again.status_code == 400

    recreated = await _create(client, owner_headers, device)
    assert recreated["id"] != created["id"]
    assert [e.type.value for e in publisher.events] == [
        "alert.created", "alert.updated", "alert.updated", "alert.created",
    ]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_empty_list_envelope(client: AsyncClient, owner_headers):
    response = await client.get(BASE, headers=owner_headers)
    assert response.status_code == 200
    assert response.json() == {
        "alerts": [],
        "pagination": {
            "total": 0, "page": 1, "limit": 10,
            "totalPages": 0, "hasNext": False, "hasPrev": False,
        },
    }


@pytest.mark.asyncio
async def test_limit_above_cap_is_rejected(client: AsyncClient, owner_headers):
    response = await client.get(BASE, params={"limit": 101}, headers=owner_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION"
    assert response.json()["details"][0]["field"] == "query.limit"

    ok = await client.get(BASE, params={"limit": 100}, headers=owner_headers)
    assert ok.status_code == 200


@pytest.mark.asyncio
async def test_list_reports_every_bad_query_field(client: AsyncClient, owner_headers):
    response = await client.get(
        BASE,
        params={"status": "OPEN", "severity": "URGENT", "deviceId": "d1", "page": 0, "limit": 101},
        headers=owner_headers,
    )
    assert response.status_code == 400
    fields = {d["field"] for d in response.json()["details"]}
    assert fields == {"query.status", "query.severity", "query.deviceId", "query.page", "query.limit"}


@pytest.mark.asyncio
async def test_list_filters_and_pages(client: AsyncClient, owner_headers, other_headers, device, other_device):
    for i in range(3):
        await _create(client, owner_headers, device, title=f"Alert {i}", severity="LOW")
    critical = await _create(client, owner_headers, device, title="Fire", severity="CRITICAL")
    await _create(client, other_headers, other_device)

    response = await client.get(BASE, params={"limit": 2, "page": 2}, headers=owner_headers)
    body = response.json()
    assert body["pagination"]["total"] == 4
    assert body["pagination"]["totalPages"] == 2
    assert body["pagination"]["hasNext"] is False
    assert body["pagination"]["hasPrev"] is True
    assert len(body["alerts"]) == 2

    response = await client.get(BASE, params={"severity": "CRITICAL"}, headers=owner_headers)
    assert [a["id"] for a in response.json()["alerts"]] == [critical["id"]]

    response = await client.get(BASE, params={"deviceId": str(other_device.id)}, headers=owner_headers)
    assert response.json()["alerts"] == []


@pytest.mark.asyncio
async def test_open_count_and_recent(client: AsyncClient, owner_headers, device):
    first = await _create(client, owner_headers, device, title="A")
    await _create(client, owner_headers, device, title="B")
    await client.post(f"{BASE}/{first['id']}/resolve", headers=owner_headers)

    count = await client.get(f"{BASE}/open-count", headers=owner_headers)
    assert count.json() == {"openCount": 1}

    recent = await client.get(f"{BASE}/recent", params={"limit": 1}, headers=owner_headers)
    assert recent.status_code == 200
    assert [a["title"] for a in recent.json()] == ["B"]

    too_many = await client.get(f"{BASE}/recent", params={"limit": 21}, headers=owner_headers)
    assert too_many.status_code == 400


# ---------------------------------------------------------------------------
# Bulk acknowledge
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_bulk_acknowledge_success(client: AsyncClient, owner_headers, device):
    ids = [(await _create(client, owner_headers, device, title=f"T{i}"))["id"] for i in range(2)]
    response = await client.post(f"{BASE}/bulk-acknowledge", json={"alertIds": ids}, headers=owner_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Successfully acknowledged 2 alerts", "acknowledgedCount": 2}


@pytest.mark.asyncio
async def test_bulk_acknowledge_mismatch_changes_nothing(client: AsyncClient, owner_headers, device):
    ids = [(await _create(client, owner_headers, device, title=f"T{i}"))["id"] for i in range(2)]
    await client.post(f"{BASE}/{ids[1]}/resolve", headers=owner_headers)

    response = await client.post(f"{BASE}/bulk-acknowledge", json={"alertIds": ids}, headers=owner_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "STATE_CONFLICT"

    still_active = await client.get(f"{BASE}/{ids[0]}", headers=owner_headers)
    assert still_active.json()["status"] == "ACTIVE"


@pytest.mark.asyncio
async def test_bulk_acknowledge_request_validation(client: AsyncClient, owner_headers):
    same = str(uuid.uuid4())
    response = await client.post(
        f"{BASE}/bulk-acknowledge", json={"alertIds": [same, same]}, headers=owner_headers
    )
    assert response.status_code == 400

    response = await client.post(f"{BASE}/bulk-acknowledge", json={"alertIds": []}, headers=owner_headers)
    assert response.status_code == 400

    too_many = [str(uuid.uuid4()) for _ in range(51)]
    response = await client.post(
        f"{BASE}/bulk-acknowledge", json={"alertIds": too_many}, headers=owner_headers
    )
    assert response.status_code == 400
