"""API tests for /api/v1/approval-flows over the in-memory fakes."""

from httpx import AsyncClient

from tests.conftest import TENANT_HEADERS

BASE = "/api/v1/approval-flows"


def _flow_body(name: str = "Standard leave", **overrides) -> dict:
    body = {
        "name": name,
        "document_type": "leave_request",
        "is_default": True,
        "steps": [
            {
                "name": "Manager",
                "timeout_hours": 48,
                "approvers": [{"type": "org_hierarchy"}],
            }
        ],
    }
    body.update(overrides)
    return body


LONG_LEAVE = {
    "name": "Long leave",
    "document_type": "leave_request",
    "priority": 10,
    "conditions": [{"field": "days", "operator": "gt", "value": 5}],
    "steps": [
        {"name": "Manager", "approvers": [{"type": "org_hierarchy"}]},
        {
            "name": "HR",
            "execution_mode": "parallel",
            "approvers": [{"type": "role", "role": "hr_manager"}],
        },
    ],
}


async def test_tenant_header_is_required(api_client: AsyncClient) -> None:
    response = await api_client.get(BASE)
    assert response.status_code == 400
    assert response.json()["error"] == "TENANT_REQUIRED"


async def test_malformed_tenant_header_is_rejected(api_client: AsyncClient) -> None:
    response = await api_client.get(BASE, headers={"X-Tenant-ID": "bad tenant!"})
    assert response.status_code == 400


async def test_create_and_get_flow(api_client: AsyncClient) -> None:
    response = await api_client.post(BASE, json=_flow_body(), headers=TENANT_HEADERS)
    assert response.status_code == 201
    created = response.json()
    assert created["is_default"] is True
    assert created["steps"][0]["step_number"] == 1
    assert created["steps"][0]["approvers"][0]["type"] == "org_hierarchy"

    fetched = await api_client.get(f"{BASE}/{created['id']}", headers=TENANT_HEADERS)
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Standard leave"


async def test_unknown_approver_type_is_a_validation_error(api_client: AsyncClient) -> None:
    body = _flow_body(steps=[{"name": "X", "approvers": [{"type": "robot"}]}])
    response = await api_client.post(BASE, json=body, headers=TENANT_HEADERS)
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_custom_flow_without_approvers_is_rejected(api_client: AsyncClient) -> None:
    body = _flow_body(steps=[{"name": "Empty", "approvers": []}])
    response = await api_client.post(BASE, json=body, headers=TENANT_HEADERS)
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "steps[1].approvers"


async def test_unsatisfiable_user_step_is_rejected(api_client: AsyncClient) -> None:
    body = _flow_body(
        steps=[
            {
                "name": "Pair",
                "required_approvals": 2,
                "approvers": [{"type": "user", "user_id": "lead"}],
            }
        ]
    )
    response = await api_client.post(BASE, json=body, headers=TENANT_HEADERS)
    assert response.status_code == 422
    assert response.json()["error"] == "UNSATISFIABLE_STEP"


async def test_get_unknown_flow_is_404(api_client: AsyncClient) -> None:
    response = await api_client.get(f"{BASE}/missing", headers=TENANT_HEADERS)
    assert response.status_code == 404


async def test_default_flow_cannot_be_deleted(api_client: AsyncClient) -> None:
    default = (await api_client.post(BASE, json=_flow_body(), headers=TENANT_HEADERS)).json()
    other = (await api_client.post(BASE, json=LONG_LEAVE, headers=TENANT_HEADERS)).json()

    response = await api_client.delete(f"{BASE}/{default['id']}", headers=TENANT_HEADERS)
    assert response.status_code == 409
    assert response.json()["error"] == "DEFAULT_FLOW_DELETION"

    promoted = await api_client.post(f"{BASE}/{other['id']}/default", headers=TENANT_HEADERS)
    assert promoted.status_code == 200
    assert promoted.json()["is_default"] is True

    response = await api_client.delete(f"{BASE}/{default['id']}", headers=TENANT_HEADERS)
    assert response.status_code == 204


async def test_list_filters_and_replace(api_client: AsyncClient) -> None:
    created = (await api_client.post(BASE, json=_flow_body(), headers=TENANT_HEADERS)).json()
    await api_client.post(
        BASE,
        json=_flow_body("Expenses", document_type="expense_claim"),
        headers=TENANT_HEADERS,
    )

    listed = await api_client.get(
        BASE, params={"document_type": "expense_claim"}, headers=TENANT_HEADERS
    )
    assert [f["name"] for f in listed.json()] == ["Expenses"]

    replaced = await api_client.put(
        f"{BASE}/{created['id']}",
        json=_flow_body("Standard leave v2"),
        headers=TENANT_HEADERS,
    )
    assert replaced.status_code == 200
    assert replaced.json()["name"] == "Standard leave v2"


async def test_select_previews_matching_flow(api_client: AsyncClient) -> None:
    await api_client.post(BASE, json=_flow_body(), headers=TENANT_HEADERS)
    await api_client.post(BASE, json=LONG_LEAVE, headers=TENANT_HEADERS)
    document = {
        "document_type": "leave_request",
        "document_id": "doc-1",
        "requester_id": "alice",
    }

    long_one = await api_client.post(
        f"{BASE}/select",
        json={**document, "attributes": {"days": 7}},
        headers=TENANT_HEADERS,
    )
    assert long_one.status_code == 200
    preview = long_one.json()
    assert preview["flow_name"] == "Long leave"
    assert [s["resolved_approver_ids"] for s in preview["steps"]] == [["lead"], ["hr1", "hr2"]]

    short_one = await api_client.post(
        f"{BASE}/select",
        json={**document, "attributes": {"days": 2}},
        headers=TENANT_HEADERS,
    )
    assert short_one.json()["flow_name"] == "Standard leave"


async def test_select_without_any_flow_is_422(api_client: AsyncClient) -> None:
    response = await api_client.post(
        f"{BASE}/select",
        json={"document_type": "hire", "document_id": "h1", "requester_id": "alice"},
        headers=TENANT_HEADERS,
    )
    assert response.status_code == 422
    assert response.json()["error"] == "NO_APPLICABLE_FLOW"
