from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import API, add_unit, create_project

REVIEWER = str(uuid4())


def _scheduled_project(client: TestClient) -> tuple[str, dict[str, dict[str, object]], list[dict[str, object]]]:
    project = create_project(client)
    units = [add_unit(client, project["id"], code) for code in ("A-101", "A-102")]
    plan = {
        "start_date": "2024-01-01",
        "end_date": "2024-01-10",
        "mode": "CALENDAR_DAYS",
        "phases": [
            {
                "name": "Foundation",
                "percentage_of_total": "100",
                "stages": [
                    {
                        "name": "Excavation",
                        "activities": [
                            {"name": "Dig"},
                            {"name": "Pour", "dependencies": ["Dig"]},
                        ],
                    }
                ],
            }
        ],
    }
    response = client.post(f"{API}/projects/{project['id']}/activities/schedule", json=plan)
    assert response.status_code == 201
    [phase] = response.json()["items"]
    nodes = {"phase": phase, "stage": phase["children"][0]}
    for activity in phase["children"][0]["children"]:
        nodes[activity["name"]] = activity
    return project["id"], nodes, units


def _unit_activity(activity: dict[str, object], unit: dict[str, object]) -> str:
    return next(row["id"] for row in activity["unit_activities"] if row["unit_id"] == unit["id"])


def _submit(client: TestClient, project_id: str, activity: dict[str, object], unit_activity_id: str, progress: str):
    return client.post(
        f"{API}/projects/{project_id}/measurements",
        json={"activity_id": activity["id"], "unit_activity_id": unit_activity_id, "progress": progress},
    )


def _review(client: TestClient, project_id: str, measurement_id: str, decision: str = "APPROVED"):
    return client.patch(
        f"{API}/projects/{project_id}/measurements/{measurement_id}/review",
        json={"status": decision, "reviewer_id": REVIEWER, "review_notes": "checked on site"},
    )


def _activity(client: TestClient, project_id: str, activity_id: str) -> dict[str, object]:
    return client.get(f"{API}/projects/{project_id}/activities/{activity_id}").json()


def test_approval_cascades_to_activity_and_project(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    dig = nodes["Dig"]

    created = _submit(client, project_id, dig, _unit_activity(dig, units[0]), "100")
    assert created.status_code == 201
    measurement = created.json()
    assert measurement["status"] == "PENDING"
    assert measurement["previous_progress"] == "0.00"

    reviewed = _review(client, project_id, measurement["id"])
    assert reviewed.status_code == 200
    assert reviewed.json()["status"] == "APPROVED"
    assert reviewed.json()["reviewed_by"] == REVIEWER
    assert reviewed.json()["review_notes"] == "checked on site"

    dig_after = _activity(client, project_id, dig["id"])
    assert dig_after["status"] == "IN_PROGRESS"
    assert dig_after["average_progress"] == "50.00"
    assert _activity(client, project_id, nodes["stage"]["id"])["status"] == "IN_PROGRESS"
    assert _activity(client, project_id, nodes["phase"]["id"])["status"] == "IN_PROGRESS"
    assert client.get(f"{API}/projects/{project_id}").json()["status"] == "IN_PROGRESS"

    report = client.get(f"{API}/projects/{project_id}/progress").json()
    assert report["overall_progress"] == "25.00"
    assert report["activities"][0]["children"][0]["progress"] == "25.00"


def test_second_review_conflicts(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    dig = nodes["Dig"]
    measurement = _submit(client, project_id, dig, _unit_activity(dig, units[0]), "30").json()

    assert _review(client, project_id, measurement["id"]).status_code == 200
    assert _review(client, project_id, measurement["id"], "REJECTED").status_code == 409
    assert _review(client, project_id, str(uuid4())).status_code == 404


def test_rejection_leaves_progress_untouched(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    dig = nodes["Dig"]
    measurement = _submit(client, project_id, dig, _unit_activity(dig, units[0]), "80").json()

    reviewed = _review(client, project_id, measurement["id"], "REJECTED")

    assert reviewed.json()["status"] == "REJECTED"
    assert _activity(client, project_id, dig["id"])["average_progress"] == "0.00"
    assert client.get(f"{API}/projects/{project_id}").json()["status"] == "PLANNING"


def test_all_units_complete_finishes_project(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    items = [
        {"activity_id": nodes[name]["id"], "unit_activity_id": _unit_activity(nodes[name], unit), "progress": "100"}
        for name in ("Dig", "Pour")
        for unit in units
    ]

    batch = client.post(f"{API}/projects/{project_id}/measurements/batch", json={"items": items})
    assert batch.status_code == 201
    assert len(batch.json()["items"]) == 4

    for measurement in batch.json()["items"]:
        assert _review(client, project_id, measurement["id"]).status_code == 200

    project = client.get(f"{API}/projects/{project_id}").json()
    assert project["status"] == "COMPLETED"
    assert project["actual_end_date"] is not None
    assert _activity(client, project_id, nodes["phase"]["id"])["status"] == "COMPLETED"
    assert client.get(f"{API}/projects/{project_id}/progress").json()["overall_progress"] == "100.00"


def test_paused_project_status_is_not_automatic(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    client.patch(f"{API}/projects/{project_id}", json={"status": "PAUSED"})
    dig = nodes["Dig"]
    measurement = _submit(client, project_id, dig, _unit_activity(dig, units[0]), "100").json()

    _review(client, project_id, measurement["id"])

    assert client.get(f"{API}/projects/{project_id}").json()["status"] == "PAUSED"
    assert _activity(client, project_id, dig["id"])["status"] == "IN_PROGRESS"


def test_flat_general_activity_completes_project(client: TestClient) -> None:
    project = create_project(client)
    activity = client.post(
        f"{API}/projects/{project['id']}/activities",
        json={"name": "Site cleanup", "order": 0, "scope": "GENERAL"},
    ).json()
    [unit_activity] = activity["unit_activities"]

    measurement = _submit(client, project["id"], activity, unit_activity["id"], "100").json()
    _review(client, project["id"], measurement["id"])

    report = client.get(f"{API}/projects/{project['id']}/progress").json()
    assert report["hierarchical"] is False
    assert report["overall_progress"] == "100.00"
    assert client.get(f"{API}/projects/{project['id']}").json()["status"] == "COMPLETED"


def test_measurement_validation(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    dig, pour = nodes["Dig"], nodes["Pour"]

    on_phase = _submit(client, project_id, nodes["phase"], _unit_activity(dig, units[0]), "10")
    wrong_activity = _submit(client, project_id, pour, _unit_activity(dig, units[0]), "10")
    missing_unit_activity = _submit(client, project_id, dig, str(uuid4()), "10")
    out_of_range = _submit(client, project_id, dig, _unit_activity(dig, units[0]), "120")
    missing_activity = client.post(
        f"{API}/projects/{project_id}/measurements",
        json={"activity_id": str(uuid4()), "progress": "10"},
    )

    assert on_phase.status_code == 422
    assert wrong_activity.status_code == 422
    assert missing_unit_activity.status_code == 404
    assert out_of_range.status_code == 422
    assert missing_activity.status_code == 404


def test_invalid_batch_writes_nothing(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    dig = nodes["Dig"]
    items = [
        {"activity_id": dig["id"], "unit_activity_id": _unit_activity(dig, units[0]), "progress": "50"},
        {"activity_id": dig["id"], "unit_activity_id": str(uuid4()), "progress": "50"},
    ]

    response = client.post(f"{API}/projects/{project_id}/measurements/batch", json={"items": items})

    assert response.status_code == 404
    assert client.get(f"{API}/projects/{project_id}/measurements").json()["items"] == []


def test_list_and_filter_measurements(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    dig, pour = nodes["Dig"], nodes["Pour"]
    first = _submit(client, project_id, dig, _unit_activity(dig, units[0]), "40").json()
    _submit(client, project_id, pour, _unit_activity(pour, units[1]), "10")
    _review(client, project_id, first["id"])

    everything = client.get(f"{API}/projects/{project_id}/measurements").json()["items"]
    pending = client.get(
        f"{API}/projects/{project_id}/measurements", params={"status_filter": "PENDING"}
    ).json()["items"]
    for_dig = client.get(
        f"{API}/projects/{project_id}/measurements", params={"activity_id": dig["id"]}
    ).json()["items"]

    assert len(everything) == 2
    assert [item["activity_id"] for item in pending] == [pour["id"]]
    assert [item["id"] for item in for_dig] == [first["id"]]
    assert client.get(f"{API}/projects/{project_id}/measurements/{first['id']}").json()["status"] == "APPROVED"


def test_reweighting_activity_changes_progress(client: TestClient) -> None:
    project = create_project(client)
    base = f"{API}/projects/{project['id']}/activities"
    done = client.post(base, json={"name": "Site cleanup", "order": 0, "scope": "GENERAL"}).json()
    open_ = client.post(base, json={"name": "Fencing", "order": 1, "scope": "GENERAL"}).json()
    measurement = _submit(client, project["id"], done, done["unit_activities"][0]["id"], "100").json()
    _review(client, project["id"], measurement["id"])

    assert client.get(f"{API}/projects/{project['id']}/progress").json()["overall_progress"] == "50.00"

    client.patch(f"{base}/{open_['id']}", json={"weight": "3"})

    assert client.get(f"{API}/projects/{project['id']}/progress").json()["overall_progress"] == "25.00"


def test_measurement_list_is_paginated(client: TestClient) -> None:
    project_id, nodes, units = _scheduled_project(client)
    dig = nodes["Dig"]
    for progress in ("10", "20", "30"):
        _submit(client, project_id, dig, _unit_activity(dig, units[0]), progress)
    url = f"{API}/projects/{project_id}/measurements"

    first_page = client.get(url, params={"limit": 2, "offset": 0}).json()
    second_page = client.get(url, params={"limit": 2, "offset": 2}).json()

    assert first_page["total"] == 3
    assert len(first_page["items"]) == 2
    assert len(second_page["items"]) == 1
    assert {item["id"] for item in first_page["items"]}.isdisjoint(item["id"] for item in second_page["items"])
    assert client.get(url, params={"limit": 0}).status_code == 422
    assert client.get(url, params={"limit": 101}).status_code == 422
