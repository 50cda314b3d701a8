from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import API, add_unit, create_project


def _plan(**overrides: object) -> dict[str, object]:
    plan: dict[str, object] = {
        "start_date": "2024-01-01",
        "end_date": "2024-01-10",
        "mode": "CALENDAR_DAYS",
        "phases": [
            {
                "name": "Foundation",
                "percentage_of_total": "100",
                "color": "amber",
                "stages": [
                    {
                        "name": "Excavation",
                        "activities": [
                            {"name": "Dig", "weight": "1"},
                            {"name": "Pour", "weight": "1", "dependencies": ["Dig"]},
                        ],
                    }
                ],
            }
        ],
    }
    plan.update(overrides)
    return plan


def test_project_crud_and_duplicate_code(client: TestClient) -> None:
    project = create_project(client, code="TWR-1", start_date="2024-01-01", end_date="2024-06-30")

    assert project["status"] == "PLANNING"
    assert project["scheduling_mode"] == "BUSINESS_DAYS"

    duplicate = client.post(f"{API}/projects", json={"code": "TWR-1", "name": "Again"})
    assert duplicate.status_code == 409

    updated = client.patch(f"{API}/projects/{project['id']}", json={"name": "Tower One", "status": "PAUSED"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Tower One"
    assert updated.json()["status"] == "PAUSED"

    listed = client.get(f"{API}/projects")
    assert [item["code"] for item in listed.json()["items"]] == ["TWR-1"]


def test_project_rejects_inverted_dates(client: TestClient) -> None:
    response = client.post(
        f"{API}/projects",
        json={"code": "BAD", "name": "Bad", "start_date": "2024-02-01", "end_date": "2024-01-01"},
    )

    assert response.status_code == 422


def test_unknown_project_is_404(client: TestClient) -> None:
    assert client.get(f"{API}/projects/{uuid4()}").status_code == 404
    assert client.get(f"{API}/projects/{uuid4()}/activities").status_code == 404
    assert client.get(f"{API}/projects/{uuid4()}/progress").status_code == 404


def test_units_are_unique_per_project(client: TestClient) -> None:
    project = create_project(client)
    add_unit(client, project["id"], "A-101")

    duplicate = client.post(f"{API}/projects/{project['id']}/units", json={"code": "A-101"})
    assert duplicate.status_code == 409

    other = create_project(client, code="PRJ-2")
    add_unit(client, other["id"], "A-101")

    units = client.get(f"{API}/projects/{project['id']}/units").json()["items"]
    assert [unit["code"] for unit in units] == ["A-101"]


def test_preview_schedule_in_business_days(client: TestClient) -> None:
    response = client.post(
        f"{API}/schedule/preview",
        json=_plan(
            end_date="2024-01-12",
            mode="BUSINESS_DAYS",
            phases=[
                {
                    "name": "Foundation",
                    "percentage_of_total": "100",
                    "stages": [
                        {
                            "name": "Excavation",
                            "activities": [
                                {"name": "A", "duration_days": 5},
                                {"name": "B", "dependencies": ["A"]},
                            ],
                        }
                    ],
                }
            ],
        ),
    )

    assert response.status_code == 200
    activities = response.json()["schedule"][0]["children"][0]["children"]
    assert [(item["name"], item["planned_start_date"], item["planned_end_date"]) for item in activities] == [
        ("A", "2024-01-01", "2024-01-05"),
        ("B", "2024-01-08", "2024-01-12"),
    ]


def test_preview_rejects_invalid_plan(client: TestClient) -> None:
    assert client.post(f"{API}/schedule/preview", json=_plan(end_date="2023-12-01")).status_code == 422
    assert client.post(f"{API}/schedule/preview", json=_plan(phases=[])).status_code == 422


def test_schedule_project_persists_tree(client: TestClient) -> None:
    project = create_project(client)
    add_unit(client, project["id"], "A-101")
    add_unit(client, project["id"], "A-102")

    response = client.post(f"{API}/projects/{project['id']}/activities/schedule", json=_plan())
    assert response.status_code == 201

    [phase] = response.json()["items"]
    [stage] = phase["children"]
    dig, pour = stage["children"]

    assert phase["level"] == "PHASE"
    assert phase["color"] == "amber"
    assert stage["level"] == "STAGE"
    assert (dig["planned_start_date"], dig["planned_end_date"]) == ("2024-01-01", "2024-01-05")
    assert (pour["planned_start_date"], pour["planned_end_date"]) == ("2024-01-06", "2024-01-10")
    assert pour["dependencies"] == ["Dig"]
    assert len(dig["unit_activities"]) == 2
    assert phase["unit_activities"] == []

    stored = client.get(f"{API}/projects/{project['id']}").json()
    assert stored["scheduling_mode"] == "CALENDAR_DAYS"
    assert stored["start_date"] == "2024-01-01"

    again = client.post(f"{API}/projects/{project['id']}/activities/schedule", json=_plan())
    assert again.status_code == 409


def test_progress_starts_at_zero(client: TestClient) -> None:
    project = create_project(client)
    add_unit(client, project["id"], "A-101")
    client.post(f"{API}/projects/{project['id']}/activities/schedule", json=_plan())

    report = client.get(f"{API}/projects/{project['id']}/progress").json()

    assert report["overall_progress"] == "0.00"
    assert report["hierarchical"] is True
    assert report["activities"][0]["children"][0]["progress"] == "0.00"


def test_create_activity_scopes(client: TestClient) -> None:
    project = create_project(client)
    first = add_unit(client, project["id"], "A-101")
    add_unit(client, project["id"], "A-102")
    base = f"{API}/projects/{project['id']}/activities"

    all_units = client.post(base, json={"name": "Plaster", "order": 0})
    specific = client.post(
        base,
        json={"name": "Tiles", "order": 1, "scope": "SPECIFIC_UNITS", "unit_ids": [first["id"]]},
    )
    general = client.post(base, json={"name": "Site cleanup", "order": 2, "scope": "GENERAL"})

    assert all_units.status_code == 201
    assert len(all_units.json()["unit_activities"]) == 2
    assert [row["unit_id"] for row in specific.json()["unit_activities"]] == [first["id"]]
    assert [row["unit_id"] for row in general.json()["unit_activities"]] == [None]


def test_create_activity_validation(client: TestClient) -> None:
    project = create_project(client)
    other = create_project(client, code="PRJ-2")
    foreign = add_unit(client, other["id"], "B-201")
    base = f"{API}/projects/{project['id']}/activities"

    missing_units = client.post(base, json={"name": "Tiles", "order": 0, "scope": "SPECIFIC_UNITS"})
    foreign_units = client.post(
        base,
        json={"name": "Tiles", "order": 0, "scope": "SPECIFIC_UNITS", "unit_ids": [foreign["id"]]},
    )

    assert missing_units.status_code == 422
    assert foreign_units.status_code == 422


def test_delete_phase_removes_subtree(client: TestClient) -> None:
    project = create_project(client)
    add_unit(client, project["id"], "A-101")
    [phase] = client.post(f"{API}/projects/{project['id']}/activities/schedule", json=_plan()).json()["items"]

    response = client.delete(f"{API}/projects/{project['id']}/activities/{phase['id']}")

    assert response.status_code == 204
    assert client.get(f"{API}/projects/{project['id']}/activities").json()["items"] == []
    assert client.get(f"{API}/projects/{project['id']}/activities/{phase['id']}").status_code == 404


def test_schedule_rejects_specific_units_without_unit_ids(client: TestClient) -> None:
    project = create_project(client)
    add_unit(client, project["id"], "A-101")
    plan = _plan(
        phases=[
            {
                "name": "Finishes",
                "percentage_of_total": "100",
                "stages": [
                    {
                        "name": "Tiling",
                        "activities": [{"name": "Bathroom tiles", "scope": "SPECIFIC_UNITS", "unit_ids": []}],
                    }
                ],
            }
        ]
    )

    response = client.post(f"{API}/projects/{project['id']}/activities/schedule", json=plan)

    assert response.status_code == 422
    assert client.get(f"{API}/projects/{project['id']}/activities").json()["items"] == []


def test_schedule_specific_units_creates_rows_only_for_listed_units(client: TestClient) -> None:
    project = create_project(client)
    first = add_unit(client, project["id"], "A-101")
    add_unit(client, project["id"], "A-102")
    plan = _plan(
        phases=[
            {
                "name": "Finishes",
                "percentage_of_total": "100",
                "stages": [
                    {
                        "name": "Tiling",
                        "activities": [
                            {"name": "Bathroom tiles", "scope": "SPECIFIC_UNITS", "unit_ids": [first["id"]]}
                        ],
                    }
                ],
            }
        ]
    )

    [phase] = client.post(f"{API}/projects/{project['id']}/activities/schedule", json=plan).json()["items"]
    leaf = phase["children"][0]["children"][0]

    assert [row["unit_id"] for row in leaf["unit_activities"]] == [first["id"]]


def test_update_activity_fields(client: TestClient) -> None:
    project = create_project(client)
    activity = client.post(f"{API}/projects/{project['id']}/activities", json={"name": "Plaster", "order": 0}).json()

    response = client.patch(
        f"{API}/projects/{project['id']}/activities/{activity['id']}",
        json={"name": "Plaster walls", "order": 4, "weight": "2.5"},
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Plaster walls"
    assert response.json()["order"] == 4
    assert response.json()["weight"] == "2.50"
    assert client.patch(
        f"{API}/projects/{project['id']}/activities/{uuid4()}", json={"weight": "1"}
    ).status_code == 404
    assert client.patch(
        f"{API}/projects/{project['id']}/activities/{activity['id']}", json={"weight": "101"}
    ).status_code == 422
