import pytest

pytestmark = pytest.mark.anyio


def as_user(user_id):
    return {"X-User-Id": user_id}


def task_body(now, **overrides):
    body = {
        "task_type": "중점추진",
        "category1": "재무",
        "category2": "원가",
        "name": "물류비 절감",
        "description": "운송 계약 재검토",
        "start_date": f"{now.year}-01-01",
        "end_date": f"{now.year}-12-31",
        "status": "진행중",
        "performance_type": "financial",
        "evaluation_type": "quantitative",
        "metric": "건수",
        "target_value": 24,
        "reverse_yn": False,
        "dept_id": 2,
        "manager_ids": ["u2", "u1"],
    }
    body.update(overrides)
    return body


async def test_identity_header_is_required(client):
    r = await client.get("/tasks")
    assert r.status_code == 401
    r = await client.get("/tasks", headers=as_user("nobody"))
    assert r.status_code == 401


async def test_create_task_normalizes_labels(client, now):
    r = await client.post("/tasks", json=task_body(now), headers=as_user("admin"))
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["task_type"] == "keyFocus"
    assert data["metric"] == "count"
    assert data["unit"] == "건"
    assert data["status"] == "inProgress"
    assert data["status_text"] == "진행중"
    assert data["is_inputted"] is False
    assert data["achievement_rate"] == 0
    assert [m["user_id"] for m in data["managers"]] == ["u1", "u2"]
    assert data["managers"][0]["dept_name"] == "재무팀"
    assert data["managers"][0]["top_dept_name"] == "경영지원본부"


async def test_qualitative_task_drops_metric_and_target(client, now):
    body = task_body(now, evaluation_type="qualitative", reverse_yn=True)
    r = await client.post("/tasks", json=body, headers=as_user("admin"))
    assert r.status_code == 200
    data = r.json()
    assert data["metric"] is None
    assert data["unit"] is None
    assert data["target_value"] is None
    assert data["reverse_yn"] is False


async def test_quantitative_task_defaults_to_percent(client, now):
    r = await client.post("/tasks", json=task_body(now, metric=None), headers=as_user("admin"))
    assert r.json()["metric"] == "percent"


async def test_end_date_before_start_is_rejected(client, now):
    body = task_body(now, start_date=f"{now.year}-06-01", end_date=f"{now.year}-05-01")
    r = await client.post("/tasks", json=body, headers=as_user("admin"))
    assert r.status_code == 422


async def test_unknown_manager_is_rejected(client, now):
    r = await client.post("/tasks", json=task_body(now, manager_ids=["ghost"]), headers=as_user("admin"))
    assert r.status_code == 400
    assert "ghost" in r.json()["detail"]


async def test_list_filters_by_type_and_manager(client):
    r = await client.get("/tasks", params={"type": "OI"}, headers=as_user("u1"))
    assert [t["id"] for t in r.json()] == [1, 3]

    r = await client.get("/tasks", params={"user_id": "u2", "role": "manager"}, headers=as_user("u2"))
    assert [t["id"] for t in r.json()] == [2, 3]

    r = await client.get("/tasks", params={"type": "keyFocus", "user_id": "u1"}, headers=as_user("u1"))
    assert r.json() == []


async def test_get_task_and_missing_task(client):
    r = await client.get("/tasks/1", headers=as_user("u1"))
    assert r.status_code == 200
    assert r.json()["unit"] == "원"

    r = await client.get("/tasks/999", headers=as_user("u1"))
    assert r.status_code == 404


async def test_update_task_replaces_managers(client, now):
    body = task_body(now, task_type="OI", metric="금액", target_value=500, manager_ids=["u3"])
    r = await client.put("/tasks/1", json=body, headers=as_user("admin"))
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["task_type"] == "oi"
    assert data["metric"] == "amount"
    assert [m["user_id"] for m in data["managers"]] == ["u3"]


async def test_delete_task_removes_it(client, now):
    await client.post(
        "/tasks/1/activity",
        params={"year": now.year, "month": now.month},
        json={"activity_content": "삭제 전 활동"},
        headers=as_user("u1"),
    )
    r = await client.delete("/tasks/1", headers=as_user("admin"))
    assert r.json() == {"success": True, "id": 1}

    r = await client.get("/tasks/1", headers=as_user("admin"))
    assert r.status_code == 404


async def test_departments_and_members(client):
    r = await client.get("/departments", headers=as_user("u1"))
    assert [d["name"] for d in r.json()] == ["경영지원본부", "재무팀"]

    r = await client.get("/departments/2/members", headers=as_user("u1"))
    assert [u["id"] for u in r.json()] == ["u1", "u2"]

    r = await client.get("/departments/9/members", headers=as_user("u1"))
    assert r.status_code == 404
