import pytest


@pytest.fixture
def category(coordinator_client):
    resp = coordinator_client.post("/api/managers/resources/categories", json={"name": "Electronics"})
    assert resp.status_code == 201
    return resp.get_json()["category"]


@pytest.fixture
def laptop(coordinator_client, category):
    resp = coordinator_client.post("/api/managers/resources", json={
        "name": "Dell Latitude", "assetTag": "LAP-001", "categoryId": category["id"],
        "cost": "54999.50", "purchaseDate": "2025-06-01", "building": "Main", "room": "Lab 2",
        "tags": ["laptop", "staff"],
    })
    assert resp.status_code == 201
    return resp.get_json()["resources"][0]


def test_create_single_resource(laptop, category):
    assert laptop["status"] == "available"
    assert laptop["categoryName"] == "Electronics"
    assert laptop["cost"] == 54999.5
    assert laptop["purchaseDate"] == "2025-06-01"
    assert laptop["tags"] == ["laptop", "staff"]


def test_create_batch_and_validation(coordinator_client):
    resp = coordinator_client.post("/api/managers/resources", json=[{"name": "Chair"}, {"name": "Desk"}])
    assert resp.status_code == 201
    assert [r["name"] for r in resp.get_json()["resources"]] == ["Chair", "Desk"]

    assert coordinator_client.post("/api/managers/resources", json=[{"name": ""}]).status_code == 400
    assert coordinator_client.post("/api/managers/resources", json={"name": "X", "cost": "cheap"}).status_code == 400
    assert coordinator_client.post("/api/managers/resources", json={"name": "X", "categoryId": 999}).status_code == 400
    assert coordinator_client.post("/api/managers/resources", json={"name": "X", "status": "broken"}).status_code == 400


def test_list_with_paging_and_search(coordinator_client, laptop):
    coordinator_client.post("/api/managers/resources", json=[{"name": f"Bench {i}"} for i in range(12)])

    page = coordinator_client.get("/api/managers/resources?pageSize=5").get_json()
    assert page["pageSize"] == 10
    assert page["total"] == 13
    assert len(page["resources"]) == 10

    second = coordinator_client.get("/api/managers/resources?page=2").get_json()
    assert second["pageSize"] == 20
    assert second["resources"] == []

    found = coordinator_client.get("/api/managers/resources?query=lap-0").get_json()
    assert [r["id"] for r in found["resources"]] == [laptop["id"]]
    by_building = coordinator_client.get("/api/managers/resources?building=Main").get_json()
    assert by_building["total"] == 1


def test_batch_update(coordinator_client, laptop):
    resp = coordinator_client.patch("/api/managers/resources", json={"updates": [
        {"id": laptop["id"], "room": "Lab 3", "status": "maintenance"},
        {"id": 999, "room": "nowhere"},
    ]})
    assert resp.status_code == 200
    updated = resp.get_json()["resources"]
    assert len(updated) == 1
    assert updated[0]["room"] == "Lab 3"
    assert updated[0]["status"] == "maintenance"

    assert coordinator_client.patch("/api/managers/resources", json={"updates": []}).status_code == 400
    assert coordinator_client.patch("/api/managers/resources",
                                    json={"updates": [{"id": laptop["id"], "name": ""}]}).status_code == 400


def test_check_out_and_in(coordinator_client, laptop, ids):
    url = f"/api/managers/resources/{laptop['id']}/logs"
    out = coordinator_client.post(url, json={"kind": "check_out", "toUserId": ids["member1"], "notes": "Exam duty"})
    assert out.status_code == 201
    assert out.get_json()["resource"]["status"] == "in_use"
    assert out.get_json()["resource"]["assignedTo"] == ids["member1"]

    back = coordinator_client.post(url, json={"kind": "check_in"}).get_json()["resource"]
    assert back["status"] == "available"
    assert back["assignedTo"] is None

    moved = coordinator_client.post(url, json={"kind": "move", "building": "Annex", "room": "A1"}).get_json()
    assert moved["resource"]["building"] == "Annex"

    detail = coordinator_client.get(f"/api/managers/resources/{laptop['id']}").get_json()["resource"]
    assert sorted(log["kind"] for log in detail["logs"]) == ["check_in", "check_out", "move"]

    assert coordinator_client.post(url, json={"kind": "assign"}).status_code == 400
    assert coordinator_client.post(url, json={"kind": "steal"}).status_code == 400
    assert coordinator_client.post(url, json={}).status_code == 400
    assert coordinator_client.get("/api/managers/resources/999").status_code == 404


def test_categories(coordinator_client, member_client, category):
    child = coordinator_client.post("/api/managers/resources/categories",
                                    json={"name": "Projectors", "parentId": category["id"]})
    assert child.status_code == 201
    assert child.get_json()["category"]["parentId"] == category["id"]

    assert coordinator_client.post("/api/managers/resources/categories",
                                   json={"name": "Orphan", "parentId": 999}).status_code == 400
    missing = coordinator_client.post("/api/managers/resources/categories", json={})
    assert missing.get_json()["error"] == "Name is required"

    names = [c["name"] for c in member_client.get("/api/managers/resources/categories").get_json()["categories"]]
    assert names == ["Electronics", "Projectors"]
    assert member_client.post("/api/managers/resources/categories", json={"name": "x"}).status_code == 401


def test_duplicate_asset_tag_conflicts(coordinator_client, laptop):
    again = coordinator_client.post("/api/managers/resources", json={"name": "Spare", "assetTag": "LAP-001"})
    assert again.status_code == 409
    assert again.get_json()["error"] == "Asset tag already exists"

    batch = coordinator_client.post("/api/managers/resources", json=[
        {"name": "Tablet A", "assetTag": "TAB-001"},
        {"name": "Tablet B", "assetTag": "TAB-001"},
    ])
    assert batch.status_code == 409
    assert coordinator_client.get("/api/managers/resources").get_json()["total"] == 1

    other = coordinator_client.post("/api/managers/resources",
                                    json={"name": "Dell Vostro", "assetTag": "LAP-002"}).get_json()["resources"][0]
    clash = coordinator_client.patch("/api/managers/resources", json={"updates": [
        {"id": other["id"], "assetTag": "LAP-001"},
    ]})
    assert clash.status_code == 409

    same = coordinator_client.patch("/api/managers/resources", json={"updates": [
        {"id": laptop["id"], "assetTag": "LAP-001", "room": "Lab 4"},
    ]})
    assert same.status_code == 200
