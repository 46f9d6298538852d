"""Tests for the feature catalog API."""

from sqlmodel import Session

from dwiju.services import catalog
from tests.conftest import auth_headers, make_account, test_engine


def _feature(title="Homework help", category="Dwiju Teacher", description="Explains lessons", **kwargs):
    with Session(test_engine) as session:
        return catalog.create_feature(session, title=title, description=description, category=category, **kwargs)


def _new_feature_body(**overrides):
    body = {
        "title": "Crop advisor",
        "description": "Suggests crops for the season",
        "category": "Dwiju Farmer",
        "tags": ["crops", "season"],
        "priority": 3,
    }
    body.update(overrides)
    return body


def test_list_features_is_public(client):
    _feature()
    _feature(title="Symptom check", category="Dwiju Doctor", description="General health info")

    response = client.get("/api/features")

    assert response.status_code == 200
    data = response.json()
    assert [f["id"] for f in data["features"]] == [1, 2]
    assert data["pagination"] == {"current": 1, "pages": 1, "total": 2, "limit": 20}


def test_list_features_filters(client):
    _feature()
    _feature(title="Symptom check", category="Dwiju Doctor", description="General health info", tags=["fever"])

    by_category = client.get("/api/features?category=Dwiju Doctor").json()
    by_search = client.get("/api/features?search=FEVER").json()

    assert [f["title"] for f in by_category["features"]] == ["Symptom check"]
    assert [f["title"] for f in by_search["features"]] == ["Symptom check"]


def test_list_features_sorting(client):
    _feature(title="Low", priority=1)
    _feature(title="High", priority=9)

    data = client.get("/api/features?sortBy=priority&sortOrder=desc").json()
    assert [f["title"] for f in data["features"]] == ["High", "Low"]


def test_list_features_active_filter(client):
    _feature(title="Kept")
    gone = _feature(title="Gone")
    with Session(test_engine) as session:
        catalog.deactivate_feature(session, gone.id, updated_by=None)

    active = client.get("/api/features").json()
    inactive = client.get("/api/features?active=false").json()
    everything = client.get("/api/features?active=all").json()

    assert [f["title"] for f in active["features"]] == ["Kept"]
    assert [f["title"] for f in inactive["features"]] == ["Gone"]
    assert everything["pagination"]["total"] == 2


def test_get_feature(client):
    feature = _feature(metadata={"level": "basic"})

    response = client.get(f"/api/features/{feature.id}")

    assert response.status_code == 200
    assert response.json()["feature"]["metadata"] == {"level": "basic"}


def test_get_feature_not_found(client):
    response = client.get("/api/features/999")
    assert response.status_code == 404


def test_categories(client):
    _feature(title="Homework help")
    _feature(title="Exam prep")
    _feature(title="Symptom check", category="Dwiju Doctor")

    data = client.get("/api/features/categories").json()

    assert data["totalCategories"] == 2
    assert data["categories"]["Dwiju Teacher"]["count"] == 2
    assert [f["title"] for f in data["categories"]["Dwiju Doctor"]["features"]] == ["Symptom check"]


def test_create_feature_requires_admin(client):
    alice = make_account("alice")

    response = client.post("/api/features", json=_new_feature_body(), headers=auth_headers(alice))

    assert response.status_code == 403
    assert response.json()["code"] == "INSUFFICIENT_ROLE"


def test_create_feature_requires_token(client):
    response = client.post("/api/features", json=_new_feature_body())
    assert response.status_code == 401


def test_create_feature_assigns_next_id(client):
    admin = make_account("root", role="admin")
    _feature()
    _feature(title="Another")

    response = client.post("/api/features", json=_new_feature_body(), headers=auth_headers(admin))

    assert response.status_code == 201
    feature = response.json()["feature"]
    assert feature["id"] == 3
    assert feature["tags"] == ["crops", "season"]
    assert feature["createdBy"] == admin.id
    assert feature["isActive"] is True


def test_create_feature_after_gap_uses_max_plus_one(client):
    admin = make_account("root", role="admin")
    _feature(feature_id=10)

    response = client.post("/api/features", json=_new_feature_body(), headers=auth_headers(admin))
    assert response.json()["feature"]["id"] == 11


def test_create_feature_unknown_category(client):
    admin = make_account("root", role="admin")
    response = client.post(
        "/api/features", json=_new_feature_body(category="Dwiju Pirate"), headers=auth_headers(admin)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_feature_missing_fields(client):
    admin = make_account("root", role="admin")
    response = client.post("/api/features", json={"title": "No description"}, headers=auth_headers(admin))
    assert response.status_code == 400


def test_update_feature_as_moderator(client):
    mod = make_account("mod", role="moderator")
    feature = _feature()

    response = client.put(
        f"/api/features/{feature.id}",
        json={"title": "Homework buddy", "priority": 5, "id": 42, "metadata": {"level": "advanced"}},
        headers=auth_headers(mod),
    )

    assert response.status_code == 200
    updated = response.json()["feature"]
    assert updated["id"] == feature.id
    assert updated["title"] == "Homework buddy"
    assert updated["priority"] == 5
    assert updated["metadata"] == {"level": "advanced"}
    assert updated["updatedBy"] == mod.id


def test_update_feature_as_user_forbidden(client):
    alice = make_account("alice")
    feature = _feature()
    response = client.put(f"/api/features/{feature.id}", json={"title": "x"}, headers=auth_headers(alice))
    assert response.status_code == 403


def test_update_feature_not_found(client):
    mod = make_account("mod", role="moderator")
    response = client.put("/api/features/999", json={"title": "x"}, headers=auth_headers(mod))
    assert response.status_code == 404


def test_delete_feature_soft(client):
    admin = make_account("root", role="admin")
    feature = _feature()

    response = client.delete(f"/api/features/{feature.id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["feature"]["isActive"] is False
    assert client.get(f"/api/features/{feature.id}").status_code == 200


def test_delete_feature_permanent(client):
    admin = make_account("root", role="admin")
    feature = _feature()

    response = client.delete(f"/api/features/{feature.id}?permanent=true", headers=auth_headers(admin))

    assert response.status_code == 200
    assert client.get(f"/api/features/{feature.id}").status_code == 404


def test_delete_feature_requires_admin(client):
    mod = make_account("mod", role="moderator")
    feature = _feature()
    response = client.delete(f"/api/features/{feature.id}", headers=auth_headers(mod))
    assert response.status_code == 403


def test_bulk_import(client):
    admin = make_account("root", role="admin")
    _feature(title="Existing", feature_id=1)

    response = client.post(
        "/api/features/bulk-import",
        json={
            "features": [
                {"id": 1, "title": "Replaced?", "description": "d", "category": "Dwiju Teacher"},
                {"id": 2, "title": "New", "description": "d", "category": "Dwiju Home", "tags": "lights"},
                {"id": 3, "title": "Incomplete"},
                {"id": 4, "title": "Bad", "description": "d", "category": "Nowhere"},
            ]
        },
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    results = response.json()["results"]
    assert results["imported"] == 1
    assert results["skipped"] == 1
    assert len(results["errors"]) == 2
    assert client.get("/api/features/1").json()["feature"]["title"] == "Existing"
    assert client.get("/api/features/2").json()["feature"]["tags"] == ["lights"]


def test_bulk_import_overwrite(client):
    admin = make_account("root", role="admin")
    _feature(title="Existing", feature_id=1)

    response = client.post(
        "/api/features/bulk-import",
        json={
            "features": [{"id": 1, "title": "Replaced", "description": "d", "category": "Dwiju Teacher"}],
            "overwrite": True,
        },
        headers=auth_headers(admin),
    )

    assert response.json()["results"]["imported"] == 1
    feature = client.get("/api/features/1").json()["feature"]
    assert feature["title"] == "Replaced"
    assert feature["updatedBy"] == admin.id


def test_bulk_import_empty(client):
    admin = make_account("root", role="admin")
    response = client.post("/api/features/bulk-import", json={"features": []}, headers=auth_headers(admin))
    assert response.status_code == 400


def test_update_feature_rejects_wrong_types(client):
    mod = make_account("mod", role="moderator")
    feature = _feature()

    for body in ({"isActive": "maybe"}, {"tags": 5}, {"priority": "high"}, {"metadata": ["x"]}):
        response = client.put(f"/api/features/{feature.id}", json=body, headers=auth_headers(mod))
        assert response.status_code == 400, body
        assert response.json()["code"] == "VALIDATION_ERROR"

    unchanged = client.get(f"/api/features/{feature.id}").json()["feature"]
    assert unchanged["isActive"] is True
    assert unchanged["priority"] == 0


def test_update_feature_rejects_null(client):
    mod = make_account("mod", role="moderator")
    feature = _feature()

    response = client.put(f"/api/features/{feature.id}", json={"isActive": None}, headers=auth_headers(mod))

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_update_feature_toggles_flags(client):
    mod = make_account("mod", role="moderator")
    feature = _feature()

    response = client.put(
        f"/api/features/{feature.id}", json={"isActive": False, "isLocked": True, "tags": "exam"}, headers=auth_headers(mod)
    )

    updated = response.json()["feature"]
    assert updated["isActive"] is False
    assert updated["isLocked"] is True
    assert updated["tags"] == ["exam"]
    assert updated["title"] == "Homework help"


def test_bulk_import_reports_bad_values(client):
    admin = make_account("root", role="admin")

    response = client.post(
        "/api/features/bulk-import",
        json={
            "features": [
                {"id": 1, "title": "Tags", "description": "d", "category": "Dwiju Home", "tags": 5},
                {"id": 2, "title": "Priority", "description": "d", "category": "Dwiju Home", "priority": "high"},
                {"id": 3, "title": 7, "description": "d", "category": "Dwiju Home"},
                {"id": "x", "title": "Id", "description": "d", "category": "Dwiju Home"},
            ]
        },
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    results = response.json()["results"]
    assert results["imported"] == 0
    assert len(results["errors"]) == 4
