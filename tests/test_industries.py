"""Tests for the industry catalogue."""

TEMPLATE = {
    "id": "saas-cold-call",
    "title": "Cold Call: CTO",
    "description": "Pitch an observability platform",
    "difficulty": "intermediate",
    "target_persona": "CTO",
}


def test_list_is_sorted_by_name(client, store, make_user):
    for name in ("Retail", "Healthcare", "SaaS"):
        store.create_industry(name=name, description=None, icon=None, scenario_templates=[])
    _, headers = make_user()
    names = [industry["name"] for industry in client.get("/industries", headers=headers).json()]
    assert names == ["Healthcare", "Retail", "SaaS"]


def test_get_unknown_is_404(client, make_user):
    _, headers = make_user()
    assert client.get("/industries/missing", headers=headers).status_code == 404


def test_admin_creates_industry_with_templates(client, make_user):
    _, headers = make_user(role="admin")
    response = client.post(
        "/industries",
        json={"name": "SaaS", "icon": "cloud", "scenario_templates": [TEMPLATE]},
        headers=headers,
    )
    assert response.status_code == 200
    created = response.json()
    assert created["scenario_templates"] == [TEMPLATE]

    fetched = client.get(f"/industries/{created['id']}", headers=headers).json()
    assert fetched["name"] == "SaaS"


def test_create_requires_name(client, make_user):
    _, headers = make_user(role="admin")
    assert client.post("/industries", json={"icon": "x"}, headers=headers).status_code == 400


def test_duplicate_name_rejected(client, make_user):
    _, headers = make_user(role="admin")
    assert client.post("/industries", json={"name": "SaaS"}, headers=headers).status_code == 200
    response = client.post("/industries", json={"name": "SaaS"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Industry already exists"


def test_non_admin_cannot_create(client, make_user):
    _, headers = make_user(role="team_lead")
    assert client.post("/industries", json={"name": "SaaS"}, headers=headers).status_code == 403
