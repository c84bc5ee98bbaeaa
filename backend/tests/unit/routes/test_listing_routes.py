"""
Tests for startups, opportunities, events, search and stats.
"""


def _opportunity(**overrides):
    data = {
        "title": "Cradle CIP Spark",
        "description": "Pre-seed grant for Malaysian technology founders",
        "provider": "Cradle Fund",
        "type": "Grant",
        "amount": "RM150,000",
        "sector": "Technology",
        "location": "Malaysia",
    }
    data.update(overrides)
    return data


def test_founder_cannot_create_opportunity(client, register):
    headers = register("founder@example.my")

    response = client.post("/api/opportunities", headers=headers, json=_opportunity())

    assert response.status_code == 403


def test_funder_creates_and_lists_opportunities(client, register):
    headers = register("funder@example.my", role="FUNDER")

    created = client.post("/api/opportunities", headers=headers, json=_opportunity())
    assert created.status_code == 201
    opportunity_id = created.json()["id"]

    listed = client.get("/api/opportunities", params={"type": "Grant"})
    assert [o["id"] for o in listed.json()] == [opportunity_id]
    assert client.get(f"/api/opportunities/{opportunity_id}").json()["provider"] == "Cradle Fund"
    assert client.get("/api/opportunities", params={"type": "Competition"}).json() == []


def test_unknown_opportunity_is_404(client):
    response = client.get("/api/opportunities/999")

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Opportunity not found"


def test_save_and_unsave_opportunity(client, register):
    funder = register("funder@example.my", role="FUNDER")
    founder = register("founder@example.my")
    opportunity_id = client.post("/api/opportunities", headers=funder, json=_opportunity()).json()["id"]

    assert client.post(f"/api/opportunities/{opportunity_id}/save", headers=founder).status_code == 200
    saved = client.get("/api/saved-opportunities", headers=founder).json()
    assert [o["id"] for o in saved] == [opportunity_id]

    assert client.delete(f"/api/opportunities/{opportunity_id}/save", headers=founder).status_code == 200
    assert client.get("/api/saved-opportunities", headers=founder).json() == []
    assert client.delete(f"/api/opportunities/{opportunity_id}/save", headers=founder).status_code == 404


def test_saving_unknown_opportunity_is_404(client, register):
    headers = register("founder@example.my")

    assert client.post("/api/opportunities/42/save", headers=headers).status_code == 404


def test_startup_created_with_owner(client, register):
    headers = register("founder@example.my")

    response = client.post("/api/startups", headers=headers, json={
        "name": "Kita Recycle", "description": "Circular economy platform", "sector": "CleanTech",
    })

    assert response.status_code == 201
    startup = response.json()
    assert startup["owner_user_id"] is not None
    assert client.get(f"/api/startups/{startup['id']}").json()["name"] == "Kita Recycle"
    assert client.get("/api/startups", params={"sector": "CleanTech"}).json()[0]["id"] == startup["id"]
    assert client.get("/api/startups/999").status_code == 404


def test_events_require_builder_role(client, register):
    founder = register("founder@example.my")
    builder = register("builder@example.my", role="ECOSYSTEM_BUILDER")
    event = {"name": "KL Startup Week", "venue": "MaGIC Cyberjaya", "date": "2030-05-01T09:00:00"}

    assert client.post("/api/events", headers=founder, json=event).status_code == 403
    assert client.post("/api/events", headers=builder, json=event).status_code == 201
    assert [e["name"] for e in client.get("/api/events").json()] == ["KL Startup Week"]


def test_search_and_stats(client, register):
    funder = register("funder@example.my", role="FUNDER")
    client.post("/api/opportunities", headers=funder, json=_opportunity())
    client.post("/api/startups", headers=funder, json={"name": "Spark Robotics", "description": "Warehouse robots"})

    found = client.get("/api/search", params={"q": "spark"}).json()
    assert [s["name"] for s in found["startups"]] == ["Spark Robotics"]
    assert [o["title"] for o in found["opportunities"]] == ["Cradle CIP Spark"]

    stats = client.get("/api/stats").json()
    assert stats == {"users": 1, "startups": 1, "opportunities": 1, "events": 0, "applications": 0}


def test_search_requires_query(client):
    assert client.get("/api/search", params={"q": ""}).status_code == 422


def test_my_opportunities_lists_only_own(client, register):
    mine = register("funder@example.my", role="FUNDER")
    other = register("builder@example.my", role="ECOSYSTEM_BUILDER")
    own_id = client.post("/api/opportunities", headers=mine, json=_opportunity()).json()["id"]
    client.post("/api/opportunities", headers=other, json=_opportunity(title="MaGIC Accelerator"))

    response = client.get("/api/opportunities/my", headers=mine)

    assert response.status_code == 200
    assert [o["id"] for o in response.json()["opportunities"]] == [own_id]


def test_my_opportunities_requires_creator_role(client, register):
    founder = register("founder@example.my")

    assert client.get("/api/opportunities/my", headers=founder).status_code == 403
    assert client.get("/api/opportunities/my").status_code == 401


def test_my_listings(client, register):
    builder = register("builder@example.my", role="ECOSYSTEM_BUILDER")
    funder = register("funder@example.my", role="FUNDER")
    client.post("/api/startups", headers=builder, json={"name": "Kita Recycle"})
    client.post("/api/opportunities", headers=builder, json=_opportunity())
    client.post("/api/events", headers=builder, json={"name": "KL Startup Week"})
    client.post("/api/opportunities", headers=funder, json=_opportunity(title="Someone else's grant"))

    listings = client.get("/api/listings/my", headers=builder).json()

    assert [s["name"] for s in listings["startups"]] == ["Kita Recycle"]
    assert [o["title"] for o in listings["opportunities"]] == ["Cradle CIP Spark"]
    assert [e["name"] for e in listings["events"]] == ["KL Startup Week"]

    empty = client.get("/api/listings/my", headers=register("founder@example.my")).json()
    assert empty == {"startups": [], "opportunities": [], "events": []}
