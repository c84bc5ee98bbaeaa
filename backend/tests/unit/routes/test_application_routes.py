"""
Tests for submitting and reviewing applications.
"""
import pytest

COVER_LETTER = "We are a Penang hardware startup applying for prototyping support this year."
PROJECT = (
    "Low-cost water quality sensors for rural Sabah communities, piloted with two district "
    "councils and ready for a manufacturing run."
)


@pytest.fixture
def opportunity_id(client, register):
    funder = register("funder@example.my", role="FUNDER")
    response = client.post("/api/opportunities", headers=funder, json={
        "title": "MDEC Digital Grant", "type": "Grant", "provider": "MDEC",
    })
    return response.json()["id"]


def _apply(client, headers, opportunity_id):
    return client.post("/api/applications", headers=headers, json={
        "opportunity_id": opportunity_id,
        "cover_letter": COVER_LETTER,
        "project_description": PROJECT,
        "funding_requested": "RM50,000",
    })


def test_founder_applies_once(client, register, opportunity_id):
    founder = register("founder@example.my")

    first = _apply(client, founder, opportunity_id)
    assert first.status_code == 201
    assert first.json()["status"] == "SUBMITTED"

    second = _apply(client, founder, opportunity_id)
    assert second.status_code == 409

    mine = client.get("/api/applications", headers=founder).json()
    assert [a["opportunity_id"] for a in mine] == [opportunity_id]


def test_apply_to_unknown_opportunity(client, register):
    founder = register("founder@example.my")

    assert _apply(client, founder, 999).status_code == 404


def test_short_cover_letter_rejected(client, register, opportunity_id):
    founder = register("founder@example.my")

    response = client.post("/api/applications", headers=founder, json={
        "opportunity_id": opportunity_id, "cover_letter": "Too short", "project_description": PROJECT,
    })

    assert response.status_code == 422


def test_application_visible_to_owner_and_reviewers_only(client, register, opportunity_id):
    owner = register("owner@example.my")
    other = register("other@example.my")
    reviewer = register("reviewer@example.my", role="FUNDER")
    application_id = _apply(client, owner, opportunity_id).json()["id"]

    assert client.get(f"/api/applications/{application_id}", headers=owner).status_code == 200
    assert client.get(f"/api/applications/{application_id}", headers=other).status_code == 403
    assert client.get(f"/api/applications/{application_id}", headers=reviewer).status_code == 200
    assert client.get("/api/applications/999", headers=owner).status_code == 404


def test_reviewer_updates_status(client, register, opportunity_id):
    owner = register("owner@example.my")
    reviewer = register("reviewer@example.my", role="FUNDER")
    application_id = _apply(client, owner, opportunity_id).json()["id"]

    assert client.put(f"/api/applications/{application_id}/status", headers=owner,
                      json={"status": "ACCEPTED"}).status_code == 403
    assert client.put(f"/api/applications/{application_id}/status", headers=reviewer,
                      json={"status": "APPROVED"}).status_code == 422

    response = client.put(f"/api/applications/{application_id}/status", headers=reviewer,
                          json={"status": "UNDER_REVIEW"})
    assert response.status_code == 200
    assert response.json()["status"] == "UNDER_REVIEW"

    listed = client.get(f"/api/applications/opportunity/{opportunity_id}", headers=reviewer).json()
    assert [a["id"] for a in listed] == [application_id]
