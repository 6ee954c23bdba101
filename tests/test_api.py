"""HTTP surface: status codes and response shapes end to end."""

from datetime import date, timedelta
from decimal import Decimal

import pytest


@pytest.fixture
def posted_request(client, farmer, auth_header, request_payload):
    resp = client.post("/api/service-requests", json=request_payload(), headers=auth_header(farmer))
    assert resp.status_code == 201
    return resp.get_json()["request_id"]


def _post_offer(client, headers, request_id, price=4500, cost=4000):
    return client.post(
        "/api/offers",
        json={"request_id": request_id, "offered_price": price, "estimated_cost": cost},
        headers=headers,
    )


class TestServiceRequestEndpoints:
    def test_create_returns_id_and_status(self, client, farmer, auth_header, request_payload):
        resp = client.post("/api/service-requests", json=request_payload(), headers=auth_header(farmer))
        body = resp.get_json()
        assert resp.status_code == 201
        assert body["status"] == "pending"
        assert isinstance(body["request_id"], int)
        assert body["message"]

    def test_validation_errors_listed(self, client, farmer, auth_header, request_payload):
        past = (date.today() - timedelta(days=1)).isoformat()
        resp = client.post(
            "/api/service-requests",
            json=request_payload(required_date=past, budget=-10),
            headers=auth_header(farmer),
        )
        body = resp.get_json()
        assert resp.status_code == 400
        assert set(body["errors"]) == {"required_date", "budget"}

    def test_body_must_be_json_object(self, client, farmer, auth_header):
        resp = client.post(
            "/api/service-requests", data="service_type=ploughing", headers=auth_header(farmer)
        )
        assert resp.status_code == 400

    def test_providers_list_open_requests(self, client, provider, auth_header, posted_request):
        resp = client.get("/api/service-requests", headers=auth_header(provider))
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["count"] == 1
        assert body["requests"][0]["id"] == posted_request

    def test_farmers_cannot_list_open_requests(self, client, farmer, auth_header):
        assert client.get("/api/service-requests", headers=auth_header(farmer)).status_code == 403

    def test_my_requests_nest_offers(self, client, farmer, provider, auth_header, posted_request):
        _post_offer(client, auth_header(provider), posted_request)

        resp = client.get("/api/service-requests/my-requests", headers=auth_header(farmer))
        body = resp.get_json()
        assert body["count"] == 1
        offers = body["requests"][0]["offers"]
        assert len(offers) == 1
        assert Decimal(offers[0]["offered_price"]) == Decimal("4500")


class TestOfferEndpoints:
    def test_create_offer(self, client, provider, auth_header, posted_request):
        resp = _post_offer(client, auth_header(provider), posted_request)
        body = resp.get_json()
        assert resp.status_code == 201
        assert body["status"] == "pending"
        assert isinstance(body["offer_id"], int)

    def test_duplicate_pending_offer_is_409(self, client, provider, auth_header, posted_request):
        _post_offer(client, auth_header(provider), posted_request)
        resp = _post_offer(client, auth_header(provider), posted_request, price=4400)
        assert resp.status_code == 409

    def test_missing_fields_is_400(self, client, provider, auth_header, posted_request):
        resp = client.post("/api/offers", json={"request_id": posted_request}, headers=auth_header(provider))
        assert resp.status_code == 400
        assert set(resp.get_json()["errors"]) == {"offered_price", "estimated_cost"}

    def test_unknown_request_is_404(self, client, provider, auth_header):
        assert _post_offer(client, auth_header(provider), 999).status_code == 404

    def test_get_offer_authorization(
        self, client, farmer, provider, tractor_owner, admin, auth_header, posted_request
    ):
        offer_id = _post_offer(client, auth_header(provider), posted_request).get_json()["offer_id"]

        for who in (farmer, provider, admin):
            resp = client.get(f"/api/offers/{offer_id}", headers=auth_header(who))
            assert resp.status_code == 200
            assert resp.get_json()["offer"]["farmer_username"] == "farmer_f"

        assert client.get(f"/api/offers/{offer_id}", headers=auth_header(tractor_owner)).status_code == 403
        assert client.get("/api/offers/9999", headers=auth_header(admin)).status_code == 404

    def test_full_cycle(self, client, farmer, provider, tractor_owner, auth_header, posted_request):
        p1 = _post_offer(client, auth_header(provider), posted_request).get_json()["offer_id"]
        p2 = _post_offer(client, auth_header(tractor_owner), posted_request, price=4800).get_json()["offer_id"]

        resp = client.put(f"/api/offers/{p1}/accept", headers=auth_header(farmer))
        assert resp.status_code == 200

        resp = client.put(f"/api/offers/{p2}/accept", headers=auth_header(farmer))
        assert resp.status_code == 400

        # Only the assigned provider may complete.
        resp = client.put(f"/api/service-requests/{posted_request}/complete", headers=auth_header(tractor_owner))
        assert resp.status_code == 403

        resp = client.put(f"/api/service-requests/{posted_request}/complete", headers=auth_header(provider))
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "completed"

        offers = client.get("/api/offers", headers=auth_header(farmer)).get_json()["offers"]
        assert {o["id"]: o["status"] for o in offers} == {p1: "completed", p2: "rejected"}

    def test_reject_messages_follow_branch(self, client, farmer, provider, tractor_owner, auth_header, posted_request):
        p1 = _post_offer(client, auth_header(provider), posted_request).get_json()["offer_id"]
        p2 = _post_offer(client, auth_header(tractor_owner), posted_request).get_json()["offer_id"]

        resp = client.put(f"/api/offers/{p2}/reject", headers=auth_header(farmer))
        assert resp.get_json()["request_reverted"] is False

        client.put(f"/api/offers/{p1}/accept", headers=auth_header(farmer))
        resp = client.put(f"/api/offers/{p1}/reject", headers=auth_header(farmer))
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["request_reverted"] is True
        assert "reverted to pending" in body["message"]

    def test_accept_by_provider_is_403(self, client, provider, auth_header, posted_request):
        offer_id = _post_offer(client, auth_header(provider), posted_request).get_json()["offer_id"]
        assert client.put(f"/api/offers/{offer_id}/accept", headers=auth_header(provider)).status_code == 403


class TestMiscEndpoints:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["database"] == "ok"

    def test_notifications_for_caller(self, client, farmer, provider, auth_header, posted_request):
        _post_offer(client, auth_header(provider), posted_request)

        body = client.get("/api/notifications", headers=auth_header(farmer)).get_json()
        assert body["count"] == 1
        assert body["notifications"][0]["type"] == "new_offer"

    def test_unknown_route_is_json(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert "message" in resp.get_json()
