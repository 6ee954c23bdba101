"""Projection layer: role-filtered views over requests and offers."""

import pytest
from sqlalchemy import inspect

from app.errors import ForbiddenError, NotFoundError
from app.models import Offer, Role, ServiceRequest
from app.utils.auth import Identity


def _offer(engine, actor, request_id, price):
    return engine.create_offer(
        actor, {"request_id": request_id, "offered_price": price, "estimated_cost": "100"}
    )


@pytest.fixture
def market(engine, farmer, provider, tractor_owner, request_payload):
    """Two requests by one farmer; the first has two offers and is accepted."""
    first = engine.create_request(farmer, request_payload(service_type="ploughing"))
    second = engine.create_request(farmer, request_payload(service_type="spraying"))
    o1 = _offer(engine, provider, first.id, "4500")
    o2 = _offer(engine, tractor_owner, first.id, "4800")
    o3 = _offer(engine, provider, second.id, "900")
    engine.accept_offer(farmer, o1.id)
    return {"first": first, "second": second, "o1": o1, "o2": o2, "o3": o3}


class TestOpenRequests:
    def test_only_pending_requests(self, queries, market):
        rows = queries.open_requests()
        assert [r["id"] for r in rows] == [market["second"].id]
        assert rows[0]["status"] == "pending"


class TestFarmerRequests:
    def test_newest_first_with_nested_offers(self, queries, farmer, market):
        rows = queries.farmer_requests(farmer.user_id)

        assert [r["id"] for r in rows] == [market["second"].id, market["first"].id]
        first = rows[1]
        assert [o["id"] for o in first["offers"]] == [market["o2"].id, market["o1"].id]
        assert {o["status"] for o in first["offers"]} == {"accepted", "rejected"}
        assert first["accepted_offer_id"] == market["o1"].id

    def test_other_farmers_see_nothing(self, queries, make_user, market):
        assert queries.farmer_requests(make_user(Role.FARMER).user_id) == []


class TestOfferListing:
    def test_admin_sees_all(self, queries, admin, market):
        assert len(queries.offers_for(admin)) == 3

    def test_provider_sees_own(self, queries, provider, market):
        rows = queries.offers_for(provider)
        assert [r["id"] for r in rows] == [market["o3"].id, market["o1"].id]
        assert all(r["service_provider_username"] == "provider_p1" for r in rows)

    def test_farmer_sees_offers_on_own_requests(self, queries, farmer, market):
        rows = queries.offers_for(farmer)
        assert len(rows) == 3
        assert all(r["farmer_username"] == "farmer_f" for r in rows)
        assert {r["request_status"] for r in rows} == {"in_progress", "pending"}

    def test_unknown_role_is_forbidden(self, queries, market):
        with pytest.raises(ForbiddenError):
            queries.offers_for(Identity(user_id=1, role=None, role_name="agronomist"))


class TestSingleOffer:
    def test_owner_and_author_and_admin_may_view(self, queries, farmer, provider, admin, market):
        for who in (farmer, provider, admin):
            row = queries.offer_for(who, market["o1"].id)
            assert row["id"] == market["o1"].id
            assert row["service_type"] == "ploughing"

    def test_unrelated_provider_is_forbidden(self, queries, tractor_owner, market):
        with pytest.raises(ForbiddenError):
            queries.offer_for(tractor_owner, market["o1"].id)

    def test_missing_offer(self, queries, admin, market):
        with pytest.raises(NotFoundError):
            queries.offer_for(admin, 9999)


class TestMapping:
    def test_loads_do_not_eager_join_users(self):
        # Display names come from the aliased user joins in the projections.
        assert set(inspect(ServiceRequest).relationships.keys()) == {"offers"}
        assert set(inspect(Offer).relationships.keys()) == {"request"}
        assert inspect(Offer).relationships["request"].lazy == "select"
