from app.models import Role
from app.utils.tokens import issue_token, verify_token


class TestTokens:
    def test_round_trip(self, app):
        token = issue_token(42, Role.TRACTOR_OWNER)
        assert verify_token(token) == {"id": 42, "role": "tractor_owner"}

    def test_tampered_token_is_rejected(self, app):
        token = issue_token(42, Role.FARMER)
        assert verify_token(token[:-2] + ("A" if token[-1] != "A" else "B") + token[-1]) is None

    def test_expired_token_is_rejected(self, app):
        token = issue_token(42, Role.FARMER)
        app.config["TOKEN_MAX_AGE_SECONDS"] = -1
        assert verify_token(token) is None

    def test_token_signed_with_other_key_is_rejected(self, app):
        token = issue_token(42, Role.FARMER)
        app.config["SECRET_KEY"] = "rotated"
        assert verify_token(token) is None


class TestRequestLoader:
    def test_missing_header(self, client):
        resp = client.get("/api/offers")
        assert resp.status_code == 401
        assert resp.get_json() == {"message": "Authentication token required."}

    def test_invalid_token(self, client):
        resp = client.get("/api/offers", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid or expired token."

    def test_non_bearer_scheme_is_unauthenticated(self, client):
        resp = client.get("/api/offers", headers={"Authorization": "Basic dXNlcjpwdw=="})
        assert resp.status_code == 401

    def test_role_outside_capability_set(self, client, farmer, auth_header):
        resp = client.post("/api/offers", json={}, headers=auth_header(farmer))
        assert resp.status_code == 403

    def test_unknown_role_in_token(self, client, app):
        token = issue_token(5, "agronomist")
        resp = client.get("/api/offers", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert "agronomist" in resp.get_json()["message"]
