"""Tests for the error responder, response headers and CLI.

Covers:
- Uniform {success: false, message} bodies for every failure kind
- Stack traces only while debugging
- Security and CORS headers on every response
- Malformed JSON bodies
- seed-admin CLI command
"""

from crm.blueprints import leads as leads_blueprint
from crm.models.company import Company
from crm.models.user import User


class TestErrorResponder:

    def test_health(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.get_json()["success"] is True

    def test_unknown_route_is_json(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        body = resp.get_json()
        assert body["success"] is False
        assert body["message"]

    def test_wrong_method_is_json(self, client):
        resp = client.patch("/api/leads")
        assert resp.status_code == 405
        assert resp.get_json()["success"] is False

    def test_unexpected_error_is_500_with_stack_in_debug(self, client, seed_data, monkeypatch):
        def explode(actor):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(leads_blueprint.reports, "lead_stats", explode)
        resp = client.get("/api/leads/stats", headers=seed_data["admin_headers"])
        assert resp.status_code == 500
        body = resp.get_json()
        assert body["success"] is False
        assert body["message"] == "Internal Server Error"
        assert "kaboom" in body["stack"]

    def test_no_stack_outside_debug(self, app, client, seed_data, monkeypatch):
        def explode(actor):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(leads_blueprint.reports, "lead_stats", explode)
        monkeypatch.setattr(app, "debug", False)
        resp = client.get("/api/leads/stats", headers=seed_data["admin_headers"])
        assert resp.status_code == 500
        assert resp.get_json() == {"success": False, "message": "Internal Server Error"}

    def test_non_object_body_rejected(self, client, seed_data):
        resp = client.post(
            "/api/leads", headers=seed_data["admin_headers"], json=["not", "an", "object"]
        )
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_malformed_json_rejected(self, client, seed_data):
        resp = client.post(
            "/api/leads",
            headers={**seed_data["admin_headers"], "Content-Type": "application/json"},
            data="{not json",
        )
        assert resp.status_code == 400


class TestHeaders:

    def test_security_headers(self, client):
        resp = client.get("/")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "default-src 'none'" in resp.headers["Content-Security-Policy"]

    def test_cors_headers_on_errors_too(self, app, client):
        origin = app.config["FRONTEND_URL"]
        resp = client.get("/api/leads", headers={"Origin": origin})
        assert resp.status_code == 401
        assert resp.headers["Access-Control-Allow-Origin"] == origin

    def test_cors_preflight_allows_bearer_header(self, app, client):
        resp = client.options(
            "/api/leads",
            headers={
                "Origin": app.config["FRONTEND_URL"],
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization",
            },
        )
        assert resp.status_code == 200
        assert "authorization" in resp.headers["Access-Control-Allow-Headers"].lower()

    def test_unknown_origin_gets_no_cors(self, client):
        resp = client.get("/", headers={"Origin": "https://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestSeedAdmin:

    def test_creates_admin_and_company(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(
            args=["seed-admin", "--email", "Boss@CRM.test", "--password", "s3cret-pw"]
        )
        assert result.exit_code == 0
        assert "Created admin user: boss@crm.test" in result.output

        user = User.query.filter_by(email="boss@crm.test").one()
        assert user.role == "admin"
        assert Company.query.count() == 1

    def test_promotes_existing_user(self, app, seed_data):
        result = app.test_cli_runner().invoke(args=["seed-admin", "--email", "erin@crm.test"])
        assert result.exit_code == 0
        assert "Promoted to admin." in result.output
        assert User.query.filter_by(email="erin@crm.test").one().role == "admin"
