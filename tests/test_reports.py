"""Tests for the report endpoints.

Covers:
- Uniform {success, report: {dateRange, ...}} shape
- Leads / quotations / conversion / sales-performance / dashboard payloads
- Employee scoping of every report
- Date validation before any query runs
"""

from datetime import datetime, timezone

from crm.extensions import db

WHEN = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
RANGE = {"startDate": "2024-05-01", "endDate": "2024-05-31"}


def _report(client, name, headers, **params):
    return client.get(
        f"/api/reports/{name}", headers=headers, query_string={**RANGE, **params}
    )


def _seed_pipeline(seed_data, factory):
    """Two leads for emp1 (one quoted+accepted), one unassigned, one for emp2."""
    admin, emp1, emp2 = seed_data["admin"], seed_data["emp1"], seed_data["emp2"]
    won = factory.lead(admin, assigned_to=emp1, status="won", source="referral", created_at=WHEN)
    factory.lead(admin, assigned_to=emp1, status="new", created_at=WHEN)
    factory.lead(admin, status="new", created_at=WHEN)
    other = factory.lead(admin, assigned_to=emp2, status="contacted", created_at=WHEN)
    factory.quotation(won, emp1, "Q-1", status="accepted", total=1100, created_at=WHEN)
    factory.quotation(other, emp2, "Q-2", status="sent", total=550, created_at=WHEN)
    db.session.commit()


class TestLeadsReport:

    def test_shape_and_totals(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        resp = _report(client, "leads", seed_data["admin_headers"])
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True

        report = body["report"]
        assert report["dateRange"]["start"].startswith("2024-05-01")
        assert report["dateRange"]["end"].startswith("2024-05-31T23:59:59.999")
        assert report["totalLeads"] == 4
        assert report["leadsByStatus"] == {"won": 1, "new": 2, "contacted": 1}
        assert report["leadsBySource"] == {"referral": 1, "website": 3}
        assert report["leadsByMonth"] == [{"month": "May", "year": 2024, "count": 4}]

        by_assignee = {row["name"]: row for row in report["leadsByAssignee"]}
        assert by_assignee["Erin Employee"]["count"] == 2
        assert by_assignee["Ed Employee"]["count"] == 1
        assert by_assignee["Unassigned"] == {"id": None, "name": "Unassigned", "count": 1}

    def test_deleted_assignee_still_counted(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        resp = client.delete(
            f"/api/users/{seed_data['emp2'].id}", headers=seed_data["admin_headers"]
        )
        assert resp.status_code == 200

        report = _report(client, "leads", seed_data["admin_headers"]).get_json()["report"]
        groups = {row["name"]: row for row in report["leadsByAssignee"]}
        assert groups["Deleted user"] == {"id": None, "name": "Deleted user", "count": 1}
        assert "Ed Employee" not in groups
        assert sum(row["count"] for row in report["leadsByAssignee"]) == report["totalLeads"]

    def test_employee_scoped_to_assigned(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(client, "leads", seed_data["emp1_headers"]).get_json()["report"]
        assert report["totalLeads"] == 2
        assert [row["name"] for row in report["leadsByAssignee"]] == ["Erin Employee"]

    def test_out_of_range_records_excluded(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(
            client, "leads", seed_data["admin_headers"],
            startDate="2024-06-01", endDate="2024-06-30",
        ).get_json()["report"]
        assert report["totalLeads"] == 0
        assert report["leadsByStatus"] == {}
        assert report["leadsByMonth"] == [{"month": "Jun", "year": 2024, "count": 0}]


class TestQuotationsReport:

    def test_totals_and_groups(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(client, "quotations", seed_data["manager_headers"]).get_json()["report"]
        assert report["totalQuotations"] == 2
        assert report["totalAmount"] == 1650.0
        assert report["quotationsByStatus"] == {
            "accepted": {"count": 1, "totalAmount": 1100.0},
            "sent": {"count": 1, "totalAmount": 550.0},
        }
        assert report["quotationsByMonth"] == [
            {"month": "May", "year": 2024, "count": 2, "totalAmount": 1650.0},
        ]
        creators = {row["name"]: row["totalAmount"] for row in report["quotationsByCreator"]}
        assert creators == {"Erin Employee": 1100.0, "Ed Employee": 550.0}

    def test_deleted_creator_still_counted(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        client.delete(f"/api/users/{seed_data['emp2'].id}", headers=seed_data["admin_headers"])

        report = _report(client, "quotations", seed_data["admin_headers"]).get_json()["report"]
        creators = {row["name"]: row for row in report["quotationsByCreator"]}
        assert creators["Deleted user"] == {
            "id": None, "name": "Deleted user", "count": 1, "totalAmount": 550.0,
        }

    def test_employee_sees_own_quotations_only(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(client, "quotations", seed_data["emp2_headers"]).get_json()["report"]
        assert report["totalQuotations"] == 1
        assert report["totalAmount"] == 550.0


class TestConversionReport:

    def test_rates(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(client, "conversion", seed_data["admin_headers"]).get_json()["report"]
        assert report["totalLeads"] == 4
        assert report["leadsWithQuotations"] == 2
        assert report["leadsWithAcceptedQuotations"] == 1
        assert report["conversionRates"] == {
            "leadToQuotation": 50.0,
            "quotationToSale": 50.0,
            "overall": 25.0,
        }
        [may] = report["monthlyData"]
        assert may["month"] == "May"
        assert may["overallConversionRate"] == 25.0

    def test_no_data_gives_zero_rates(self, client, seed_data):
        report = _report(client, "conversion", seed_data["admin_headers"]).get_json()["report"]
        assert report["conversionRates"] == {
            "leadToQuotation": 0,
            "quotationToSale": 0,
            "overall": 0,
        }


class TestSalesPerformance:

    def test_staff_see_all_reps(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(
            client, "sales-performance", seed_data["admin_headers"]
        ).get_json()["report"]
        names = [row["salesRep"]["name"] for row in report["performanceData"]]
        assert sorted(names) == ["Ed Employee", "Erin Employee", "Mark Manager"]

        erin = next(r for r in report["performanceData"] if r["salesRep"]["name"] == "Erin Employee")
        assert erin["leadsAssigned"] == 2
        assert erin["salesClosed"] == 1
        assert erin["revenue"] == 1100.0
        assert erin["conversionRate"] == 50.0
        assert erin["performance"] == "Excellent"
        assert erin["target"] == 50000

    def test_employee_sees_only_self(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(
            client, "sales-performance", seed_data["emp2_headers"]
        ).get_json()["report"]
        assert [row["salesRep"]["name"] for row in report["performanceData"]] == ["Ed Employee"]


class TestDashboardStats:

    def test_headline_numbers(self, client, seed_data, factory):
        _seed_pipeline(seed_data, factory)
        report = _report(
            client, "dashboard-stats", seed_data["admin_headers"],
            startDate="2024-05-01", endDate="2024-05-12",
        ).get_json()["report"]
        assert report["totalLeads"] == 4
        assert report["newLeads"] == 4
        assert report["totalQuotations"] == 2
        assert report["acceptedQuotations"] == 1
        assert report["conversionRate"] == 25.0


class TestValidation:

    def test_bad_date_rejected(self, client, seed_data):
        resp = _report(client, "leads", seed_data["admin_headers"], startDate="31/31/2024")
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": "Invalid date format"}

    def test_reversed_range_rejected(self, client, seed_data):
        resp = _report(
            client, "quotations", seed_data["admin_headers"],
            startDate="2024-06-01", endDate="2024-05-01",
        )
        assert resp.status_code == 400
        assert "before end date" in resp.get_json()["message"]

    def test_unknown_report(self, client, seed_data):
        resp = client.get("/api/reports/bogus", headers=seed_data["admin_headers"])
        assert resp.status_code == 404

    def test_requires_auth(self, client):
        assert client.get("/api/reports/leads").status_code == 401
