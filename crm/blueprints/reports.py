"""Reports blueprint - /api/reports/*

Every report takes optional `startDate` / `endDate` (ISO dates) and is
scoped to what the caller may see. Bad dates are rejected before any
query runs.

Route Map:
  GET /api/reports/leads              - Lead funnel report
  GET /api/reports/quotations         - Quotation volume and revenue
  GET /api/reports/conversion         - Lead -> quotation -> sale rates
  GET /api/reports/sales-performance  - Per-rep rollup
  GET /api/reports/dashboard-stats    - Headline numbers
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user

from crm.decorators import role_required
from crm.services import reports
from crm.services.aggregation import resolve_date_range

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

REPORTS = {
    "leads": reports.leads_report,
    "quotations": reports.quotations_report,
    "conversion": reports.conversion_report,
    "sales-performance": reports.sales_performance_report,
    "dashboard-stats": reports.dashboard_stats,
}


@reports_bp.route("/<name>")
@role_required("report:read")
def report(name):
    build = REPORTS.get(name)
    if build is None:
        return jsonify({"success": False, "message": "Report not found"}), 404

    date_range = resolve_date_range(
        request.args.get("startDate"), request.args.get("endDate")
    )
    return jsonify({"success": True, "report": build(date_range, current_user)})
