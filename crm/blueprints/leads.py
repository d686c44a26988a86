"""Leads blueprint - /api/leads/*

Employees only ever see and touch leads assigned to them.

Route Map:
  GET    /api/leads                   - Search/filter/sort/paginate
  POST   /api/leads                   - Create
  GET    /api/leads/stats             - Status/source counts + 12-month series
  GET    /api/leads/<id>              - One lead with activities
  PUT    /api/leads/<id>              - Update (status change is logged)
  DELETE /api/leads/<id>              - Delete (admin/manager)
  POST   /api/leads/<id>/activities   - Append an activity
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from crm import policy
from crm.decorators import role_required
from crm.extensions import db
from crm.services import lead_service, query_builder, reports
from crm.services.inputs import json_body

leads_bp = Blueprint("leads", __name__, url_prefix="/api/leads")


def _load(lead_id, operation):
    lead = lead_service.get_lead_or_404(lead_id)
    policy.authorize(
        current_user.role, current_user.id, operation, owner_id=lead.assigned_to_id
    )
    return lead


@leads_bp.route("")
@login_required
def list_leads():
    params = query_builder.parse_list_params(request.args)
    query = query_builder.build_lead_query(params, current_user)
    page = query_builder.paginate(query, params.page, params.limit)
    return jsonify(query_builder.list_response(
        page, "leads", [lead.to_dict() for lead in page.items]
    ))


@leads_bp.route("", methods=["POST"])
@role_required("lead:create")
def create_lead():
    lead = lead_service.create_lead(json_body(), current_user)
    db.session.commit()
    return jsonify({"success": True, "lead": lead.to_dict(include_activities=True)}), 201


@leads_bp.route("/stats")
@login_required
def lead_stats():
    return jsonify({"success": True, "stats": reports.lead_stats(current_user)})


@leads_bp.route("/<lead_id>")
@login_required
def get_lead(lead_id):
    lead = _load(lead_id, "lead:read")
    return jsonify({"success": True, "lead": lead.to_dict(include_activities=True)})


@leads_bp.route("/<lead_id>", methods=["PUT"])
@login_required
def update_lead(lead_id):
    lead = _load(lead_id, "lead:update")
    lead_service.update_lead(lead, json_body(), current_user)
    db.session.commit()
    return jsonify({"success": True, "lead": lead.to_dict(include_activities=True)})


@leads_bp.route("/<lead_id>", methods=["DELETE"])
@role_required("lead:delete")
def delete_lead(lead_id):
    lead = lead_service.get_lead_or_404(lead_id)
    lead_service.delete_lead(lead)
    db.session.commit()
    return jsonify({"success": True, "message": "Lead deleted successfully"})


@leads_bp.route("/<lead_id>/activities", methods=["POST"])
@login_required
def add_activity(lead_id):
    lead = _load(lead_id, "lead:add_activity")
    lead_service.add_activity(lead, json_body(), current_user)
    db.session.commit()
    return jsonify({"success": True, "lead": lead.to_dict(include_activities=True)})
