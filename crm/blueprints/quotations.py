"""Quotations blueprint - /api/quotations/*

Employees only ever see and touch quotations they created, and only quote
leads assigned to them. PDF rendering, storage and lead cascades run after
the quotation is committed; their failures come back as `warnings` and
never fail the request.

Route Map:
  GET    /api/quotations              - Search/filter/sort/paginate
  POST   /api/quotations              - Create (+ PDF, lead -> proposal)
  GET    /api/quotations/stats        - Status totals + 12-month series
  GET    /api/quotations/<id>         - One quotation
  PUT    /api/quotations/<id>         - Update (+ PDF, lead won/lost cascade)
  DELETE /api/quotations/<id>         - Delete (admin/manager)
  POST   /api/quotations/<id>/send    - Mark sent + email the client
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from crm import policy
from crm.decorators import role_required
from crm.extensions import db
from crm.services import query_builder, quotation_service, reports
from crm.services.inputs import json_body
from crm.services.side_effects import best_effort

quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


def _load(quotation_id, operation):
    quotation = quotation_service.get_quotation_or_404(quotation_id)
    policy.authorize(
        current_user.role, current_user.id, operation, owner_id=quotation.created_by_id
    )
    return quotation


def _respond(body, warnings, status=200):
    warnings = [w for w in warnings if w]
    if warnings:
        body["warnings"] = warnings
    return jsonify(body), status


@quotations_bp.route("")
@login_required
def list_quotations():
    params = query_builder.parse_list_params(request.args)
    query = query_builder.build_quotation_query(params, current_user)
    page = query_builder.paginate(query, params.page, params.limit)
    return jsonify(query_builder.list_response(
        page, "quotations", [q.to_dict() for q in page.items]
    ))


@quotations_bp.route("", methods=["POST"])
@login_required
def create_quotation():
    quotation = quotation_service.create_quotation(json_body(), current_user)
    db.session.commit()

    warnings = [
        best_effort("PDF generation", quotation_service.attach_pdf, quotation),
        best_effort(
            "Lead status update",
            quotation_service.advance_lead_to_proposal,
            quotation.lead_id,
            current_user.id,
        ),
    ]
    return _respond({"success": True, "quotation": quotation.to_dict()}, warnings, 201)


@quotations_bp.route("/stats")
@login_required
def quotation_stats():
    return jsonify({"success": True, "stats": reports.quotation_stats(current_user)})


@quotations_bp.route("/<quotation_id>")
@login_required
def get_quotation(quotation_id):
    quotation = _load(quotation_id, "quotation:read")
    return jsonify({"success": True, "quotation": quotation.to_dict()})


@quotations_bp.route("/<quotation_id>", methods=["PUT"])
@login_required
def update_quotation(quotation_id):
    quotation = _load(quotation_id, "quotation:update")
    data = json_body()
    old_status = quotation_service.update_quotation(quotation, data)
    db.session.commit()

    warnings = [
        best_effort(
            "Lead status update",
            quotation_service.cascade_status_to_lead,
            quotation,
            old_status,
            current_user.id,
        ),
    ]
    if quotation_service.content_changed(data):
        warnings.append(
            best_effort("PDF generation", quotation_service.attach_pdf, quotation)
        )
    return _respond({"success": True, "quotation": quotation.to_dict()}, warnings)


@quotations_bp.route("/<quotation_id>", methods=["DELETE"])
@role_required("quotation:delete")
def delete_quotation(quotation_id):
    quotation = quotation_service.get_quotation_or_404(quotation_id)
    pdf_path = quotation.pdf_storage_path if quotation.pdf_url else None
    quotation_service.delete_quotation(quotation)
    db.session.commit()

    warnings = []
    if pdf_path:
        warnings.append(best_effort("PDF removal", quotation_service.remove_pdf, pdf_path))
    return _respond(
        {"success": True, "message": "Quotation deleted successfully"}, warnings
    )


@quotations_bp.route("/<quotation_id>/send", methods=["POST"])
@login_required
def send_quotation(quotation_id):
    quotation = _load(quotation_id, "quotation:send")
    quotation_service.mark_sent(quotation)
    db.session.commit()

    warnings = [
        best_effort(
            "Quotation email",
            quotation_service.send_quotation_email,
            quotation,
            current_user,
        ),
    ]
    return _respond({
        "success": True,
        "message": "Quotation sent successfully",
        "quotation": quotation.to_dict(),
    }, warnings)
