"""Query builder - list criteria from request args.

Turns search / filter / sort / page parameters into a Flask-SQLAlchemy
query and ANDs in the access policy's ownership restriction, which request
parameters can never widen.

Sentinels:
    "all"         - no filter on that field
    "unassigned"  - assignedTo IS NULL (leads only)

Sort is single-field; ties fall back to storage order, which is not
guaranteed stable.
"""

import math
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import or_

from crm import policy
from crm.errors import ValidationError
from crm.models.lead import Lead
from crm.models.quotation import Quotation

ALL = "all"
UNASSIGNED = "unassigned"

LEAD_SEARCH_COLUMNS = (Lead.name, Lead.email, Lead.company)
QUOTATION_SEARCH_COLUMNS = (
    Quotation.quotation_number,
    Quotation.client_name,
    Quotation.client_company,
)

LEAD_SORT_COLUMNS = {
    "createdAt": Lead.created_at,
    "updatedAt": Lead.updated_at,
    "name": Lead.name,
    "email": Lead.email,
    "company": Lead.company,
    "status": Lead.status,
    "source": Lead.source,
}
QUOTATION_SORT_COLUMNS = {
    "createdAt": Quotation.created_at,
    "updatedAt": Quotation.updated_at,
    "quotationNumber": Quotation.quotation_number,
    "date": Quotation.date,
    "validUntil": Quotation.valid_until,
    "total": Quotation.total,
    "status": Quotation.status,
}


@dataclass
class ListParams:
    search: str = None
    status: str = None
    source: str = None
    assigned_to: str = None
    lead: str = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    page: int = 1
    limit: int = 10


@dataclass
class Page:
    items: list
    total: int
    total_pages: int
    page: int


def _positive_int(raw, name, default):
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be a positive integer") from None
    if value < 1:
        raise ValidationError(f"'{name}' must be a positive integer")
    return value


def parse_list_params(args):
    """Build ListParams from request.args, rejecting malformed values."""
    limit = _positive_int(
        args.get("limit"), "limit", current_app.config["DEFAULT_PAGE_SIZE"]
    )
    max_limit = current_app.config["MAX_PAGE_SIZE"]
    if limit > max_limit:
        raise ValidationError(f"'limit' cannot exceed {max_limit}")

    sort_order = (args.get("sortOrder") or "desc").lower()
    if sort_order not in ("asc", "desc"):
        raise ValidationError("'sortOrder' must be 'asc' or 'desc'")

    search = (args.get("search") or "").strip()

    return ListParams(
        search=search or None,
        status=args.get("status") or None,
        source=args.get("source") or None,
        assigned_to=args.get("assignedTo") or None,
        lead=args.get("lead") or None,
        sort_by=args.get("sortBy") or "createdAt",
        sort_order=sort_order,
        page=_positive_int(args.get("page"), "page", 1),
        limit=limit,
    )


def _escape_like(term):
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_criterion(columns, term):
    """Case-insensitive substring match OR-ed across `columns`."""
    pattern = f"%{_escape_like(term)}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))


def _enum_filter(column, value, allowed, label):
    if value is None or value == ALL:
        return None
    if value not in allowed:
        raise ValidationError(
            f"Invalid {label} '{value}'. Must be one of: {', '.join(allowed)}"
        )
    return column == value


def _order(query, columns, params):
    column = columns.get(params.sort_by)
    if column is None:
        raise ValidationError(
            f"Cannot sort by '{params.sort_by}'. "
            f"Allowed: {', '.join(columns)}"
        )
    return query.order_by(column.asc() if params.sort_order == "asc" else column.desc())


def build_lead_query(params, actor):
    """Lead query for `params`, restricted to what `actor` may see."""
    criteria = []

    if params.search:
        criteria.append(search_criterion(LEAD_SEARCH_COLUMNS, params.search))

    for criterion in (
        _enum_filter(Lead.status, params.status, Lead.STATUSES, "status"),
        _enum_filter(Lead.source, params.source, Lead.SOURCES, "source"),
    ):
        if criterion is not None:
            criteria.append(criterion)

    if params.assigned_to and params.assigned_to != ALL:
        if params.assigned_to == UNASSIGNED:
            criteria.append(Lead.assigned_to_id.is_(None))
        else:
            criteria.append(Lead.assigned_to_id == params.assigned_to)

    visibility = policy.visibility_filter(actor.role, actor.id, Lead, "lead")
    if visibility is not None:
        criteria.append(visibility)

    return _order(Lead.query.filter(*criteria), LEAD_SORT_COLUMNS, params)


def build_quotation_query(params, actor):
    """Quotation query for `params`, restricted to what `actor` may see."""
    criteria = []

    if params.search:
        criteria.append(search_criterion(QUOTATION_SEARCH_COLUMNS, params.search))

    status = _enum_filter(Quotation.status, params.status, Quotation.STATUSES, "status")
    if status is not None:
        criteria.append(status)

    if params.lead and params.lead != ALL:
        criteria.append(Quotation.lead_id == params.lead)

    visibility = policy.visibility_filter(actor.role, actor.id, Quotation, "quotation")
    if visibility is not None:
        criteria.append(visibility)

    return _order(Quotation.query.filter(*criteria), QUOTATION_SORT_COLUMNS, params)


def paginate(query, page, limit):
    """Run `query` for one page: skip (page-1)*limit, take limit."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(
        items=items,
        total=total,
        total_pages=math.ceil(total / limit),
        page=page,
    )


def list_response(page, key, items):
    """Uniform list payload: {success, count, total, totalPages, currentPage, <key>}."""
    return {
        "success": True,
        "count": len(items),
        "total": page.total,
        "totalPages": page.total_pages,
        "currentPage": page.page,
        key: items,
    }
