"""Report assembler - packages aggregation results into named reports.

Each report function takes the resolved DateRange and the acting user and
returns the `report` payload. No business rules live here beyond choosing
which aggregates to run and how to name them; the visibility restriction
comes from the access policy.

The sub-queries of one report are independent of each other and run one
after another; the payload is built only once all of them have returned.
"""

from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from crm import policy
from crm.extensions import db
from crm.models.lead import Lead
from crm.models.quotation import Quotation
from crm.models.user import User
from crm.services import aggregation as agg

NEW_LEADS_WINDOW = timedelta(days=7)
DELETED_USER = "Deleted user"


def _lead_scope(actor):
    criterion = policy.visibility_filter(actor.role, actor.id, Lead, "lead")
    return [] if criterion is None else [criterion]


def _quotation_scope(actor):
    criterion = policy.visibility_filter(actor.role, actor.id, Quotation, "quotation")
    return [] if criterion is None else [criterion]


def _named_groups(owner_column, criteria, sum_column=None):
    """Grouped counts per user id, joined to the user's name.

    Records whose user has been deleted are kept and folded into a single
    DELETED_USER group, so the groups still add up to the total.
    """
    columns = [owner_column, User.name, func.count()]
    if sum_column is not None:
        columns.append(func.coalesce(func.sum(sum_column), 0))
    rows = (
        db.session.query(*columns)
        .select_from(owner_column.class_)
        .outerjoin(User, User.id == owner_column)
        .filter(*criteria, owner_column.isnot(None))
        .group_by(owner_column, User.name)
        .order_by(User.name)
        .all()
    )
    groups = []
    orphaned = {"id": None, "name": DELETED_USER, "count": 0}
    if sum_column is not None:
        orphaned["totalAmount"] = 0.0
    for row in rows:
        if row[1] is None:
            group = orphaned
        else:
            group = {"id": row[0], "name": row[1], "count": 0}
            if sum_column is not None:
                group["totalAmount"] = 0.0
            groups.append(group)
        group["count"] += row[2]
        if sum_column is not None:
            group["totalAmount"] += float(row[3] or 0)
    if orphaned["count"]:
        groups.append(orphaned)
    return groups


def leads_report(date_range, actor):
    scope = _lead_scope(actor)
    criteria = [*scope, *date_range.criteria(Lead.created_at)]

    by_assignee = _named_groups(Lead.assigned_to_id, criteria)
    unassigned = agg.count(Lead, [*criteria, Lead.assigned_to_id.is_(None)])
    if unassigned > 0:
        by_assignee.append({"id": None, "name": "Unassigned", "count": unassigned})

    return {
        "dateRange": date_range.to_dict(),
        "totalLeads": agg.count(Lead, criteria),
        "leadsByStatus": agg.group_count(Lead.status, criteria),
        "leadsBySource": agg.group_count(Lead.source, criteria),
        "leadsByMonth": agg.monthly_series(Lead, scope, date_range),
        "leadsByAssignee": by_assignee,
    }


def quotations_report(date_range, actor):
    scope = _quotation_scope(actor)
    criteria = [*scope, *date_range.criteria(Quotation.created_at)]

    return {
        "dateRange": date_range.to_dict(),
        "totalQuotations": agg.count(Quotation, criteria),
        "totalAmount": agg.total_sum(Quotation.total, criteria),
        "quotationsByStatus": agg.group_sum(Quotation.status, Quotation.total, criteria),
        "quotationsByMonth": agg.monthly_series(
            Quotation, scope, date_range, sum_column=Quotation.total
        ),
        "quotationsByCreator": _named_groups(
            Quotation.created_by_id, criteria, sum_column=Quotation.total
        ),
    }


def conversion_report(date_range, actor):
    lead_scope = _lead_scope(actor)
    quotation_scope = _quotation_scope(actor)

    total_leads, with_quotations, with_accepted = agg.conversion_funnel(
        lead_scope, quotation_scope, date_range
    )

    monthly = []
    for year, month in agg.month_buckets(date_range.start, date_range.end):
        m_leads, m_quoted, m_accepted = agg.conversion_funnel(
            lead_scope,
            quotation_scope,
            agg.month_window(year, month, date_range.start.tzinfo),
        )
        rates = agg.conversion_rates(m_leads, m_quoted, m_accepted)
        monthly.append({
            "month": agg.MONTH_NAMES[month - 1],
            "year": year,
            "leadToQuotationRate": rates["leadToQuotation"],
            "quotationToSaleRate": rates["quotationToSale"],
            "overallConversionRate": rates["overall"],
        })

    return {
        "dateRange": date_range.to_dict(),
        "totalLeads": total_leads,
        "leadsWithQuotations": with_quotations,
        "leadsWithAcceptedQuotations": with_accepted,
        "conversionRates": agg.conversion_rates(total_leads, with_quotations, with_accepted),
        "monthlyData": monthly,
    }


def sales_reps_for(actor):
    """Employees see only themselves; everyone else sees employees + managers."""
    if policy.is_restricted(actor.role, "lead"):
        return [actor]
    return (
        User.query
        .filter(User.role.in_([policy.EMPLOYEE, policy.MANAGER]))
        .order_by(User.name)
        .all()
    )


def sales_performance_report(date_range, actor):
    return {
        "dateRange": date_range.to_dict(),
        "performanceData": agg.rep_performance(
            sales_reps_for(actor),
            date_range,
            target=current_app.config["SALES_TARGET"],
        ),
    }


def dashboard_stats(date_range, actor):
    lead_criteria = [*_lead_scope(actor), *date_range.criteria(Lead.created_at)]
    quotation_criteria = [
        *_quotation_scope(actor),
        *date_range.criteria(Quotation.created_at),
    ]

    total_leads = agg.count(Lead, lead_criteria)
    accepted = agg.count(Quotation, [*quotation_criteria, Quotation.status == "accepted"])
    new_since = agg.to_utc(max(date_range.start, date_range.end - NEW_LEADS_WINDOW))

    return {
        "dateRange": date_range.to_dict(),
        "totalLeads": total_leads,
        "newLeads": agg.count(Lead, [*lead_criteria, Lead.created_at >= new_since]),
        "totalQuotations": agg.count(Quotation, quotation_criteria),
        "acceptedQuotations": accepted,
        "conversionRate": agg.percentage(accepted, total_leads),
    }


def lead_stats(actor, now=None):
    """Trailing 12-month lead stats for the leads list header."""
    window = agg.trailing_months_range(12, now=now)
    scope = _lead_scope(actor)
    return {
        "statusCounts": agg.group_count(Lead.status, scope),
        "sourceCounts": agg.group_count(Lead.source, scope),
        "monthlyData": agg.monthly_series(Lead, scope, window),
    }


def quotation_stats(actor, now=None):
    """Trailing 12-month quotation stats for the quotations list header."""
    window = agg.trailing_months_range(12, now=now)
    scope = _quotation_scope(actor)
    return {
        "statusCounts": agg.group_sum(Quotation.status, Quotation.total, scope),
        "monthlyData": agg.monthly_series(
            Quotation, scope, window, sum_column=Quotation.total
        ),
    }
