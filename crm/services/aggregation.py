"""Aggregation engine - grouped counts, sums and dense monthly series.

All aggregates run server-side (GROUP BY in the database); Python only
merges the sparse grouped rows into fixed shapes:

  - group_count / group_sum      value -> count  /  value -> {count, totalAmount}
  - monthly_series               one bucket per calendar month in range,
                                 zero-filled, chronological
  - distinct_values              set of distinct column values
  - conversion_rates             percentages, 0 when the denominator is 0
  - rep_performance              per-rep rollup with a performance tier

Callers pass `criteria`: a list of SQLAlchemy boolean expressions that are
AND-ed together (date window + the access policy's visibility filter).
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

from dateutil import parser as dtparse
from dateutil.relativedelta import relativedelta
from sqlalchemy import extract, func

from crm.errors import ValidationError
from crm.extensions import db
from crm.models.lead import Lead
from crm.models.quotation import Quotation

MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

END_OF_DAY = time(23, 59, 59, 999000)

# (lower bound inclusive, label), checked top-down
PERFORMANCE_TIERS = (
    (30, "Excellent"),
    (20, "Good"),
    (10, "Average"),
)
DEFAULT_TIER = "Needs Improvement"


@dataclass(frozen=True)
class DateRange:
    """Inclusive report window.

    start and end keep the UTC offset the window was requested in, so
    calendar months are those of the caller. Database criteria always
    compare in UTC.
    """

    start: datetime
    end: datetime

    @property
    def utc_offset(self):
        return self.end.utcoffset() or timedelta(0)

    def to_dict(self):
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    def criteria(self, column):
        return [column >= to_utc(self.start), column <= to_utc(self.end)]


# ─── Date range ──────────────────────────────────────────────

def to_utc(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _in_zone(value, tz):
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _parse_date(raw):
    """Parse an ISO date, keeping any UTC offset it carries."""
    try:
        return dtparse.isoparse(raw.strip())
    except (ValueError, OverflowError, AttributeError):
        raise ValidationError("Invalid date format") from None


def end_of_day(value):
    return value.replace(
        hour=END_OF_DAY.hour,
        minute=END_OF_DAY.minute,
        second=END_OF_DAY.second,
        microsecond=END_OF_DAY.microsecond,
    )


def resolve_date_range(start_raw=None, end_raw=None, now=None):
    """Resolve the [start, end] window of a report.

    Missing start defaults to one calendar month before now, missing end
    to now. The window takes the UTC offset of whichever bound carries one
    (end first), else UTC; a bound given without an offset is read in that
    same zone. The end is pushed to 23:59:59.999 of its own day in that
    zone. Raises ValidationError for unparsable dates or start > end,
    before any query.
    """
    now = to_utc(now or datetime.now(timezone.utc))
    start = _parse_date(start_raw) if start_raw else None
    end = _parse_date(end_raw) if end_raw else None

    tz = next(
        (v.tzinfo for v in (end, start) if v is not None and v.tzinfo is not None),
        timezone.utc,
    )
    start = _in_zone(start, tz) if start else (now - relativedelta(months=1)).astimezone(tz)
    end = end_of_day(_in_zone(end, tz) if end else now.astimezone(tz))
    if start > end:
        raise ValidationError("Start date must be before end date")
    return DateRange(start=start, end=end)


def trailing_months_range(months=12, now=None):
    """Window covering the last `months` calendar months including this one."""
    now = to_utc(now or datetime.now(timezone.utc))
    first = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return DateRange(start=first - relativedelta(months=months - 1), end=end_of_day(now))


def month_buckets(start, end):
    """Every (year, month) from start's month to end's month inclusive."""
    year, month = start.year, start.month
    buckets = []
    while (year, month) <= (end.year, end.month):
        buckets.append((year, month))
        month += 1
        if month > 12:
            month = 1
            year += 1
    return buckets


def month_window(year, month, tz=timezone.utc):
    """[first instant, last instant] of a calendar month in zone `tz`."""
    start = datetime(year, month, 1, tzinfo=tz)
    last = start + relativedelta(months=1) - timedelta(days=1)
    return DateRange(start=start, end=end_of_day(last))


def local_timestamp(column, offset=timedelta(0), dialect_name=None):
    """`column` as UTC wall time shifted by a fixed `offset`.

    Year/month are extracted from this so grouping matches month_buckets.
    On PostgreSQL the timestamptz is first pinned to UTC, independent of
    the session TimeZone. SQLite already stores naive UTC.
    """
    dialect_name = dialect_name or db.engine.dialect.name
    if dialect_name == "postgresql":
        column = func.timezone("UTC", column, type_=db.DateTime)
    elif dialect_name == "sqlite":
        if offset:
            return func.datetime(column, f"{int(offset.total_seconds()):+d} seconds")
        return column
    if offset:
        return column + offset
    return column


# ─── Scalar aggregates ───────────────────────────────────────

def count(model, criteria):
    return (
        db.session.query(func.count(model.id))
        .filter(*criteria)
        .scalar()
    ) or 0


def total_sum(column, criteria):
    value = (
        db.session.query(func.coalesce(func.sum(column), 0))
        .filter(*criteria)
        .scalar()
    )
    return float(value or 0)


def distinct_values(column, criteria):
    rows = db.session.query(column).filter(*criteria).distinct().all()
    return {value for (value,) in rows if value is not None}


# ─── Grouped aggregates ──────────────────────────────────────

def group_count(column, criteria):
    """{value: count} for every distinct value of `column` matching criteria."""
    rows = (
        db.session.query(column, func.count())
        .filter(*criteria)
        .group_by(column)
        .all()
    )
    return {value: n for value, n in rows}


def group_sum(column, sum_column, criteria):
    """{value: {"count": n, "totalAmount": sum}} grouped by `column`."""
    rows = (
        db.session.query(
            column,
            func.count(),
            func.coalesce(func.sum(sum_column), 0),
        )
        .filter(*criteria)
        .group_by(column)
        .all()
    )
    return {
        value: {"count": n, "totalAmount": float(amount or 0)}
        for value, n, amount in rows
    }


def monthly_series(model, criteria, date_range, sum_column=None):
    """Dense month-by-month series over `date_range`.

    Grouped in the database by year/month of created_at, then merged into
    one bucket per calendar month so months without records still appear
    with zero values.
    """
    created = local_timestamp(model.created_at, date_range.utc_offset)
    year = extract("year", created)
    month = extract("month", created)

    columns = [year, month, func.count()]
    if sum_column is not None:
        columns.append(func.coalesce(func.sum(sum_column), 0))

    rows = (
        db.session.query(*columns)
        .filter(*criteria, *date_range.criteria(model.created_at))
        .group_by(year, month)
        .all()
    )
    grouped = {(int(row[0]), int(row[1])): row[2:] for row in rows}

    series = []
    for y, m in month_buckets(date_range.start, date_range.end):
        values = grouped.get((y, m))
        bucket = {
            "month": MONTH_NAMES[m - 1],
            "year": y,
            "count": values[0] if values else 0,
        }
        if sum_column is not None:
            bucket["totalAmount"] = float(values[1]) if values else 0
        series.append(bucket)
    return series


# ─── Rates ───────────────────────────────────────────────────

def percentage(numerator, denominator):
    """numerator/denominator*100, or 0 when there is nothing to divide by."""
    if not denominator:
        return 0
    return numerator / denominator * 100


def conversion_rates(total_leads, leads_with_quotations, leads_with_accepted):
    return {
        "leadToQuotation": percentage(leads_with_quotations, total_leads),
        "quotationToSale": percentage(leads_with_accepted, leads_with_quotations),
        "overall": percentage(leads_with_accepted, total_leads),
    }


def conversion_funnel(lead_criteria, quotation_criteria, date_range):
    """Lead -> quotation -> accepted counts for one window."""
    total_leads = count(Lead, [*lead_criteria, *date_range.criteria(Lead.created_at)])
    in_range = [*quotation_criteria, *date_range.criteria(Quotation.created_at)]
    with_quotations = distinct_values(Quotation.lead_id, in_range)
    with_accepted = distinct_values(
        Quotation.lead_id, [*in_range, Quotation.status == "accepted"]
    )
    return total_leads, len(with_quotations), len(with_accepted)


def performance_tier(rate):
    for threshold, label in PERFORMANCE_TIERS:
        if rate >= threshold:
            return label
    return DEFAULT_TIER


# ─── Per-rep rollup ──────────────────────────────────────────

def rep_performance(reps, date_range, target):
    """Rollup per sales rep over `date_range`.

    Uses one grouped query per metric for the whole rep list.
    """
    rep_ids = [rep.id for rep in reps]
    if not rep_ids:
        return []

    lead_window = [Lead.assigned_to_id.in_(rep_ids), *date_range.criteria(Lead.created_at)]
    quote_window = [
        Quotation.created_by_id.in_(rep_ids),
        *date_range.criteria(Quotation.created_at),
    ]

    assigned = group_count(Lead.assigned_to_id, lead_window)
    contacted = group_count(Lead.assigned_to_id, [*lead_window, Lead.status != "new"])
    sent = group_count(Quotation.created_by_id, quote_window)
    closed = {
        key: (n, float(revenue or 0))
        for key, n, revenue in db.session.query(
            Quotation.created_by_id,
            func.count(),
            func.coalesce(func.sum(Quotation.total), 0),
        )
        .filter(*quote_window, Quotation.status == "accepted")
        .group_by(Quotation.created_by_id)
        .all()
    }

    rollup = []
    for rep in reps:
        leads_assigned = assigned.get(rep.id, 0)
        sales_closed, revenue = closed.get(rep.id, (0, 0))
        rate = percentage(sales_closed, leads_assigned)
        rollup.append({
            "salesRep": {"id": rep.id, "name": rep.name, "email": rep.email},
            "leadsAssigned": leads_assigned,
            "leadsContacted": contacted.get(rep.id, 0),
            "quotationsSent": sent.get(rep.id, 0),
            "salesClosed": sales_closed,
            "conversionRate": rate,
            "revenue": revenue,
            "target": target,
            "performance": performance_tier(rate),
        })
    return rollup
