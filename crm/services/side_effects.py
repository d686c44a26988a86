"""Best-effort secondary effects.

Runs work that must never fail the primary request: PDF generation,
storage uploads/deletes, cross-record cascades. Call only after the
primary write has been committed.

    warning = best_effort("PDF generation", attach_pdf, quotation)
    if warning:
        warnings.append(warning)
"""

import logging

from crm.errors import SecondaryEffectFailure
from crm.extensions import db

logger = logging.getLogger(__name__)


def best_effort(label, fn, *args, **kwargs):
    """Run fn and commit; on any failure roll back, log, return a warning.

    Returns None on success, otherwise the warning message.
    """
    try:
        fn(*args, **kwargs)
        db.session.commit()
        return None
    except Exception as e:
        db.session.rollback()
        failure = SecondaryEffectFailure(f"{label} failed")
        logger.exception("%s: %s", failure.message, e)
        return failure.message
