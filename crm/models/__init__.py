# Models package - import all models here so Alembic can discover them.

from crm.models.user import User, LoginEvent  # noqa: F401
from crm.models.lead import Lead, LeadActivity  # noqa: F401
from crm.models.quotation import Quotation  # noqa: F401
from crm.models.company import Company, CustomField  # noqa: F401
