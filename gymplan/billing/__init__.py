from .proration import compute_charge
from .statements import find_unpaid_months, is_debtor, statement_line

__all__ = ["compute_charge", "find_unpaid_months", "is_debtor", "statement_line"]
