# shared/credits.py
from enum import Enum


class CreditType(str, Enum):
    """Which balance a caller spends: interactive app credits or programmatic API credits"""

    APP = "app"
    API = "api"


BALANCE_COLUMNS = {
    CreditType.APP: "credits_balance",
    CreditType.API: "api_credits_balance",
}
