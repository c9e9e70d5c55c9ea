from topups.services.account import AccountService
from topups.services.funding import FundingService
from topups.services.settlement import SettlementService

__all__ = ["AccountService", "FundingService", "SettlementService"]
