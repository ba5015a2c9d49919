from enum import Enum

class TransactionType(Enum):
    """Represents whether money is coming in, going out, or moving between own accounts"""
    INCOME = "INCOME" # in
    EXPENSE = "EXPENSE" # out
    TRANSFER = "TRANSFER"


class InvestmentTransactionType(Enum):
    """Side of an investment ledger entry"""
    BUY = "buy"
    SELL = "sell"


class AccountType(Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    INVESTMENT = "INVESTMENT"
    LOAN = "LOAN"
    CREDIT = "CREDIT"


class InvestmentSourceType(Enum):
    """
    Kind of investment source.

    PEA, CTO and ASSURANCE_VIE exports are full position snapshots,
    CRYPTO exports are a ledger of buys/sells.
    """
    PEA = "PEA"
    CTO = "CTO"
    ASSURANCE_VIE = "ASSURANCE_VIE"
    CRYPTO = "CRYPTO"

    @property
    def is_snapshot(self) -> bool:
        return self is not InvestmentSourceType.CRYPTO


class CategorySource(Enum):
    """Who assigned a category to a transaction"""
    BANK = "BANK"
    AUTO = "AUTO"
    MANUAL = "MANUAL"

    @property
    def default_confidence(self) -> float:
        return 0.8 if self is CategorySource.AUTO else 1.0

    def can_be_overwritten_by(self, other: "CategorySource") -> bool:
        """
        Overwrite policy for category assignments.

        - MANUAL is never overwritten
        - BANK can only be overwritten by MANUAL
        - AUTO can be overwritten by BANK or MANUAL
        """
        if self is CategorySource.MANUAL:
            return False
        if self is CategorySource.BANK:
            return other is CategorySource.MANUAL
        return other in (CategorySource.BANK, CategorySource.MANUAL)


class MatchType(Enum):
    """How a category rule pattern is compared to a normalized description"""
    EXACT = "EXACT"
    STARTS_WITH = "STARTS_WITH"
    CONTAINS = "CONTAINS"
    REGEX = "REGEX"


class ResultSource(Enum):
    """Pipeline stage that produced a categorization result"""
    RULE = "RULE"
    BANK = "BANK"
    AI = "AI"
    TRANSFER = "TRANSFER"

    @property
    def category_source(self) -> CategorySource:
        """Map the stage to the source stored on the assignment"""
        if self is ResultSource.BANK:
            return CategorySource.BANK
        return CategorySource.AUTO


class RecurringFrequency(Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"


class ParserKey(Enum):
    """Bank statement export layouts"""
    CAISSE_EPARGNE = "caisse_epargne"
    CAISSE_EPARGNE_ENTREPRISE = "caisse_epargne_entreprise"
    CREDIT_MUTUEL = "credit_mutuel"
    BOURSORAMA = "boursorama"


class InvestmentParserKey(Enum):
    """Broker / exchange export layouts"""
    BOURSE_DIRECT = "bourse_direct"
    LINXEA = "linxea"
    BINANCE = "binance"
