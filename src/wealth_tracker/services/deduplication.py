"""
Deduplication signatures.

A signature is a stable string built from the fields that identify a
movement. Re-importing an overlapping export yields the same signatures,
so rows already persisted (or already seen in the same file) are skipped.
"""
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Set

from wealth_tracker.domain.enums import InvestmentTransactionType
from wealth_tracker.domain.investment import InvestmentTransaction, ParsedInvestmentTransaction
from wealth_tracker.domain.models import ParsedTransaction, Transaction

CENTS = Decimal("0.01")
SATOSHI = Decimal("0.00000001")


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_quantity(value: Decimal) -> Decimal:
    return Decimal(value).quantize(SATOSHI, rounding=ROUND_HALF_UP)


def transaction_signature(txn_date: date, signed_amount: Decimal, description: str) -> str:
    """
    Signature of a bank movement: 'YYYY-MM-DD|amount|description'.

    The amount is signed and rounded to cents, the description is trimmed
    and lower-cased.
    """
    return f"{txn_date.isoformat()}|{round_money(signed_amount)}|{description.strip().lower()}"


def parsed_signature(parsed: ParsedTransaction) -> str:
    return transaction_signature(parsed.date, parsed.amount, parsed.description)


def persisted_signature(transaction: Transaction) -> str:
    """Signature of a stored transaction, rebuilding the sign from its type"""
    return transaction_signature(transaction.date, transaction.signed_amount, transaction.description)


def investment_signature(
    txn_date: date,
    symbol: str,
    txn_type: InvestmentTransactionType,
    quantity: Decimal,
    total_amount: Decimal,
) -> str:
    """Signature of a ledger entry: 'date|SYMBOL|type|quantity|total'"""
    return (
        f"{txn_date.isoformat()}|{symbol.strip().upper()}|{txn_type.value}|"
        f"{round_quantity(quantity)}|{round_money(total_amount)}"
    )


def parsed_investment_signature(parsed: ParsedInvestmentTransaction) -> str:
    return investment_signature(
        parsed.date, parsed.symbol, parsed.type, parsed.quantity, parsed.total_amount
    )


def persisted_investment_signature(transaction: InvestmentTransaction) -> str:
    return investment_signature(
        transaction.date,
        transaction.symbol,
        transaction.type,
        transaction.quantity,
        transaction.total_amount,
    )


class SignatureSet:
    """
    Signatures already known for one account (or investment source).

    Seeded once from the persisted history; every accepted row is added
    immediately so duplicates inside the same file are caught too.
    """

    def __init__(self, signatures: Iterable[str] = ()):
        self._signatures: Set[str] = set(signatures)

    def accept(self, signature: str) -> bool:
        """
        Record a signature.

        Returns:
            True if the signature was new, False if it is a duplicate
        """
        if signature in self._signatures:
            return False
        self._signatures.add(signature)
        return True

    def __contains__(self, signature: str) -> bool:
        return signature in self._signatures

    def __len__(self) -> int:
        return len(self._signatures)
