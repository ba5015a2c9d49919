from typing import List, Optional

from wealth_tracker.domain.models import ParsedTransaction
from wealth_tracker.parsers.base import SemicolonCsvParser
from wealth_tracker.parsers.caisse_epargne import join_category
from wealth_tracker.parsers.utils import parse_iso_date, parse_number


class BoursoramaParser(SemicolonCsvParser):
    """
    Parser for Boursorama CSV exports.

    Layout:
        dateOp;dateVal;label;category;categoryParent;supplierFound;amount;
        comment;accountNum;accountLabel;accountbalance

    - UTF-8 with BOM
    - ISO dates
    - A single signed amount column (negative for debits)
    - Labels come as 'Short | Long', only the short part is kept
    """

    MIN_COLUMNS = 11

    def _parse_row(self, fields: List[str]) -> Optional[ParsedTransaction]:
        (
            operation_date, value_date, label, category, parent_category,
            _supplier, amount_str, comment, _account_number, _account_label,
            balance_str,
        ) = fields[:11]

        txn_date = parse_iso_date(operation_date)
        if txn_date is None:
            return None

        amount = parse_number(amount_str)
        if amount == 0 and not amount_str.strip():
            return None

        return ParsedTransaction(
            date=txn_date,
            amount=amount,
            description=self._short_label(label),
            raw_category=join_category(parent_category, category),
            balance=parse_number(balance_str) if balance_str.strip() else None,
            value_date=parse_iso_date(value_date),
            additional_info=comment.strip() or None,
        )

    @staticmethod
    def _short_label(label: str) -> str:
        """'CARTE 12/01 MONOP | MONOPRIX PARIS' -> 'CARTE 12/01 MONOP'"""
        label = label.strip()
        return label.split(" | ", 1)[0].strip()
