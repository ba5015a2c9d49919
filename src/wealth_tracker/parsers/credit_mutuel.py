from typing import List, Optional

from wealth_tracker.domain.models import ParsedTransaction
from wealth_tracker.parsers.base import SemicolonCsvParser
from wealth_tracker.parsers.utils import parse_french_date, parse_number


class CreditMutuelParser(SemicolonCsvParser):
    """
    Parser for Credit Mutuel CSV exports.

    Layout: Date;Date de valeur;Débit;Crédit;Libellé;Solde

    Older exports are Latin-1, which the Windows-1252 fallback of
    decode_content covers.
    """

    MIN_COLUMNS = 6

    def _parse_row(self, fields: List[str]) -> Optional[ParsedTransaction]:
        date_str, value_date_str, debit_str, credit_str, label, balance_str = fields[:6]

        txn_date = parse_french_date(date_str)
        if txn_date is None:
            return None

        debit = abs(parse_number(debit_str))
        credit = abs(parse_number(credit_str))
        amount = credit - debit

        if amount == 0 and not debit_str.strip() and not credit_str.strip():
            return None

        return ParsedTransaction(
            date=txn_date,
            amount=amount,
            description=label.strip(),
            balance=parse_number(balance_str) if balance_str.strip() else None,
            value_date=parse_french_date(value_date_str),
        )
