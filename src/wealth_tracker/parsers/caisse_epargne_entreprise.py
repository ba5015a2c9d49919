from typing import List, Optional

from wealth_tracker.domain.models import ParsedTransaction
from wealth_tracker.parsers.base import SemicolonCsvParser
from wealth_tracker.parsers.caisse_epargne import build_additional_info
from wealth_tracker.parsers.utils import cell_text, collapse_whitespace, parse_french_date, parse_number


class CaisseEpargneEntrepriseParser(SemicolonCsvParser):
    """
    Parser for Caisse d'Epargne professional (entreprise/SCI) CSV exports.

    Layout:
        Date comptable;Libelle simplifie;Reference;Informations complementaires;
        Type operation;Debit;Credit;Date operation;Date de valeur;Pointage operation

    Same conventions as the personal export, but without the detailed
    label and without bank categories.
    """

    MIN_COLUMNS = 10

    def _parse_row(self, fields: List[str]) -> Optional[ParsedTransaction]:
        (
            booking_date, short_label, reference, infos, operation_type,
            debit_str, credit_str, operation_date, value_date, _checked,
        ) = fields[:10]

        txn_date = parse_french_date(operation_date) or parse_french_date(booking_date)
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
            description=collapse_whitespace(short_label),
            value_date=parse_french_date(value_date),
            reference=cell_text(reference) or None,
            additional_info=build_additional_info(operation_type, infos),
        )
