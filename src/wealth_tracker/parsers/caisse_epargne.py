from typing import List, Optional

from wealth_tracker.domain.models import ParsedTransaction
from wealth_tracker.parsers.base import SemicolonCsvParser
from wealth_tracker.parsers.utils import cell_text, collapse_whitespace, parse_french_date, parse_number


def join_category(parent: str, child: str) -> Optional[str]:
    """Build a 'Parent > Child' bank category label"""
    parent = parent.strip()
    child = child.strip()
    if parent and child:
        return f"{parent} > {child}"
    return parent or child or None


def build_additional_info(operation_type: str, infos: str) -> Optional[str]:
    parts = []
    if operation_type.strip():
        parts.append(f"Type: {operation_type.strip()}")
    if infos.strip():
        parts.append(infos.strip())
    return " | ".join(parts) if parts else None


class CaisseEpargneParser(SemicolonCsvParser):
    """
    Parser for Caisse d'Epargne (particulier) CSV exports.

    Layout:
        Date de comptabilisation;Libelle simplifie;Libelle operation;Reference;
        Informations complementaires;Type operation;Categorie;Sous categorie;
        Debit;Credit;Date operation;Date de valeur;Pointage operation

    - Dates are DD/MM/YYYY
    - Amounts use a decimal comma, debit and credit in separate columns
    - The bank's own category is kept as 'Categorie > Sous categorie'
    """

    MIN_COLUMNS = 13

    def _parse_row(self, fields: List[str]) -> Optional[ParsedTransaction]:
        (
            booking_date, short_label, label, reference, infos, operation_type,
            category, sub_category, debit_str, credit_str, operation_date,
            value_date, _checked,
        ) = fields[:13]

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
            description=collapse_whitespace(label.strip() or short_label.strip()),
            raw_category=join_category(category, sub_category) if category.strip() else None,
            value_date=parse_french_date(value_date),
            reference=cell_text(reference) or None,
            additional_info=build_additional_info(operation_type, infos),
        )
