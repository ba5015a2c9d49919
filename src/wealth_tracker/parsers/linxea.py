from typing import Any, Dict, List, Optional

from wealth_tracker.domain.investment import ParsedPosition
from wealth_tracker.parsers.base import SpreadsheetParser
from wealth_tracker.parsers.caisse_epargne import join_category
from wealth_tracker.parsers.utils import cell_text, parse_number


class LinxeaParser(SpreadsheetParser):
    """
    Parser for Linxea life insurance (assurance-vie) XLSX exports.

    Columns: Placement, N° Contrat, Titulaire, Produit, Catégorie,
    Sous-catégorie, Nom du support, ISIN, Nbre de parts, Dernière cotation,
    Date, Somme en Compte, Plus ou Moins Value, Prix de Revient Moyen, Perf.%

    Funds are always valued in EUR.
    """

    SUPPORT_COL = "Nom du support"
    ISIN_COL = "ISIN"
    UNITS_COL = "Nbre de parts"
    PRICE_COL = "Dernière cotation"
    VALUE_COL = "Somme en Compte"
    GAIN_LOSS_COL = "Plus ou Moins Value"
    AVG_PRICE_COL = "Prix de Revient Moyen"
    PERFORMANCE_COL = "Perf.%"
    CATEGORY_COL = "Catégorie"
    SUB_CATEGORY_COL = "Sous-catégorie"

    def parse_positions(self, content: bytes) -> List[ParsedPosition]:
        positions = []
        for row in self._read_rows(content):
            position = self._parse_row(row)
            if position:
                positions.append(position)
        return positions

    def _parse_row(self, row: Dict[str, Any]) -> Optional[ParsedPosition]:
        support = cell_text(row.get(self.SUPPORT_COL))
        isin = cell_text(row.get(self.ISIN_COL))

        if not support and not isin:
            return None

        quantity = parse_number(row.get(self.UNITS_COL))
        if quantity == 0:
            return None

        return ParsedPosition(
            symbol=support or isin,
            name=support or None,
            isin=isin or None,
            quantity=quantity,
            avg_buy_price=parse_number(row.get(self.AVG_PRICE_COL)),
            current_price=parse_number(row.get(self.PRICE_COL)),
            current_value=parse_number(row.get(self.VALUE_COL)),
            gain_loss=parse_number(row.get(self.GAIN_LOSS_COL)),
            gain_loss_percent=parse_number(row.get(self.PERFORMANCE_COL)),
            currency="EUR",
            raw_category=join_category(
                cell_text(row.get(self.CATEGORY_COL)),
                cell_text(row.get(self.SUB_CATEGORY_COL)),
            ),
        )
