from typing import Any, Dict, List, Optional

from wealth_tracker.domain.investment import ParsedPosition
from wealth_tracker.parsers.base import SpreadsheetParser
from wealth_tracker.parsers.utils import cell_text, parse_number


class BourseDirectParser(SpreadsheetParser):
    """
    Parser for Bourse Direct (PEA) portfolio XLSX exports.

    One row per line of the portfolio, with columns:
    Nom, ISIN, Cours, Devise, Variation Veille %, Quantité, PRU (EUR),
    +/- value (EUR), +/- value %, Valorisation (EUR), Réglement, MIC, Marché

    The export is a snapshot: it only provides positions.
    """

    NAME_COL = "Nom"
    ISIN_COL = "ISIN"
    PRICE_COL = "Cours"
    CURRENCY_COL = "Devise"
    QUANTITY_COL = "Quantité"
    PRU_COL = "PRU (EUR)"
    GAIN_LOSS_COL = "+/- value (EUR)"
    GAIN_LOSS_PERCENT_COL = "+/- value %"
    VALUE_COL = "Valorisation (EUR)"
    MIC_COL = "MIC"
    MARKET_COL = "Marché"

    def parse_positions(self, content: bytes) -> List[ParsedPosition]:
        positions = []
        for row in self._read_rows(content):
            position = self._parse_row(row)
            if position:
                positions.append(position)
        return positions

    def _parse_row(self, row: Dict[str, Any]) -> Optional[ParsedPosition]:
        name = cell_text(row.get(self.NAME_COL))
        isin = cell_text(row.get(self.ISIN_COL))

        # Totals and blank lines
        if not name and not isin:
            return None

        quantity = parse_number(row.get(self.QUANTITY_COL))
        if quantity == 0:
            return None

        return ParsedPosition(
            symbol=name,
            name=name,
            isin=isin or None,
            quantity=quantity,
            avg_buy_price=parse_number(row.get(self.PRU_COL)),
            current_price=parse_number(row.get(self.PRICE_COL)),
            current_value=parse_number(row.get(self.VALUE_COL)),
            gain_loss=parse_number(row.get(self.GAIN_LOSS_COL)),
            gain_loss_percent=parse_number(row.get(self.GAIN_LOSS_PERCENT_COL)),
            currency=cell_text(row.get(self.CURRENCY_COL)) or "EUR",
            mic=cell_text(row.get(self.MIC_COL)) or None,
            raw_category=cell_text(row.get(self.MARKET_COL)) or None,
        )
