import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from wealth_tracker.domain.enums import InvestmentTransactionType
from wealth_tracker.domain.investment import ParsedInvestmentTransaction
from wealth_tracker.parsers.base import SpreadsheetParser
from wealth_tracker.parsers.utils import ZERO, cell_text, is_blank, parse_number, parse_spreadsheet_date

logger = logging.getLogger(__name__)

# "0.00123 BTC"
AMOUNT_WITH_SYMBOL = re.compile(r"^([\d,.]+)\s+([A-Za-z]+)$")
LEADING_NUMBER = re.compile(r"^([\d,.]+)")


class BinanceParser(SpreadsheetParser):
    """
    Parser for Binance "Buy Crypto" history XLSX exports.

    Columns: Date(UTC+1), Method, Spend Amount, Receive Amount, Fee, Price,
    Status, Transaction ID

    Amounts carry their currency ("100 EUR", "0.0025 BTC"). Only successful
    orders are kept and every row is a buy.
    """

    DATE_COL = "Date(UTC+1)"
    METHOD_COL = "Method"
    SPEND_COL = "Spend Amount"
    RECEIVE_COL = "Receive Amount"
    FEE_COL = "Fee"
    PRICE_COL = "Price"
    STATUS_COL = "Status"
    TRANSACTION_ID_COL = "Transaction ID"

    def parse_transactions(self, content: bytes) -> List[ParsedInvestmentTransaction]:
        transactions = []
        for row in self._read_rows(content):
            transaction = self._parse_row(row)
            if transaction:
                transactions.append(transaction)
        return transactions

    def _parse_row(self, row: Dict[str, Any]) -> Optional[ParsedInvestmentTransaction]:
        if cell_text(row.get(self.STATUS_COL)).lower() != "successful":
            return None

        received = self._split_amount(cell_text(row.get(self.RECEIVE_COL)))
        if received is None:
            logger.debug("Skipping row with unreadable receive amount: %s", row)
            return None

        quantity, symbol = received
        if quantity <= 0:
            return None

        txn_date = parse_spreadsheet_date(row.get(self.DATE_COL))
        if txn_date is None:
            return None

        spend = cell_text(row.get(self.SPEND_COL))
        spent = self._split_amount(spend)

        return ParsedInvestmentTransaction(
            date=txn_date,
            symbol=symbol.upper(),
            type=InvestmentTransactionType.BUY,
            quantity=quantity,
            price_per_unit=self._leading_number(row.get(self.PRICE_COL)),
            total_amount=self._leading_number(spend),
            fee=self._leading_number(row.get(self.FEE_COL)),
            currency=spent[1].upper() if spent else "EUR",
            transaction_id=cell_text(row.get(self.TRANSACTION_ID_COL)) or None,
            payment_method=cell_text(row.get(self.METHOD_COL)) or None,
        )

    @staticmethod
    def _split_amount(text: str) -> Optional[Tuple[Decimal, str]]:
        """'0.0025 BTC' -> (Decimal('0.0025'), 'BTC')"""
        match = AMOUNT_WITH_SYMBOL.match(text.strip())
        if not match:
            return None
        return parse_number(match.group(1)), match.group(2)

    @staticmethod
    def _leading_number(value: Any) -> Decimal:
        """Number at the start of a cell, ignoring a trailing currency"""
        if is_blank(value):
            return ZERO
        if not isinstance(value, str):
            return parse_number(value)

        match = LEADING_NUMBER.match(value.strip())
        return parse_number(match.group(1)) if match else ZERO
