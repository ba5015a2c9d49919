import csv
import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from wealth_tracker.domain.models import ParsedTransaction
from wealth_tracker.domain.investment import ParsedInvestmentTransaction, ParsedPosition

logger = logging.getLogger(__name__)

Content = Union[str, bytes]


def decode_content(content: Content, fallback_encoding: str = "cp1252") -> str:
    """
    Decode a raw export into text.

    French banks historically export Windows-1252, modern exports use
    UTF-8 (sometimes with a BOM). Valid UTF-8 wins, anything else is read
    with the fallback encoding.

    Args:
        content: Raw bytes, or already decoded text
        fallback_encoding: Encoding used when the bytes are not valid UTF-8

    Returns:
        Decoded text without a leading BOM
    """
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = content.decode(fallback_encoding, errors="replace")
    else:
        text = content

    return text.lstrip("\ufeff")


class StatementParser(ABC):
    """
    Abstract base class for all bank statement parsers.

    This implements the Strategy pattern - each bank export layout gets its
    own concrete parser that implements this interface.
    """

    @abstractmethod
    def parse(self, content: Content) -> List[ParsedTransaction]:
        """
        Parse a statement export and return the transactions it holds.

        Rows with an unreadable mandatory field (date, amount) are skipped.

        Args:
            content: Raw file content

        Returns:
            List of ParsedTransaction objects, possibly empty
        """
        pass


class InvestmentParser(ABC):
    """
    Abstract base class for broker/exchange export parsers.

    Snapshot layouts implement parse_positions, ledger layouts implement
    parse_transactions; the other method returns an empty list.
    """

    @abstractmethod
    def parse_positions(self, content: bytes) -> List[ParsedPosition]:
        """Parse the export as a full position snapshot"""
        pass

    @abstractmethod
    def parse_transactions(self, content: bytes) -> List[ParsedInvestmentTransaction]:
        """Parse the export as a list of buy/sell transactions"""
        pass


class SemicolonCsvParser(StatementParser):
    """
    Shared reading logic for the semicolon separated French bank exports.

    Subclasses declare how many columns a row needs and turn one row of
    fields into a ParsedTransaction (or None to skip it).
    """

    MIN_COLUMNS: int = 0

    def parse(self, content: Content) -> List[ParsedTransaction]:
        text = decode_content(content)
        lines = [line for line in text.splitlines() if line.strip()]

        if len(lines) < 2:
            return []

        transactions = []
        # First line is the header
        for fields in csv.reader(lines[1:], delimiter=";", quotechar='"'):
            if len(fields) < self.MIN_COLUMNS:
                logger.debug("Skipping short row (%d columns): %s", len(fields), fields)
                continue

            transaction = self._parse_row(fields)
            if transaction:
                transactions.append(transaction)

        return transactions

    @abstractmethod
    def _parse_row(self, fields: List[str]) -> Optional[ParsedTransaction]:
        """
        Parse a single row of fields.

        Returns:
            The parsed transaction, or None if the row must be skipped
        """
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class SpreadsheetParser(InvestmentParser):
    """
    Shared reading logic for XLSX broker exports.

    The first sheet is read with its first row as header; every cell is
    kept as-is (dtype=object) so the parser decides how to interpret it.
    """

    def _read_rows(self, content: bytes) -> List[Dict[str, Any]]:
        """
        Read the first sheet into a list of {column: value} dicts.

        Raises:
            ValueError: If the content is not a readable workbook
        """
        df = pd.read_excel(BytesIO(content), sheet_name=0, header=0, dtype=object)
        df.columns = [str(col).strip() for col in df.columns]
        return df.to_dict(orient="records")

    def parse_positions(self, content: bytes) -> List[ParsedPosition]:
        return []

    def parse_transactions(self, content: bytes) -> List[ParsedInvestmentTransaction]:
        return []

    def __repr__(self):
        return f"{self.__class__.__name__}()"
