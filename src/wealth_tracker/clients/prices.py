import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Iterable, Optional

import requests

logger = logging.getLogger(__name__)


class PriceServiceError(Exception):
    """Raised when current prices cannot be fetched."""
    pass


class PriceService(ABC):
    """Source of current market prices"""

    @abstractmethod
    def get_prices(self, symbols: Iterable[str], currency: str = "EUR") -> Dict[str, Decimal]:
        """
        Fetch the current price of every symbol in one call.

        Args:
            symbols: Upper-case asset symbols (e.g. 'BTC')
            currency: Quote currency

        Returns:
            Mapping of symbol to price. Symbols without a known price are absent.

        Raises:
            PriceServiceError: If the service cannot be reached or answers with an error
        """
        pass


class CoinGeckoPriceService(PriceService):
    """
    Crypto prices from the CoinGecko simple price API.

    CoinGecko identifies coins by slug, so symbols are translated through
    a fixed table; unknown symbols get no price.
    """

    SYMBOL_TO_ID: Dict[str, str] = {
        "BTC": "bitcoin",
        "ETH": "ethereum",
        "USDT": "tether",
        "USDC": "usd-coin",
        "BNB": "binancecoin",
        "XRP": "ripple",
        "ADA": "cardano",
        "DOGE": "dogecoin",
        "SOL": "solana",
        "DOT": "polkadot",
        "MATIC": "matic-network",
        "AVAX": "avalanche-2",
        "LINK": "chainlink",
        "LTC": "litecoin",
        "UNI": "uniswap",
        "ATOM": "cosmos",
        "XLM": "stellar",
        "ALGO": "algorand",
        "FIL": "filecoin",
        "VET": "vechain",
        "AAVE": "aave",
        "MKR": "maker",
        "COMP": "compound-governance-token",
        "SUSHI": "sushi",
        "CRV": "curve-dao-token",
    }

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_prices(self, symbols: Iterable[str], currency: str = "EUR") -> Dict[str, Decimal]:
        ids_by_symbol = {
            symbol.upper(): self.SYMBOL_TO_ID[symbol.upper()]
            for symbol in symbols
            if symbol.upper() in self.SYMBOL_TO_ID
        }
        if not ids_by_symbol:
            return {}

        vs_currency = currency.lower()

        try:
            response = self.session.get(
                f"{self.base_url}/simple/price",
                params={
                    "ids": ",".join(sorted(set(ids_by_symbol.values()))),
                    "vs_currencies": vs_currency,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PriceServiceError(f"CoinGecko request failed: {e}") from e

        if not response.ok:
            raise PriceServiceError(
                f"CoinGecko API error: {response.status_code} {response.reason}"
            )

        data = response.json()

        prices = {}
        for symbol, coin_id in ids_by_symbol.items():
            price = data.get(coin_id, {}).get(vs_currency)
            if price is not None:
                prices[symbol] = Decimal(str(price))

        logger.debug("Fetched %d/%d prices from CoinGecko", len(prices), len(ids_by_symbol))
        return prices
