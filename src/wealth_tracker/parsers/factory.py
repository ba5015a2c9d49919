from enum import Enum
from typing import Dict, List, Type, Union

from wealth_tracker.domain.enums import InvestmentParserKey, ParserKey
from wealth_tracker.parsers.base import InvestmentParser, StatementParser
from wealth_tracker.parsers.binance import BinanceParser
from wealth_tracker.parsers.boursorama import BoursoramaParser
from wealth_tracker.parsers.bourse_direct import BourseDirectParser
from wealth_tracker.parsers.caisse_epargne import CaisseEpargneParser
from wealth_tracker.parsers.caisse_epargne_entreprise import CaisseEpargneEntrepriseParser
from wealth_tracker.parsers.credit_mutuel import CreditMutuelParser
from wealth_tracker.parsers.linxea import LinxeaParser


def _key(parser_key: Union[str, Enum]) -> str:
    return parser_key.value if isinstance(parser_key, Enum) else str(parser_key)


class ParserFactory:
    """
    Factory for creating bank statement parsers.

    Uses a registry pattern to map parser keys (one per export layout) to
    parser classes. The set of layouts is closed: the defaults are
    registered explicitly by register_defaults().
    """

    _locked = False
    _registry: Dict[str, Type[StatementParser]] = {}
    _base_class: type = StatementParser

    DEFAULT_PARSERS: Dict[Enum, type] = {
        ParserKey.CAISSE_EPARGNE: CaisseEpargneParser,
        ParserKey.CAISSE_EPARGNE_ENTREPRISE: CaisseEpargneEntrepriseParser,
        ParserKey.CREDIT_MUTUEL: CreditMutuelParser,
        ParserKey.BOURSORAMA: BoursoramaParser,
    }

    @classmethod
    def register(cls, parser_key: Union[str, Enum], parser_class: type) -> None:
        """
        Register a parser for an export layout

        Args:
            parser_key: Unique identifier for the layout (e.g, 'caisse_epargne')
            parser_class: The parser class

        Raises:
            ValueError: If parser is already registered
            TypeError: If parser_class doesn't inherit from the registry's base parser
            RuntimeError: If the parser registry is locked

        Example:
            ParserFactory.register('caisse_epargne', CaisseEpargneParser)
        """
        key = _key(parser_key)

        if cls._locked:
            raise RuntimeError("Registry is locked, cannot add more parsers")

        if key in cls._registry:
            raise ValueError(f"Parser for '{key}' is already registered")

        if not isinstance(parser_class, type) or not issubclass(parser_class, cls._base_class):
            raise TypeError(f"{parser_class} must inherit from {cls._base_class.__name__}")

        cls._registry[key] = parser_class

    @classmethod
    def lock_registry(cls):
        """Prevent further registration (call after app initialization)"""
        cls._locked = True

    @classmethod
    def is_registered(cls, parser_key: Union[str, Enum]) -> bool:
        return _key(parser_key) in cls._registry

    @classmethod
    def create_parser(cls, parser_key: Union[str, Enum]):
        """
        Create a parser instance for the specified layout.

        Args:
            parser_key: Layout identifier (e.g., 'boursorama')

        Returns:
            Instantiated parser ready to use

        Raises:
            ValueError: If no parser registered for this key

        Example:
            parser = ParserFactory.create_parser('boursorama')
            transactions = parser.parse(content)
        """
        key = _key(parser_key)
        if key not in cls._registry:
            available = ', '.join(cls._registry.keys())
            raise ValueError(
                f"No parser registered for '{key}'. "
                f"Available parsers: {available}"
            )

        return cls._registry[key]()

    @classmethod
    def get_available_parsers(cls) -> List[str]:
        """Return list of all registered parser keys"""
        return list(cls._registry.keys())

    @classmethod
    def register_defaults(cls, lock: bool = True) -> None:
        """
        Register every built-in layout that is not registered yet.

        Args:
            lock: Lock the registry afterwards
        """
        for parser_key, parser_class in cls.DEFAULT_PARSERS.items():
            if not cls.is_registered(parser_key):
                cls.register(parser_key, parser_class)

        if lock:
            cls.lock_registry()


class InvestmentParserFactory(ParserFactory):
    """Registry of broker/exchange export parsers, kept apart from bank parsers"""

    _locked = False
    _registry: Dict[str, Type[InvestmentParser]] = {}
    _base_class: type = InvestmentParser

    DEFAULT_PARSERS: Dict[Enum, type] = {
        InvestmentParserKey.BOURSE_DIRECT: BourseDirectParser,
        InvestmentParserKey.LINXEA: LinxeaParser,
        InvestmentParserKey.BINANCE: BinanceParser,
    }
