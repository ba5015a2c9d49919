from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List

import pandas as pd
import pytest

from wealth_tracker.database.connection import DatabaseConfig, DatabaseManager
from wealth_tracker.domain.enums import TransactionType
from wealth_tracker.domain.models import Transaction
from wealth_tracker.parsers.factory import InvestmentParserFactory, ParserFactory

CAISSE_EPARGNE_HEADER = (
    "Date de comptabilisation;Libelle simplifie;Libelle operation;Reference;"
    "Informations complementaires;Type operation;Categorie;Sous categorie;"
    "Debit;Credit;Date operation;Date de valeur;Pointage operation"
)

CAISSE_EPARGNE_ENTREPRISE_HEADER = (
    "Date comptable;Libelle simplifie;Reference;Informations complementaires;"
    "Type operation;Debit;Credit;Date operation;Date de valeur;Pointage operation"
)

CREDIT_MUTUEL_HEADER = "Date;Date de valeur;Débit;Crédit;Libellé;Solde"

BOURSORAMA_HEADER = (
    "dateOp;dateVal;label;category;categoryParent;supplierFound;amount;"
    "comment;accountNum;accountLabel;accountbalance"
)


@pytest.fixture
def caisse_epargne_csv() -> str:
    """Caisse d'Epargne export with one debit and one credit"""
    return "\n".join([
        CAISSE_EPARGNE_HEADER,
        "15/01/2025;CB CARREFOUR;CB CARREFOUR MARKET 14/01;REF001;;Carte;"
        "Alimentation;Supermarché;-45,50;;14/01/2025;15/01/2025;0",
        "20/01/2025;VIR SALAIRE;VIR SEPA SALAIRE JANVIER;REF002;ACME SAS;Virement;"
        "Revenus;Salaires;;2 500,00;20/01/2025;20/01/2025;0",
    ])


@pytest.fixture
def caisse_epargne_entreprise_csv() -> str:
    return "\n".join([
        CAISSE_EPARGNE_ENTREPRISE_HEADER,
        "03/02/2025;LOYER LOCATAIRE;R123;Appartement A;Virement;;850,00;03/02/2025;03/02/2025;0",
        "05/02/2025;PRLV SYNDIC;R124;;Prelevement;-120,00;;05/02/2025;05/02/2025;0",
    ])


@pytest.fixture
def credit_mutuel_csv() -> str:
    return "\n".join([
        CREDIT_MUTUEL_HEADER,
        "10/03/2025;10/03/2025;-45,50;;PAIEMENT CB PHARMACIE;1 254,50",
        "11/03/2025;11/03/2025;;500,00;VIR LIVRET A;1 754,50",
    ])


@pytest.fixture
def boursorama_csv() -> str:
    return "\n".join([
        BOURSORAMA_HEADER,
        '2025-04-02;2025-04-02;"CARTE 01/04 MONOP | MONOPRIX PARIS";Alimentation;'
        'Vie quotidienne;monoprix;-23,40;;00012345;BOURSOBANK;1 000,00',
        '2025-04-05;2025-04-05;"VIR SEPA REMBOURSEMENT";Remboursements;Revenus;;'
        '60,00;Dentiste;00012345;BOURSOBANK;1 060,00',
    ])


def make_xlsx(rows: List[Dict[str, Any]]) -> bytes:
    """Build an XLSX export in memory from a list of rows"""
    buffer = BytesIO()
    pd.DataFrame(rows).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


@pytest.fixture
def xlsx_builder():
    return make_xlsx


def make_transaction(
    description: str = "CB CARREFOUR",
    amount: str = "45.50",
    txn_type: TransactionType = TransactionType.EXPENSE,
    txn_date: date = date(2025, 1, 15),
    account_id: str = "acc-checking",
    bank_category: str = None,
    **kwargs,
) -> Transaction:
    return Transaction(
        account_id=account_id,
        date=txn_date,
        description=description,
        amount=Decimal(amount),
        type=txn_type,
        bank_category=bank_category,
        **kwargs,
    )


@pytest.fixture
def transaction_factory():
    return make_transaction


@pytest.fixture
def default_parsers():
    """Registries filled with the built-in layouts, unlocked, reset afterwards"""
    ParserFactory._registry = {}
    ParserFactory._locked = False
    InvestmentParserFactory._registry = {}
    InvestmentParserFactory._locked = False

    ParserFactory.register_defaults(lock=False)
    InvestmentParserFactory.register_defaults(lock=False)

    yield

    ParserFactory._registry = {}
    ParserFactory._locked = False
    InvestmentParserFactory._registry = {}
    InvestmentParserFactory._locked = False


@pytest.fixture
def test_db(tmp_path):
    """
    Create a real test database.

    Use pytest's tmp_path fixture to create a temporary directory.
    Database is automatically cleaned up after each test.
    """
    db_manager = DatabaseManager(DatabaseConfig(tmp_path / "test.db"))
    db_manager.initialize_schema()

    yield db_manager

    db_manager.close()
