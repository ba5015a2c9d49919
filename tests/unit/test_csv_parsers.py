from datetime import date
from decimal import Decimal

import pytest

from wealth_tracker.parsers.boursorama import BoursoramaParser
from wealth_tracker.parsers.caisse_epargne import CaisseEpargneParser
from wealth_tracker.parsers.caisse_epargne_entreprise import CaisseEpargneEntrepriseParser
from wealth_tracker.parsers.credit_mutuel import CreditMutuelParser


@pytest.mark.unit
class TestCaisseEpargneParser:

    def setup_method(self):
        self.parser = CaisseEpargneParser()

    def test_parse_debit_and_credit(self, caisse_epargne_csv):
        # Act
        transactions = self.parser.parse(caisse_epargne_csv)

        # Assert
        assert len(transactions) == 2

        debit, credit = transactions
        assert debit.amount == Decimal("-45.50")
        assert credit.amount == Decimal("2500.00")

    def test_operation_date_is_preferred(self, caisse_epargne_csv):
        debit = self.parser.parse(caisse_epargne_csv)[0]

        assert debit.date == date(2025, 1, 14)
        assert debit.value_date == date(2025, 1, 15)

    def test_detailed_label_category_and_info(self, caisse_epargne_csv):
        debit, credit = self.parser.parse(caisse_epargne_csv)

        assert debit.description == "CB CARREFOUR MARKET 14/01"
        assert debit.raw_category == "Alimentation > Supermarché"
        assert debit.reference == "REF001"
        assert debit.additional_info == "Type: Carte"
        assert credit.additional_info == "Type: Virement | ACME SAS"

    def test_accepts_cp1252_bytes(self, caisse_epargne_csv):
        # Arrange
        content = caisse_epargne_csv.encode("cp1252")

        # Act
        transactions = self.parser.parse(content)

        # Assert
        assert transactions[0].raw_category == "Alimentation > Supermarché"

    def test_accepts_utf8_bom(self, caisse_epargne_csv):
        content = caisse_epargne_csv.encode("utf-8-sig")

        assert len(self.parser.parse(content)) == 2

    def test_header_only_returns_empty(self, caisse_epargne_csv):
        header = caisse_epargne_csv.splitlines()[0]

        assert self.parser.parse(header) == []
        assert self.parser.parse("") == []

    def test_skips_short_and_undated_rows(self, caisse_epargne_csv):
        # Arrange
        content = caisse_epargne_csv + "\nnot;enough;columns\n" + (
            "pas une date;X;X;;;;;;-1,00;;pas une date;;0"
        )

        # Act
        transactions = self.parser.parse(content)

        # Assert
        assert len(transactions) == 2

    def test_skips_rows_without_amount(self, caisse_epargne_csv):
        content = caisse_epargne_csv + "\n21/01/2025;INFO;INFO;;;;;;;;21/01/2025;21/01/2025;0"

        assert len(self.parser.parse(content)) == 2

    @pytest.mark.parametrize("category, sub_category, expected", [
        ("Loisirs", "", "Loisirs"),
        ("", "Cinéma", None),
        ("", "", None),
    ])
    def test_category_needs_parent(self, caisse_epargne_csv, category, sub_category, expected):
        content = caisse_epargne_csv.splitlines()[0] + (
            f"\n22/01/2025;CB UGC;CB UGC CINE;REF009;;Carte;{category};{sub_category};"
            "-11,90;;22/01/2025;22/01/2025;0"
        )

        transaction, = self.parser.parse(content)

        assert transaction.raw_category == expected


@pytest.mark.unit
class TestCaisseEpargneEntrepriseParser:

    def test_parse(self, caisse_epargne_entreprise_csv):
        # Act
        rent, syndic = CaisseEpargneEntrepriseParser().parse(caisse_epargne_entreprise_csv)

        # Assert
        assert rent.date == date(2025, 2, 3)
        assert rent.amount == Decimal("850.00")
        assert rent.description == "LOYER LOCATAIRE"
        assert rent.raw_category is None
        assert rent.additional_info == "Type: Virement | Appartement A"

        assert syndic.amount == Decimal("-120.00")
        assert syndic.reference == "R124"


@pytest.mark.unit
class TestCreditMutuelParser:

    def test_parse_keeps_balance(self, credit_mutuel_csv):
        pharmacy, savings = CreditMutuelParser().parse(credit_mutuel_csv)

        assert pharmacy.amount == Decimal("-45.50")
        assert pharmacy.description == "PAIEMENT CB PHARMACIE"
        assert pharmacy.balance == Decimal("1254.50")

        assert savings.amount == Decimal("500.00")
        assert savings.date == date(2025, 3, 11)

    def test_latin1_export(self, credit_mutuel_csv):
        content = credit_mutuel_csv.encode("latin-1")

        assert len(CreditMutuelParser().parse(content)) == 2


@pytest.mark.unit
class TestBoursoramaParser:

    def test_parse_signed_amounts_and_iso_dates(self, boursorama_csv):
        card, refund = BoursoramaParser().parse(boursorama_csv.encode("utf-8-sig"))

        assert card.date == date(2025, 4, 2)
        assert card.amount == Decimal("-23.40")
        assert refund.amount == Decimal("60.00")

    def test_short_label_and_category(self, boursorama_csv):
        card, refund = BoursoramaParser().parse(boursorama_csv)

        assert card.description == "CARTE 01/04 MONOP"
        assert card.raw_category == "Vie quotidienne > Alimentation"
        assert card.balance == Decimal("1000.00")
        assert refund.additional_info == "Dentiste"
