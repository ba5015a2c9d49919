import json

import pytest

from wealth_tracker.categorization.ai_categorizer import (
    AICategorizationOutcome,
    AICategorizer,
    build_system_prompt,
    build_user_message,
    parse_response,
)
from wealth_tracker.clients.text_generation import (
    Completion,
    TextGenerationClient,
    TextGenerationError,
)
from wealth_tracker.domain.enums import MatchType, ResultSource, TransactionType
from wealth_tracker.domain.models import CategoryRule


def reply(items, input_tokens=1000, output_tokens=200):
    return Completion(text=json.dumps(items), input_tokens=input_tokens, output_tokens=output_tokens)


@pytest.fixture
def client(mocker):
    return mocker.Mock(spec=TextGenerationClient)


@pytest.mark.unit
class TestPrompt:

    def test_system_prompt_lists_rules(self):
        rules = [CategoryRule.create("cat-utilities", "EDF", MatchType.CONTAINS)]

        prompt = build_system_prompt(rules)

        assert '- "EDF" → Charges (cat-utilities)' in prompt
        assert "cat-groceries" in prompt
        assert "PRLV" in prompt

    def test_system_prompt_without_rules(self):
        assert "(none yet)" in build_system_prompt([])

    def test_user_message(self, transaction_factory):
        # Arrange
        txn = transaction_factory(bank_category="Alimentation")

        # Act
        message = build_user_message([txn])

        # Assert
        header, payload = message.split("\n", 1)
        assert header == "Categorize these 1 transactions:"
        item, = json.loads(payload)
        assert item == {
            "id": txn.id,
            "description": "CB CARREFOUR",
            "amount": -45.5,
            "type": "EXPENSE",
            "date": "2025-01-15",
            "bankCategory": "Alimentation",
        }


@pytest.mark.unit
class TestParseResponse:

    def test_plain_json(self):
        assert parse_response('[{"id": "t1"}]') == [{"id": "t1"}]

    def test_code_fences_are_stripped(self):
        text = '```json\n[{"id": "t1"}]\n```'

        assert parse_response(text) == [{"id": "t1"}]

    def test_object_is_rejected(self):
        with pytest.raises(ValueError):
            parse_response('{"id": "t1"}')

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_response("Sure! Here are the categories")


@pytest.mark.unit
class TestAICategorizer:

    def test_disabled_without_client(self, transaction_factory):
        categorizer = AICategorizer(client=None)

        outcome = categorizer.apply([transaction_factory()])

        assert not categorizer.enabled
        assert outcome.results == []

    def test_batch_size_must_be_positive(self, client):
        with pytest.raises(ValueError):
            AICategorizer(client, batch_size=0)

    def test_valid_results(self, client, transaction_factory):
        # Arrange
        txn = transaction_factory()
        client.complete.return_value = reply([
            {"id": txn.id, "category": "cat-groceries", "confidence": 0.9, "reasoning": "Supermarket"},
        ])

        # Act
        outcome = AICategorizer(client).apply([txn])

        # Assert
        result, = outcome.results
        assert result.transaction_id == txn.id
        assert result.category_id == "cat-groceries"
        assert result.source == ResultSource.AI
        assert result.confidence == 0.9
        assert result.reasoning == "Supermarket"
        assert outcome.input_tokens == 1000
        assert outcome.output_tokens == 200

    def test_invalid_items_are_dropped(self, client, transaction_factory):
        # Arrange
        txn = transaction_factory()
        client.complete.return_value = reply([
            {"id": "unknown-id", "category": "cat-groceries", "confidence": 0.9},
            {"id": txn.id, "category": "cat-made-up", "confidence": 0.9},
            {"id": txn.id, "category": "cat-groceries", "confidence": 0},
            {"id": txn.id, "category": "cat-groceries", "confidence": "high"},
            {"id": ["not", "hashable"], "category": "cat-groceries", "confidence": 0.9},
            "not an object",
        ])

        # Act
        outcome = AICategorizer(client).apply([txn])

        # Assert
        assert outcome.results == []

    def test_confidence_is_capped(self, client, transaction_factory):
        txn = transaction_factory()
        client.complete.return_value = reply([
            {"id": txn.id, "category": "cat-groceries", "confidence": 1.0},
        ])

        outcome = AICategorizer(client).apply([txn])

        assert outcome.results[0].confidence == 0.95

    def test_batches(self, client, transaction_factory):
        # Arrange
        transactions = [transaction_factory(description=f"TXN {i}") for i in range(5)]
        client.complete.return_value = reply([])

        # Act
        AICategorizer(client, batch_size=2).apply(transactions)

        # Assert
        assert client.complete.call_count == 3
        last_message = client.complete.call_args[0][1]
        assert last_message.startswith("Categorize these 1 transactions:")

    def test_failed_batch_is_retried(self, client, transaction_factory):
        # Arrange
        txn = transaction_factory()
        client.complete.side_effect = [
            TextGenerationError("timeout"),
            reply([{"id": txn.id, "category": "cat-groceries", "confidence": 0.8}]),
        ]

        # Act
        outcome = AICategorizer(client, max_retries=1).apply([txn])

        # Assert
        assert len(outcome.results) == 1
        assert outcome.failed_batches == 0

    def test_failed_batch_is_skipped_after_retries(self, client, transaction_factory):
        # Arrange
        client.complete.side_effect = [
            Completion(text="not json"),
            Completion(text="still not json"),
            reply([]),
        ]
        first = [transaction_factory(description=f"A{i}") for i in range(2)]
        second = [transaction_factory(description="B")]

        # Act
        outcome = AICategorizer(client, batch_size=2, max_retries=1).apply(first + second)

        # Assert
        assert outcome.failed_batches == 1
        assert client.complete.call_count == 3

    def test_rules_are_sent_as_hints(self, client, transaction_factory):
        client.complete.return_value = reply([])
        rules = [CategoryRule.create("cat-subscriptions", "NETFLIX")]

        AICategorizer(client).apply([transaction_factory()], rules)

        system_prompt = client.complete.call_args[0][0]
        assert '"NETFLIX"' in system_prompt

    def test_income_amount_is_positive(self, transaction_factory):
        txn = transaction_factory(txn_type=TransactionType.INCOME, amount="2500")

        item, = json.loads(build_user_message([txn]).split("\n", 1)[1])

        assert item["amount"] == 2500.0


@pytest.mark.unit
class TestOutcome:

    def test_estimated_cost(self):
        outcome = AICategorizationOutcome(input_tokens=1_000_000, output_tokens=1_000_000)

        assert outcome.estimated_cost == pytest.approx(1.5)
