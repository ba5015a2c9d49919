import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from wealth_tracker.categorization.categories import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    SPECIAL_CATEGORIES,
    category_name,
    is_valid_category,
)
from wealth_tracker.clients.text_generation import TextGenerationClient
from wealth_tracker.domain.enums import ResultSource
from wealth_tracker.domain.models import CategoryRule, Transaction
from wealth_tracker.services.models import CategorizationResult

logger = logging.getLogger(__name__)

# Haiku pricing, USD per million tokens
INPUT_COST_PER_MTOK = 0.25
OUTPUT_COST_PER_MTOK = 1.25

_CODE_FENCE = re.compile(r"```(?:json)?\n?")

FRENCH_BANKING_CONTEXT = """French banking transaction patterns:
- "CB" = Carte Bancaire (card payment)
- "VIR" or "VIREMENT" = Bank transfer
- "PRLV" or "PRELEVEMENT" = Direct debit
- "ECH PRET" = Loan installment
- "DGFIP" = Tax authority
- "CHQ" = Check
- "RET DAB" = ATM withdrawal
- Dates in descriptions are DD.MM or DD/MM format"""

CRITICAL_RULES = """CRITICAL RULES:
1. Income transactions (positive amounts) MUST use income categories (cat-salary, cat-freelance, etc.)
2. Expense transactions (negative amounts) MUST use expense categories (cat-housing, cat-groceries, etc.)
3. If you're unsure, prefer cat-other-income or cat-other-expense over wrong categories
4. Confidence: 0.9 if very clear, 0.7-0.8 if somewhat clear, 0.5-0.6 if guessing
5. Use the existing manual rules as strong signals for similar patterns

Respond with a JSON array. Each object must have: id, category, confidence, reasoning.
No markdown, no code fences, just valid JSON."""


def _definitions(title: str, categories: Dict[str, str]) -> str:
    lines = [title]
    lines.extend(f"- {category_id}: {text}" for category_id, text in categories.items())
    return "\n".join(lines)


def category_definitions() -> str:
    return "\n\n".join([
        _definitions(
            "INCOME CATEGORIES (use only for positive amounts / income transactions):",
            INCOME_CATEGORIES,
        ),
        _definitions(
            "EXPENSE CATEGORIES (use only for negative amounts / expense transactions):",
            EXPENSE_CATEGORIES,
        ),
        _definitions("SPECIAL:", SPECIAL_CATEGORIES),
    ])


def build_system_prompt(rules: Sequence[CategoryRule]) -> str:
    """System prompt listing valid categories, banking jargon and the user's rules"""
    if rules:
        rule_lines = "\n".join(
            f'- "{rule.pattern}" → {category_name(rule.category_id)} ({rule.category_id})'
            for rule in rules
        )
    else:
        rule_lines = "(none yet)"

    return (
        "You are a French personal finance categorization assistant. "
        "Your job is to categorize bank transactions into the correct categories.\n\n"
        f"{category_definitions()}\n\n"
        f"{FRENCH_BANKING_CONTEXT}\n\n"
        "EXISTING MANUAL RULES (these patterns have been confirmed by the user):\n"
        f"{rule_lines}\n\n"
        f"{CRITICAL_RULES}"
    )


def build_user_message(transactions: Sequence[Transaction]) -> str:
    items = [
        {
            "id": txn.id,
            "description": txn.description,
            "amount": float(txn.signed_amount),
            "type": txn.type.value,
            "date": txn.date.isoformat(),
            "bankCategory": txn.bank_category,
        }
        for txn in transactions
    ]
    return f"Categorize these {len(items)} transactions:\n{json.dumps(items, indent=2, ensure_ascii=False)}"


def parse_response(text: str) -> List[Dict[str, Any]]:
    """
    Parse the model reply into a list of items.

    Markdown code fences are tolerated.

    Raises:
        ValueError: If the reply is not a JSON array
    """
    cleaned = _CODE_FENCE.sub("", text).strip()
    items = json.loads(cleaned)
    if not isinstance(items, list):
        raise ValueError(f"Expected a JSON array, got {type(items).__name__}")
    return items


@dataclass
class AICategorizationOutcome:
    results: List[CategorizationResult] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    failed_batches: int = 0

    @property
    def estimated_cost(self) -> float:
        return (
            self.input_tokens * INPUT_COST_PER_MTOK / 1_000_000
            + self.output_tokens * OUTPUT_COST_PER_MTOK / 1_000_000
        )


class AICategorizer:
    """
    Third stage of the pipeline: a language model for what rules and bank
    labels could not place.

    The model reply is untrusted. Items with an unknown transaction id, a
    category outside the canonical set or a non-positive confidence are
    dropped, and confidences are capped at `max_confidence`.
    """

    def __init__(
        self,
        client: Optional[TextGenerationClient],
        batch_size: int = 50,
        max_retries: int = 1,
        max_confidence: float = 0.95,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.client = client
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.max_confidence = max_confidence

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def apply(
        self,
        transactions: List[Transaction],
        rules: Sequence[CategoryRule] = (),
    ) -> AICategorizationOutcome:
        """
        Categorize transactions in batches.

        Args:
            transactions: Transactions no earlier stage matched
            rules: Active manual rules, given to the model as hints

        Returns:
            Validated results and token usage
        """
        outcome = AICategorizationOutcome()

        if not self.enabled:
            logger.info("No text generation client configured, skipping AI categorization")
            return outcome

        if not transactions:
            return outcome

        system_prompt = build_system_prompt(rules)

        for start in range(0, len(transactions), self.batch_size):
            batch = transactions[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1
            self._run_batch(batch, batch_number, system_prompt, outcome)

        logger.info(
            "AI categorized %d/%d transactions, tokens: %din/%dout, estimated cost: $%.4f",
            len(outcome.results), len(transactions),
            outcome.input_tokens, outcome.output_tokens, outcome.estimated_cost,
        )
        return outcome

    def _run_batch(
        self,
        batch: List[Transaction],
        batch_number: int,
        system_prompt: str,
        outcome: AICategorizationOutcome,
    ) -> None:
        user_message = build_user_message(batch)
        batch_ids = {txn.id for txn in batch}

        for attempt in range(self.max_retries + 1):
            try:
                completion = self.client.complete(system_prompt, user_message)
                items = parse_response(completion.text)
            except Exception as e:
                if attempt < self.max_retries:
                    logger.warning("AI batch %d failed (attempt %d): %s", batch_number, attempt + 1, e)
                    continue
                logger.error(
                    "AI batch %d failed after %d attempts: %s",
                    batch_number, self.max_retries + 1, e,
                )
                outcome.failed_batches += 1
                return

            outcome.input_tokens += completion.input_tokens
            outcome.output_tokens += completion.output_tokens
            outcome.results.extend(self._validate(items, batch_ids))
            return

    def _validate(self, items: List[Any], batch_ids: Set[str]) -> List[CategorizationResult]:
        results = []

        for item in items:
            if not isinstance(item, dict):
                continue

            transaction_id = item.get("id")
            category_id = item.get("category")
            try:
                confidence = float(item.get("confidence", 0))
            except (TypeError, ValueError):
                continue

            if not isinstance(transaction_id, str) or transaction_id not in batch_ids:
                logger.debug("Discarding AI result for unknown transaction %r", transaction_id)
                continue
            if not isinstance(category_id, str) or not is_valid_category(category_id):
                logger.debug("Discarding AI result with unknown category %r", category_id)
                continue
            if confidence <= 0:
                continue

            results.append(CategorizationResult(
                transaction_id=transaction_id,
                category_id=category_id,
                source=ResultSource.AI,
                confidence=min(confidence, self.max_confidence),
                reasoning=item.get("reasoning"),
            ))

        return results
