import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from wealth_tracker.categorization.categories import TRANSFER, transfer_category_for
from wealth_tracker.domain.enums import ResultSource, TransactionType
from wealth_tracker.domain.models import Transaction
from wealth_tracker.repositories.base import AccountRepository, TransactionRepository
from wealth_tracker.services.models import CategorizationResult

logger = logging.getLogger(__name__)

TRANSFER_CONFIDENCE = 0.9


class TransferDetector:
    """
    Last stage of the pipeline: money moving between the user's own accounts.

    An INCOME and an EXPENSE with the same amount, in different accounts,
    dated at most `window_days` apart form a transfer pair. Candidates are
    the input transactions plus the non-internal transactions of every
    other account around the input date range.

    Pairing is greedy: each income takes the first eligible expense.

    Matched input transactions are flagged internal and categorized from
    the type of the account on the other side (savings, investment, or a
    plain transfer).
    """

    def __init__(
        self,
        transaction_repository: TransactionRepository,
        account_repository: Optional[AccountRepository] = None,
        window_days: int = 3,
    ):
        self.transaction_repository = transaction_repository
        self.account_repository = account_repository
        self.window_days = window_days

    def apply(self, transactions: List[Transaction]) -> List[CategorizationResult]:
        """
        Detect transfers involving the given transactions.

        Args:
            transactions: Transactions being categorized

        Returns:
            One result per input transaction that is part of a pair
        """
        if not transactions:
            return []

        window = timedelta(days=self.window_days)
        account_ids = {txn.account_id for txn in transactions}
        start = min(txn.date for txn in transactions) - window
        end = max(txn.date for txn in transactions) + window

        others = self.transaction_repository.find_in_date_range(
            start, end, exclude_account_ids=account_ids, include_internal=False
        )

        by_amount: Dict[Decimal, List[Transaction]] = defaultdict(list)
        for txn in list(transactions) + others:
            by_amount[abs(txn.amount)].append(txn)

        input_ids = {txn.id for txn in transactions}
        matched = set()
        results = []

        for group in by_amount.values():
            if len(group) < 2:
                continue

            incomes = [t for t in group if t.type == TransactionType.INCOME]
            expenses = [t for t in group if t.type == TransactionType.EXPENSE]

            for income in incomes:
                if income.id in matched:
                    continue

                for expense in expenses:
                    if expense.id in matched or income.account_id == expense.account_id:
                        continue

                    days = abs((income.date - expense.date).days)
                    if days > self.window_days:
                        continue

                    matched.update((income.id, expense.id))

                    if income.id in input_ids:
                        results.append(self._result(income, expense, days, "expense"))
                    if expense.id in input_ids:
                        results.append(self._result(expense, income, days, "income"))
                    break

        if results:
            flagged = self.transaction_repository.mark_internal([r.transaction_id for r in results])
            logger.info("Detected %d internal transfers (%d flagged)", len(results), flagged)

        return results

    def _result(
        self,
        transaction: Transaction,
        counterpart: Transaction,
        days: int,
        counterpart_kind: str,
    ) -> CategorizationResult:
        return CategorizationResult(
            transaction_id=transaction.id,
            category_id=self._category_for(counterpart.account_id),
            source=ResultSource.TRANSFER,
            confidence=TRANSFER_CONFIDENCE,
            reasoning=f"Matched with {counterpart_kind} in another account (±{days}d)",
        )

    def _category_for(self, account_id: str) -> str:
        if self.account_repository is None:
            return TRANSFER

        account = self.account_repository.find_by_id(account_id)
        if account is None:
            return TRANSFER
        return transfer_category_for(account.type)
