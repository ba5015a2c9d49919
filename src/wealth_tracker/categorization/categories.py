"""
Canonical category identifiers.

Every stage of the pipeline must produce one of these ids; anything else
(in particular AI output) is rejected.
"""
from typing import Dict, FrozenSet

from wealth_tracker.domain.enums import AccountType

# Income
SALARY = "cat-salary"
FREELANCE = "cat-freelance"
DIVIDENDS = "cat-dividends"
RENTAL_INCOME = "cat-rental-income"
REFUND = "cat-refund"
OTHER_INCOME = "cat-other-income"

# Expenses
HOUSING = "cat-housing"
UTILITIES = "cat-utilities"
GROCERIES = "cat-groceries"
RESTAURANTS = "cat-restaurants"
TRANSPORT = "cat-transport"
HEALTH = "cat-health"
INSURANCE = "cat-insurance"
SUBSCRIPTIONS = "cat-subscriptions"
SHOPPING = "cat-shopping"
LEISURE = "cat-leisure"
TRAVEL = "cat-travel"
EDUCATION = "cat-education"
TAXES = "cat-taxes"
FEES = "cat-fees"
SAVINGS = "cat-savings"
INVESTMENT = "cat-investment"
LOAN_PAYMENT = "cat-loan-payment"
OTHER_EXPENSE = "cat-other-expense"

# Special
TRANSFER = "cat-transfer"

INCOME_CATEGORIES: Dict[str, str] = {
    SALARY: "Salaire - Regular employment income, pay stubs",
    FREELANCE: "Freelance - Self-employment, consulting, freelance payments",
    DIVIDENDS: "Dividendes - Stock dividends, investment returns",
    RENTAL_INCOME: "Revenus locatifs - Rental income from property",
    REFUND: "Remboursement - Refunds, reimbursements, cashback",
    OTHER_INCOME: "Autres revenus - Any other income not fitting above",
}

EXPENSE_CATEGORIES: Dict[str, str] = {
    HOUSING: "Logement - Rent, mortgage, property charges, syndic",
    UTILITIES: "Charges - Electricity, gas, water, phone, internet",
    GROCERIES: "Courses - Supermarkets, grocery stores, food shopping",
    RESTAURANTS: "Restaurants - Dining out, food delivery, cafes",
    TRANSPORT: "Transport - Fuel, public transit, taxis, ride-sharing, tolls",
    HEALTH: "Santé - Pharmacy, doctors, hospital, medical expenses",
    INSURANCE: "Assurance - All insurance premiums (home, car, health)",
    SUBSCRIPTIONS: "Abonnements - Streaming, apps, recurring digital services",
    SHOPPING: "Shopping - Clothing, electronics, general retail",
    LEISURE: "Loisirs - Entertainment, sports, hobbies, cinema",
    TRAVEL: "Voyages - Hotels, flights, vacation expenses",
    EDUCATION: "Éducation - School, courses, training, books",
    TAXES: "Impôts - Income tax, property tax, government fees (DGFIP)",
    FEES: "Frais bancaires - Bank fees, card fees, commissions",
    SAVINGS: "Épargne - Savings account transfers, livret transfers",
    INVESTMENT: "Investissement - Investment purchases, brokerage transfers",
    LOAN_PAYMENT: "Crédit - Loan repayments, mortgage installments (ECH PRET)",
    OTHER_EXPENSE: "Autres dépenses - Anything that doesn't fit above",
}

SPECIAL_CATEGORIES: Dict[str, str] = {
    TRANSFER: "Virement interne - Internal transfers between own accounts",
}

VALID_CATEGORY_IDS: FrozenSet[str] = frozenset(
    {**INCOME_CATEGORIES, **EXPENSE_CATEGORIES, **SPECIAL_CATEGORIES}
)


def is_valid_category(category_id: str) -> bool:
    return category_id in VALID_CATEGORY_IDS


def transfer_category_for(account_type: AccountType) -> str:
    """Category of an internal transfer, given the type of the other account"""
    if account_type == AccountType.SAVINGS:
        return SAVINGS
    if account_type == AccountType.INVESTMENT:
        return INVESTMENT
    return TRANSFER


def category_name(category_id: str) -> str:
    """Display name of a category ("cat-groceries" -> "Courses")"""
    for definitions in (INCOME_CATEGORIES, EXPENSE_CATEGORIES, SPECIAL_CATEGORIES):
        if category_id in definitions:
            return definitions[category_id].split(" - ", 1)[0]
    return category_id
