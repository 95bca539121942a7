try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from pocketledger.services.categorizer import (
    CategoryLabel,
    all_categories,
    categorize,
    categorize_many,
    category_emoji,
    category_name,
    is_bill_transaction,
)


@pytest.mark.parametrize(
    ("description", "expected"),
    [
        ("TESCO GROCERY SHOPPING 12/05/2024", CategoryLabel.GROCERIES),
        ("Salary from ACME Ltd", CategoryLabel.INCOME),
        ("Uber trip to airport", CategoryLabel.TRANSPORT),
        ("Starbucks coffee", CategoryLabel.FOOD),
        ("Amazon purchase", CategoryLabel.SHOPPING),
        ("Netflix", CategoryLabel.SUBSCRIPTIONS),
        ("Thames Water", CategoryLabel.BILLS),
        ("British Gas direct debit", CategoryLabel.BILLS),
        ("School books", CategoryLabel.EDUCATION),
        ("Hotel stay in Paris", CategoryLabel.TRAVEL),
        ("zzz", CategoryLabel.OTHER),
    ],
)
def test_categorize_examples(description: str, expected: CategoryLabel) -> None:
    assert categorize(description) is expected


def test_rent_overrides_income_keywords() -> None:
    label = categorize("salary payment rent reimbursement")

    assert label is not CategoryLabel.INCOME
    assert label is CategoryLabel.BILLS


def test_merchant_is_considered() -> None:
    assert categorize("Card purchase", merchant="Shell") is CategoryLabel.FUEL


def test_categorize_is_total_and_repeatable() -> None:
    samples = ["", "   ", "???", "TESCO", "12/05/2024", "☃ snowman"]
    for description in samples:
        first = categorize(description)
        assert first in set(CategoryLabel)
        assert categorize(description) is first
    assert categorize(None) is CategoryLabel.OTHER


def test_dated_charge_counts_as_bill() -> None:
    assert is_bill_transaction("charge 12/05/2024") is True
    assert is_bill_transaction("charge mar 2024") is True
    assert is_bill_transaction("lunch 12/05/2024") is False


def test_categorize_many_preserves_order() -> None:
    labels = categorize_many([("Netflix", None), ("Tesco", None), ("", "Uber")])

    assert labels == [
        CategoryLabel.SUBSCRIPTIONS,
        CategoryLabel.GROCERIES,
        CategoryLabel.TRANSPORT,
    ]


def test_category_metadata() -> None:
    assert len(all_categories()) == 13
    assert category_name(CategoryLabel.BILLS) == "Bills & Utilities"
    assert category_name("groceries") == "Groceries"
    assert category_name("unknown") == "Other"
    assert category_emoji("unknown") == category_emoji(CategoryLabel.OTHER)
