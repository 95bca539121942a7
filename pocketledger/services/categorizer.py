"""
Keyword-based transaction categorization.

Maps a free-text bank description (plus optional merchant) to one label of a
fixed taxonomy. Rules are checked in a fixed priority order and the first
match wins; there is no scoring.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple


class CategoryLabel(str, Enum):
    FOOD = "food"
    TRANSPORT = "transport"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    BILLS = "bills"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    TRAVEL = "travel"
    GROCERIES = "groceries"
    FUEL = "fuel"
    SUBSCRIPTIONS = "subscriptions"
    INCOME = "income"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Category:
    label: CategoryLabel
    name: str
    emoji: str


TRANSACTION_CATEGORIES: Tuple[Category, ...] = (
    Category(CategoryLabel.FOOD, "Food & Dining", "\U0001f354"),
    Category(CategoryLabel.TRANSPORT, "Transport", "\U0001f697"),
    Category(CategoryLabel.SHOPPING, "Shopping", "\U0001f6cd️"),
    Category(CategoryLabel.ENTERTAINMENT, "Entertainment", "\U0001f3ac"),
    Category(CategoryLabel.BILLS, "Bills & Utilities", "\U0001f4a1"),
    Category(CategoryLabel.HEALTHCARE, "Healthcare", "\U0001f48a"),
    Category(CategoryLabel.EDUCATION, "Education", "\U0001f4da"),
    Category(CategoryLabel.TRAVEL, "Travel", "✈️"),
    Category(CategoryLabel.GROCERIES, "Groceries", "\U0001f6d2"),
    Category(CategoryLabel.FUEL, "Fuel", "⛽"),
    Category(CategoryLabel.SUBSCRIPTIONS, "Subscriptions", "\U0001f4b3"),
    Category(CategoryLabel.INCOME, "Income", "\U0001f4b0"),
    Category(CategoryLabel.OTHER, "Other", "\U0001f4e6"),
)

_CATEGORIES_BY_LABEL = {category.label: category for category in TRANSACTION_CATEGORIES}

_INCOME_KEYWORDS = (
    "salary", "wage", "pay", "income", "deposit", "refund",
    "bonus", "interest", "freelance", "dividend",
)
_INCOME_EXCLUSIONS = ("rent",)

# Checked in this order after income; bills sit between entertainment and
# education and use the heuristic below instead of a keyword list.
_KEYWORD_RULES: Tuple[Tuple[CategoryLabel, Tuple[str, ...]], ...] = (
    (
        CategoryLabel.HEALTHCARE,
        (
            "fitness", "health", "assessment", "hospital", "doctor", "medical",
            "pharmacy", "dentist", "optician", "boots", "nhs", "prescription",
        ),
    ),
    (
        CategoryLabel.TRANSPORT,
        (
            "transport", "uber", "taxi", "bus", "train", "tfl", "oyster",
            "parking", "toll", "delivery",
        ),
    ),
    (
        CategoryLabel.FUEL,
        ("petrol", "diesel", "fuel", "shell", "bp", "esso", "texaco"),
    ),
    (
        CategoryLabel.GROCERIES,
        (
            "weekly shop", "grocery", "groceries", "supermarket", "tesco",
            "sainsbury", "asda", "morrisons", "co-op", "waitrose", "lidl",
            "aldi", "iceland",
        ),
    ),
    (
        CategoryLabel.FOOD,
        (
            "dinner", "lunch", "breakfast", "meal", "restaurant", "cafe", "pub",
            "takeaway", "mcdonald", "kfc", "pizza", "burger", "subway",
            "starbucks", "costa", "nando", "deliveroo", "just eat", "uber eats",
        ),
    ),
    (
        CategoryLabel.SHOPPING,
        (
            "shopping", "shop", "equipment", "upgrade", "camera", "collection",
            "professional", "amazon", "ebay", "argos", "currys", "john lewis",
            "marks", "next", "h&m", "zara", "clothing", "fashion",
        ),
    ),
    (
        CategoryLabel.SUBSCRIPTIONS,
        (
            "audible", "subscription", "netflix", "spotify", "amazon prime",
            "disney", "youtube", "apple music", "monthly payment", "annual fee",
            "membership",
        ),
    ),
    (
        CategoryLabel.ENTERTAINMENT,
        ("entertainment", "cinema", "gym", "sport", "game", "playstation", "xbox"),
    ),
)

_TRAILING_RULES: Tuple[Tuple[CategoryLabel, Tuple[str, ...]], ...] = (
    (
        CategoryLabel.EDUCATION,
        (
            "education", "school", "university", "college", "course", "tuition",
            "books", "student",
        ),
    ),
    (
        CategoryLabel.TRAVEL,
        (
            "travel", "hotel", "flight", "airline", "booking", "expedia",
            "airbnb", "holiday",
        ),
    ),
)

_BILL_PROVIDERS = (
    # energy
    "british gas", "bg", "eon", "e.on", "edf", "scottish power", "npower", "sse",
    "bulb", "octopus", "green supplier", "utility warehouse",
    # water
    "thames water", "anglian water", "severn trent", "united utilities",
    "yorkshire water", "south west water", "water bill",
    # telecoms, internet and tv
    "bt", "ee", "o2", "vodafone", "three", "3 mobile", "virgin media", "sky",
    "talktalk", "plusnet", "giffgaff", "tesco mobile", "broadband", "wifi",
    "internet", "tv licence",
    # insurance
    "insurance", "policy", "premium", "aviva", "axa", "direct line", "churchill",
    "admiral", "compare the market", "go compare",
    # housing
    "rent", "mortgage", "council tax", "service charge", "ground rent", "letting",
    "property", "estate agent",
    # generic
    "bill", "payment", "direct debit", "dd", "standing order", "so",
    "monthly payment",
)

_BILL_TERMS = (
    "electric", "electricity", "gas", "water", "heating", "energy", "phone",
    "mobile", "landline", "broadband", "internet", "wifi", "council tax", "rates",
    "service charge", "maintenance", "insurance", "policy", "premium", "cover",
    "mortgage", "rent", "letting", "property",
)

_PAYMENT_INDICATORS = (
    "direct debit", "dd ", " dd", "standing order", "so ", " so", "auto payment",
    "recurring", "monthly payment", "quarterly payment", "annual payment",
    "autopay",
)

_DATE_PATTERN = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}")
_MONTH_YEAR_PATTERN = re.compile(
    r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)\s*\d{2,4}\b",
    re.IGNORECASE,
)
_DATED_BILL_WORDS = ("payment", "bill", "charge")


def _contains_any(text: str, needles: Iterable[str]) -> bool:
    return any(needle in text for needle in needles)


def is_bill_transaction(description: str) -> bool:
    """Heuristic bill detection used by the categorization cascade."""
    text = description.lower()
    if _contains_any(text, _BILL_PROVIDERS):
        return True
    if _contains_any(text, _BILL_TERMS):
        return True
    if _contains_any(text, _PAYMENT_INDICATORS):
        return True
    has_date = bool(_DATE_PATTERN.search(text) or _MONTH_YEAR_PATTERN.search(text))
    return has_date and _contains_any(text, _DATED_BILL_WORDS)


def categorize(description: Optional[str], merchant: Optional[str] = None) -> CategoryLabel:
    """Return the category for a transaction description; never raises."""
    text = f"{description or ''} {merchant or ''}".lower()

    if _contains_any(text, _INCOME_KEYWORDS) and not _contains_any(
        text, _INCOME_EXCLUSIONS
    ):
        return CategoryLabel.INCOME

    for label, keywords in _KEYWORD_RULES:
        if _contains_any(text, keywords):
            return label

    if is_bill_transaction(text):
        return CategoryLabel.BILLS

    for label, keywords in _TRAILING_RULES:
        if _contains_any(text, keywords):
            return label

    return CategoryLabel.OTHER


def categorize_many(
    items: Sequence[Tuple[Optional[str], Optional[str]]],
) -> list[CategoryLabel]:
    """Categorize ``(description, merchant)`` pairs in order."""
    return [categorize(description, merchant) for description, merchant in items]


def category_name(label: CategoryLabel | str) -> str:
    category = _lookup(label)
    return category.name if category else "Other"


def category_emoji(label: CategoryLabel | str) -> str:
    category = _lookup(label)
    return category.emoji if category else _CATEGORIES_BY_LABEL[CategoryLabel.OTHER].emoji


def all_categories() -> Tuple[Category, ...]:
    return TRANSACTION_CATEGORIES


def _lookup(label: CategoryLabel | str) -> Optional[Category]:
    try:
        return _CATEGORIES_BY_LABEL[CategoryLabel(label)]
    except ValueError:
        return None


__all__ = [
    "Category",
    "CategoryLabel",
    "TRANSACTION_CATEGORIES",
    "all_categories",
    "categorize",
    "categorize_many",
    "category_emoji",
    "category_name",
    "is_bill_transaction",
]
