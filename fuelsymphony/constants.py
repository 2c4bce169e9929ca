from __future__ import annotations

from typing import NamedTuple


class Choice(NamedTuple):
    label: str
    value: str


FUEL_TYPES: tuple[Choice, ...] = (
    Choice("Petrol", "petrol"),
    Choice("Diesel", "diesel"),
    Choice("Power Fuel", "power"),
    Choice("Electric", "electric"),
    Choice("AdBlue", "adblue"),
    Choice("LPG", "lpg"),
)

PRODUCT_CATEGORIES: tuple[Choice, ...] = (
    Choice("Lubricants", "lubricants"),
    Choice("Vehicle Care", "vehicle_care"),
    Choice("Spare Parts", "spare_parts"),
    Choice("Accessories", "accessories"),
    Choice("Snacks", "snacks"),
    Choice("Beverages", "beverages"),
    Choice("Tobacco", "tobacco"),
    Choice("Other", "other"),
)

EXPENSE_TYPES: tuple[Choice, ...] = (
    Choice("Utilities", "utilities"),
    Choice("Maintenance", "maintenance"),
    Choice("Salaries", "salaries"),
    Choice("Rent", "rent"),
    Choice("Supplies", "supplies"),
    Choice("Fuel Purchase", "fuel_purchase"),
    Choice("Product Purchase", "product_purchase"),
    Choice("Taxes", "taxes"),
    Choice("Insurance", "insurance"),
    Choice("Marketing", "marketing"),
    Choice("Bank Deposit", "bank_deposit"),
    Choice("Other", "other"),
)

PAYMENT_METHODS: tuple[Choice, ...] = (
    Choice("Cash", "cash"),
    Choice("Credit Card", "credit_card"),
    Choice("Debit Card", "debit_card"),
    Choice("Mobile Payment", "mobile_payment"),
    Choice("Credit Account", "credit"),
    Choice("Check", "check"),
)

TRANSACTION_TYPES: tuple[Choice, ...] = (
    Choice("Sale", "sale"),
    Choice("Refund", "refund"),
    Choice("Credit", "credit"),
)


def normalize_choice(choices: tuple[Choice, ...], raw: str) -> str:
    """Map a stored value or its display label onto the stored value."""
    text = (raw or "").strip()
    for item in choices:
        if text == item.value or text.lower() == item.label.lower():
            return item.value
    allowed = ", ".join(item.value for item in choices)
    raise ValueError(f"must be one of: {allowed}")


def as_options(choices: tuple[Choice, ...]) -> list[dict[str, str]]:
    return [item._asdict() for item in choices]
