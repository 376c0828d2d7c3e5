"""Indian fiscal year (April to March)."""

from datetime import date

# April, 1-indexed
FISCAL_YEAR_START_MONTH = 4


def fiscal_year_start(on: date) -> int:
    """Calendar year in which the fiscal year containing `on` began."""
    return on.year if on.month >= FISCAL_YEAR_START_MONTH else on.year - 1


def fiscal_year_label(on: date) -> str:
    """
    Label like "2024-2025".

    >>> fiscal_year_label(date(2024, 2, 15))
    '2023-2024'
    >>> fiscal_year_label(date(2024, 4, 1))
    '2024-2025'
    """
    start = fiscal_year_start(on)
    return f"{start}-{start + 1}"
