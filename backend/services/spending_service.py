"""
Spending aggregation for the dashboard, by category and by month.

Amounts in different currencies are never added together: every summary
covers exactly one currency.
"""
from calendar import month_abbr

import aiosqlite

from models.schemas import CategorySpending, MonthSummary
from services.money import DEFAULT_CURRENCY, Money


def calculate_spending_by_category(items: list[dict]) -> list[CategorySpending]:
    """
    Sum item prices per category, one summary per currency (in order of
    first appearance).  Items are dicts with price_cents, currency and
    category; non-positive prices are ignored and a missing category counts
    as "Other".
    """
    totals: dict[str, dict[str, int]] = {}
    for item in items:
        cents = item.get("price_cents")
        if cents is None or cents <= 0:
            continue
        currency = item.get("currency") or DEFAULT_CURRENCY
        category = (item.get("category") or "").strip() or "Other"
        by_cat = totals.setdefault(currency, {})
        by_cat[category] = by_cat.get(category, 0) + cents

    return [
        CategorySpending(
            currency=currency,
            by_category={c: Money(v, currency).format() for c, v in by_cat.items()},
            total=Money(sum(by_cat.values()), currency).format(),
        )
        for currency, by_cat in totals.items()
    ]


async def spending_by_category(db: aiosqlite.Connection) -> list[CategorySpending]:
    async with db.execute(
        "SELECT category, price_cents, currency FROM receipt_items ORDER BY id"
    ) as cur:
        rows = await cur.fetchall()
    return calculate_spending_by_category([dict(r) for r in rows])


async def monthly_spending(db: aiosqlite.Connection, months: int = 6) -> list[MonthSummary]:
    """Receipt item spending by (year, month, currency, category) for the last N months."""
    async with db.execute(
        """
        SELECT
            CAST(strftime('%Y', COALESCE(r.receipt_date, r.created_at)) AS INTEGER) AS year,
            CAST(strftime('%m', COALESCE(r.receipt_date, r.created_at)) AS INTEGER) AS month,
            ri.currency,
            COALESCE(NULLIF(TRIM(ri.category), ''), 'Other') AS category,
            SUM(ri.price_cents) AS total_cents
        FROM receipt_items ri
        JOIN receipts r ON r.id = ri.receipt_id
        WHERE ri.price_cents > 0
          AND COALESCE(r.receipt_date, r.created_at) >= date('now', ? || ' months')
        GROUP BY year, month, ri.currency, category
        ORDER BY year, month, ri.currency
        """,
        (f"-{months}",),
    ) as cur:
        rows = await cur.fetchall()

    month_map: dict[tuple, dict[str, int]] = {}
    for row in rows:
        key = (row["year"], row["month"], row["currency"] or DEFAULT_CURRENCY)
        by_cat = month_map.setdefault(key, {})
        by_cat[row["category"]] = by_cat.get(row["category"], 0) + row["total_cents"]

    return [
        MonthSummary(
            year=year, month=month,
            month_label=f"{month_abbr[month]} {year}",
            currency=currency,
            total=Money(sum(by_cat.values()), currency).format(),
            by_category={c: Money(v, currency).format() for c, v in by_cat.items()},
        )
        for (year, month, currency), by_cat in sorted(month_map.items())
    ]
