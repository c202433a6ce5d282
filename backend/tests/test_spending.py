"""
Tests for spending aggregation (service + router).
"""
import pytest

from conftest import client_for, insert_receipt, insert_receipt_item, make_app
from services.spending_service import calculate_spending_by_category, monthly_spending


class TestCalculateSpendingByCategory:

    def test_sums_per_category(self):
        [result] = calculate_spending_by_category([
            {"price_cents": 120, "currency": "$", "category": "Produce"},
            {"price_cents": 80, "currency": "$", "category": "Produce"},
            {"price_cents": 300, "currency": "$", "category": "Dairy"},
        ])
        assert result.currency == "$"
        assert result.by_category == {"Produce": "$2.00", "Dairy": "$3.00"}
        assert result.total == "$5.00"

    def test_non_positive_prices_ignored(self):
        [result] = calculate_spending_by_category([
            {"price_cents": 0, "currency": "$", "category": "Produce"},
            {"price_cents": -150, "currency": "$", "category": "Discount"},
            {"price_cents": 200, "currency": "$", "category": "Dairy"},
        ])
        assert result.by_category == {"Dairy": "$2.00"}
        assert result.total == "$2.00"

    def test_missing_category_is_other(self):
        [result] = calculate_spending_by_category([
            {"price_cents": 100, "currency": "$", "category": None},
            {"price_cents": 50, "currency": "$", "category": "  "},
        ])
        assert result.by_category == {"Other": "$1.50"}

    def test_currencies_never_mixed(self):
        dollars, euros = calculate_spending_by_category([
            {"price_cents": 500, "currency": "$", "category": "Food"},
            {"price_cents": 500, "currency": "€", "category": "Food"},
            {"price_cents": 250, "currency": "$", "category": "Food"},
        ])
        assert (dollars.currency, dollars.by_category, dollars.total) == ("$", {"Food": "$7.50"}, "$7.50")
        assert (euros.currency, euros.by_category, euros.total) == ("€", {"Food": "€5.00"}, "€5.00")

    def test_missing_currency_is_dollars(self):
        [result] = calculate_spending_by_category([
            {"price_cents": 100, "currency": None, "category": "Food"},
        ])
        assert result.currency == "$"

    def test_empty(self):
        assert calculate_spending_by_category([]) == []


class TestMonthlySpending:

    @pytest.mark.asyncio
    async def test_current_month_grouped(self, db):
        rid = await insert_receipt(db)
        await insert_receipt_item(db, rid, category="Produce", price_cents=250)
        await insert_receipt_item(db, rid, category="Produce", price_cents=150)
        await insert_receipt_item(db, rid, category="Dairy", price_cents=300)

        [month] = await monthly_spending(db, months=6)

        assert month.currency == "$"
        assert month.total == "$7.00"
        assert month.by_category == {"Produce": "$4.00", "Dairy": "$3.00"}
        assert month.month_label.endswith(str(month.year))

    @pytest.mark.asyncio
    async def test_one_summary_per_currency(self, db):
        home = await insert_receipt(db)
        await insert_receipt_item(db, home, category="Food", price_cents=500)
        away = await insert_receipt(db, currency="€")
        await insert_receipt_item(db, away, category="Food", price_cents=500, currency="€")

        dollars, euros = await monthly_spending(db, months=6)

        assert (dollars.year, dollars.month) == (euros.year, euros.month)
        assert (dollars.currency, dollars.total) == ("$", "$5.00")
        assert (euros.currency, euros.total) == ("€", "€5.00")
        assert euros.by_category == {"Food": "€5.00"}

    @pytest.mark.asyncio
    async def test_old_receipts_excluded(self, db):
        rid = await insert_receipt(db, receipt_date="2001-01-15")
        await insert_receipt_item(db, rid, price_cents=999)
        assert await monthly_spending(db, months=6) == []


class TestSpendingRouter:

    @pytest.fixture
    def app(self, db):
        from routers.spending import router
        return make_app(db, router, "/api/spending")

    @pytest.mark.asyncio
    async def test_categories(self, app, db):
        rid = await insert_receipt(db)
        await insert_receipt_item(db, rid, category="Bakery", price_cents=420)
        async with client_for(app) as client:
            resp = await client.get("/api/spending/categories")
        assert resp.json() == [{"currency": "$", "by_category": {"Bakery": "$4.20"}, "total": "$4.20"}]

    @pytest.mark.asyncio
    async def test_categories_split_by_currency(self, app, db):
        rid = await insert_receipt(db)
        await insert_receipt_item(db, rid, category="Bakery", price_cents=420)
        await insert_receipt_item(db, rid, category="Bakery", price_cents=100, currency="£")
        async with client_for(app) as client:
            resp = await client.get("/api/spending/categories")
        assert [c["total"] for c in resp.json()] == ["$4.20", "£1.00"]

    @pytest.mark.asyncio
    async def test_monthly_months_bounds(self, app):
        async with client_for(app) as client:
            resp = await client.get("/api/spending/monthly", params={"months": 0})
        assert resp.status_code == 422
