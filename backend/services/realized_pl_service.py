"""P/L aggregation derived from lots and sales.

Realized P/L is never stored: each SELL is joined to its parent lot's
current price (cost basis) at read time, so repricing from splits flows
through automatically.
"""

import logging
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from models import Transaction
from schemas.reporting import (
    DailyPerformance,
    DailyTransaction,
    EndOfDayLot,
    ExchangePL,
    PeriodPL,
    PositionsAsOf,
    PositionSummary,
    RealizedPLSummary,
)
from schemas.transaction import SaleResponse
from services.exceptions import ValidationError
from services.lot_store import LotStore
from services.price_service import PriceService

logger = logging.getLogger(__name__)

PERIOD_FORMATS = {
    "month": "%Y-%m",
    "year": "%Y",
}


def realized_pl(sale: Transaction, cost_basis: Decimal | None) -> Decimal:
    """(sell price - cost basis) x quantity; zero when cost basis is unknown."""
    if cost_basis is None:
        return Decimal("0")
    return (Decimal(sale.price) - Decimal(cost_basis)) * Decimal(sale.quantity)


def _sale_response(sale: Transaction, cost_basis: Decimal | None) -> SaleResponse:
    return SaleResponse(
        id=sale.id,
        parent_buy_id=sale.parent_buy_id,
        transaction_date=sale.transaction_date,
        quantity=sale.quantity,
        price=sale.price,
        exchange=sale.exchange,
        cost_basis=cost_basis,
        realized_pl=realized_pl(sale, cost_basis),
    )


class RealizedPLService:
    """Read-only P/L queries over the lot store."""

    # --- Sales per lot ---

    @staticmethod
    def list_sales_for_lot(db: Session, buy_id: str, account_holder_id: str) -> list[SaleResponse]:
        """Sales drawn from one lot, with realized P/L.

        Returns an empty list when the lot doesn't exist for the holder.
        """
        if not buy_id:
            raise ValidationError("Parent Buy ID is required.")
        if not account_holder_id:
            raise ValidationError("Account Holder ID is required.")

        parent = LotStore.get_buy_lot(db, buy_id, account_holder_id)
        if parent is None:
            logger.info(
                "Parent BUY lot %s not found for holder %s when fetching sales",
                buy_id, account_holder_id,
            )
            return []

        sales = LotStore.get_sales_for_lots(db, [buy_id], account_holder_id)
        return [_sale_response(sale, parent.price) for sale in sales]

    @staticmethod
    def list_sales_for_lots(
        db: Session, buy_ids: Iterable[str], account_holder_id: str
    ) -> list[SaleResponse]:
        """Sales drawn from any of several lots, oldest first.

        A sale whose parent can't be resolved for this holder reports a
        realized P/L of zero instead of failing the whole batch.
        """
        ids = [i for i in dict.fromkeys(buy_ids) if i]
        if not ids:
            raise ValidationError("An array of lot ids is required.")
        if not account_holder_id:
            raise ValidationError("A specific Account Holder ID is required.")

        parents = LotStore.get_buy_lots(db, ids, account_holder_id)
        sales = LotStore.get_sales_for_lots(db, ids, account_holder_id)
        responses = []
        for sale in sales:
            parent = parents.get(sale.parent_buy_id)
            responses.append(_sale_response(sale, parent.price if parent else None))
        return responses

    # --- Aggregates ---

    @staticmethod
    def _parent_prices(db: Session, sales: list[Transaction]) -> dict[str, Decimal]:
        """Cost basis per sale id, one batched lookup per holder.

        Sales whose parent can't be resolved are absent from the result.
        """
        by_holder: dict[str, set[str]] = {}
        for sale in sales:
            if sale.parent_buy_id:
                by_holder.setdefault(sale.account_holder_id, set()).add(sale.parent_buy_id)
        parents: dict[tuple[str, str], Transaction] = {}
        for holder_id, ids in by_holder.items():
            for lot_id, lot in LotStore.get_buy_lots(db, ids, holder_id).items():
                parents[(holder_id, lot_id)] = lot

        prices = {}
        for sale in sales:
            parent = parents.get((sale.account_holder_id, sale.parent_buy_id))
            if parent is not None:
                prices[sale.id] = Decimal(parent.price)
        return prices

    @staticmethod
    def _sales_with_cost(
        db: Session,
        account_holder_id: str | None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[tuple[Transaction, Decimal | None]]:
        sales = [
            sale
            for sale in LotStore.get_sales(db, account_holder_id)
            if (start_date is None or sale.transaction_date >= start_date)
            and (end_date is None or sale.transaction_date <= end_date)
        ]
        prices = RealizedPLService._parent_prices(db, sales)
        return [(sale, prices.get(sale.id)) for sale in sales]

    @staticmethod
    def realized_pl_summary(
        db: Session,
        account_holder_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> RealizedPLSummary:
        """Realized P/L grouped by exchange, optionally within a date range (inclusive)."""
        if start_date and end_date and start_date > end_date:
            raise ValidationError("Start date must be on or before end date.")

        totals: OrderedDict[str, Decimal] = OrderedDict()
        for sale, cost_basis in RealizedPLService._sales_with_cost(
            db, account_holder_id, start_date, end_date
        ):
            totals[sale.exchange] = totals.get(sale.exchange, Decimal("0")) + realized_pl(sale, cost_basis)

        by_exchange = [
            ExchangePL(exchange=exchange, total_pl=total)
            for exchange, total in sorted(totals.items())
        ]
        return RealizedPLSummary(
            by_exchange=by_exchange,
            total=sum((row.total_pl for row in by_exchange), Decimal("0")),
        )

    @staticmethod
    def realized_pl_by_period(
        db: Session,
        account_holder_id: str | None = None,
        period: str = "month",
    ) -> list[PeriodPL]:
        """Realized P/L bucketed by calendar month or year, oldest first."""
        fmt = PERIOD_FORMATS.get(period)
        if fmt is None:
            raise ValidationError(
                f"Invalid period {period!r}; expected one of {sorted(PERIOD_FORMATS)}."
            )

        totals: dict[str, Decimal] = {}
        counts: dict[str, int] = {}
        for sale, cost_basis in RealizedPLService._sales_with_cost(db, account_holder_id):
            key = sale.transaction_date.strftime(fmt)
            totals[key] = totals.get(key, Decimal("0")) + realized_pl(sale, cost_basis)
            counts[key] = counts.get(key, 0) + 1

        return [
            PeriodPL(period=key, total_pl=totals[key], sale_count=counts[key])
            for key in sorted(totals)
        ]

    # --- Open positions ---

    @staticmethod
    def get_positions(
        db: Session,
        account_holder_id: str | None = None,
        price_service: PriceService | None = None,
    ) -> list[PositionSummary]:
        """Open positions per ticker with weighted average cost.

        Unrealized P/L is filled in only when ``price_service`` returns a
        price for the ticker.
        """
        grouped: OrderedDict[str, list[Transaction]] = OrderedDict()
        for lot in LotStore.get_all_open_lots(db, account_holder_id):
            grouped.setdefault(lot.ticker, []).append(lot)

        prices: dict[str, Decimal | None] = {}
        if price_service is not None and grouped:
            prices = price_service.get_prices(list(grouped))

        positions = []
        for ticker, lots in grouped.items():
            total_quantity = sum((Decimal(lot.quantity_remaining) for lot in lots), Decimal("0"))
            total_cost = sum(
                (Decimal(lot.price) * Decimal(lot.quantity_remaining) for lot in lots),
                Decimal("0"),
            )
            current_price = prices.get(ticker)
            market_value = None
            unrealized = None
            if current_price is not None:
                market_value = current_price * total_quantity
                unrealized = market_value - total_cost
            positions.append(
                PositionSummary(
                    ticker=ticker,
                    total_quantity=total_quantity,
                    lot_count=len(lots),
                    weighted_avg_cost=total_cost / total_quantity,
                    total_cost_basis=total_cost,
                    current_price=current_price,
                    market_value=market_value,
                    unrealized_pl=unrealized,
                )
            )
        return positions

    # --- Date-based views ---

    @staticmethod
    def positions_as_of(
        db: Session,
        as_of: date,
        account_holder_id: str | None = None,
    ) -> PositionsAsOf:
        """Transactions dated ``as_of`` plus the lots held at the end of it.

        End-of-day lots are the BUY lots bought on or before ``as_of`` that
        are still open, reported with their current remaining quantity.
        """
        daily = LotStore.get_transactions_on(db, as_of, account_holder_id)
        cost_basis = RealizedPLService._parent_prices(db, [tx for tx in daily if tx.is_sell])

        daily_transactions = []
        for tx in daily:
            parent_price = cost_basis.get(tx.id)
            daily_transactions.append(
                DailyTransaction(
                    id=tx.id,
                    ticker=tx.ticker,
                    exchange=tx.exchange,
                    transaction_type=tx.transaction_type,
                    quantity=tx.quantity,
                    price=tx.price,
                    transaction_date=tx.transaction_date,
                    parent_buy_id=tx.parent_buy_id,
                    account_holder_id=tx.account_holder_id,
                    parent_buy_price=parent_price,
                    realized_pl=realized_pl(tx, parent_price) if parent_price is not None else None,
                )
            )

        lots = LotStore.get_all_open_lots(db, account_holder_id, bought_on_or_before=as_of)
        end_of_day = [
            EndOfDayLot(
                id=lot.id,
                ticker=lot.ticker,
                exchange=lot.exchange,
                purchase_date=lot.transaction_date,
                cost_basis=lot.price,
                original_quantity=lot.original_quantity or lot.quantity,
                quantity_remaining=lot.quantity_remaining,
                limit_price_up=lot.limit_price_up,
                limit_up_expiration=lot.limit_up_expiration,
                limit_price_down=lot.limit_price_down,
                limit_down_expiration=lot.limit_down_expiration,
                account_holder_id=lot.account_holder_id,
            )
            for lot in lots
        ]
        return PositionsAsOf(
            as_of=as_of,
            daily_transactions=daily_transactions,
            end_of_day_positions=end_of_day,
        )

    @staticmethod
    def daily_performance(
        db: Session,
        as_of: date,
        account_holder_id: str | None = None,
        price_service: PriceService | None = None,
    ) -> DailyPerformance:
        """Value of open lots held on ``as_of`` against the previous day.

        Each lot is valued at the latest price for its ticker, falling back
        to its cost basis when no price is available. Prices are fetched
        once for both days.
        """
        previous = as_of - timedelta(days=1)
        held_today = LotStore.get_all_open_lots(db, account_holder_id, bought_on_or_before=as_of)
        held_before = [lot for lot in held_today if lot.transaction_date <= previous]

        prices: dict[str, Decimal | None] = {}
        tickers = list(dict.fromkeys(lot.ticker for lot in held_today))
        if price_service is not None and tickers:
            prices = price_service.get_prices(tickers)

        def total_value(lots: list[Transaction]) -> Decimal:
            total = Decimal("0")
            for lot in lots:
                price = prices.get(lot.ticker)
                if price is None:
                    price = Decimal(lot.price)
                total += price * Decimal(lot.quantity_remaining)
            return total

        current_value = total_value(held_today)
        previous_value = total_value(held_before)
        logger.debug(
            "Daily performance %s (holder %s): %s -> %s",
            as_of, account_holder_id, previous_value, current_value,
        )
        return DailyPerformance(
            as_of=as_of,
            previous_date=previous,
            current_value=current_value,
            previous_value=previous_value,
            daily_change=current_value - previous_value,
        )
