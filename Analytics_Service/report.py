import calendar
from datetime import datetime, timedelta
from functools import reduce
from typing import Dict, Optional, Tuple

from catalog_core.domain import KpiSummary, Order
from catalog_core.formatting import current_time, parse_ts

PERIODS: Tuple[str, ...] = ("today", "week", "month", "year")

PERIOD_LABELS: Dict[str, str] = {
    "today": "Hoje",
    "week": "Semana",
    "month": "Mês",
    "year": "Ano",
}

TOP_PRODUCTS_LIMIT = 5


# ============ Окно периода ============


def _shift_months(dt: datetime, months: int) -> datetime:
    """Сдвиг на календарные месяцы; 31 марта − 1 месяц → 28/29 февраля"""
    index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def period_start(period: str, now: datetime) -> datetime:
    """
    Начало окна: today: полночь дня оценки, week: now − 7 дней,
    month: now − 1 календарный месяц, year: now − 1 календарный год.
    """
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return _shift_months(now, -1)
    if period == "year":
        return _shift_months(now, -12)
    raise ValueError(f"Unknown period: {period!r}")


def filter_by_period(
    orders: Tuple[Order, ...], period: str, now: Optional[datetime] = None
) -> Tuple[Order, ...]:
    """Заказы с start <= ts <= now (обе границы включительно)"""
    at = current_time(now)
    start = period_start(period, at)
    return tuple(filter(lambda o: start <= parse_ts(o.ts) <= at, orders))


# ============ KPI ============


def total_sales(orders: Tuple[Order, ...]) -> int:
    return reduce(lambda acc, o: acc + o.total, orders, 0)


def average_ticket(orders: Tuple[Order, ...]) -> float:
    """Средний чек; для пустого набора 0, а не деление на ноль"""
    if not orders:
        return 0.0
    return total_sales(orders) / len(orders)


def top_products(
    orders: Tuple[Order, ...], k: int = TOP_PRODUCTS_LIMIT
) -> Tuple[Tuple[str, int], ...]:
    """
    Топ-K товаров по проданному количеству: ((name, qty), ...).
    При равенстве выше тот, кто встретился раньше (sorted стабилен, dict хранит порядок).
    """

    def accumulate_qty(acc: dict, order: Order) -> dict:
        for item in order.items:
            acc[item.name] = acc.get(item.name, 0) + item.quantity
        return acc

    product_qty = reduce(accumulate_qty, orders, {})
    ranked = sorted(product_qty.items(), key=lambda x: x[1], reverse=True)
    return tuple(ranked[:k])


def kpi_summary(
    orders: Tuple[Order, ...],
    period: str,
    now: Optional[datetime] = None,
    k: int = TOP_PRODUCTS_LIMIT,
) -> KpiSummary:
    """Сводка за период: выручка, число заказов, средний чек, топ товаров"""
    period_orders = filter_by_period(orders, period, now)
    return KpiSummary(
        total_sales=total_sales(period_orders),
        order_count=len(period_orders),
        avg_ticket=average_ticket(period_orders),
        top_products=top_products(period_orders, k),
    )
