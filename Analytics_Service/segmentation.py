import logging
import math
from datetime import datetime
from functools import reduce
from typing import Dict, Optional, Tuple

from catalog_core.domain import CustomerMetric, Order
from catalog_core.formatting import as_utc, current_time, parse_ts

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

# ============ Сегменты RFM ============

CHAMPIONS = "Champions"
LOYAL = "Loyal"
NEEDS_ATTENTION = "Needs Attention"
NEW = "New"
AT_RISK = "At Risk"
LOST = "Lost"

# порядок вывода в дашборде
SEGMENTS: Tuple[str, ...] = (CHAMPIONS, LOYAL, NEEDS_ATTENTION, NEW, AT_RISK, LOST)

SEGMENT_DESCRIPTIONS: Dict[str, str] = {
    CHAMPIONS: "Compram frequentemente e gastam muito. Mime-os!",
    LOYAL: "Compram com regularidade. Tente aumentar o ticket.",
    NEW: "Primeira compra recente. Crie relacionamento.",
    NEEDS_ATTENTION: "Recência e frequência médias.",
    AT_RISK: "Bons clientes que pararam de comprar. Reative-os!",
    LOST: "Não compram há muito tempo e gastaram pouco.",
}


# ============ Скоринг (чистые функции) ============


def recency_score(recency_days: int) -> int:
    if recency_days <= 30:
        return 5
    if recency_days <= 60:
        return 4
    if recency_days <= 90:
        return 3
    if recency_days <= 120:
        return 2
    return 1


def frequency_score(order_count: int) -> int:
    if order_count >= 10:
        return 5
    if order_count >= 6:
        return 4
    if order_count >= 4:
        return 3
    if order_count >= 2:
        return 2
    return 1


def monetary_score(total_centavos: int) -> int:
    """Нижней корзины 1 нет: малые траты и отсутствие трат дают 2"""
    if total_centavos > 100_000:
        return 5
    if total_centavos > 50_000:
        return 4
    if total_centavos > 20_000:
        return 3
    return 2


def combined_score(frequency: int, monetary: int) -> int:
    """ceil((F + M) / 2) в целых числах"""
    return -(-(frequency_score(frequency) + monetary_score(monetary)) // 2)


def assign_segment(recency: int, frequency: int, monetary: int) -> str:
    """
    Правила проверяются по порядку, первое совпадение выигрывает.
    Комбинации вне таблицы (например R=3, FM=2) попадают в Needs Attention.
    """
    r = recency_score(recency)
    fm = combined_score(frequency, monetary)

    if r >= 4 and fm >= 4:
        return CHAMPIONS
    if r >= 3 and fm >= 3:
        return LOYAL
    if r >= 4 and fm <= 2:
        return NEW
    if r <= 2 and fm >= 4:
        return AT_RISK
    if r <= 2 and fm <= 2:
        return LOST
    return NEEDS_ATTENTION


def recency_days(last_order_ts: str, now: datetime) -> int:
    """
    Дни с последнего заказа, округление вверх.
    Заказ "из будущего" считается по модулю разницы, результат не бывает отрицательным.
    """
    at = as_utc(now)
    delta = (at - parse_ts(last_order_ts)).total_seconds()
    if delta < 0:
        logger.warning(
            "Order dated %s is after evaluation time %s", last_order_ts, at.isoformat()
        )
    return math.ceil(abs(delta) / SECONDS_PER_DAY)


# ============ Метрики клиентов ============


def _accumulate_customer(acc: dict, order: Order) -> dict:
    current = acc.get(order.customer_phone)
    if current is None:
        acc[order.customer_phone] = {
            "name": order.customer_name,
            "last_ts": order.ts,
            "total": order.total,
            "count": 1,
        }
        return acc
    if parse_ts(order.ts) > parse_ts(current["last_ts"]):
        current["last_ts"] = order.ts
    current["total"] += order.total
    current["count"] += 1
    return acc


def customer_metrics(
    orders: Tuple[Order, ...], now: Optional[datetime] = None
) -> Tuple[CustomerMetric, ...]:
    """
    Одна CustomerMetric на каждый телефон из заказов (порядок первого появления).
    Ничего не кэширует и не изменяет: пересчитывается на каждом вызове.
    """
    at = current_time(now)
    grouped = reduce(_accumulate_customer, orders, {})

    def to_metric(phone: str, entry: dict) -> CustomerMetric:
        recency = recency_days(entry["last_ts"], at)
        return CustomerMetric(
            phone=phone,
            name=entry["name"],
            last_order_ts=entry["last_ts"],
            total_spent=entry["total"],
            order_count=entry["count"],
            recency=recency,
            frequency=entry["count"],
            monetary=entry["total"],
            segment=assign_segment(recency, entry["count"], entry["total"]),
        )

    return tuple(to_metric(phone, entry) for phone, entry in grouped.items())


def group_by_segment(
    metrics: Tuple[CustomerMetric, ...],
) -> Dict[str, Tuple[CustomerMetric, ...]]:
    """Все шесть сегментов присутствуют в результате, даже пустые"""

    def add_member(acc: dict, metric: CustomerMetric) -> dict:
        acc[metric.segment] += (metric,)
        return acc

    return reduce(add_member, metrics, {segment: () for segment in SEGMENTS})


def segment_counts(metrics: Tuple[CustomerMetric, ...]) -> Dict[str, int]:
    return {segment: len(group) for segment, group in group_by_segment(metrics).items()}
