"""Политика тарифов: лимиты плана, флаги возможностей и цикл подписки магазина."""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from .domain import PlanLimits, Product, Store, SubscriptionPlan
from .formatting import current_time, parse_ts, to_iso
from .ftypes import Either

logger = logging.getLogger(__name__)

SUBSCRIPTION_CYCLE_DAYS = 30
UPGRADE_PLAN_ID = "pro"

PAID = "paid"
PENDING = "pending"

# состояния цикла подписки (вычисляются, не хранятся)
PAID_ACTIVE = "paid_active"
PENDING_ACTIVE = "pending_active"
EXPIRED = "expired"

STORE_ACTIONS: Tuple[str, ...] = ("extend_pending", "mark_paid")

FALLBACK_PLAN = SubscriptionPlan(
    id="free",
    name="Iniciante",
    price=0,
    description="Para quem está começando",
    features=(),
    limits=PlanLimits(max_products=10),
)


# ============ Лимиты плана ============


def resolve_plan(
    plan_id: str, plans: Tuple[SubscriptionPlan, ...]
) -> SubscriptionPlan:
    """
    Всегда возвращает план: если plan_id удалён из каталога: первый план каталога,
    если каталог пуст: FALLBACK_PLAN.
    """
    found = next((p for p in plans if p.id == plan_id), None)
    if found is not None:
        return found
    fallback = plans[0] if plans else FALLBACK_PLAN
    logger.warning("Plan %r not found, falling back to %r", plan_id, fallback.id)
    return fallback


def active_product_count(products: Tuple[Product, ...]) -> int:
    return sum(1 for p in products if not p.is_deleted)


def is_at_product_limit(plan: SubscriptionPlan, active_count: int) -> bool:
    return active_count >= plan.limits.max_products


def capabilities(plan: SubscriptionPlan) -> Dict[str, bool]:
    return {
        "can_customize_banner": plan.limits.can_customize_banner,
        "can_use_integrations": plan.limits.can_use_integrations,
        "can_use_custom_domain": plan.limits.can_use_custom_domain,
    }


def plan_usage(
    store: Store,
    plans: Tuple[SubscriptionPlan, ...],
    products: Tuple[Product, ...],
) -> dict:
    """Сводка по плану магазина для гейтинга UI"""
    plan = resolve_plan(store.plan, plans)
    count = active_product_count(products)
    return {
        "plan": plan,
        "active_products": count,
        "at_product_limit": is_at_product_limit(plan, count),
        **capabilities(plan),
    }


# ============ Цикл подписки ============


def extend_expiry(
    current_expiry: Optional[str],
    now: Optional[datetime] = None,
    days: int = SUBSCRIPTION_CYCLE_DAYS,
) -> str:
    """
    База: текущая дата окончания, если она ещё не прошла, иначе now.
    Новая дата = база + days, ISO-8601.
    """
    at = current_time(now)
    base = at
    if current_expiry:
        expiry = parse_ts(current_expiry)
        if expiry >= at:
            base = expiry
    return to_iso(base + timedelta(days=days))


def is_expired(store: Store, now: Optional[datetime] = None) -> bool:
    if not store.subscription_expiry:
        return False
    return parse_ts(store.subscription_expiry) < current_time(now)


def subscription_state(store: Store, now: Optional[datetime] = None) -> str:
    if is_expired(store, now):
        return EXPIRED
    if store.subscription_payment_status == PENDING:
        return PENDING_ACTIVE
    return PAID_ACTIVE


def simulate_payment(
    store: Store,
    now: Optional[datetime] = None,
    days: int = SUBSCRIPTION_CYCLE_DAYS,
    plan_id: str = UPGRADE_PLAN_ID,
) -> Store:
    """Успешная оплата: любое состояние → Paid-Active, план повышается до pro"""
    return replace(
        store,
        plan=plan_id,
        subscription_expiry=extend_expiry(store.subscription_expiry, now, days),
        subscription_payment_status=PAID,
    )


def extend_pending(
    store: Store,
    now: Optional[datetime] = None,
    days: int = SUBSCRIPTION_CYCLE_DAYS,
    plan_id: str = UPGRADE_PLAN_ID,
) -> Store:
    """Продление администратором без оплаты: любое состояние → Pending-Active"""
    return replace(
        store,
        plan=plan_id,
        subscription_expiry=extend_expiry(store.subscription_expiry, now, days),
        subscription_payment_status=PENDING,
    )


def mark_paid(store: Store) -> Store:
    """Только смена статуса, дата окончания не меняется"""
    return replace(store, subscription_payment_status=PAID)


def apply_store_action(
    store: Store,
    action: str,
    now: Optional[datetime] = None,
    days: int = SUBSCRIPTION_CYCLE_DAYS,
    plan_id: str = UPGRADE_PLAN_ID,
) -> Either[dict, Store]:
    if action == "extend_pending":
        return Either.right(extend_pending(store, now, days, plan_id))
    if action == "mark_paid":
        return Either.right(mark_paid(store))
    return Either.fail(f"Ação desconhecida: {action}")


def change_plan(
    store: Store, plan_id: str, plans: Tuple[SubscriptionPlan, ...]
) -> Either[dict, Store]:
    """Смена плана продавцом без внешнего чекаута"""
    if plan_id == store.plan:
        return Either.fail("A loja já está neste plano.")
    if not any(p.id == plan_id for p in plans):
        return Either.fail(f"Plano {plan_id} não encontrado.")
    return Either.right(replace(store, plan=plan_id))


# ============ Каталог планов (админ) ============


def new_plan_template(plan_id: str) -> SubscriptionPlan:
    return SubscriptionPlan(
        id=plan_id,
        name="",
        price=0,
        description="",
        features=(),
        limits=PlanLimits(max_products=10),
    )


def upsert_plan(
    plans: Tuple[SubscriptionPlan, ...], plan: SubscriptionPlan
) -> Either[dict, Tuple[SubscriptionPlan, ...]]:
    """Существующий id заменяется на месте, новый добавляется в конец"""
    if not plan.id.strip() or not plan.name.strip():
        return Either.fail("Plano precisa de id e nome.")
    if any(p.id == plan.id for p in plans):
        return Either.right(tuple(plan if p.id == plan.id else p for p in plans))
    return Either.right(plans + (plan,))


def delete_plan(
    plans: Tuple[SubscriptionPlan, ...], plan_id: str
) -> Tuple[SubscriptionPlan, ...]:
    """Без каскада: магазины со ссылкой на удалённый план уйдут в resolve_plan fallback"""
    return tuple(p for p in plans if p.id != plan_id)
