import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional, Tuple
from urllib.parse import quote

from catalog_core.config import AppConfig
from catalog_core.domain import (
    CustomerMetric,
    IntegrationSettings,
    KpiSummary,
    Order,
    Product,
    Store,
    SubscriptionPlan,
)
from catalog_core.ftypes import Either, Maybe
from catalog_core.plans import (
    apply_store_action,
    change_plan,
    delete_plan,
    is_expired,
    plan_usage,
    resolve_plan,
    simulate_payment,
    subscription_state,
    upsert_plan,
)
from catalog_core.store import AppStore
from catalog_core.transforms import (
    active_products,
    add_category,
    add_product,
    deleted_products,
    restore_category,
    restore_product,
    search_products,
    soft_delete_category,
    soft_delete_product,
    update_branding,
    update_product,
)
from Analytics_Service.report import kpi_summary
from Analytics_Service.segmentation import customer_metrics, group_by_segment

logger = logging.getLogger(__name__)

CHECKOUT_BASE_URL = "https://pay.kiwify.com.br"


def checkout_url(settings: IntegrationSettings, email: str) -> Maybe[str]:
    """Внешний чекаут только при включённой интеграции и заданном product_id"""
    if not (settings.is_enabled and settings.product_id):
        return Maybe.nothing()
    return Maybe.some(f"{CHECKOUT_BASE_URL}/{settings.product_id}?email={quote(email)}")


class CatalogService:
    """Фасад каталога одного магазина: витрина и управление товарами/категориями"""

    def __init__(self, app_store: AppStore, store_id: str):
        self.app_store = app_store
        self.store_id = store_id

    @property
    def store(self) -> Maybe[Store]:
        return self.app_store.find_store(self.store_id)

    def _current_store(self) -> Either[dict, Store]:
        return self.store.to_either(f"Loja {self.store_id} não encontrada.")

    def products(self) -> Tuple[Product, ...]:
        return self.app_store.store_products(self.store_id)

    def storefront(self, term: str = "") -> Tuple[Product, ...]:
        """Видимые покупателю товары (без удалённых), с поиском"""
        return search_products(active_products(self.products()), term)

    def trash(self) -> Tuple[Product, ...]:
        return deleted_products(self.products())

    def _write_products(self, result: Either) -> Either:
        if result.is_right:
            self.app_store.replace_products(result.value)
        return result

    def _write_store(self, result: Either) -> Either:
        return result.bind(self.app_store.put_store)

    def add_product(self, draft: dict) -> Either:
        return self._write_products(
            self._current_store().bind(
                lambda s: add_product(self.app_store.products, s, self.app_store.plans, draft)
            )
        )

    def update_product(self, product_id: str, updates: dict) -> Either:
        return self._write_products(
            update_product(self.app_store.products, product_id, updates)
        )

    def delete_product(self, product_id: str) -> Either:
        return self._write_products(
            soft_delete_product(self.app_store.products, product_id)
        )

    def restore_product(self, product_id: str) -> Either:
        return self._write_products(restore_product(self.app_store.products, product_id))

    def add_category(self, name: str) -> Either:
        return self._write_store(
            self._current_store().bind(lambda s: add_category(s, name))
        )

    def delete_category(self, name: str) -> Either:
        """Right(число активных товаров, оставшихся в удалённой категории)"""
        result = self._current_store().bind(
            lambda s: soft_delete_category(s, name, self.products())
        )
        return result.bind(
            lambda pair: self.app_store.put_store(pair[0]).map(lambda _: pair[1])
        )

    def restore_category(self, name: str) -> Either:
        return self._write_store(
            self._current_store().bind(lambda s: restore_category(s, name))
        )

    def update_branding(
        self,
        name: str,
        phone: str,
        logo: str,
        banner: str,
        payment_methods: Tuple[str, ...],
    ) -> Either:
        return self._write_store(
            self._current_store().bind(
                lambda s: update_branding(
                    s, self.app_store.plans, name, phone, logo, banner, payment_methods
                )
            )
        )


class AnalyticsService:
    """Аналитический фасад дашборда продавца"""

    def __init__(self, app_store: AppStore, store_id: str, config: Optional[AppConfig] = None):
        self.app_store = app_store
        self.store_id = store_id
        self.config = config or AppConfig()

    def orders(self) -> Tuple[Order, ...]:
        return self.app_store.store_orders(self.store_id)

    def kpis(self, period: str, now: Optional[datetime] = None) -> KpiSummary:
        return kpi_summary(self.orders(), period, now, self.config.top_products_limit)

    def customers(self, now: Optional[datetime] = None) -> Tuple[CustomerMetric, ...]:
        return customer_metrics(self.orders(), now)

    def rfm_groups(
        self, now: Optional[datetime] = None
    ) -> Dict[str, Tuple[CustomerMetric, ...]]:
        return group_by_segment(self.customers(now))

    def plan_usage(self) -> Either[dict, dict]:
        """Right(сводка по плану) или Left, если магазина нет"""
        return (
            self.app_store.find_store(self.store_id)
            .to_either(f"Loja {self.store_id} não encontrada.")
            .map(
                lambda s: plan_usage(
                    s, self.app_store.plans, self.app_store.store_products(self.store_id)
                )
            )
        )


class SubscriptionService:
    """Фасад администратора: подписки магазинов, каталог планов, интеграция оплаты"""

    def __init__(self, app_store: AppStore, config: Optional[AppConfig] = None):
        self.app_store = app_store
        self.config = config or AppConfig()

    def find_store_by_owner_email(self, email: str) -> Either[dict, Store]:
        needle = (email or "").strip().lower()
        user = next(
            (
                u
                for u in self.app_store.users
                if u.email.lower() == needle and u.role == "seller"
            ),
            None,
        )
        if user is None or not user.store_id:
            return Either.fail(
                f"Não foi encontrada nenhuma loja associada ao email {email}"
            )
        return self.app_store.find_store(user.store_id).to_either("Loja não encontrada.")

    def simulate_payment(self, email: str, now: Optional[datetime] = None) -> Either[dict, Store]:
        """Симуляция вебхука оплаты: email владельца → продление на цикл, статус paid"""
        result = self.find_store_by_owner_email(email)
        if result.is_left:
            logger.warning("Payment simulation for %s failed: %s", email, result.error)
            return result
        renewed = simulate_payment(
            result.value,
            now,
            self.config.subscription_cycle_days,
            self.config.upgrade_plan_id,
        )
        logger.info(
            "Store %s renewed until %s (paid)", renewed.id, renewed.subscription_expiry
        )
        return self.app_store.put_store(renewed)

    def store_action(
        self, store_id: str, action: str, now: Optional[datetime] = None
    ) -> Either[dict, Store]:
        result = (
            self.app_store.find_store(store_id)
            .to_either(f"Loja {store_id} não encontrada.")
            .bind(
                lambda s: apply_store_action(
                    s,
                    action,
                    now,
                    self.config.subscription_cycle_days,
                    self.config.upgrade_plan_id,
                )
            )
            .bind(self.app_store.put_store)
        )
        if result.is_right:
            logger.info("Store action %s applied to %s", action, store_id)
        return result

    def change_plan(self, store_id: str, plan_id: str) -> Either[dict, Store]:
        result = (
            self.app_store.find_store(store_id)
            .to_either(f"Loja {store_id} não encontrada.")
            .bind(lambda s: change_plan(s, plan_id, self.app_store.plans))
            .bind(self.app_store.put_store)
        )
        if result.is_right:
            logger.info("Store %s switched to plan %s", store_id, plan_id)
        return result

    def save_plan(self, plan: SubscriptionPlan) -> Either:
        result = upsert_plan(self.app_store.plans, plan)
        if result.is_right:
            self.app_store.replace_plans(result.value)
        return result

    def delete_plan(self, plan_id: str) -> Tuple[SubscriptionPlan, ...]:
        logger.info("Deleting plan %s", plan_id)
        self.app_store.replace_plans(delete_plan(self.app_store.plans, plan_id))
        return self.app_store.plans

    def update_integration(self, **changes) -> IntegrationSettings:
        self.app_store.replace_integration(replace(self.app_store.integration, **changes))
        return self.app_store.integration

    def tenant_overview(self, now: Optional[datetime] = None) -> Tuple[dict, ...]:
        """Строки таблицы магазинов для админки"""
        return tuple(
            {
                "store": s,
                "plan": resolve_plan(s.plan, self.app_store.plans),
                "expiry": s.subscription_expiry,
                "is_expired": is_expired(s, now),
                "payment_status": s.subscription_payment_status,
                "state": subscription_state(s, now),
            }
            for s in self.app_store.stores
        )

