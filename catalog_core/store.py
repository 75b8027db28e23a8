from dataclasses import dataclass, field
from typing import Tuple

from .domain import (
    IntegrationSettings,
    Order,
    Product,
    Store,
    SubscriptionPlan,
    User,
)
from .ftypes import Either, Maybe


@dataclass
class AppStore:
    """
    Всё состояние приложения в памяти.
    Коллекции: кортежи иммутабельных записей, меняются только целиком через replace_*.
    """

    users: Tuple[User, ...] = ()
    stores: Tuple[Store, ...] = ()
    products: Tuple[Product, ...] = ()
    orders: Tuple[Order, ...] = ()
    plans: Tuple[SubscriptionPlan, ...] = ()
    integration: IntegrationSettings = field(default_factory=IntegrationSettings)

    @classmethod
    def from_seed(cls, seed: dict) -> "AppStore":
        return cls(
            users=seed.get("users", ()),
            stores=seed.get("stores", ()),
            products=seed.get("products", ()),
            orders=seed.get("orders", ()),
            plans=seed.get("plans", ()),
            integration=seed.get("integration", IntegrationSettings()),
        )

    # ============ Замена коллекций ============

    def replace_stores(self, stores: Tuple[Store, ...]) -> None:
        self.stores = tuple(stores)

    def replace_products(self, products: Tuple[Product, ...]) -> None:
        self.products = tuple(products)

    def replace_orders(self, orders: Tuple[Order, ...]) -> None:
        self.orders = tuple(orders)

    def replace_plans(self, plans: Tuple[SubscriptionPlan, ...]) -> None:
        self.plans = tuple(plans)

    def replace_integration(self, settings: IntegrationSettings) -> None:
        self.integration = settings

    def put_store(self, store: Store) -> Either[dict, Store]:
        """Заменяет магазин с тем же id; неизвестный id: Left"""
        if not any(s.id == store.id for s in self.stores):
            return Either.fail(f"Loja {store.id} não encontrada.")
        self.replace_stores(tuple(store if s.id == store.id else s for s in self.stores))
        return Either.right(store)

    # ============ Чтение по магазину ============

    def find_store(self, store_id: str) -> Maybe[Store]:
        return Maybe.from_optional(next((s for s in self.stores if s.id == store_id), None))

    def store_products(self, store_id: str) -> Tuple[Product, ...]:
        return tuple(p for p in self.products if p.store_id == store_id)

    def store_orders(self, store_id: str) -> Tuple[Order, ...]:
        return tuple(o for o in self.orders if o.store_id == store_id)
