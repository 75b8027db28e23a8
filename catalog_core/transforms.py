import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from functools import reduce
from typing import Callable, Optional, Tuple
from urllib.parse import quote

from .domain import (
    CartItem,
    IntegrationSettings,
    Order,
    OrderItem,
    PlanLimits,
    Product,
    Store,
    SubscriptionPlan,
    User,
)
from .formatting import current_time, to_iso
from .ftypes import Either, Maybe
from .plans import active_product_count, capabilities, is_at_product_limit, resolve_plan

logger = logging.getLogger(__name__)

PAYMENT_METHODS: Tuple[str, ...] = ("Pix", "Cartão de Crédito", "Dinheiro")
SIZES: Tuple[str, ...] = ("P", "M", "G", "GG")


# ============ Seed ============


def load_seed(path: str, now: Optional[datetime] = None) -> dict:
    """
    Загружает seed.json в кортежи иммутабельных записей.
    Даты заказов (days_ago) и окончание подписки (expires_in_days)
    задаются относительно now.
    """
    at = current_time(now)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    def _to_plan(p: dict) -> SubscriptionPlan:
        return SubscriptionPlan(
            id=p["id"],
            name=p["name"],
            price=int(p.get("price", 0)),
            description=p.get("description", ""),
            features=tuple(p.get("features", [])),
            limits=PlanLimits(**p.get("limits", {"max_products": 10})),
            recommended=bool(p.get("recommended", False)),
        )

    def _to_store(s: dict) -> Store:
        s2 = dict(s)
        expires_in = s2.pop("expires_in_days", None)
        if expires_in is not None:
            s2["subscription_expiry"] = to_iso(at + timedelta(days=expires_in))
        s2["categories"] = tuple(s2.get("categories", []))
        s2["deleted_categories"] = tuple(s2.get("deleted_categories", []))
        s2["accepted_payment_methods"] = tuple(
            s2.get("accepted_payment_methods", PAYMENT_METHODS)
        )
        return Store(**s2)

    def _to_order(o: dict) -> Order:
        ts = o.get("ts") or to_iso(at - timedelta(days=o.get("days_ago", 0)))
        return Order(
            id=str(o.get("id", uuid.uuid4())),
            store_id=str(o["store_id"]),
            customer_name=str(o.get("customer_name", "")),
            customer_phone=str(o["customer_phone"]),
            ts=ts,
            total=int(o.get("total", 0)),
            items=tuple(OrderItem(**item) for item in o.get("items", [])),
            status=str(o.get("status", "completed")),
        )

    return {
        "users": tuple(map(lambda u: User(**u), data.get("users", []))),
        "plans": tuple(map(_to_plan, data.get("plans", []))),
        "stores": tuple(map(_to_store, data.get("stores", []))),
        "products": tuple(map(lambda p: Product(**p), data.get("products", []))),
        "orders": tuple(map(_to_order, data.get("orders", []))),
        "integration": IntegrationSettings(**data.get("integration", {})),
    }


# ============ Пользователи ============


def find_user_by_email(users: Tuple[User, ...], email: str) -> Maybe[User]:
    """Вход по email без пароля"""
    needle = (email or "").strip().lower()
    return Maybe.from_optional(next((u for u in users if u.email.lower() == needle), None))


def can_access_store(user: User, store_id: str) -> bool:
    return user.role == "admin" or user.store_id == store_id


# ============ Фильтры витрины (HOF) ============


def active_products(products: Tuple[Product, ...]) -> Tuple[Product, ...]:
    return tuple(filter(lambda p: not p.is_deleted, products))


def deleted_products(products: Tuple[Product, ...]) -> Tuple[Product, ...]:
    return tuple(filter(lambda p: p.is_deleted, products))


def by_store(store_id: str) -> Callable:
    return lambda record: record.store_id == store_id


def by_search_term(term: str) -> Callable[[Product], bool]:
    """Совпадение по названию ИЛИ категории, без учёта регистра"""
    needle = (term or "").lower()
    return lambda p: needle in p.name.lower() or needle in p.category.lower()


def search_products(products: Tuple[Product, ...], term: str) -> Tuple[Product, ...]:
    if not term:
        return products
    return tuple(filter(by_search_term(term), products))


def products_in_category(products: Tuple[Product, ...], category: str) -> int:
    return sum(1 for p in active_products(products) if p.category == category)


# ============ Товары ============


def placeholder_image(name: str) -> str:
    return f"https://via.placeholder.com/400?text={quote(name)}"


def add_product(
    products: Tuple[Product, ...],
    store: Store,
    plans: Tuple[SubscriptionPlan, ...],
    draft: dict,
    product_id: Optional[str] = None,
) -> Either[dict, Tuple[Product, ...]]:
    """
    Добавляет товар магазина.
    Left, если магазин упёрся в лимит плана или у него нет категорий.
    """
    plan = resolve_plan(store.plan, plans)
    store_products = tuple(filter(by_store(store.id), products))
    if is_at_product_limit(plan, active_product_count(store_products)):
        logger.info(
            "Store %s hit product limit %s of plan %s",
            store.id,
            plan.limits.max_products,
            plan.id,
        )
        return Either.fail(
            f"Você atingiu o limite de {plan.limits.max_products} produtos do seu plano."
        )
    if not store.categories:
        return Either.fail("Crie pelo menos uma categoria antes de adicionar produtos.")

    name = draft["name"]
    product = Product(
        id=product_id or str(uuid.uuid4()),
        store_id=store.id,
        name=name,
        price=int(draft["price"]),
        image=draft.get("image") or placeholder_image(name),
        category=draft.get("category") or store.categories[0],
        description=draft.get("description", ""),
    )
    return Either.right(products + (product,))


def _update_product(
    products: Tuple[Product, ...], product_id: str, fn: Callable[[Product], Product]
) -> Either[dict, Tuple[Product, ...]]:
    if not any(p.id == product_id for p in products):
        return Either.fail(f"Produto {product_id} não encontrado.")
    return Either.right(tuple(fn(p) if p.id == product_id else p for p in products))


def update_product(
    products: Tuple[Product, ...], product_id: str, updates: dict
) -> Either[dict, Tuple[Product, ...]]:
    allowed = {k: v for k, v in updates.items() if k not in ("id", "store_id")}
    return _update_product(products, product_id, lambda p: replace(p, **allowed))


def soft_delete_product(
    products: Tuple[Product, ...], product_id: str
) -> Either[dict, Tuple[Product, ...]]:
    logger.info("Soft deleting product %s", product_id)
    return _update_product(products, product_id, lambda p: replace(p, is_deleted=True))


def restore_product(
    products: Tuple[Product, ...], product_id: str
) -> Either[dict, Tuple[Product, ...]]:
    return _update_product(products, product_id, lambda p: replace(p, is_deleted=False))


# ============ Категории ============


def add_category(store: Store, name: str) -> Either[dict, Store]:
    category = (name or "").strip()
    if not category:
        return Either.fail("Nome da categoria vazio.")
    if category in store.categories:
        return Either.fail("Esta categoria já existe!")
    return Either.right(replace(store, categories=store.categories + (category,)))


def soft_delete_category(
    store: Store, name: str, products: Tuple[Product, ...] = ()
) -> Either[dict, Tuple[Store, int]]:
    """
    Переносит категорию в корзину. Товары не трогает:
    возвращает (store, сколько активных товаров ещё ссылаются на категорию).
    """
    if name not in store.categories:
        return Either.fail(f"Categoria {name} não encontrada.")
    updated = replace(
        store,
        categories=tuple(c for c in store.categories if c != name),
        deleted_categories=store.deleted_categories + (name,),
    )
    logger.info("Soft deleting category %r of store %s", name, store.id)
    return Either.right((updated, products_in_category(products, name)))


def restore_category(store: Store, name: str) -> Either[dict, Store]:
    if name not in store.deleted_categories:
        return Either.fail(f"Categoria {name} não está na lixeira.")
    remaining = tuple(c for c in store.deleted_categories if c != name)
    # уже создана заново вручную: просто убираем из корзины
    if name in store.categories:
        return Either.right(replace(store, deleted_categories=remaining))
    return Either.right(
        replace(store, categories=store.categories + (name,), deleted_categories=remaining)
    )


# ============ Брендинг магазина ============


def toggle_payment_method(methods: Tuple[str, ...], method: str) -> Tuple[str, ...]:
    if method in methods:
        return tuple(m for m in methods if m != method)
    return methods + (method,)


def update_branding(
    store: Store,
    plans: Tuple[SubscriptionPlan, ...],
    name: str,
    phone: str,
    logo: str,
    banner: str,
    payment_methods: Tuple[str, ...],
) -> Either[dict, Store]:
    """Баннер меняется только если план разрешает его кастомизацию"""
    if not payment_methods:
        return Either.fail("Selecione pelo menos um método de pagamento.")
    can_banner = capabilities(resolve_plan(store.plan, plans))["can_customize_banner"]
    return Either.right(
        replace(
            store,
            name=name,
            phone=phone,
            logo=logo,
            banner=banner if can_banner else store.banner,
            accepted_payment_methods=tuple(payment_methods),
        )
    )


# ============ Корзина ============


def add_to_cart(cart: Tuple[CartItem, ...], product: Product, size: str) -> Tuple[CartItem, ...]:
    """Тот же товар того же размера увеличивает количество на 1"""
    existing = next(
        (i for i in cart if i.product.id == product.id and i.size == size), None
    )
    if existing:
        return tuple(
            replace(i, quantity=i.quantity + 1) if i is existing else i for i in cart
        )
    return cart + (CartItem(product=product, size=size, quantity=1),)


def remove_from_cart(
    cart: Tuple[CartItem, ...], product_id: str, size: str
) -> Tuple[CartItem, ...]:
    return tuple(
        filter(lambda i: not (i.product.id == product_id and i.size == size), cart)
    )


def update_quantity(
    cart: Tuple[CartItem, ...], product_id: str, size: str, quantity: int
) -> Tuple[CartItem, ...]:
    if quantity < 1:
        return cart
    return tuple(
        replace(i, quantity=quantity)
        if i.product.id == product_id and i.size == size
        else i
        for i in cart
    )


def cart_total(cart: Tuple[CartItem, ...]) -> int:
    return reduce(lambda acc, i: acc + i.product.price * i.quantity, cart, 0)
