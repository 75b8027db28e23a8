import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from datetime import datetime, timedelta, timezone
import pytest

from catalog_core.domain import Order, OrderItem, PlanLimits, Product, Store, SubscriptionPlan
from catalog_core.formatting import to_iso

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
SEED_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "seed.json")


def make_order(phone, days_ago, total, items=(), name=None, order_id=None, store_id="s1"):
    return Order(
        id=order_id or f"o-{phone}-{days_ago}-{total}",
        store_id=store_id,
        customer_name=name or f"Cliente {phone}",
        customer_phone=phone,
        ts=to_iso(NOW - timedelta(days=days_ago)),
        total=total,
        items=tuple(items),
        status="completed",
    )


def item(name, qty, price=1000):
    return OrderItem(product_id=name.lower(), name=name, quantity=qty, price=price)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def plans():
    return (
        SubscriptionPlan(
            id="free",
            name="Iniciante",
            price=0,
            description="",
            features=("Até 10 produtos",),
            limits=PlanLimits(max_products=10),
        ),
        SubscriptionPlan(
            id="pro",
            name="Profissional",
            price=2990,
            description="",
            features=("Até 50 produtos",),
            limits=PlanLimits(
                max_products=50, can_customize_banner=True, can_use_custom_domain=True
            ),
        ),
    )


@pytest.fixture
def store():
    return Store(
        id="s1",
        owner_id="u2",
        name="Moda Style",
        phone="5511999999999",
        logo="logo.png",
        banner="banner.png",
        categories=("Camisetas", "Calças"),
        accepted_payment_methods=("Pix",),
        plan="free",
        subscription_expiry=to_iso(NOW + timedelta(days=10)),
    )


@pytest.fixture
def make_products():
    def _make(n, store_id="s1", deleted=0):
        return tuple(
            Product(
                id=f"p{i}",
                store_id=store_id,
                name=f"Produto {i}",
                price=1000 * (i + 1),
                image="img.png",
                category="Camisetas",
                is_deleted=i < deleted,
            )
            for i in range(n)
        )

    return _make
