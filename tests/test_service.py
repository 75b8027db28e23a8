from dataclasses import replace
from datetime import timedelta

import pytest

from catalog_core.config import AppConfig
from catalog_core.domain import IntegrationSettings
from catalog_core.formatting import parse_ts, to_iso
from catalog_core.plans import EXPIRED, PAID_ACTIVE
from catalog_core.service import (
    AnalyticsService,
    CatalogService,
    SubscriptionService,
    checkout_url,
)
from catalog_core.store import AppStore
from catalog_core.transforms import load_seed
from Analytics_Service.segmentation import LOST, LOYAL, NEW
from conftest import NOW, SEED_PATH


@pytest.fixture
def app_store():
    return AppStore.from_seed(load_seed(SEED_PATH, NOW))


# ============ Аналитика ============


def test_rfm_groups_from_seed(app_store):
    groups = AnalyticsService(app_store, "store-1").rfm_groups(NOW)
    by_name = {c.name: seg for seg, members in groups.items() for c in members}

    assert by_name["Maria Silva"] == LOYAL
    assert by_name["Lucia Santos"] == LOYAL
    assert by_name["Novo Cliente"] == NEW
    assert by_name["Roberto Dias"] == LOST
    assert sum(len(m) for m in groups.values()) == 7


def test_kpis_from_seed(app_store):
    analytics = AnalyticsService(app_store, "store-1")

    today = analytics.kpis("today", NOW)
    assert today.order_count == 1
    assert today.total_sales == 15000

    week = analytics.kpis("week", NOW)
    assert week.order_count == 4
    assert week.top_products[0] == ("Camiseta", 2)


def test_top_products_limit_from_config(app_store):
    analytics = AnalyticsService(app_store, "store-1", AppConfig(top_products_limit=1))
    assert len(analytics.kpis("year", NOW).top_products) == 1


def test_unknown_store_has_no_orders(app_store):
    analytics = AnalyticsService(app_store, "store-x")
    assert analytics.customers(NOW) == ()
    assert analytics.kpis("year", NOW).avg_ticket == 0


def test_plan_usage(app_store):
    usage = AnalyticsService(app_store, "store-1").plan_usage().value
    assert usage["plan"].id == "free"
    assert usage["active_products"] == 12
    assert usage["at_product_limit"] is True


# ============ Каталог ============


def test_catalog_rejects_product_over_limit(app_store):
    catalog = CatalogService(app_store, "store-1")
    before = app_store.products

    result = catalog.add_product({"name": "Nova", "price": 1000})

    assert result.is_left
    assert app_store.products is before


def test_catalog_delete_frees_slot_and_writes_back(app_store):
    catalog = CatalogService(app_store, "store-1")
    for pid in ("1", "2", "3"):
        assert catalog.delete_product(pid).is_right

    assert len(catalog.trash()) == 3
    assert len(catalog.storefront()) == 9
    assert catalog.add_product({"name": "Nova", "price": 1000}).is_right
    assert len(catalog.storefront()) == 10
    assert catalog.add_product({"name": "Outra", "price": 1000}).is_left


def test_catalog_storefront_search(app_store):
    catalog = CatalogService(app_store, "store-1")
    assert [p.name for p in catalog.storefront("jaqueta")] == ["Jaqueta Bomber"]
    assert len(catalog.storefront("Acessórios")) == 4


def test_catalog_category_lifecycle(app_store):
    catalog = CatalogService(app_store, "store-1")

    assert catalog.delete_category("Casacos").value == 2
    assert "Casacos" in catalog.store.value.deleted_categories
    assert catalog.restore_category("Casacos").is_right
    assert "Casacos" in catalog.store.value.categories
    assert catalog.add_category("Camisetas").is_left


def test_catalog_update_branding(app_store):
    catalog = CatalogService(app_store, "store-1")
    result = catalog.update_branding("Moda 2", "55", "logo", "b.png", ("Pix",))

    assert result.is_right
    assert catalog.store.value.name == "Moda 2"
    assert catalog.store.value.accepted_payment_methods == ("Pix",)


def test_plan_usage_unknown_store_is_left(app_store):
    usage = AnalyticsService(app_store, "store-x").plan_usage()

    assert usage.is_left
    assert usage.error == "Loja store-x não encontrada."


def test_catalog_writes_on_unknown_store_are_left(app_store):
    catalog = CatalogService(app_store, "store-x")
    products_before = app_store.products
    stores_before = app_store.stores

    assert catalog.store.is_none()
    results = (
        catalog.add_product({"name": "Nova", "price": 1000}),
        catalog.add_category("Bonés"),
        catalog.delete_category("Casacos"),
        catalog.restore_category("Casacos"),
        catalog.update_branding("X", "55", "logo", "", ("Pix",)),
    )

    assert all(r.is_left for r in results)
    assert results[0].error == "Loja store-x não encontrada."
    assert app_store.products is products_before
    assert app_store.stores is stores_before


# ============ Подписки ============


def test_simulate_payment_by_owner_email(app_store):
    subscriptions = SubscriptionService(app_store)
    result = subscriptions.simulate_payment("LOJA@zap.com", NOW)

    assert result.is_right
    store = app_store.find_store("store-1").value
    assert store.plan == "pro"
    assert store.subscription_payment_status == "paid"
    assert parse_ts(store.subscription_expiry) == NOW + timedelta(days=60)


def test_simulate_payment_not_found(app_store):
    subscriptions = SubscriptionService(app_store)
    stores_before = app_store.stores

    missing = subscriptions.simulate_payment("ghost@zap.com", NOW)
    admin = subscriptions.simulate_payment("admin@zap.com", NOW)

    assert missing.is_left and "ghost@zap.com" in missing.error
    assert admin.is_left
    assert app_store.stores == stores_before


def test_store_actions(app_store):
    subscriptions = SubscriptionService(app_store, AppConfig(subscription_cycle_days=15))

    pending = subscriptions.store_action("store-1", "extend_pending", NOW)
    assert pending.value.subscription_payment_status == "pending"
    assert parse_ts(pending.value.subscription_expiry) == NOW + timedelta(days=45)

    paid = subscriptions.store_action("store-1", "mark_paid", NOW)
    assert paid.value.subscription_payment_status == "paid"
    assert paid.value.subscription_expiry == pending.value.subscription_expiry

    assert subscriptions.store_action("store-x", "mark_paid", NOW).is_left
    assert subscriptions.store_action("store-1", "cancel", NOW).is_left


def test_tenant_overview_flags_expired(app_store):
    subscriptions = SubscriptionService(app_store)
    (row,) = subscriptions.tenant_overview(NOW)
    assert row["state"] == PAID_ACTIVE

    (late,) = subscriptions.tenant_overview(NOW + timedelta(days=31))
    assert late["state"] == EXPIRED
    assert late["is_expired"] is True


def test_deleted_plan_falls_back(app_store):
    subscriptions = SubscriptionService(app_store)
    subscriptions.delete_plan("free")

    (row,) = subscriptions.tenant_overview(NOW)
    assert row["plan"].id == "pro"
    assert app_store.find_store("store-1").value.plan == "free"


def test_change_plan_writes_store(app_store):
    subscriptions = SubscriptionService(app_store)
    assert subscriptions.change_plan("store-1", "enterprise").is_right
    assert app_store.find_store("store-1").value.plan == "enterprise"


def test_integration_and_checkout_url(app_store):
    subscriptions = SubscriptionService(app_store)
    assert checkout_url(app_store.integration, "loja@zap.com").is_none()

    settings = subscriptions.update_integration(is_enabled=True, product_id="abc")
    link = checkout_url(settings, "loja+1@zap.com").get_or_else("")
    assert link == "https://pay.kiwify.com.br/abc?email=loja%2B1%40zap.com"
    assert checkout_url(IntegrationSettings(is_enabled=True), "x").is_none()


def test_put_store_unknown_id(app_store):
    store = app_store.stores[0]
    ghost = replace(store, id="ghost")
    assert app_store.put_store(ghost).is_left


def test_expiry_is_iso_string(app_store):
    result = SubscriptionService(app_store).simulate_payment("loja@zap.com", NOW)
    assert result.value.subscription_expiry == to_iso(NOW + timedelta(days=60))
