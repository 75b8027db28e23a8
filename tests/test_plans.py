from dataclasses import replace
from datetime import timedelta

from catalog_core.domain import PlanLimits
from catalog_core.formatting import parse_ts, to_iso
from catalog_core.plans import (
    EXPIRED,
    FALLBACK_PLAN,
    PAID_ACTIVE,
    PENDING_ACTIVE,
    active_product_count,
    apply_store_action,
    capabilities,
    change_plan,
    delete_plan,
    extend_expiry,
    extend_pending,
    is_at_product_limit,
    mark_paid,
    new_plan_template,
    plan_usage,
    resolve_plan,
    simulate_payment,
    subscription_state,
    upsert_plan,
)
from conftest import NOW


# ============ Лимиты ============


def test_resolve_plan_found(plans):
    assert resolve_plan("pro", plans).id == "pro"


def test_resolve_plan_falls_back_to_first(plans):
    assert resolve_plan("deleted-plan", plans).id == "free"


def test_resolve_plan_with_empty_catalog():
    assert resolve_plan("pro", ()) is FALLBACK_PLAN


def test_product_limit_reached_at_max(plans, make_products):
    free = resolve_plan("free", plans)
    products = make_products(10)

    assert active_product_count(products) == 10
    assert is_at_product_limit(free, 10)
    assert not is_at_product_limit(free, 9)


def test_deleted_products_do_not_count(make_products):
    assert active_product_count(make_products(12, deleted=3)) == 9


def test_capabilities_read_from_plan(plans):
    assert capabilities(resolve_plan("free", plans)) == {
        "can_customize_banner": False,
        "can_use_integrations": False,
        "can_use_custom_domain": False,
    }
    assert capabilities(resolve_plan("pro", plans))["can_customize_banner"] is True


def test_plan_usage_for_store_with_deleted_plan(store, plans, make_products):
    usage = plan_usage(replace(store, plan="gone"), plans, make_products(10))

    assert usage["plan"].id == "free"
    assert usage["active_products"] == 10
    assert usage["at_product_limit"] is True
    assert usage["can_use_integrations"] is False


# ============ Продление подписки ============


def test_expired_base_is_now_plus_cycle():
    expired = to_iso(NOW - timedelta(days=1))
    new_expiry = parse_ts(extend_expiry(expired, NOW))
    # база сбрасывается на now: старая дата + 30 дней дала бы now + 29
    assert new_expiry == NOW + timedelta(days=30)
    assert new_expiry != NOW + timedelta(days=29)


def test_extend_from_active_adds_to_existing():
    active = to_iso(NOW + timedelta(days=10))
    assert parse_ts(extend_expiry(active, NOW)) == NOW + timedelta(days=40)


def test_extend_without_expiry_starts_now():
    assert parse_ts(extend_expiry(None, NOW)) == NOW + timedelta(days=30)


def test_extend_expiry_exactly_now_counts_as_active():
    assert parse_ts(extend_expiry(to_iso(NOW), NOW)) == NOW + timedelta(days=30)


def test_naive_evaluation_time_is_treated_as_utc(store):
    naive_now = NOW.replace(tzinfo=None)
    active = to_iso(NOW + timedelta(days=5))

    assert parse_ts(extend_expiry(active, naive_now)) == NOW + timedelta(days=35)
    assert subscription_state(store, naive_now) == PAID_ACTIVE
    assert subscription_state(store, naive_now + timedelta(days=11)) == EXPIRED


def test_simulate_payment_from_expired(store):
    expired = replace(
        store,
        subscription_expiry=to_iso(NOW - timedelta(days=5)),
        subscription_payment_status="pending",
    )
    assert subscription_state(expired, NOW) == EXPIRED

    renewed = simulate_payment(expired, NOW)

    assert renewed.plan == "pro"
    assert renewed.subscription_payment_status == "paid"
    assert parse_ts(renewed.subscription_expiry) == NOW + timedelta(days=30)
    assert subscription_state(renewed, NOW) == PAID_ACTIVE


def test_extend_pending_then_mark_paid(store):
    pending = extend_pending(store, NOW)

    assert pending.subscription_payment_status == "pending"
    assert pending.plan == "pro"
    assert parse_ts(pending.subscription_expiry) == NOW + timedelta(days=40)
    assert subscription_state(pending, NOW) == PENDING_ACTIVE

    paid = mark_paid(pending)
    assert paid.subscription_payment_status == "paid"
    assert paid.subscription_expiry == pending.subscription_expiry
    assert subscription_state(paid, NOW) == PAID_ACTIVE


def test_custom_cycle_length(store):
    renewed = simulate_payment(store, NOW, days=7)
    assert parse_ts(renewed.subscription_expiry) == NOW + timedelta(days=17)


def test_apply_store_action(store):
    assert apply_store_action(store, "mark_paid", NOW).is_right
    assert apply_store_action(store, "extend_pending", NOW).value.subscription_payment_status == "pending"
    unknown = apply_store_action(store, "refund", NOW)
    assert unknown.is_left
    assert "refund" in unknown.error


def test_store_without_expiry_is_not_expired(store):
    assert subscription_state(replace(store, subscription_expiry=None), NOW) == PAID_ACTIVE


def test_change_plan(store, plans):
    assert change_plan(store, "pro", plans).value.plan == "pro"
    assert change_plan(store, "free", plans).is_left
    assert change_plan(store, "enterprise", plans).is_left


# ============ Каталог планов ============


def test_upsert_plan_appends_and_replaces(plans):
    created = replace(new_plan_template("plan-x"), name="Extra")
    added = upsert_plan(plans, created).value
    assert [p.id for p in added] == ["free", "pro", "plan-x"]

    edited = replace(plans[0], name="Grátis")
    updated = upsert_plan(added, edited).value
    assert updated[0].name == "Grátis"
    assert len(updated) == 3


def test_upsert_plan_requires_id_and_name(plans):
    assert upsert_plan(plans, new_plan_template("plan-y")).is_left
    assert upsert_plan(plans, replace(new_plan_template(" "), name="X")).is_left


def test_new_plan_template_defaults():
    template = new_plan_template("p")
    assert template.limits == PlanLimits(max_products=10)
    assert template.features == ()


def test_delete_plan_does_not_cascade(store, plans):
    remaining = delete_plan(plans, "free")
    assert [p.id for p in remaining] == ["pro"]
    # магазин всё ещё ссылается на free → первый план каталога
    assert resolve_plan(store.plan, remaining).id == "pro"
