import sys
import os
import streamlit as st

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from catalog_core.config import load_config, configure_logging
from catalog_core.domain import PlanLimits, SubscriptionPlan
from catalog_core.formatting import format_currency, format_date, format_plan_limit
from catalog_core.plans import new_plan_template, EXPIRED, PENDING_ACTIVE
from catalog_core.service import (
    AnalyticsService,
    CatalogService,
    SubscriptionService,
    checkout_url,
)
from catalog_core.store import AppStore
from catalog_core.transforms import (
    PAYMENT_METHODS,
    SIZES,
    add_to_cart,
    can_access_store,
    cart_total,
    find_user_by_email,
    load_seed,
    remove_from_cart,
    update_quantity,
)
from Analytics_Service.report import PERIODS, PERIOD_LABELS
from Analytics_Service.segmentation import SEGMENTS, SEGMENT_DESCRIPTIONS


# ============ Конфигурация и данные ============
@st.cache_resource
def get_config():
    config = load_config()
    configure_logging(config.log_level)
    return config


@st.cache_data
def get_seed(path: str):
    return load_seed(path)


config = get_config()

st.set_page_config(page_title=config.name, page_icon="🛍️", layout="wide")

# Одно хранилище на сессию, коллекции меняются только через replace_*
if "app_store" not in st.session_state:
    st.session_state.app_store = AppStore.from_seed(get_seed(config.seed_path))
if "user" not in st.session_state:
    st.session_state.user = None
if "cart" not in st.session_state:
    st.session_state.cart = ()

app_store: AppStore = st.session_state.app_store
default_store_id = app_store.stores[0].id if app_store.stores else None
if "active_store_id" not in st.session_state:
    st.session_state.active_store_id = default_store_id


def show_result(result, success: str) -> bool:
    """Either → сообщение пользователю"""
    if result.is_right:
        st.success(success)
        return True
    st.error(f"❌ {result.error}")
    return False


# ============ SIDEBAR ============
with st.sidebar:
    st.header(f"🛍️ {config.name}")
    user = st.session_state.user
    pages = ["🏪 Vitrine"]
    if user is None:
        pages.append("🔐 Login")
    else:
        pages.append("📊 Painel do Lojista")
        if user.role == "admin":
            pages.append("🛡️ Administração")
    page = st.radio("Navegação", pages, label_visibility="collapsed")

    if user is not None:
        st.caption(f"Conectado como **{user.name}**")
        if st.button("Sair"):
            st.session_state.user = None
            st.session_state.active_store_id = default_store_id
            st.rerun()


active_store = app_store.find_store(st.session_state.active_store_id).get_or_else(None)


# ============ PAGE: ВИТРИНА ============
if page == "🏪 Vitrine":
    if active_store is None:
        st.info("Carregando...")
        st.stop()

    catalog = CatalogService(app_store, active_store.id)
    if active_store.banner:
        st.image(active_store.banner, use_container_width=True)
    st.title(active_store.name)

    term = st.text_input("🔍 Buscar produtos", key="search_term")
    category = st.selectbox("Categoria", ["Todas"] + list(active_store.categories))
    visible = catalog.storefront(term if category == "Todas" else category)

    if not visible:
        st.warning("Nenhum produto encontrado.")
    for p in visible:
        cols = st.columns([1, 4, 2, 2])
        with cols[0]:
            st.image(p.image, width=80)
        with cols[1]:
            st.markdown(f"**{p.name}**")
            st.caption(p.description)
        with cols[2]:
            st.write(format_currency(p.price))
            size = st.selectbox("Tamanho", SIZES, key=f"size_{p.id}")
        with cols[3]:
            if st.button("➕ Adicionar", key=f"add_{p.id}"):
                st.session_state.cart = add_to_cart(st.session_state.cart, p, size)
                st.toast(f"{p.name} ({size}) adicionado")

    st.divider()
    st.subheader("🛒 Carrinho")
    cart = st.session_state.cart
    if not cart:
        st.info("Carrinho vazio.")
    for item in cart:
        cols = st.columns([4, 2, 2, 1])
        with cols[0]:
            st.write(f"**{item.product.name}** ({item.size})")
        with cols[1]:
            qty = st.number_input(
                "Qtd",
                min_value=1,
                value=item.quantity,
                key=f"qty_{item.product.id}_{item.size}",
                label_visibility="collapsed",
            )
            if qty != item.quantity:
                st.session_state.cart = update_quantity(
                    cart, item.product.id, item.size, int(qty)
                )
                st.rerun()
        with cols[2]:
            st.write(format_currency(item.product.price * item.quantity))
        with cols[3]:
            if st.button("🗑️", key=f"rm_{item.product.id}_{item.size}"):
                st.session_state.cart = remove_from_cart(cart, item.product.id, item.size)
                st.rerun()
    if cart:
        st.markdown(f"### Total: **{format_currency(cart_total(cart))}**")


# ============ PAGE: LOGIN ============
elif page == "🔐 Login":
    st.header("🔐 Acesso Restrito")
    email = st.text_input("Email")
    st.text_input("Senha", type="password")
    if st.button("Entrar", type="primary"):
        found = find_user_by_email(app_store.users, email)
        if found.is_none():
            st.error("Usuário não encontrado!")
        else:
            st.session_state.user = found.value
            if found.value.store_id:
                st.session_state.active_store_id = found.value.store_id
            st.rerun()


# ============ PAGE: ПАНЕЛЬ ПРОДАВЦА ============
elif page == "📊 Painel do Lojista":
    user = st.session_state.user
    if active_store is None or not can_access_store(user, active_store.id):
        st.error("Acesso negado.")
        st.stop()

    catalog = CatalogService(app_store, active_store.id)
    analytics = AnalyticsService(app_store, active_store.id, config)
    usage_result = analytics.plan_usage()
    if usage_result.is_left:
        st.error(usage_result.error)
        st.stop()
    usage = usage_result.value
    plan = usage["plan"]

    st.header(f"📊 {active_store.name}")
    tabs = st.tabs(
        ["📈 Visão Geral", "⚙️ Loja", "🏷️ Categorias", "📦 Produtos", "🗑️ Lixeira", "💳 Assinatura"]
    )

    with tabs[0]:
        period = st.radio(
            "Período",
            PERIODS,
            index=2,
            format_func=PERIOD_LABELS.get,
            horizontal=True,
        )
        kpis = analytics.kpis(period)
        col1, col2, col3, col4 = st.columns(4)
        with col1:
            st.metric("💰 Vendas", format_currency(kpis.total_sales))
        with col2:
            st.metric("🧾 Pedidos", kpis.order_count)
        with col3:
            st.metric("📊 Ticket Médio", format_currency(kpis.avg_ticket))
        with col4:
            best = kpis.top_products[0] if kpis.top_products else ("-", 0)
            st.metric("🏆 Mais vendido", best[0], f"{best[1]} vendidos")

        st.subheader("Top produtos")
        if not kpis.top_products:
            st.caption("Nenhuma venda no período.")
        for idx, (name, qty) in enumerate(kpis.top_products, 1):
            st.write(f"{idx}. **{name}**: {qty} vendidos")

        st.divider()
        st.subheader("🎯 Matriz RFV")
        groups = analytics.rfm_groups()
        cols = st.columns(3)
        for idx, segment in enumerate(SEGMENTS):
            with cols[idx % 3]:
                with st.expander(f"{segment} ({len(groups[segment])})"):
                    st.caption(SEGMENT_DESCRIPTIONS[segment])
                    for c in groups[segment]:
                        st.write(
                            f"• **{c.name}**: {c.frequency} pedidos, "
                            f"{format_currency(c.monetary)} ({c.recency} dias atrás)"
                        )

    with tabs[1]:
        name = st.text_input("Nome da loja", active_store.name)
        phone = st.text_input("WhatsApp", active_store.phone)
        logo = st.text_input("Logo (URL)", active_store.logo)
        banner = st.text_input(
            "Banner (URL)", active_store.banner, disabled=not usage["can_customize_banner"]
        )
        methods = tuple(
            m
            for m in PAYMENT_METHODS
            if st.checkbox(m, m in active_store.accepted_payment_methods, key=f"pm_{m}")
        )
        if st.button("Salvar loja", type="primary"):
            show_result(
                catalog.update_branding(name, phone, logo, banner, methods),
                "Loja atualizada com sucesso!",
            )

    with tabs[2]:
        new_cat = st.text_input("Nova categoria")
        if st.button("Adicionar categoria"):
            show_result(catalog.add_category(new_cat), "Categoria adicionada.")
        for cat in active_store.categories:
            cols = st.columns([4, 1])
            cols[0].write(cat)
            if cols[1].button("Excluir", key=f"delcat_{cat}"):
                result = catalog.delete_category(cat)
                if show_result(result, f"Categoria {cat} movida para a lixeira.") and result.value:
                    st.warning(f"Existem {result.value} produtos ativos nesta categoria.")

    with tabs[3]:
        st.caption(
            f"Você está usando {usage['active_products']} de "
            f"{format_plan_limit(plan.limits.max_products)} produtos do seu plano."
        )
        with st.form("new_product"):
            p_name = st.text_input("Nome")
            p_price = st.number_input("Preço (R$)", min_value=0.0, step=0.5)
            p_cat = st.selectbox("Categoria", active_store.categories or ["-"])
            p_image = st.text_input("Imagem (URL)")
            p_desc = st.text_area("Descrição")
            if st.form_submit_button("Salvar produto", disabled=usage["at_product_limit"]):
                show_result(
                    catalog.add_product(
                        {
                            "name": p_name,
                            "price": round(p_price * 100),
                            "category": p_cat,
                            "image": p_image,
                            "description": p_desc,
                        }
                    ),
                    "Produto cadastrado.",
                )
        for p in catalog.storefront():
            cols = st.columns([4, 2, 1])
            cols[0].write(f"**{p.name}** · {p.category}")
            cols[1].write(format_currency(p.price))
            if cols[2].button("Excluir", key=f"delp_{p.id}"):
                show_result(catalog.delete_product(p.id), "Produto movido para a lixeira.")

    with tabs[4]:
        for p in catalog.trash():
            cols = st.columns([4, 1])
            cols[0].write(p.name)
            if cols[1].button("Restaurar", key=f"resp_{p.id}"):
                show_result(catalog.restore_product(p.id), "Produto restaurado.")
        for cat in active_store.deleted_categories:
            cols = st.columns([4, 1])
            cols[0].write(f"🏷️ {cat}")
            if cols[1].button("Restaurar", key=f"rescat_{cat}"):
                show_result(catalog.restore_category(cat), "Categoria restaurada.")

    with tabs[5]:
        subscriptions = SubscriptionService(app_store, config)
        if active_store.subscription_expiry:
            st.caption(f"Validade: {format_date(active_store.subscription_expiry)}")
        cols = st.columns(len(app_store.plans) or 1)
        for col, candidate in zip(cols, app_store.plans):
            with col:
                st.subheader(("⭐ " if candidate.recommended else "") + candidate.name)
                st.write(f"{format_currency(candidate.price)}/mês")
                for feature in candidate.features:
                    st.write(f"✓ {feature}")
                if candidate.id == plan.id:
                    st.success("Plano atual")
                elif st.button("Assinar", key=f"plan_{candidate.id}"):
                    link = checkout_url(app_store.integration, user.email)
                    if link.is_some():
                        st.link_button("Ir para o pagamento", link.value)
                    else:
                        show_result(
                            subscriptions.change_plan(active_store.id, candidate.id),
                            f"Seu plano foi alterado para {candidate.name}.",
                        )


# ============ PAGE: АДМИНКА ============
elif page == "🛡️ Administração":
    subscriptions = SubscriptionService(app_store, config)
    tab1, tab2, tab3 = st.tabs(["🏬 Lojas", "💼 Planos", "🔌 Integração"])

    with tab1:
        for row in subscriptions.tenant_overview():
            store = row["store"]
            cols = st.columns([3, 2, 3, 2, 2])
            cols[0].write(f"**{store.name}**")
            cols[1].write(row["plan"].name)
            if row["expiry"]:
                label = f"Validade: {format_date(row['expiry'])}"
                cols[2].write(f"{label} (EXPIRADO)" if row["state"] == EXPIRED else label)
            if row["state"] == PENDING_ACTIVE:
                if cols[3].button("Marcar pago", key=f"paid_{store.id}"):
                    show_result(
                        subscriptions.store_action(store.id, "mark_paid"),
                        "Pagamento marcado como confirmado manualmente.",
                    )
            elif cols[3].button("+30 dias pendente", key=f"ext_{store.id}"):
                show_result(
                    subscriptions.store_action(store.id, "extend_pending"),
                    "Assinatura estendida por 30 dias com pagamento pendente.",
                )
            if cols[4].button("Abrir painel", key=f"open_{store.id}"):
                st.session_state.active_store_id = store.id
                st.rerun()

    with tab2:
        for existing in app_store.plans:
            with st.expander(f"{existing.name} ({existing.id})"):
                st.write(existing.description)
                st.caption(f"Até {format_plan_limit(existing.limits.max_products)} produtos")
                if st.button("Excluir plano", key=f"delplan_{existing.id}"):
                    subscriptions.delete_plan(existing.id)
                    st.rerun()

        st.subheader("Novo / editar plano")
        with st.form("plan_form"):
            template = new_plan_template(st.text_input("ID", "plan-novo"))
            plan_name = st.text_input("Nome")
            plan_price = st.number_input("Preço (R$)", min_value=0.0, step=0.5)
            plan_desc = st.text_input("Descrição")
            plan_features = st.text_area("Recursos (um por linha)")
            max_products = st.number_input(
                "Máx. produtos", min_value=1, value=template.limits.max_products
            )
            banner_flag = st.checkbox("Banner personalizado")
            integrations_flag = st.checkbox("Integrações")
            domain_flag = st.checkbox("Domínio próprio")
            if st.form_submit_button("Salvar plano"):
                show_result(
                    subscriptions.save_plan(
                        SubscriptionPlan(
                            id=template.id,
                            name=plan_name,
                            price=round(plan_price * 100),
                            description=plan_desc,
                            features=tuple(
                                line.strip() for line in plan_features.splitlines() if line.strip()
                            ),
                            limits=PlanLimits(
                                max_products=int(max_products),
                                can_customize_banner=banner_flag,
                                can_use_integrations=integrations_flag,
                                can_use_custom_domain=domain_flag,
                            ),
                        )
                    ),
                    "Plano salvo.",
                )

    with tab3:
        settings = app_store.integration
        enabled = st.toggle("Integração Kiwify ativa", settings.is_enabled)
        token = st.text_input("Access token", settings.access_token, type="password")
        secret = st.text_input("Webhook secret", settings.webhook_secret, type="password")
        product_id = st.text_input("ID do produto", settings.product_id)
        if st.button("Salvar integração"):
            subscriptions.update_integration(
                is_enabled=enabled,
                access_token=token,
                webhook_secret=secret,
                product_id=product_id,
            )
            st.success("Configurações salvas.")

        st.divider()
        st.subheader("🧪 Simular pagamento (webhook)")
        test_email = st.text_input("Email do lojista")
        if st.button("Simular", type="primary") and test_email:
            result = subscriptions.simulate_payment(test_email)
            if show_result(result, "Sucesso! Pagamento Webhook Simulado."):
                st.info(
                    f'A loja "{result.value.name}" foi renovada até '
                    f"{format_date(result.value.subscription_expiry)}."
                )
