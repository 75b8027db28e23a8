from dataclasses import dataclass
from typing import Optional, Tuple


# Все суммы в centavos (R$ 1,00 = 100), все даты: ISO-8601 строки


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    role: str  # "admin" | "seller"
    store_id: Optional[str] = None


@dataclass(frozen=True)
class PlanLimits:
    max_products: int
    can_customize_banner: bool = False
    can_use_integrations: bool = False
    can_use_custom_domain: bool = False


@dataclass(frozen=True)
class SubscriptionPlan:
    id: str
    name: str
    price: int
    description: str
    features: Tuple[str, ...]
    limits: PlanLimits
    recommended: bool = False


@dataclass(frozen=True)
class Store:
    id: str
    owner_id: str
    name: str
    phone: str
    logo: str
    categories: Tuple[str, ...]
    accepted_payment_methods: Tuple[str, ...]
    plan: str
    banner: str = ""
    deleted_categories: Tuple[str, ...] = ()
    subscription_expiry: Optional[str] = None
    subscription_payment_status: str = "paid"  # "paid" | "pending"


@dataclass(frozen=True)
class Product:
    id: str
    store_id: str
    name: str
    price: int
    image: str
    category: str
    description: str = ""
    is_deleted: bool = False


@dataclass(frozen=True)
class OrderItem:
    product_id: str
    name: str
    quantity: int
    price: int


@dataclass(frozen=True)
class Order:
    id: str
    store_id: str
    customer_name: str
    customer_phone: str  # ключ клиента для RFM
    ts: str
    total: int
    items: Tuple[OrderItem, ...]
    status: str  # "completed" | "pending" | "cancelled"


@dataclass(frozen=True)
class CartItem:
    product: Product
    size: str  # "P" | "M" | "G" | "GG"
    quantity: int


@dataclass(frozen=True)
class CustomerMetric:
    phone: str
    name: str
    last_order_ts: str
    total_spent: int
    order_count: int
    recency: int
    frequency: int
    monetary: int
    segment: str


@dataclass(frozen=True)
class KpiSummary:
    total_sales: int
    order_count: int
    avg_ticket: float
    top_products: Tuple[Tuple[str, int], ...]


@dataclass(frozen=True)
class IntegrationSettings:
    is_enabled: bool = False
    access_token: str = ""
    webhook_secret: str = ""
    product_id: str = ""
