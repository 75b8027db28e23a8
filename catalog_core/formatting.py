from datetime import datetime, timezone
from typing import Optional

UNLIMITED_THRESHOLD = 9999


def parse_ts(ts: str) -> datetime:
    """
    ISO-8601 строка → aware datetime в UTC.
    Принимает суффикс "Z" и строки без таймзоны (считаются UTC).
    """
    raw = ts.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(raw))


def to_iso(dt: datetime) -> str:
    return as_utc(dt).isoformat()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Наивный datetime считается UTC, aware приводится к UTC"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def current_time(now: Optional[datetime] = None) -> datetime:
    """Момент оценки: переданный now (в UTC) или текущее время"""
    return as_utc(now) if now is not None else utc_now()


def format_currency(centavos: float) -> str:
    """Форматирует сумму из centavos в реалы: 123456 → 'R$ 1.234,56'"""
    sign = "-" if centavos < 0 else ""
    text = f"{abs(centavos) / 100:,.2f}"
    # en-US группировка → pt-BR
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"


def format_date(ts: str) -> str:
    return parse_ts(ts).strftime("%d/%m/%Y")


def format_plan_limit(max_products: int) -> str:
    return "Ilimitado" if max_products > UNLIMITED_THRESHOLD else str(max_products)
