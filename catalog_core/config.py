"""Загрузка настроек: config.yaml + переопределения через переменные окружения."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    name: str = "Catálogo Zap"
    seed_path: str = "data/seed.json"
    subscription_cycle_days: int = 30
    upgrade_plan_id: str = "pro"
    top_products_limit: int = 5
    log_level: str = "INFO"


def load_config(path: str | None = None) -> AppConfig:
    """
    Читает секцию app из config.yaml (путь из CONFIG_PATH), затем применяет
    переменные окружения ZAP_*. Отсутствующий файл: значения по умолчанию.
    """
    config_path = path or os.environ.get("CONFIG_PATH", "config.yaml")
    raw: dict = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    else:
        logger.debug("Config file %s not found, using defaults", config_path)

    app_cfg = raw.get("app", {}) or {}
    defaults = AppConfig()

    return AppConfig(
        name=os.environ.get("ZAP_APP_NAME", app_cfg.get("name", defaults.name)),
        seed_path=os.environ.get(
            "ZAP_SEED_PATH", app_cfg.get("seed_path", defaults.seed_path)
        ),
        subscription_cycle_days=int(
            os.environ.get(
                "ZAP_SUBSCRIPTION_CYCLE_DAYS",
                app_cfg.get("subscription_cycle_days", defaults.subscription_cycle_days),
            )
        ),
        upgrade_plan_id=os.environ.get(
            "ZAP_UPGRADE_PLAN_ID",
            app_cfg.get("upgrade_plan_id", defaults.upgrade_plan_id),
        ),
        top_products_limit=int(
            os.environ.get(
                "ZAP_TOP_PRODUCTS_LIMIT",
                app_cfg.get("top_products_limit", defaults.top_products_limit),
            )
        ),
        log_level=os.environ.get(
            "ZAP_LOG_LEVEL", app_cfg.get("log_level", defaults.log_level)
        ).upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
