"""Integrations layer for shop-stats-service."""
from .localization import (
    CatalogTranslator,
    LocaleNumberFormatter,
    NumberFormatter,
    Translator,
    load_localization,
)

__all__ = ["CatalogTranslator", "LocaleNumberFormatter", "NumberFormatter", "Translator", "load_localization"]
