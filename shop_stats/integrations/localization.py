"""
Label translation and number formatting for statistic exports.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Protocol

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..stats.errors import StatsConfigurationError


class Translator(Protocol):
    def trans(self, key: str) -> str: ...


class NumberFormatter(Protocol):
    def format_number(self, value: float, decimals: int = 2) -> str: ...


class LocaleDefinition(BaseModel):
    decimal_separator: str = Field(".", min_length=1, max_length=1)
    thousands_separator: str = Field("", max_length=1)
    messages: dict[str, str] = Field(default_factory=dict)


class LocaleCatalog(BaseModel):
    locales: dict[str, LocaleDefinition] = Field(default_factory=dict)


class CatalogTranslator:
    """Message lookup that returns the key itself for unknown messages."""

    def __init__(self, messages: dict[str, str]) -> None:
        self._messages = dict(messages)

    def trans(self, key: str) -> str:
        return self._messages.get(key, key)


class LocaleNumberFormatter:
    """Fixed-point formatting with locale-specific grouping and decimal separators."""

    def __init__(self, decimal_separator: str = ".", thousands_separator: str = "") -> None:
        self._decimal = decimal_separator
        self._thousands = thousands_separator

    def format_number(self, value: float, decimals: int = 2) -> str:
        # half-up, and values like -1e-17 must not render as "-0.00"
        quantized = Decimal(str(value)).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
        if quantized.is_zero():
            quantized = abs(quantized)
        text = f"{quantized:,.{decimals}f}"
        return text.replace(",", "\x00").replace(".", self._decimal).replace("\x00", self._thousands)


def load_locale_catalog(path: str | Path) -> LocaleCatalog:
    config_path = Path(path)
    if not config_path.exists():
        raise StatsConfigurationError(f"Locale catalog not found: {config_path}")
    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise StatsConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
    try:
        return LocaleCatalog(**raw)
    except (TypeError, ValidationError) as exc:
        raise StatsConfigurationError(f"Invalid locale catalog {config_path}: {exc}") from exc


def load_localization(path: str | Path, locale: str) -> tuple[CatalogTranslator, LocaleNumberFormatter]:
    """Build the translator and number formatter for ``locale`` from a YAML catalog."""
    catalog = load_locale_catalog(path)
    definition = catalog.locales.get(locale)
    if definition is None:
        raise StatsConfigurationError(
            f"Locale '{locale}' not defined; available: {', '.join(sorted(catalog.locales)) or 'none'}"
        )
    return (
        CatalogTranslator(definition.messages),
        LocaleNumberFormatter(definition.decimal_separator, definition.thousands_separator),
    )
