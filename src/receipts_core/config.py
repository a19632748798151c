"""Unified configuration for receipts_core.

This module provides a single configuration class shared by the marts,
the calculations, and the analytics session. Build one per process (or per
user) and pass it explicitly; nothing in the package reads a global copy.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from receipts_core import constants
from receipts_core.exceptions import ConfigError


def _default_grade_codes() -> dict[str, tuple[str, ...]]:
    return {
        "premium": constants.PREMIUM_GAS_CODES,
        "regular": constants.REGULAR_GAS_CODES,
    }


@dataclass(frozen=True)
class AnalyticsConfig:
    """Business settings used by the aggregation and calculation layers.

    Attributes:
        rewards_rate: Executive membership reward rate on merchandise.
        max_reward: Annual cap on the executive reward.
        cobrand_card_marker: Substring (case-insensitive) identifying the
            co-branded credit card in tender descriptions.
        cobrand_gas_rate: Co-brand card reward rate on gas.
        cobrand_merch_rate: Co-brand card reward rate on merchandise.
        default_card_rate: Reward rate assumed for any other tender.
        gas_grade_codes: Fuel product codes keyed by grade name. Grades are
            reported in the order given here.
        gas_receipt_types: ``receiptType`` values that mark a gas receipt.
        gas_document_types: ``documentType`` values that mark a gas receipt.
        top_discount_items: How many discount targets to keep.
        price_match_tolerance: Max unit price difference for a return to
            match a prior purchase.
    """

    rewards_rate: float = constants.REWARDS_RATE
    max_reward: float = constants.MAX_REWARD
    cobrand_card_marker: str = constants.COBRAND_CARD_MARKER
    cobrand_gas_rate: float = constants.COBRAND_GAS_RATE
    cobrand_merch_rate: float = constants.COBRAND_MERCH_RATE
    default_card_rate: float = constants.DEFAULT_CARD_RATE
    gas_grade_codes: dict[str, tuple[str, ...]] = field(default_factory=_default_grade_codes)
    gas_receipt_types: tuple[str, ...] = (constants.GAS_RECEIPT_TYPE,)
    gas_document_types: tuple[str, ...] = (constants.GAS_DOCUMENT_TYPE,)
    top_discount_items: int = constants.TOP_DISCOUNT_ITEMS
    price_match_tolerance: float = constants.PRICE_MATCH_TOLERANCE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyticsConfig:
        """Create a config from a plain dict of overrides.

        Args:
            data: Mapping of field name to value. Missing fields keep their
                defaults.

        Returns:
            AnalyticsConfig instance.

        Raises:
            ConfigError: If a key is unknown or a value has the wrong type.

        Examples:
            >>> cfg = AnalyticsConfig.from_dict({"rewards_rate": 0.03})
            >>> cfg.rewards_rate
            0.03
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object", {"type": type(data).__name__})

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {unknown}", {"keys": unknown})

        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key == "gas_grade_codes":
                kwargs[key] = _parse_grade_codes(value)
            elif key in ("gas_receipt_types", "gas_document_types"):
                kwargs[key] = _parse_str_tuple(key, value)
            elif key == "cobrand_card_marker":
                if not isinstance(value, str) or not value.strip():
                    raise ConfigError(f"{key} must be a non-empty string", {key: value})
                kwargs[key] = value
            elif key == "top_discount_items":
                if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                    raise ConfigError(f"{key} must be a positive integer", {key: value})
                kwargs[key] = value
            else:
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                    raise ConfigError(f"{key} must be a non-negative number", {key: value})
                kwargs[key] = float(value)

        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: str | Path) -> AnalyticsConfig:
        """Load config overrides from a JSON file.

        Args:
            path: Path to a JSON object with field overrides.

        Returns:
            AnalyticsConfig instance.

        Raises:
            ConfigError: If the file is missing, is not valid JSON, or holds
                invalid values.
        """
        if isinstance(path, str):
            path = Path(path)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}", {"path": str(path)}) from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file is not valid JSON: {path}: {e}", {"path": str(path)}) from e

        return cls.from_dict(data)

    @property
    def all_gas_codes(self) -> frozenset[str]:
        """Every configured fuel product code, across grades."""
        return frozenset(code for codes in self.gas_grade_codes.values() for code in codes)

    @property
    def grade_names(self) -> list[str]:
        return list(self.gas_grade_codes)

    def grade_for(self, item_number: Any) -> str | None:
        """Return the fuel grade for a product code, or None."""
        if item_number is None:
            return None
        code = str(item_number)
        for grade, codes in self.gas_grade_codes.items():
            if code in codes:
                return grade
        return None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["gas_grade_codes"] = {k: list(v) for k, v in self.gas_grade_codes.items()}
        data["gas_receipt_types"] = list(self.gas_receipt_types)
        data["gas_document_types"] = list(self.gas_document_types)
        return data


def _parse_str_tuple(key: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key} must be a list of strings", {key: value})
    return tuple(value)


def _parse_grade_codes(value: Any) -> dict[str, tuple[str, ...]]:
    if not isinstance(value, dict) or not value:
        raise ConfigError("gas_grade_codes must be a non-empty object", {"gas_grade_codes": value})

    parsed: dict[str, tuple[str, ...]] = {}
    for grade, codes in value.items():
        if isinstance(codes, (str, int)):
            codes = [codes]
        if not isinstance(codes, (list, tuple)):
            raise ConfigError(
                f"gas_grade_codes[{grade!r}] must be a list of codes", {"grade": grade}
            )
        parsed[str(grade)] = tuple(str(c) for c in codes)
    return parsed
