"""
Beat Forecast - Offense Category Collapser

Maps fine-grained offense descriptions onto a small, enumerated set of
canonical crime categories and a violent/non-violent label.

The mapping table lives in ``configs/categories.yaml`` and is validated when
it is loaded. Descriptions that are not in the table are passed through
unchanged as their own category and flagged so they can be added to the table
later.

Usage:
    from beat_forecast.datasets.crime.categories import CategoryMapper

    mapper = CategoryMapper.from_config(config)
    assignment = mapper.collapse("MOTOR VEHICLE THEFT")
    assignment.category  # "theft"

    df, unmapped = mapper.apply(df)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import pandas as pd

from beat_forecast.shared.config import Settings, get_category_mapping, get_config
from beat_forecast.shared.errors import ConfigurationError

logger = logging.getLogger(__name__)


class CrimeCategory(StrEnum):
    """Canonical crime categories."""

    ASSAULT = "assault"
    HOMICIDE = "homicide"
    ROBBERY = "robbery"
    SEXUAL_ASSAULT = "sexual_assault"
    THEFT = "theft"
    BURGLARY = "burglary"
    PROPERTY_DAMAGE = "property_damage"
    DRUGS = "drugs"
    FRAUD = "fraud"
    WEAPONS = "weapons"
    VICE = "vice"
    PUBLIC_ORDER = "public_order"
    OTHER = "other"


class ViolenceLabel(StrEnum):
    """Violent/non-violent label; UNKNOWN marks descriptions outside the table."""

    VIOLENT = "violent"
    NON_VIOLENT = "non-violent"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CategoryAssignment:
    """Result of collapsing one offense description."""

    description: str
    category: str
    violence: ViolenceLabel
    unmapped: bool = False


def normalize_description(value: Any) -> str:
    """Trim and upper-case an offense description."""
    if value is None or pd.isna(value):
        return "UNKNOWN"
    text = " ".join(str(value).split()).upper()
    return text or "UNKNOWN"


class CategoryMapper:
    """
    Deterministic offense description -> category -> violence mapping.

    Both mappings are total over the known vocabulary.
    """

    def __init__(
        self,
        description_to_category: dict[str, CrimeCategory],
        violent_categories: set[CrimeCategory],
    ):
        self.description_to_category = description_to_category
        self.violent_categories = violent_categories

    @classmethod
    def from_table(cls, table: dict[str, Any]) -> CategoryMapper:
        """
        Build a mapper from a raw mapping table, validating it.

        Raises:
            ConfigurationError: If a category is unknown, a description is listed
                under more than one category, or a violent category is unknown.
        """
        mapping: dict[str, CrimeCategory] = {}
        for key, descriptions in (table.get("categories") or {}).items():
            try:
                category = CrimeCategory(key)
            except ValueError:
                raise ConfigurationError(f"Unknown crime category in mapping table: {key}") from None

            for description in descriptions or []:
                normalized = normalize_description(description)
                existing = mapping.get(normalized)
                if existing is not None and existing != category:
                    raise ConfigurationError(
                        f"Offense description {normalized!r} is mapped to both "
                        f"{existing.value!r} and {category.value!r}"
                    )
                mapping[normalized] = category

        violent: set[CrimeCategory] = set()
        for key in table.get("violent") or []:
            try:
                violent.add(CrimeCategory(key))
            except ValueError:
                raise ConfigurationError(f"Unknown violent category: {key}") from None

        if not mapping:
            raise ConfigurationError("Category mapping table defines no descriptions")

        return cls(mapping, violent)

    @classmethod
    def from_config(cls, config: Settings | None = None) -> CategoryMapper:
        """Build a mapper from the configured mapping file."""
        config = config or get_config()
        return cls.from_table(get_category_mapping(config.categories.mapping_file))

    def violence_for(self, category: CrimeCategory) -> ViolenceLabel:
        """Violence label for a canonical category."""
        if category in self.violent_categories:
            return ViolenceLabel.VIOLENT
        return ViolenceLabel.NON_VIOLENT

    def collapse(self, description: Any) -> CategoryAssignment:
        """Collapse one offense description."""
        normalized = normalize_description(description)
        category = self.description_to_category.get(normalized)
        if category is None:
            return CategoryAssignment(
                description=normalized,
                category=normalized,
                violence=ViolenceLabel.UNKNOWN,
                unmapped=True,
            )
        return CategoryAssignment(
            description=normalized,
            category=category.value,
            violence=self.violence_for(category),
        )

    def apply(
        self,
        df: pd.DataFrame,
        description_col: str = "primary_type",
    ) -> tuple[pd.DataFrame, list[str]]:
        """
        Annotate incidents with ``crime_category``, ``violence`` and
        ``category_unmapped``.

        Returns:
            Tuple of (annotated DataFrame, sorted unmapped descriptions)
        """
        df = df.copy()
        normalized = df[description_col].map(normalize_description)

        assignments = {value: self.collapse(value) for value in normalized.unique()}

        df["crime_category"] = normalized.map(lambda v: assignments[v].category)
        df["violence"] = normalized.map(lambda v: assignments[v].violence.value)
        df["category_unmapped"] = normalized.map(lambda v: assignments[v].unmapped).astype(bool)

        unmapped = sorted(v for v, a in assignments.items() if a.unmapped)
        if unmapped:
            logger.warning(
                f"Found {len(unmapped)} offense descriptions missing from the category table",
                extra={"unmapped_descriptions": unmapped},
            )

        return df, unmapped
