from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from app.invcount.core.error_catalog import AppError, ErrorCatalog


class CatalogType(str, Enum):
    PRODUCT = "PRODUCT"
    MATERIAL = "MATERIAL"


@dataclass(frozen=True)
class ProductRef:
    product_id: uuid.UUID
    variant_id: uuid.UUID | None = None

    @property
    def catalog_type(self) -> CatalogType:
        return CatalogType.PRODUCT

    @property
    def catalog_id(self) -> uuid.UUID:
        return self.product_id


@dataclass(frozen=True)
class MaterialRef:
    material_id: uuid.UUID

    @property
    def catalog_type(self) -> CatalogType:
        return CatalogType.MATERIAL

    @property
    def catalog_id(self) -> uuid.UUID:
        return self.material_id

    @property
    def variant_id(self) -> None:
        return None


CatalogRef = Union[ProductRef, MaterialRef]


def catalog_ref_from_columns(
    catalog_type: str, catalog_id: uuid.UUID, variant_id: uuid.UUID | None
) -> CatalogRef:
    if CatalogType(catalog_type) is CatalogType.MATERIAL:
        return MaterialRef(material_id=catalog_id)
    return ProductRef(product_id=catalog_id, variant_id=variant_id)


class CountScope(str, Enum):
    ALL = "ALL"
    PRODUCTS_ONLY = "PRODUCTS_ONLY"
    MATERIALS_ONLY = "MATERIALS_ONLY"


@dataclass(frozen=True)
class CountFilters:
    categories: frozenset[str] = field(default_factory=frozenset)
    locations: frozenset[str] = field(default_factory=frozenset)
    sku_prefix: str | None = None
    scope: CountScope = CountScope.ALL

    @property
    def includes_products(self) -> bool:
        return self.scope is not CountScope.MATERIALS_ONLY

    @property
    def includes_materials(self) -> bool:
        return self.scope is not CountScope.PRODUCTS_ONLY

    @classmethod
    def build(
        cls,
        *,
        categories=None,
        locations=None,
        sku_prefix: str | None = None,
        scope: CountScope | str | None = None,
        material_only: bool = False,
        product_only: bool = False,
    ) -> "CountFilters":
        if material_only and product_only:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "material_only and product_only are mutually exclusive"},
            )
        resolved_scope = CountScope(scope) if scope else CountScope.ALL
        if material_only or product_only:
            flag_scope = CountScope.MATERIALS_ONLY if material_only else CountScope.PRODUCTS_ONLY
            if resolved_scope not in (CountScope.ALL, flag_scope):
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": f"scope {resolved_scope.value} conflicts with the only-flags"},
                )
            resolved_scope = flag_scope
        prefix = (sku_prefix or "").strip() or None
        return cls(
            categories=frozenset(value.strip() for value in (categories or []) if value and value.strip()),
            locations=frozenset(value.strip() for value in (locations or []) if value and value.strip()),
            sku_prefix=prefix,
            scope=resolved_scope,
        )

    def to_json(self) -> dict:
        return {
            "categories": sorted(self.categories),
            "locations": sorted(self.locations),
            "sku_prefix": self.sku_prefix,
            "scope": self.scope.value,
        }

    @classmethod
    def from_json(cls, payload: dict | None) -> "CountFilters":
        payload = payload or {}
        return cls.build(
            categories=payload.get("categories"),
            locations=payload.get("locations"),
            sku_prefix=payload.get("sku_prefix"),
            scope=payload.get("scope"),
            material_only=bool(payload.get("material_only")),
            product_only=bool(payload.get("product_only")),
        )
