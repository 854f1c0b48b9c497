#!/usr/bin/env python3
"""
Catalog resolution for one import run.

Suppliers are matched by digits-only document, products by normalized
name. Both indexes are seeded from the store once per run and grow as
the run creates entries, so later rows see entities created by earlier
rows without asking the store again.
"""

import logging
from typing import Any, Dict, List, Optional

from .models import (
    DEFAULT_UNIT,
    GENERIC_SUPPLIER_DOCUMENT,
    GENERIC_SUPPLIER_NAME,
    GENERIC_SUPPLIER_TRADE_NAME,
    UNIT_MAX_LENGTH,
)
from .normalize import clean_document, normalize_text
from .store import StoreError

logger = logging.getLogger("cotify")

NEW_SUPPLIER_NAME = "Fornecedor Novo"


class CatalogIndex:
    """Canonical key -> entity id, pre-populated from the store"""

    def __init__(self):
        self._ids: Dict[str, int] = {}

    def __len__(self):
        return len(self._ids)

    def __contains__(self, key: str) -> bool:
        return key in self._ids

    def get(self, key: str) -> Optional[int]:
        return self._ids.get(key)

    def add(self, key: str, entity_id: int) -> None:
        """Register a key; the first entity seen for a key keeps it"""
        self._ids.setdefault(key, entity_id)


def unit_code(raw_unit: Any) -> str:
    """Unit of measure from a cell: stripped, defaulted, length-bounded"""
    text = str(raw_unit if raw_unit is not None else "").strip()
    return (text or DEFAULT_UNIT)[:UNIT_MAX_LENGTH]


class CatalogResolver:
    """
    Resolve raw supplier documents and product names to catalog ids.

    Missing entries are created through the store. Entries created here
    stay in the catalog even if the row that caused them is later dropped
    or the final order insert fails.

    Example:
        >>> resolver = CatalogResolver(store)
        >>> resolver.load()
        >>> resolver.resolve_product("Café", "KG")
        1
        >>> resolver.resolve_product("CAFE ", None)
        1
    """

    def __init__(self, store):
        self.store = store
        self.suppliers = CatalogIndex()
        self.products = CatalogIndex()
        self.generic_supplier_id: Optional[int] = None
        self.created_suppliers: List[Dict[str, Any]] = []
        self.created_products: List[Dict[str, Any]] = []

    def load(self) -> None:
        """Seed both indexes from the store's current collections"""
        for supplier in self.store.select("suppliers", order_by="id"):
            document = clean_document(supplier.get("document"))
            if document == GENERIC_SUPPLIER_DOCUMENT:
                if self.generic_supplier_id is None:
                    self.generic_supplier_id = supplier["id"]
            elif document:
                self.suppliers.add(document, supplier["id"])

        for product in self.store.select("products", order_by="id"):
            key = normalize_text(product.get("name"))
            if key:
                self.products.add(key, product["id"])

        logger.debug(
            f"Catalog loaded: {len(self.suppliers)} suppliers, {len(self.products)} products"
        )

    def resolve_supplier(self, raw_document: Any, raw_name_hint: Any = None) -> Optional[int]:
        """
        Supplier id for a raw document cell.

        Blank (or reserved) documents resolve to the generic supplier,
        created on first use. Documents are opaque keys here; no checksum
        is verified. Returns None only when the store refuses to create
        the supplier.
        """
        document = clean_document(raw_document)
        if not document or document == GENERIC_SUPPLIER_DOCUMENT:
            return self.resolve_generic_supplier()

        supplier_id = self.suppliers.get(document)
        if supplier_id is not None:
            return supplier_id

        name = str(raw_name_hint).strip() if raw_name_hint not in (None, "") else ""
        try:
            supplier = self.store.insert(
                "suppliers",
                {"document": document, "name": name or NEW_SUPPLIER_NAME, "trade_name": ""},
            )
        except StoreError as e:
            logger.warning(f"Could not create supplier {document}: {e}")
            return None

        self.suppliers.add(document, supplier["id"])
        self.created_suppliers.append(supplier)
        logger.info(f"Created supplier: {supplier['name']} ({document})")
        return supplier["id"]

    def resolve_generic_supplier(self) -> Optional[int]:
        """The catch-all supplier, created at most once per run"""
        if self.generic_supplier_id is not None:
            return self.generic_supplier_id
        try:
            supplier = self.store.insert(
                "suppliers",
                {
                    "document": GENERIC_SUPPLIER_DOCUMENT,
                    "name": GENERIC_SUPPLIER_NAME,
                    "trade_name": GENERIC_SUPPLIER_TRADE_NAME,
                },
            )
        except StoreError as e:
            logger.warning(f"Could not create generic supplier: {e}")
            return None

        self.generic_supplier_id = supplier["id"]
        self.created_suppliers.append(supplier)
        logger.info(f"Created generic supplier: {GENERIC_SUPPLIER_NAME}")
        return self.generic_supplier_id

    def resolve_product(self, raw_name: Any, raw_unit_hint: Any = None) -> Optional[int]:
        """
        Product id for a raw description cell.

        Names are compared after case folding, trimming and accent
        stripping. Returns None for a blank name or when the store
        refuses to create the product.
        """
        name = str(raw_name if raw_name is not None else "").strip()
        key = normalize_text(name)
        if not key:
            return None

        product_id = self.products.get(key)
        if product_id is not None:
            return product_id

        try:
            product = self.store.insert(
                "products", {"name": name, "unit": unit_code(raw_unit_hint)}
            )
        except StoreError as e:
            logger.warning(f"Could not create product '{name}': {e}")
            return None

        self.products.add(key, product["id"])
        self.created_products.append(product)
        logger.info(f"Created product: {name} ({product['unit']})")
        return product["id"]
