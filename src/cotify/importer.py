#!/usr/bin/env python3
"""
Bulk import of purchasing spreadsheets.

One run takes a whole batch of loosely typed rows, infers the column
layout once, then walks the rows in order: extract the mapped cells,
normalize numbers and dates, resolve supplier and product against the
catalog, compute amounts, and either keep the order or count the row as
skipped. All kept orders are written with a single bulk insert.

Rows are processed strictly one after another. Catalog entries created
for one row must be visible to the next, and the run-local indexes in
CatalogResolver are what provide that.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from . import headers as roles
from .catalog import CatalogResolver
from .headers import HeaderError, HeaderMap, map_headers
from .normalize import parse_flexible_date, parse_locale_number
from .readers import ReaderError, read_rows
from .schemas import (
    IMPORT_COMPLETED,
    IMPORT_EMPTY,
    IMPORT_FAILED,
    IMPORT_REJECTED,
    ImportReport,
)
from .store import StoreError

logger = logging.getLogger("cotify")


def compute_amounts(quantity: Any, unit_price: Any, total: Any) -> Tuple[float, float, float]:
    """
    Normalize quantity, unit price and total for one line.

    Quantity falls back to 1 when absent or not positive. A missing total
    is derived from quantity x unit price, and a missing unit price from
    total / quantity. When the source supplied neither, both stay 0.

    Example:
        >>> compute_amounts("3", "50", "")
        (3.0, 50.0, 150.0)
        >>> compute_amounts("3", "", "150")
        (3.0, 50.0, 150.0)
    """
    qty = float(parse_locale_number(quantity))
    if qty <= 0:
        qty = 1.0
    price = float(parse_locale_number(unit_price))
    line_total = float(parse_locale_number(total))

    if line_total == 0 and price > 0:
        line_total = qty * price
    if price == 0 and line_total > 0 and qty > 0:
        price = line_total / qty
    return qty, price, line_total


class ImportService:
    """Service for importing purchase lines from spreadsheets"""

    @staticmethod
    def _reject(reason: str) -> ImportReport:
        logger.warning(f"Import rejected: {reason}")
        return ImportReport(status=IMPORT_REJECTED, failure_reason=reason)

    @staticmethod
    def _extract(row: Dict[str, Any], header_map: HeaderMap) -> Dict[str, Any]:
        """Raw cells for each role; unmapped roles get empty defaults"""
        return {
            "document": header_map.value(row, roles.DOCUMENT),
            "supplier_name": header_map.value(row, roles.SUPPLIER_NAME),
            "product": str(header_map.value(row, roles.PRODUCT)).strip(),
            "date": header_map.value(row, roles.DATE),
            "quantity": header_map.value(row, roles.QUANTITY),
            "unit": header_map.value(row, roles.UNIT),
            "unit_price": header_map.value(row, roles.UNIT_PRICE),
            "total": header_map.value(row, roles.TOTAL),
        }

    @staticmethod
    def import_rows(
        store,
        rows: Sequence[Dict[str, Any]],
        branch_id: Optional[int],
    ) -> ImportReport:
        """
        Import a batch of rows as orders for a branch.

        Args:
            store: TableStore (or anything with the same insert/select contract)
            rows: Column name -> raw cell value, in source order
            branch_id: Purchasing branch the orders are booked to

        Returns:
            ImportReport. Batch-level problems are reported, not raised:
            no branch, unknown branch, empty batch or missing columns give
            status "rejected" with no writes; a failed bulk insert gives
            "failed" and leaves catalog entries created during the run in
            place.
        """
        if not branch_id:
            return ImportService._reject("Select the branch the purchases belong to")
        if not rows:
            return ImportService._reject("The file is empty")

        try:
            if store.get("branches", branch_id) is None:
                return ImportService._reject(f"Branch {branch_id} not found")
        except StoreError as e:
            return ImportService._reject(f"Could not read branches: {e}")

        header_map = map_headers(rows[0].keys())
        try:
            header_map.validate()
        except HeaderError as e:
            return ImportService._reject(str(e))

        logger.info(f"Importing {len(rows)} rows for branch {branch_id}: {header_map}")

        resolver = CatalogResolver(store)
        try:
            resolver.load()
        except StoreError as e:
            return ImportService._reject(f"Could not load catalog: {e}")

        orders: List[Dict[str, Any]] = []
        skipped = 0
        unresolved = 0

        for row_num, row in enumerate(rows, start=2):
            fields = ImportService._extract(row, header_map)

            if not fields["product"]:
                skipped += 1
                logger.debug(f"Row {row_num}: skipped, blank product description")
                continue

            date = parse_flexible_date(fields["date"])

            supplier_id = resolver.resolve_supplier(fields["document"], fields["supplier_name"])
            if supplier_id is None:
                supplier_id = resolver.resolve_generic_supplier()
            product_id = resolver.resolve_product(fields["product"], fields["unit"])

            quantity, unit_price, total = compute_amounts(
                fields["quantity"], fields["unit_price"], fields["total"]
            )

            if supplier_id is None or product_id is None:
                unresolved += 1
                logger.debug(f"Row {row_num}: dropped, catalog entry could not be created")
                continue

            orders.append(
                {
                    "supplier_id": supplier_id,
                    "product_id": product_id,
                    "branch_id": branch_id,
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "total": total,
                    "date": date,
                }
            )

        report = ImportReport(
            skipped_count=skipped,
            unresolved_count=unresolved,
            created_suppliers=len(resolver.created_suppliers),
            created_products=len(resolver.created_products),
        )

        if not orders:
            report.status = IMPORT_EMPTY
            report.failure_reason = "No valid rows found"
            logger.info(f"Import found no valid rows ({skipped} skipped)")
            return report

        try:
            store.insert_many("orders", orders)
        except StoreError as e:
            report.status = IMPORT_FAILED
            report.failure_reason = str(e)
            logger.error(
                f"Failed to save {len(orders)} orders; keeping "
                f"{report.created_suppliers} suppliers and {report.created_products} products"
            )
            return report

        report.status = IMPORT_COMPLETED
        report.imported_count = len(orders)
        logger.info(f"Imported {len(orders)} orders ({skipped} rows skipped)")
        return report

    @staticmethod
    def import_file(store, filepath: Union[str, Path], branch_id: Optional[int]) -> ImportReport:
        """Read a delimited or workbook file fully, then import its rows"""
        if not branch_id:
            return ImportService._reject("Select the branch the purchases belong to")
        try:
            rows = read_rows(filepath)
        except ReaderError as e:
            return ImportService._reject(str(e))
        return ImportService.import_rows(store, rows, branch_id)
