#!/usr/bin/env python3
"""
Excel export and import-template generation for cotify.

Supports writing Excel files for:
- Orders, Suppliers, Products
- A blank purchase spreadsheet whose headers the importer recognizes
"""

import datetime
from pathlib import Path
from typing import Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from sqlalchemy.orm import Session

from . import headers as roles
from .normalize import format_document
from .services import OrderService, ProductService, SupplierService

# Styling constants
HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="4F46E5", end_color="4F46E5", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
CURRENCY_FORMAT = '"R$" #,##0.00'
DATE_FORMAT = "DD/MM/YYYY"

EXPORT_LIMIT = 1_000_000


def _style_header(ws, num_cols: int) -> None:
    """Apply header styling to first row."""
    for col in range(1, num_cols + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = THIN_BORDER


def _auto_width(ws) -> None:
    """Auto-adjust column widths based on content."""
    for column_cells in ws.columns:
        max_length = 0
        column = column_cells[0].column_letter
        for cell in column_cells:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[column].width = min(max_length + 2, 50)


def _format_columns(ws, currency_cols=(), date_cols=()) -> None:
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            if cell.column in currency_cols:
                cell.number_format = CURRENCY_FORMAT
            elif cell.column in date_cols:
                cell.number_format = DATE_FORMAT


# =============================================================================
# Export Functions
# =============================================================================


def export_orders(
    session: Session, filepath: Union[str, Path], branch_id: Optional[int] = None
) -> int:
    """Export purchase orders to Excel. Returns number of rows exported."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Compras"

    headers = [
        "Data",
        "Filial",
        "CNPJ Fornecedor",
        "Fornecedor",
        "Produto",
        "Unid",
        "Quantidade",
        "Valor Unitário",
        "Valor Total",
    ]
    ws.append(headers)
    _style_header(ws, len(headers))

    orders = OrderService.get_all(session, branch_id=branch_id, limit=EXPORT_LIMIT)
    for o in orders:
        ws.append(
            [
                o.date,
                o.branch.name if o.branch else "",
                format_document(o.supplier.document),
                o.supplier.name,
                o.product.name,
                o.product.unit,
                o.quantity,
                o.unit_price,
                o.total,
            ]
        )

    _format_columns(ws, currency_cols=(8, 9), date_cols=(1,))
    _auto_width(ws)
    wb.save(filepath)
    return len(orders)


def export_suppliers(session: Session, filepath: Union[str, Path]) -> int:
    """Export all suppliers to Excel. Returns number of rows exported."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Fornecedores"

    headers = ["ID", "CNPJ/CPF", "Razão Social", "Nome Fantasia", "Endereço", "Cidade", "UF", "Compras"]
    ws.append(headers)
    _style_header(ws, len(headers))

    suppliers = SupplierService.get_all(session, limit=EXPORT_LIMIT)
    for s in suppliers:
        ws.append(
            [
                s.id,
                format_document(s.document),
                s.name,
                s.trade_name or "",
                s.address or "",
                s.city or "",
                s.state or "",
                len(s.orders),
            ]
        )

    _auto_width(ws)
    wb.save(filepath)
    return len(suppliers)


def export_products(session: Session, filepath: Union[str, Path]) -> int:
    """Export all products to Excel. Returns number of rows exported."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Produtos"

    headers = ["ID", "Produto", "Unidade", "NCM", "Compras"]
    ws.append(headers)
    _style_header(ws, len(headers))

    products = ProductService.get_all(session, limit=EXPORT_LIMIT)
    for p in products:
        ws.append([p.id, p.name, p.unit, p.ncm or "", len(p.orders)])

    _auto_width(ws)
    wb.save(filepath)
    return len(products)


# =============================================================================
# Template Generation (for import)
# =============================================================================


TEMPLATE_ROLES = [
    roles.DOCUMENT,
    roles.SUPPLIER_NAME,
    roles.DATE,
    roles.PRODUCT,
    roles.UNIT,
    roles.QUANTITY,
    roles.UNIT_PRICE,
    roles.TOTAL,
]


def generate_import_template(filepath: Union[str, Path]) -> None:
    """Generate a purchase spreadsheet whose headers the importer maps."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Compras"

    headers = [roles.HUMAN_LABELS[role] for role in TEMPLATE_ROLES]
    ws.append(headers)
    _style_header(ws, len(headers))

    ws.append(
        [
            "45.997.418/0001-53",
            "Atacado Exemplo Ltda",
            datetime.date.today(),
            "Café Torrado 500g",
            "PCT",
            3,
            50.0,
            150.0,
        ]
    )
    _format_columns(ws, currency_cols=(7, 8), date_cols=(3,))
    _auto_width(ws)
    wb.save(filepath)


EXPORTERS = {
    "orders": export_orders,
    "suppliers": export_suppliers,
    "products": export_products,
}
