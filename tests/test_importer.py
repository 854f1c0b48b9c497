"""Tests for the spreadsheet import pipeline"""

import datetime

import pytest
from sqlalchemy import text

from cotify.importer import ImportService, compute_amounts
from cotify.models import GENERIC_SUPPLIER_DOCUMENT
from cotify.schemas import IMPORT_COMPLETED, IMPORT_EMPTY, IMPORT_FAILED, IMPORT_REJECTED
from cotify.store import StoreError, TableStore


class FailingOrderStore(TableStore):
    """Catalog writes work, the final order insert does not"""

    def insert_many(self, table, rows):
        if table == "orders":
            raise StoreError("connection lost")
        return super().insert_many(table, rows)


class NoProductStore(TableStore):
    def insert_many(self, table, rows):
        if table == "products":
            raise StoreError("products table is read-only")
        return super().insert_many(table, rows)


@pytest.fixture
def branch(store):
    return store.insert("branches", {"document": "11222333000181", "name": "Matriz"})


def row(**cells):
    """Sheet row with the usual column names"""
    names = {
        "cnpj": "CNPJ Fornecedor",
        "name": "Razão Social",
        "product": "Descrição",
        "date": "Data",
        "qty": "Qtd",
        "price": "Vlr Unit",
        "total": "Valor Total",
    }
    return {names[k]: v for k, v in cells.items()}


# =============================================================================
# Amounts
# =============================================================================

def test_compute_amounts_total_from_price():
    """Test deriving the total from the unit price"""
    assert compute_amounts("3", "50", "") == (3.0, 50.0, 150.0)


def test_compute_amounts_price_from_total():
    """Test deriving the unit price from the total"""
    assert compute_amounts("3", "", "150") == (3.0, 50.0, 150.0)


def test_compute_amounts_keeps_both_when_given():
    """Test that given amounts are not recomputed"""
    assert compute_amounts("2", "10,00", "25,00") == (2.0, 10.0, 25.0)


def test_compute_amounts_quantity_defaults_to_one():
    """Test a missing or non-positive quantity"""
    assert compute_amounts("", "12,50", "") == (1.0, 12.5, 12.5)
    assert compute_amounts("-4", "", "30") == (1.0, 30.0, 30.0)


def test_compute_amounts_nothing_to_derive():
    """Test amounts with neither price nor total"""
    assert compute_amounts("2", "", "") == (2.0, 0.0, 0.0)


# =============================================================================
# Batch outcomes
# =============================================================================

def test_import_rows_completed(store, branch):
    """Test importing a complete batch"""
    rows = [
        row(cnpj="45.997.418/0001-53", name="Atacado Central", product="Café", date="05/01/24", qty="3", price="50,00", total=""),
        row(cnpj="45.997.418/0001-53", name="Atacado Central", product="Arroz 5kg", date="05/01/24", qty="3", price="", total="150"),
    ]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_COMPLETED
    assert report.ok
    assert report.imported_count == 2
    assert report.created_suppliers == 1
    assert report.created_products == 2
    assert report.summary() == "Import complete: 2 records saved."

    orders = store.select("orders", order_by="id")
    assert [(o["quantity"], o["unit_price"], o["total"]) for o in orders] == [
        (3.0, 50.0, 150.0),
        (3.0, 50.0, 150.0),
    ]
    assert all(o["branch_id"] == branch["id"] for o in orders)
    assert all(o["date"] == datetime.date(2024, 1, 5) for o in orders)


def test_accent_variants_create_one_product(store, branch):
    """Test spelling variants resolve to one product"""
    rows = [
        row(cnpj="45997418000153", product="Café", price="10"),
        row(cnpj="45997418000153", product="cafe", price="12"),
    ]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.imported_count == 2
    products = store.select("products")
    assert len(products) == 1
    orders = store.select("orders")
    assert {o["product_id"] for o in orders} == {products[0]["id"]}


def test_empty_documents_share_generic_supplier(store, branch):
    """Test rows without a document use the generic supplier"""
    rows = [
        row(cnpj="", product="Café", price="10"),
        row(cnpj="", product="Açúcar", price="5"),
    ]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.imported_count == 2
    suppliers = store.select("suppliers")
    assert len(suppliers) == 1
    assert suppliers[0]["document"] == GENERIC_SUPPLIER_DOCUMENT
    assert {o["supplier_id"] for o in store.select("orders")} == {suppliers[0]["id"]}


def test_existing_catalog_is_reused(store, branch):
    """Test importing against an existing catalog"""
    supplier = store.insert("suppliers", {"document": "45997418000153", "name": "Atacado Central"})
    product = store.insert("products", {"name": "Feijão Carioca", "unit": "KG"})

    rows = [row(cnpj="45.997.418/0001-53", product="FEIJAO CARIOCA", price="8,90")]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.created_suppliers == 0
    assert report.created_products == 0
    order = store.select("orders")[0]
    assert order["supplier_id"] == supplier["id"]
    assert order["product_id"] == product["id"]


def test_blank_product_rows_are_skipped(store, branch):
    """Test rows without a description are skipped"""
    rows = [
        row(cnpj="45997418000153", product="Café", price="10"),
        row(cnpj="45997418000153", product="   ", price="10"),
        row(cnpj="45997418000153", product="", price="10"),
    ]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_COMPLETED
    assert report.imported_count == 1
    assert report.skipped_count == 2
    assert "2 rows skipped" in report.summary()


def test_only_blank_products_is_empty(store, branch):
    """Test a batch of blank descriptions"""
    rows = [row(cnpj="45997418000153", product="", price="10")]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_EMPTY
    assert not report.ok
    assert report.summary() == "No valid rows found to import. Check the file's columns."
    assert store.select("orders") == []


def test_numeric_cells_from_workbooks(store, branch):
    """Test numeric cells as read from workbooks"""
    rows = [row(cnpj=45997418000153.0, product="Café", date=45000, qty=2, price=7.5)]
    ImportService.import_rows(store, rows, branch["id"])

    order = store.select("orders")[0]
    assert order["date"] == datetime.date(2023, 3, 15)
    assert order["total"] == 15.0
    assert store.select("suppliers")[0]["document"] == "45997418000153"


def test_zero_amounts_when_sheet_has_neither(store, branch):
    """Test rows with blank price and total"""
    rows = [row(product="Café", price="")]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_COMPLETED
    order = store.select("orders")[0]
    assert (order["quantity"], order["unit_price"], order["total"]) == (1.0, 0.0, 0.0)


# =============================================================================
# Rejections (nothing written)
# =============================================================================

def _assert_nothing_written(store):
    for table in ("suppliers", "products", "orders"):
        assert store.select(table) == []


def test_missing_price_and_total_is_rejected(store, branch):
    """Test a sheet without price or total columns"""
    rows = [{"CNPJ": "45997418000153", "Produto": "Café", "Qtd": "3"}]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_REJECTED
    assert "Valor" in report.failure_reason
    _assert_nothing_written(store)


def test_missing_product_column_is_rejected(store, branch):
    """Test a sheet without a product column"""
    rows = [{"CNPJ": "45997418000153", "Valor Total": "30"}]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_REJECTED
    _assert_nothing_written(store)


def test_no_branch_is_rejected(store):
    """Test importing without a branch"""
    report = ImportService.import_rows(store, [row(product="Café", price="1")], None)
    assert report.status == IMPORT_REJECTED
    _assert_nothing_written(store)


def test_unknown_branch_is_rejected(store, branch):
    """Test importing against an unknown branch"""
    report = ImportService.import_rows(store, [row(product="Café", price="1")], branch["id"] + 99)
    assert report.status == IMPORT_REJECTED
    assert "not found" in report.failure_reason
    _assert_nothing_written(store)


def test_empty_batch_is_rejected(store, branch):
    """Test importing no rows"""
    report = ImportService.import_rows(store, [], branch["id"])
    assert report.status == IMPORT_REJECTED
    assert report.summary().startswith("Import rejected:")


def test_unreadable_branches_table_is_rejected(store, engine):
    """Test that a database failure during the branch check rejects the batch"""
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE orders"))
        conn.execute(text("DROP TABLE branches"))

    report = ImportService.import_rows(store, [row(product="Café", price="1")], 1)
    assert report.status == IMPORT_REJECTED
    assert "Could not read branches" in report.failure_reason


# =============================================================================
# Store failures
# =============================================================================

def test_failed_order_insert_keeps_catalog_entries(session_factory, branch):
    """Test a failed order insert after catalog writes"""
    store = FailingOrderStore(session_factory)
    rows = [row(cnpj="45997418000153", product="Café", price="10")]

    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_FAILED
    assert report.imported_count == 0
    assert "connection lost" in report.failure_reason
    assert report.created_suppliers == 1
    assert report.created_products == 1
    assert len(store.select("suppliers")) == 1
    assert len(store.select("products")) == 1
    assert store.select("orders") == []


def test_uncreatable_product_is_unresolved(session_factory, branch):
    """Test rows whose product cannot be created"""
    store = NoProductStore(session_factory)
    rows = [
        row(cnpj="45997418000153", product="Café", price="10"),
        row(cnpj="45997418000153", product="Arroz", price="10"),
    ]
    report = ImportService.import_rows(store, rows, branch["id"])

    assert report.status == IMPORT_EMPTY
    assert report.unresolved_count == 2
    assert report.skipped_count == 0


# =============================================================================
# Files
# =============================================================================

def test_import_file_semicolon_csv(store, branch, tmp_path):
    """Test importing a semicolon separated file"""
    path = tmp_path / "compras.csv"
    path.write_text(
        "Data;CNPJ Fornecedor;Razão Social;Descrição;Unid;Qtd;Valor Unitário\n"
        "05/01/2024;45.997.418/0001-53;Atacado Central;Café Torrado;PCT;3;50,00\n"
        "06/01/2024;45.997.418/0001-53;Atacado Central;Açúcar;KG;10;4,50\n",
        encoding="latin-1",
    )
    report = ImportService.import_file(store, path, branch["id"])

    assert report.status == IMPORT_COMPLETED
    assert report.imported_count == 2
    products = {p["name"]: p["unit"] for p in store.select("products")}
    assert products == {"Café Torrado": "PCT", "Açúcar": "KG"}
    totals = sorted(o["total"] for o in store.select("orders"))
    assert totals == [45.0, 150.0]


def test_import_file_missing(store, branch, tmp_path):
    """Test importing a file that does not exist"""
    report = ImportService.import_file(store, tmp_path / "nope.csv", branch["id"])
    assert report.status == IMPORT_REJECTED
    assert "not found" in report.failure_reason


def test_import_file_unsupported_type(store, branch, tmp_path):
    """Test importing an unsupported file type"""
    path = tmp_path / "compras.pdf"
    path.write_bytes(b"%PDF-1.4")
    report = ImportService.import_file(store, path, branch["id"])
    assert report.status == IMPORT_REJECTED
    assert "Unsupported" in report.failure_reason
