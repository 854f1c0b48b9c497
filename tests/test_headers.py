"""Tests for column role inference"""

import pytest

from cotify import headers as roles
from cotify.headers import HeaderError, find_header, map_headers


def test_map_headers_minimal_sheet():
    """Test mapping a sheet without name, date or total columns"""
    header_map = map_headers(["CNPJ Fornecedor", "Descrição", "Qtd", "Vlr Unit"])

    assert header_map[roles.DOCUMENT] == "CNPJ Fornecedor"
    assert header_map[roles.PRODUCT] == "Descrição"
    assert header_map[roles.QUANTITY] == "Qtd"
    assert header_map[roles.UNIT_PRICE] == "Vlr Unit"
    assert header_map[roles.TOTAL] is None
    assert header_map[roles.DATE] is None
    header_map.validate()


def test_map_headers_full_sheet():
    """Test mapping a sheet with every column"""
    header_map = map_headers(
        ["Data Emissão", "CNPJ", "Razão Social", "Produto", "Unid", "Quantidade", "Valor Unitário", "Valor Total"]
    )
    assert header_map.columns == {
        roles.DOCUMENT: "CNPJ",
        roles.SUPPLIER_NAME: "Razão Social",
        roles.PRODUCT: "Produto",
        roles.DATE: "Data Emissão",
        roles.QUANTITY: "Quantidade",
        roles.UNIT: "Unid",
        roles.UNIT_PRICE: "Valor Unitário",
        roles.TOTAL: "Valor Total",
    }
    assert header_map.unmapped == []


def test_supplier_name_never_reuses_document_column():
    """Test the name role skips the document column"""
    header_map = map_headers(["Fornecedor", "Nome Fornecedor", "Item", "Total"])
    assert header_map[roles.DOCUMENT] == "Fornecedor"
    assert header_map[roles.SUPPLIER_NAME] == "Nome Fornecedor"


def test_supplier_name_unmapped_when_only_document_matches():
    """Test the name role stays unmapped without its own column"""
    header_map = map_headers(["CNPJ Fornecedor", "Produto", "Total"])
    assert header_map[roles.SUPPLIER_NAME] is None


def test_unit_skips_price_columns():
    """Test the unit role skips price and quantity columns"""
    header_map = map_headers(["Valor Unitário", "Produto", "Unid"])
    assert header_map[roles.UNIT_PRICE] == "Valor Unitário"
    assert header_map[roles.UNIT] == "Unid"


def test_unit_does_not_take_abbreviated_price_column():
    """Test that "Vlr Unit" before the unit column stays the price"""
    header_map = map_headers(["Vlr Unit", "Produto", "Unid"])
    assert header_map[roles.UNIT_PRICE] == "Vlr Unit"
    assert header_map[roles.UNIT] == "Unid"

    assert map_headers(["Vlr Unit", "Produto"])[roles.UNIT] is None


def test_first_matching_column_wins():
    """Test that column order decides between matches"""
    assert find_header(["Descrição", "Produto"], ["produto", "descricao"]) == "Descrição"
    assert find_header(["A", "B"], ["produto"]) is None


def test_validate_requires_product():
    """Test validation without a product column"""
    with pytest.raises(HeaderError, match="Produto"):
        map_headers(["CNPJ", "Valor Total"]).validate()


def test_validate_requires_price_or_total():
    """Test validation without price or total"""
    with pytest.raises(HeaderError, match="Valor"):
        map_headers(["CNPJ", "Produto", "Qtd"]).validate()


def test_value_defaults():
    """Test reading a value from a row"""
    header_map = map_headers(["Produto", "Total"])
    row = {"Produto": "Café", "Total": None}
    assert header_map.value(row, roles.PRODUCT) == "Café"
    assert header_map.value(row, roles.TOTAL) == ""
    assert header_map.value(row, roles.QUANTITY, default=0) == 0
