#!/usr/bin/env python3
"""
Header inference for purchasing spreadsheets.

Each semantic role has an ordered list of Portuguese keywords. A column
belongs to a role when its normalized header contains one of them; the
first matching column, in sheet order, wins.
"""

from typing import Dict, Iterable, List, Optional

from .normalize import normalize_text

DOCUMENT = "document"
SUPPLIER_NAME = "supplier_name"
PRODUCT = "product"
DATE = "date"
QUANTITY = "quantity"
UNIT = "unit"
UNIT_PRICE = "unit_price"
TOTAL = "total"

ROLES = [DOCUMENT, SUPPLIER_NAME, PRODUCT, DATE, QUANTITY, UNIT, UNIT_PRICE, TOTAL]

# Roles named in EXCLUSIONS are resolved before the roles that exclude them
RESOLUTION_ORDER = [DOCUMENT, PRODUCT, DATE, QUANTITY, UNIT_PRICE, TOTAL, SUPPLIER_NAME, UNIT]

SYNONYMS: Dict[str, List[str]] = {
    DOCUMENT: ["cnpj", "cpf", "documento", "fornecedor", "emitente"],
    SUPPLIER_NAME: ["razao", "nome", "fornecedor"],
    PRODUCT: ["produto", "descricao", "item", "discriminacao", "descri"],
    DATE: ["data", "emissao", "dt", "compra"],
    QUANTITY: ["qtd", "quantidade", "quant", "unidades"],
    UNIT: ["unid", "un", "ud"],
    UNIT_PRICE: ["unitario", "unit", "vl. un", "valor un", "vlr un"],
    TOTAL: ["total", "valor total", "vl. tot", "vlr tot"],
}

# Columns already claimed by these roles are not offered to the key role
EXCLUSIONS: Dict[str, List[str]] = {
    SUPPLIER_NAME: [DOCUMENT],
    # Deliberate: unit never takes a price or quantity column that precedes it ("Vlr Unit" contains "un")
    UNIT: [UNIT_PRICE, TOTAL, QUANTITY],
}

HUMAN_LABELS = {
    DOCUMENT: "CNPJ/CPF",
    SUPPLIER_NAME: "Razão Social",
    PRODUCT: "Produto/Descrição",
    DATE: "Data",
    QUANTITY: "Quantidade",
    UNIT: "Unidade",
    UNIT_PRICE: "Valor Unitário",
    TOTAL: "Valor Total",
}


class HeaderError(Exception):
    """Raised when a batch lacks the columns needed to import it"""

    pass


def find_header(
    headers: Iterable[str], keywords: Iterable[str], exclude: Iterable[str] = ()
) -> Optional[str]:
    """First header whose normalized text contains any keyword"""
    keys = [normalize_text(k) for k in keywords]
    skip = set(exclude)
    for header in headers:
        if header in skip:
            continue
        text = normalize_text(header)
        if any(k and k in text for k in keys):
            return header
    return None


class HeaderMap:
    """Role -> column name (None when unmapped) for one batch"""

    def __init__(self, columns: Dict[str, Optional[str]]):
        self.columns = {role: columns.get(role) for role in ROLES}

    def __getitem__(self, role: str) -> Optional[str]:
        return self.columns[role]

    def __repr__(self):
        mapped = {k: v for k, v in self.columns.items() if v}
        return f"<HeaderMap({mapped})>"

    def is_mapped(self, role: str) -> bool:
        return self.columns.get(role) is not None

    @property
    def unmapped(self) -> List[str]:
        return [role for role in ROLES if self.columns[role] is None]

    def validate(self) -> None:
        """
        Fail fast when the batch cannot produce orders.

        A product/description column and at least one of unit price or
        total are required.

        Raises:
            HeaderError: naming the missing column
        """
        if not self.is_mapped(PRODUCT):
            raise HeaderError(
                "No 'Produto' or 'Descrição' column was found in the file"
            )
        if not self.is_mapped(UNIT_PRICE) and not self.is_mapped(TOTAL):
            raise HeaderError(
                "No 'Valor Unitário' or 'Valor Total' column was found in the file"
            )

    def value(self, row: Dict, role: str, default=""):
        """Raw cell for a role; default when unmapped or missing"""
        column = self.columns.get(role)
        if column is None:
            return default
        cell = row.get(column)
        if cell is None:
            return default
        return cell


def map_headers(headers: Iterable[str]) -> HeaderMap:
    """Infer the column for every role from a batch's header names"""
    headers = [h for h in headers if h is not None]
    columns: Dict[str, Optional[str]] = {}
    for role in RESOLUTION_ORDER:
        exclude = [columns[r] for r in EXCLUSIONS.get(role, []) if columns.get(r)]
        columns[role] = find_header(headers, SYNONYMS[role], exclude=exclude)
    return HeaderMap(columns)
