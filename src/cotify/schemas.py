#!/usr/bin/env python3
"""
Pydantic schemas for input validation and import reporting.

These schemas provide:
- Validation of hand-entered catalog records and manual notes
- The report returned by an import run
"""

import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import DEFAULT_UNIT, UNIT_MAX_LENGTH
from .normalize import validate_document

IMPORT_COMPLETED = "completed"
IMPORT_REJECTED = "rejected"
IMPORT_EMPTY = "empty"
IMPORT_FAILED = "failed"


class CounterpartyCreate(BaseModel):
    """Schema for creating a supplier or branch"""

    doc_type: str = Field(default="CNPJ", description="CPF or CNPJ")
    document: str = Field(..., description="Document, punctuation allowed")
    name: str = Field(..., max_length=255, description="Legal name")
    trade_name: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, max_length=2)

    @field_validator("doc_type")
    @classmethod
    def validate_doc_type(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("CPF", "CNPJ"):
            raise ValueError("Document type must be CPF or CNPJ")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty or whitespace")
        return v

    @model_validator(mode="after")
    def canonical_document(self):
        """Digits only, with the length the document type demands"""
        self.document = validate_document(self.document, self.doc_type)
        if not self.trade_name or not self.trade_name.strip():
            self.trade_name = self.name
        if self.state:
            self.state = self.state.strip().upper()
        return self


class ProductCreate(BaseModel):
    """Schema for creating a product by hand"""

    name: str = Field(default="", max_length=255)
    unit: str = Field(default=DEFAULT_UNIT)
    ncm: Optional[str] = Field(default=None, max_length=8)

    @field_validator("name")
    @classmethod
    def default_name(cls, v: str) -> str:
        return v.strip() or "Produto sem nome"

    @field_validator("unit")
    @classmethod
    def bounded_unit(cls, v: str) -> str:
        return (v.strip() or DEFAULT_UNIT)[:UNIT_MAX_LENGTH]


class OrderItem(BaseModel):
    """One line of a manually entered note"""

    product_id: int = Field(..., gt=0, description="Product id")
    quantity: float = Field(default=1.0, gt=0, description="Quantity (positive)")
    unit_price: float = Field(default=0.0, ge=0, description="Unit price")

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


class ManualNoteCreate(BaseModel):
    """Schema for a purchase note keyed in by hand"""

    branch_id: int = Field(..., gt=0)
    supplier_id: int = Field(..., gt=0)
    date: datetime.date = Field(default_factory=datetime.date.today)
    items: List[OrderItem] = Field(..., min_length=1)


class ImportReport(BaseModel):
    """Outcome of one import run"""

    status: str = IMPORT_COMPLETED
    imported_count: int = 0
    skipped_count: int = 0
    unresolved_count: int = 0
    failure_reason: Optional[str] = None
    created_suppliers: int = 0
    created_products: int = 0

    @property
    def ok(self) -> bool:
        return self.status == IMPORT_COMPLETED

    def summary(self) -> str:
        """Human-readable outcome"""
        if self.status == IMPORT_REJECTED:
            return f"Import rejected: {self.failure_reason}"
        if self.status == IMPORT_FAILED:
            return (
                f"Import failed while saving orders: {self.failure_reason}. "
                f"Catalog entries created during the run were kept "
                f"({self.created_suppliers} suppliers, {self.created_products} products)."
            )
        if self.status == IMPORT_EMPTY:
            return "No valid rows found to import. Check the file's columns."

        message = f"Import complete: {self.imported_count} records saved."
        if self.skipped_count > 0:
            message += f" ({self.skipped_count} rows skipped: blank product description)"
        if self.unresolved_count > 0:
            message += f" ({self.unresolved_count} rows dropped: product could not be created)"
        return message
