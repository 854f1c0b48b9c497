#!/usr/bin/env python3
"""
Business logic service layer for cotify application.

This module contains service classes for the hand-entry side of the
application: registering suppliers, branches and products, keying in a
purchase note, and summarizing purchases. Spreadsheet import lives in
importer.py.
"""

import datetime
import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .models import Branch, Order, Product, Supplier
from .normalize import clean_document, normalize_text
from .schemas import CounterpartyCreate, ManualNoteCreate, ProductCreate

logger = logging.getLogger("cotify")


class ServiceError(Exception):
    """Base exception for service layer errors"""

    pass


class ValidationError(ServiceError):
    """Raised when input validation fails"""

    pass


class DuplicateError(ServiceError):
    """Raised when attempting to create a duplicate entity"""

    pass


class NotFoundError(ServiceError):
    """Raised when an entity is not found"""

    pass


def _schema_error(e: SchemaValidationError) -> ValidationError:
    messages = []
    for err in e.errors():
        field = ".".join(str(p) for p in err["loc"]) or "input"
        messages.append(f"{field}: {err['msg'].removeprefix('Value error, ')}")
    return ValidationError("; ".join(messages))


class CounterpartyService:
    """Shared logic for suppliers and branches, which differ only in role"""

    model: Type = Supplier
    label = "Supplier"

    @classmethod
    def create(
        cls,
        session: Session,
        document: str,
        name: str,
        doc_type: str = "CNPJ",
        trade_name: Optional[str] = None,
        address: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
    ):
        """
        Register a supplier or branch.

        Args:
            session: Database session
            document: CPF/CNPJ, punctuation allowed
            name: Legal name
            doc_type: "CPF" (11 digits) or "CNPJ" (14 digits)
            trade_name: Defaults to the legal name

        Raises:
            ValidationError: If the document length or name is invalid
            DuplicateError: If the document is already registered
        """
        try:
            data = CounterpartyCreate(
                doc_type=doc_type,
                document=document,
                name=name,
                trade_name=trade_name,
                address=address,
                city=city,
                state=state,
            )
        except SchemaValidationError as e:
            raise _schema_error(e) from e

        if cls.model.by_document(session, data.document):
            raise DuplicateError(f"{cls.label} with document {data.document} already exists")

        try:
            entity = cls.model(**data.model_dump(exclude={"doc_type"}))
            session.add(entity)
            session.commit()
            logger.info(f"Created {cls.label.lower()}: {entity.name} ({entity.document})")
            return entity
        except IntegrityError as e:
            session.rollback()
            logger.error(f"Failed to create {cls.label.lower()} '{name}': {e}")
            raise DuplicateError(f"{cls.label} with document {data.document} already exists") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error creating {cls.label.lower()} '{name}': {e}")
            raise ServiceError(f"Failed to create {cls.label.lower()}: {e}") from e

    @classmethod
    def get(cls, session: Session, id: int):
        entity = session.get(cls.model, id)
        if entity is None:
            raise NotFoundError(f"{cls.label} {id} not found")
        return entity

    @classmethod
    def get_by_document(cls, session: Session, document: str):
        return cls.model.by_document(session, clean_document(document))

    @classmethod
    def get_all(
        cls, session: Session, filter_by: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List:
        """
        All entities ordered by name, optionally filtered.

        The filter matches names ignoring case and accents, or a document
        containing the filter's digits.
        """
        query = select(cls.model).order_by(cls.model.name)
        results = list(session.execute(query).scalars().all())

        if filter_by:
            needle = normalize_text(filter_by)
            digits = clean_document(filter_by)
            results = [
                e
                for e in results
                if needle in normalize_text(e.name)
                or needle in normalize_text(e.trade_name)
                or (digits and digits in e.document)
            ]
        return results[offset : offset + limit]

    @classmethod
    def update(cls, session: Session, id: int, **values):
        """
        Update a supplier or branch.

        Document changes go through the same length check as creation.
        """
        entity = cls.get(session, id)
        merged = {
            "doc_type": values.pop("doc_type", "CPF" if entity.is_person else "CNPJ"),
            "document": entity.document,
            "name": entity.name,
            "trade_name": entity.trade_name,
            "address": entity.address,
            "city": entity.city,
            "state": entity.state,
        }
        merged.update({k: v for k, v in values.items() if v is not None})
        try:
            data = CounterpartyCreate(**merged)
        except SchemaValidationError as e:
            raise _schema_error(e) from e

        if data.document != entity.document:
            existing = cls.model.by_document(session, data.document)
            if existing and existing.id != entity.id:
                raise DuplicateError(f"{cls.label} with document {data.document} already exists")

        try:
            for key, value in data.model_dump(exclude={"doc_type"}).items():
                setattr(entity, key, value)
            session.commit()
            logger.info(f"Updated {cls.label.lower()} {id}: {entity.name}")
            return entity
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to update {cls.label.lower()} {id}: {e}")
            raise ServiceError(f"Failed to update {cls.label.lower()}: {e}") from e

    @classmethod
    def delete(cls, session: Session, id: int) -> int:
        """
        Delete a supplier or branch together with its orders.

        Returns:
            Number of orders removed with it
        """
        entity = cls.get(session, id)
        order_count = len(entity.orders)
        try:
            session.delete(entity)
            session.commit()
            logger.info(f"Deleted {cls.label.lower()} {entity.name} and {order_count} orders")
            return order_count
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to delete {cls.label.lower()} {id}: {e}")
            raise ServiceError(f"Failed to delete {cls.label.lower()}: {e}") from e


class SupplierService(CounterpartyService):
    """Service for supplier-related business logic"""

    model = Supplier
    label = "Supplier"


class BranchService(CounterpartyService):
    """Service for branch-related business logic"""

    model = Branch
    label = "Branch"


class ProductService:
    """Service for product-related business logic"""

    @staticmethod
    def create(session: Session, name: str = "", unit: str = "UN", ncm: Optional[str] = None) -> Product:
        """
        Add a product to the catalog.

        A blank name becomes "Produto sem nome" and a blank unit "UN".
        Hand entry does not deduplicate; only spreadsheet import does.
        """
        try:
            data = ProductCreate(name=name or "", unit=unit or "", ncm=ncm)
        except SchemaValidationError as e:
            raise _schema_error(e) from e

        try:
            product = Product(**data.model_dump())
            session.add(product)
            session.commit()
            logger.info(f"Created product: {product.name} ({product.unit})")
            return product
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error creating product '{name}': {e}")
            raise ServiceError(f"Failed to create product: {e}") from e

    @staticmethod
    def get(session: Session, id: int) -> Product:
        product = session.get(Product, id)
        if product is None:
            raise NotFoundError(f"Product {id} not found")
        return product

    @staticmethod
    def find(session: Session, name: str) -> Optional[Product]:
        """First product whose name matches ignoring case and accents"""
        key = normalize_text(name)
        for product in session.execute(select(Product).order_by(Product.id)).scalars():
            if normalize_text(product.name) == key:
                return product
        return None

    @staticmethod
    def get_all(
        session: Session, filter_by: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[Product]:
        """Products ordered by name; filter ignores case and accents"""
        results = list(session.execute(select(Product).order_by(Product.name)).scalars().all())
        if filter_by:
            needle = normalize_text(filter_by)
            results = [p for p in results if needle in normalize_text(p.name)]
        return results[offset : offset + limit]

    @staticmethod
    def delete(session: Session, id: int) -> int:
        """Delete a product with its orders; returns the orders removed"""
        product = ProductService.get(session, id)
        order_count = len(product.orders)
        try:
            session.delete(product)
            session.commit()
            logger.info(f"Deleted product {product.name} and {order_count} orders")
            return order_count
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to delete product {id}: {e}")
            raise ServiceError(f"Failed to delete product: {e}") from e


class OrderService:
    """Service for purchase order lines"""

    @staticmethod
    def create_note(
        session: Session,
        branch_id: int,
        supplier_id: int,
        items: List[Dict[str, Any]],
        date: Optional[datetime.date] = None,
    ) -> List[Order]:
        """
        Record a purchase note keyed in by hand.

        Args:
            session: Database session
            branch_id: Purchasing branch
            supplier_id: Selling supplier
            items: Dicts with product_id, quantity and unit_price
            date: Note date (defaults to today)

        Returns:
            One Order per item, total = quantity x unit price

        Raises:
            ValidationError: Missing branch/supplier, no items, bad quantity or price
            NotFoundError: Unknown branch, supplier or product
        """
        payload: Dict[str, Any] = {
            "branch_id": branch_id,
            "supplier_id": supplier_id,
            "items": items,
        }
        if date is not None:
            payload["date"] = date
        try:
            note = ManualNoteCreate(**payload)
        except SchemaValidationError as e:
            raise _schema_error(e) from e

        BranchService.get(session, note.branch_id)
        SupplierService.get(session, note.supplier_id)
        for item in note.items:
            ProductService.get(session, item.product_id)

        orders = [
            Order(
                branch_id=note.branch_id,
                supplier_id=note.supplier_id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
                date=note.date,
            )
            for item in note.items
        ]
        try:
            session.add_all(orders)
            session.commit()
            logger.info(f"Recorded note with {len(orders)} items for branch {note.branch_id}")
            return orders
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to record note: {e}")
            raise ServiceError(f"Failed to record note: {e}") from e

    @staticmethod
    def get_all(
        session: Session,
        branch_id: Optional[int] = None,
        product_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        """
        Orders, newest date first.

        Eagerly loads supplier, product, and branch to avoid N+1 queries.
        """
        query = select(Order).options(
            joinedload(Order.supplier),
            joinedload(Order.product),
            joinedload(Order.branch),
        )
        if branch_id is not None:
            query = query.where(Order.branch_id == branch_id)
        if product_id is not None:
            query = query.where(Order.product_id == product_id)
        query = query.order_by(Order.date.desc(), Order.id.desc()).limit(limit).offset(offset)
        return list(session.execute(query).unique().scalars().all())

    @staticmethod
    def delete(session: Session, id: int) -> None:
        order = session.get(Order, id)
        if order is None:
            raise NotFoundError(f"Order {id} not found")
        try:
            session.delete(order)
            session.commit()
            logger.info(f"Deleted order {id}")
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to delete order {id}: {e}")
            raise ServiceError(f"Failed to delete order: {e}") from e


class StatsService:
    """Purchase summaries for the dashboard"""

    @staticmethod
    def _scoped(query, branch_id: Optional[int]):
        if branch_id is not None:
            query = query.where(Order.branch_id == branch_id)
        return query

    @staticmethod
    def summary(session: Session, branch_id: Optional[int] = None) -> Dict[str, Any]:
        """Total spend, order count, distinct suppliers and branches"""
        query = StatsService._scoped(
            select(
                func.coalesce(func.sum(Order.total), 0.0),
                func.count(Order.id),
                func.count(func.distinct(Order.supplier_id)),
                func.count(func.distinct(Order.branch_id)),
            ),
            branch_id,
        )
        total, count, suppliers, branches = session.execute(query).one()
        return {
            "total": float(total),
            "count": count,
            "suppliers": suppliers,
            "branches": branches,
        }

    @staticmethod
    def top_suppliers(
        session: Session, branch_id: Optional[int] = None, limit: int = 6
    ) -> List[Dict[str, Any]]:
        """Suppliers with the most order lines"""
        query = StatsService._scoped(
            select(Supplier.name, func.count(Order.id).label("orders"))
            .join(Order, Order.supplier_id == Supplier.id)
            .group_by(Supplier.id, Supplier.name)
            .order_by(func.count(Order.id).desc(), Supplier.name)
            .limit(limit),
            branch_id,
        )
        return [{"name": name, "orders": count} for name, count in session.execute(query).all()]

    @staticmethod
    def best_prices(
        session: Session, branch_id: Optional[int] = None, limit: Optional[int] = 5
    ) -> List[Dict[str, Any]]:
        """
        Lowest unit price paid per product, cheapest first.

        Each entry names the supplier and date of that lowest purchase.
        """
        query = StatsService._scoped(
            select(Order).options(joinedload(Order.supplier), joinedload(Order.product)),
            branch_id,
        )
        best: Dict[int, Order] = {}
        for order in session.execute(query).unique().scalars():
            current = best.get(order.product_id)
            if current is None or order.unit_price < current.unit_price:
                best[order.product_id] = order

        ranked = sorted(best.values(), key=lambda o: (o.unit_price, o.product.name))
        if limit is not None:
            ranked = ranked[:limit]
        return [
            {
                "product": o.product.name,
                "unit": o.product.unit,
                "unit_price": o.unit_price,
                "supplier": o.supplier.name,
                "date": o.date,
            }
            for o in ranked
        ]

    @staticmethod
    def product_history(session: Session, product_id: int) -> Dict[str, Any]:
        """Purchase history of one product and the supplier with its best price"""
        product = ProductService.get(session, product_id)
        orders = OrderService.get_all(session, product_id=product_id, limit=10000)
        best = min(orders, key=lambda o: o.unit_price) if orders else None
        return {
            "product": product,
            "orders": orders,
            "best_supplier": best.supplier if best else None,
            "best_price": best.unit_price if best else None,
            "average_price": (
                sum(o.unit_price for o in orders) / len(orders) if orders else None
            ),
        }
