#!/usr/bin/env python3
"""models.py: suppliers, branches, products and purchase order lines"""

import datetime
from typing import Any, Dict, List

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
)
from sqlalchemy import select
from sqlalchemy.orm import declared_attr
from sqlalchemy.orm import relationship, sessionmaker, mapped_column
from sqlalchemy.orm import DeclarativeBase, Mapped
from sqlalchemy.sql import func

# Reserved catalog entry for rows that carry no counterparty document
GENERIC_SUPPLIER_DOCUMENT = "00000000000000"
GENERIC_SUPPLIER_NAME = "FORNECEDOR DIVERSOS"
GENERIC_SUPPLIER_TRADE_NAME = "Importação"

DEFAULT_UNIT = "UN"
UNIT_MAX_LENGTH = 10


class Base(DeclarativeBase):
    def to_dict(self) -> Dict[str, Any]:
        """Plain column mapping, as handed out by the table store"""
        return {c.key: getattr(self, c.key) for c in self.__table__.columns}


class Counterparty:
    """A mixin for entities identified by a CPF/CNPJ document"""

    @classmethod
    def by_document(cls, session, document):
        """query table by canonical document"""
        stmt = select(cls).where(cls.document == document)
        return session.execute(stmt).scalar_one_or_none()

    id: Mapped[int] = mapped_column(primary_key=True)
    document: Mapped[str] = mapped_column(String(14), unique=True, index=True)
    name: Mapped[str] = mapped_column(String)
    trade_name: Mapped[str | None] = mapped_column(String, nullable=True)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    state: Mapped[str | None] = mapped_column(String(2), nullable=True)

    @declared_attr
    def orders(cls) -> Mapped[List["Order"]]:
        return relationship(
            "Order",
            back_populates=cls.__name__.lower(),
            cascade="all, delete",
        )

    @property
    def is_person(self) -> bool:
        """CPF documents have 11 digits"""
        return len(self.document or "") == 11

    def __repr__(self):
        return f"<{self.__class__.__name__}(document='{self.document}', name='{self.name}')>"


class Supplier(Counterparty, Base):
    """Selling entity"""

    __tablename__ = "suppliers"


class Branch(Counterparty, Base):
    """Purchasing entity: the company unit that took the order"""

    __tablename__ = "branches"


class Product(Base):
    """Catalog item bought from suppliers"""

    __tablename__ = "products"

    @classmethod
    def by_name(cls, session, name):
        """query table by exact name"""
        stmt = select(cls).where(cls.name == name)
        return session.execute(stmt).scalars().first()

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String, index=True)
    unit: Mapped[str] = mapped_column(String(UNIT_MAX_LENGTH), default=DEFAULT_UNIT)
    ncm: Mapped[str | None] = mapped_column(String(8), nullable=True)
    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="product",
        cascade="all, delete",
    )

    def __repr__(self):
        return f"<Product(name='{self.name}', unit='{self.unit}')>"


class Order(Base):
    """One purchased line: a product bought from a supplier by a branch"""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"), index=True
    )
    supplier: Mapped["Supplier"] = relationship("Supplier", back_populates="orders")
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), index=True
    )
    product: Mapped["Product"] = relationship("Product", back_populates="orders")
    branch_id: Mapped[int | None] = mapped_column(
        ForeignKey("branches.id", ondelete="CASCADE"), nullable=True, index=True
    )
    branch: Mapped["Branch | None"] = relationship("Branch", back_populates="orders")

    quantity: Mapped[float] = mapped_column(Float, default=1.0)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)
    total: Mapped[float] = mapped_column(Float, default=0.0)  # quantity * unit_price
    date: Mapped[datetime.date] = mapped_column(Date, index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=func.now())

    def __repr__(self):
        return (
            f"<Order(supplier_id={self.supplier_id}, product_id={self.product_id}, "
            f"{self.quantity} x {self.unit_price} = {self.total})>"
        )


if __name__ == "__main__":
    engine = create_engine("sqlite:///:memory:")
    Session = sessionmaker(bind=engine)
    session = Session()

    Base.metadata.create_all(engine)

    matriz = Branch(document="11222333000181", name="Matriz")
    atacado = Supplier(document="45997418000153", name="Atacado Central")
    cafe = Product(name="Café Torrado 500g", unit="PCT")
    session.add_all([matriz, atacado, cafe])
    session.flush()

    session.add(
        Order(
            supplier=atacado,
            product=cafe,
            branch=matriz,
            quantity=3,
            unit_price=50.0,
            total=150.0,
            date=datetime.date.today(),
        )
    )
    session.commit()

    print("branches:", session.query(Branch).all())
    print("suppliers:", session.query(Supplier).all())
    print("products:", session.query(Product).all())
    print("orders:", session.query(Order).all())
