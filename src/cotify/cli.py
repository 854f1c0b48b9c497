#!/usr/bin/env python3
"""CLI interface for cotify: spreadsheet import and catalog maintenance"""

import argparse
import datetime
import logging
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from tabulate import tabulate

from .config import Config
from .excel import EXPORTERS, generate_import_template
from .importer import ImportService
from .lookup import CnpjLookupService
from .models import Base
from .normalize import format_currency, format_document, parse_flexible_date
from .services import (
    BranchService,
    OrderService,
    ProductService,
    ServiceError,
    StatsService,
    SupplierService,
)
from .store import TableStore

logger = logging.getLogger("cotify")


def make_session_factory(config=Config):
    """Engine with tables created, and its session maker"""
    engine = config.get_engine()
    Base.metadata.create_all(engine)
    return config.get_session_maker(engine)


def resolve_branch_id(session, value: str) -> Optional[int]:
    """Accept a branch id or its CPF/CNPJ"""
    branch = BranchService.get_by_document(session, value)
    if branch:
        return branch.id
    if value.isdigit():
        try:
            return BranchService.get(session, int(value)).id
        except ServiceError:
            return None
    return None


def import_file(session_factory, filepath: str, branch: str) -> int:
    """Import a purchase spreadsheet and print the outcome"""
    with session_factory() as session:
        branch_id = resolve_branch_id(session, branch)
    if branch_id is None:
        print(f"Error: Branch '{branch}' not found")
        return 1

    report = ImportService.import_file(TableStore(session_factory), filepath, branch_id)
    print(report.summary())
    if report.created_suppliers or report.created_products:
        print(
            f"New catalog entries: {report.created_suppliers} suppliers, "
            f"{report.created_products} products"
        )
    return 0 if report.ok else 1


def add_counterparty(session, service, args) -> None:
    """Add a supplier or branch, optionally prefilled from the CNPJ registry"""
    name = args.name
    trade_name = args.trade_name
    address, city, state = args.address, args.city, args.state

    if args.lookup:
        data = CnpjLookupService.lookup(args.document)
        if data:
            print(f"Found: {data['name']}")
            name = name or data["name"]
            trade_name = trade_name or data["trade_name"]
            address = address or data["address"]
            city = city or data["city"]
            state = state or data["state"]

    entity = service.create(
        session,
        document=args.document,
        name=name or "",
        doc_type=args.doc_type,
        trade_name=trade_name,
        address=address,
        city=city,
        state=state,
    )
    print(f"Added {service.label.lower()}: {entity.name} ({format_document(entity.document)})")


def add_order(session, args) -> None:
    """Record a manual note: one --item PRODUCT_ID:QTY:PRICE per line"""
    items = []
    for item in args.item:
        parts = item.split(":")
        if len(parts) != 3:
            raise ServiceError(f"Invalid item '{item}', expected PRODUCT_ID:QTY:PRICE")
        try:
            items.append(
                {"product_id": int(parts[0]), "quantity": float(parts[1]), "unit_price": float(parts[2])}
            )
        except ValueError:
            raise ServiceError(f"Invalid item '{item}', expected numbers") from None

    date = parse_flexible_date(args.date) if args.date else datetime.date.today()
    orders = OrderService.create_note(session, args.branch, args.supplier, items, date=date)
    total = sum(o.total for o in orders)
    print(f"Recorded note with {len(orders)} items, total {format_currency(total)}")


def list_entities(session, entity_type: str, filter_by=None, branch_id=None, limit=100) -> None:
    """List all entities of a given type"""
    if entity_type in ("suppliers", "branches"):
        service = SupplierService if entity_type == "suppliers" else BranchService
        results = service.get_all(session, filter_by=filter_by, limit=limit)
        headers = ["ID", "Document", "Name", "Trade Name", "City/UF"]
        data = [
            [
                e.id,
                format_document(e.document),
                e.name,
                e.trade_name or "",
                "/".join(x for x in (e.city, e.state) if x),
            ]
            for e in results
        ]
        print(tabulate(data, headers=headers, tablefmt="grid"))

    elif entity_type == "products":
        results = ProductService.get_all(session, filter_by=filter_by, limit=limit)
        headers = ["ID", "Name", "Unit", "Orders"]
        data = [[p.id, p.name, p.unit, len(p.orders)] for p in results]
        print(tabulate(data, headers=headers, tablefmt="grid"))

    elif entity_type == "orders":
        results = OrderService.get_all(session, branch_id=branch_id, limit=limit)
        headers = ["ID", "Date", "Branch", "Supplier", "Product", "Qty", "Unit Price", "Total"]
        data = [
            [
                o.id,
                o.date.strftime("%d/%m/%Y"),
                o.branch.name if o.branch else "-",
                o.supplier.name,
                o.product.name,
                f"{o.quantity:g}",
                format_currency(o.unit_price),
                format_currency(o.total),
            ]
            for o in results
        ]
        print(tabulate(data, headers=headers, tablefmt="grid"))


def delete_entity(session, entity_type: str, id: int, assume_yes: bool = False) -> None:
    """Delete an entity by ID; catalog deletions take their orders along"""
    services = {
        "supplier": SupplierService,
        "branch": BranchService,
        "product": ProductService,
    }
    if entity_type != "order" and not assume_yes:
        confirm = input(
            f"Deleting this {entity_type} also removes all of its orders. Continue? (y/n): "
        )
        if confirm.lower() != "y":
            return

    if entity_type == "order":
        OrderService.delete(session, id)
        print(f"Deleted order {id}")
    else:
        removed = services[entity_type].delete(session, id)
        print(f"Deleted {entity_type} {id} ({removed} orders removed)")


def show_stats(session, branch_id=None) -> None:
    """Print the purchase dashboard"""
    summary = StatsService.summary(session, branch_id)
    print(
        tabulate(
            [
                ["Total spend", format_currency(summary["total"])],
                ["Orders", summary["count"]],
                ["Suppliers", summary["suppliers"]],
                ["Branches", summary["branches"]],
            ],
            tablefmt="grid",
        )
    )

    top = StatsService.top_suppliers(session, branch_id)
    if top:
        print("\n--- Top suppliers ---")
        print(tabulate([[t["name"], t["orders"]] for t in top], headers=["Supplier", "Orders"], tablefmt="grid"))

    best = StatsService.best_prices(session, branch_id)
    if best:
        print("\n--- Best prices ---")
        data = [
            [b["product"], b["unit"], format_currency(b["unit_price"]), b["supplier"]]
            for b in best
        ]
        print(tabulate(data, headers=["Product", "Unit", "Unit Price", "Supplier"], tablefmt="grid"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Cotify - Purchase spreadsheet import and price tracking"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Import command
    import_parser = subparsers.add_parser("import", help="Import a purchase spreadsheet")
    opt = import_parser.add_argument
    opt("file", type=str, help="CSV, XLSX or XLS file")
    opt("-b", "--branch", type=str, required=True, help="Branch id or CPF/CNPJ")

    # Counterparty commands
    for command, help_text in (("add-supplier", "Add a supplier"), ("add-branch", "Add a branch")):
        p = subparsers.add_parser(command, help=help_text)
        opt = p.add_argument
        opt("document", type=str, help="CPF or CNPJ")
        opt("--name", type=str, help="Legal name")
        opt("--trade-name", type=str, help="Trade name (defaults to name)")
        opt("--doc-type", type=str, default="CNPJ", choices=["CPF", "CNPJ"])
        opt("--address", type=str)
        opt("--city", type=str)
        opt("--state", type=str)
        opt("--lookup", action="store_true", help="Prefill from the public CNPJ registry")

    # Product command
    product_parser = subparsers.add_parser("add-product", help="Add a product")
    opt = product_parser.add_argument
    opt("name", type=str, help="Product name")
    opt("--unit", type=str, default="UN", help="Unit of measure (default: UN)")
    opt("--ncm", type=str, help="NCM fiscal classification")

    # Manual note command
    order_parser = subparsers.add_parser("add-order", help="Record a purchase note by hand")
    opt = order_parser.add_argument
    opt("--branch", type=int, required=True, help="Branch id")
    opt("--supplier", type=int, required=True, help="Supplier id")
    opt("--item", action="append", required=True, help="PRODUCT_ID:QTY:PRICE (repeatable)")
    opt("--date", type=str, help="Note date (DD/MM/YYYY or YYYY-MM-DD)")

    # List command
    list_parser = subparsers.add_parser("list", help="List entities")
    opt = list_parser.add_argument
    opt("type", choices=["suppliers", "branches", "products", "orders"], help="Type of entity to list")
    opt("--filter", type=str, help="Filter by name or document")
    opt("--branch", type=int, help="Only orders of this branch id")
    opt("--limit", type=int, default=100)

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Delete entities")
    opt = delete_parser.add_argument
    opt("type", choices=["supplier", "branch", "product", "order"], help="Type of entity to delete")
    opt("id", type=int, help="ID of the entity to delete")
    opt("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Purchase summary")
    stats_parser.add_argument("--branch", type=int, help="Only this branch id")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export to Excel")
    opt = export_parser.add_argument
    opt("type", choices=sorted(EXPORTERS), help="What to export")
    opt("file", type=str, help="Output .xlsx file")

    # Template command
    template_parser = subparsers.add_parser("template", help="Write an import template")
    template_parser.add_argument("file", type=str, help="Output .xlsx file")

    # Lookup command
    lookup_parser = subparsers.add_parser("lookup", help="Look up a CNPJ in the public registry")
    lookup_parser.add_argument("cnpj", type=str)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    Config.setup_logging()

    if args.command == "template":
        generate_import_template(args.file)
        print(f"Template written to {args.file}")
        return 0

    if args.command == "lookup":
        data = CnpjLookupService.lookup(args.cnpj)
        if not data:
            print("CNPJ not found or registry unavailable")
            return 1
        print(tabulate([[k, v] for k, v in data.items()], tablefmt="grid"))
        return 0

    session_factory = make_session_factory()

    if args.command == "import":
        return import_file(session_factory, args.file, args.branch)

    session = session_factory()
    try:
        if args.command == "add-supplier":
            add_counterparty(session, SupplierService, args)

        elif args.command == "add-branch":
            add_counterparty(session, BranchService, args)

        elif args.command == "add-product":
            product = ProductService.create(session, args.name, args.unit, args.ncm)
            print(f"Added product: {product.name} ({product.unit})")

        elif args.command == "add-order":
            add_order(session, args)

        elif args.command == "list":
            list_entities(session, args.type, args.filter, args.branch, args.limit)

        elif args.command == "delete":
            delete_entity(session, args.type, args.id, args.yes)

        elif args.command == "stats":
            show_stats(session, args.branch)

        elif args.command == "export":
            count = EXPORTERS[args.type](session, args.file)
            print(f"Exported {count} {args.type} to {args.file}")

    except ServiceError as e:
        session.rollback()
        logger.warning(f"{args.command} failed: {e}")
        print(f"Error: {e}")
        return 1
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database error: {e}")
        print(f"Error: Database error occurred: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        print("\nOperation cancelled by user.")
        session.rollback()
        return 1
    finally:
        session.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
