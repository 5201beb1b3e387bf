from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Optional, Sequence

from ..config import load_extraction_settings, load_storage_path
from ..extraction import ExtractionError, OrderExtractionClient
from ..forms import OrderForm, QuickFill, QuickFillState
from ..logging import get_logger
from ..models import DeliveryStatus, Order, PaymentStatus
from ..paths import expand_abs
from ..stats import aggregate, delivery_breakdown, payment_breakdown
from ..storage import SqliteStorage
from ..store import OrderStore
from ..view import filter_orders

LOG = get_logger("cli-main")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _open_store(ns: argparse.Namespace) -> OrderStore:
    db_path = expand_abs(ns.db) if ns.db else load_storage_path(os.getcwd())
    store = OrderStore(SqliteStorage(db_path))
    store.load()
    return store


def _extraction_client() -> Optional[OrderExtractionClient]:
    settings = load_extraction_settings(os.getcwd())
    if not settings.is_configured:
        LOG.error("No extraction API key found. Set FUNDRAISER_API_KEY (or API_KEY) in env/.env.")
        return None
    return OrderExtractionClient.from_settings(settings)


def _add_field_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--name", dest="customer_name", help="Customer name")
    p.add_argument("--phone", dest="phone_number", help="Phone number")
    p.add_argument("--items", help="Items ordered, e.g. '2x Cookies, 1x Cupcake'")
    p.add_argument("--price", dest="total_price", help="Total price (non-numeric input is stored as 0)")
    p.add_argument("--payment", choices=[s.value for s in PaymentStatus], help="Payment status")
    p.add_argument("--delivery", choices=[s.value for s in DeliveryStatus], help="Delivery status")
    p.add_argument("--notes", help="Delivery instructions, special requests")


def _apply_field_args(form: OrderForm, ns: argparse.Namespace) -> None:
    """Copy only the flags the user actually passed onto the form."""
    for attr in ("customer_name", "phone_number", "items", "total_price", "notes"):
        value = getattr(ns, attr)
        if value is not None:
            setattr(form, attr, value)
    if ns.payment:
        form.payment_status = PaymentStatus(ns.payment)
    if ns.delivery:
        form.delivery_status = DeliveryStatus(ns.delivery)


def _run_quick_fill(form: OrderForm, text: str) -> int:
    client = _extraction_client()
    if client is None:
        return EXIT_USAGE
    quick_fill = QuickFill(client)
    try:
        state = asyncio.run(quick_fill.run(text))
    finally:
        client.close()
    if state is QuickFillState.FAILED:
        LOG.error(quick_fill.error)
        return EXIT_FAILED
    if not quick_fill.apply_to(form):
        LOG.warning("Quick-fill returned no result; using the provided fields only.")
    return EXIT_OK


def _handle_add(ns: argparse.Namespace) -> int:
    form = OrderForm()
    if ns.quick_fill:
        code = _run_quick_fill(form, ns.quick_fill)
        if code != EXIT_OK:
            return code
    _apply_field_args(form, ns)
    if not form.customer_name.strip() or not form.items.strip():
        LOG.error("Customer name and items are required (use --name/--items or --quick-fill).")
        return EXIT_USAGE
    store = _open_store(ns)
    order = form.save(store)
    LOG.info(f"Saved {order.order_number} for {order.customer_name}")
    _print_json(order.as_dict())
    return EXIT_OK


def _handle_edit(ns: argparse.Namespace) -> int:
    store = _open_store(ns)
    existing = store.get(ns.order_id)
    if existing is None:
        LOG.error(f"No order with id {ns.order_id}")
        return EXIT_FAILED
    form = OrderForm.from_order(existing)
    _apply_field_args(form, ns)
    order = form.save(store)
    _print_json(order.as_dict())
    return EXIT_OK


def _handle_delete(ns: argparse.Namespace) -> int:
    store = _open_store(ns)
    if not store.delete(ns.order_id):
        LOG.error(f"No order with id {ns.order_id}")
        return EXIT_FAILED
    LOG.info(f"Deleted order {ns.order_id}")
    return EXIT_OK


def _toggle_handler(action: str):
    def _handle(ns: argparse.Namespace) -> int:
        store = _open_store(ns)
        order: Optional[Order] = getattr(store, action)(ns.order_id)
        if order is None:
            LOG.error(f"No order with id {ns.order_id}")
            return EXIT_FAILED
        _print_json(order.as_dict())
        return EXIT_OK

    return _handle


def _handle_list(ns: argparse.Namespace) -> int:
    store = _open_store(ns)
    orders = filter_orders(store.orders, ns.search or "")
    if ns.json:
        _print_json({"items": [o.as_dict() for o in orders], "total": len(orders)})
        return EXIT_OK
    if not orders:
        print("No orders yet.")
        return EXIT_OK
    for o in orders:
        print(
            f"{o.order_number:<8} {o.customer_name:<24} ${o.total_price:>8.2f}  "
            f"{o.payment_status.value:<7} {o.delivery_status.value:<9} {o.id}"
        )
    return EXIT_OK


def _handle_stats(ns: argparse.Namespace) -> int:
    store = _open_store(ns)
    summary = aggregate(store.orders)
    payload = summary.as_dict()
    payload["charts"] = {"payment": payment_breakdown(summary), "delivery": delivery_breakdown(summary)}
    _print_json(payload)
    return EXIT_OK


def _handle_extract(ns: argparse.Namespace) -> int:
    client = _extraction_client()
    if client is None:
        return EXIT_USAGE
    try:
        parsed = client.extract(ns.text)
    except ValueError as exc:
        LOG.error(f"Nothing to extract: {exc}")
        return EXIT_USAGE
    except ExtractionError as exc:
        LOG.error(f"Extraction failed: {exc}")
        return EXIT_FAILED
    finally:
        client.close()
    _print_json(parsed.as_dict() if parsed else None)
    return EXIT_OK


def _handle_serve(ns: argparse.Namespace) -> int:
    from ..web import create_app
    import uvicorn

    allow_origins = ns.allow_origins
    if allow_origins and "*" in allow_origins:
        allow_origins = ["*"]

    app = create_app(
        root_dir=os.getcwd(),
        store=_open_store(ns) if ns.db else None,
        static_dir=ns.static_dir,
        allow_origins=allow_origins,
        serve_static=not ns.api_only,
    )
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fundraiser-tracker",
        description="Track fundraiser orders, payments and deliveries.",
    )
    parser.add_argument("--db", help="SQLite file holding the orders (default: env FUNDRAISER_DB_PATH or var/fundraiser/)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the JSON API (and static frontend, if built).")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--log-level", default="info")
    serve.add_argument("--static-dir", help="Override static frontend directory relative to project root")
    serve.add_argument("--api-only", action="store_true", help="Serve JSON API without static frontend")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_handle_serve)

    list_cmd = subparsers.add_parser("list", help="List orders, newest first.")
    list_cmd.add_argument("--search", help="Filter by customer name or order number")
    list_cmd.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    list_cmd.set_defaults(handler=_handle_list)

    stats_cmd = subparsers.add_parser("stats", help="Print sales and status totals.")
    stats_cmd.set_defaults(handler=_handle_stats)

    add = subparsers.add_parser("add", help="Create a new order.")
    _add_field_args(add)
    add.add_argument("--quick-fill", metavar="TEXT", help="Free-text order description to auto-fill fields from")
    add.set_defaults(handler=_handle_add)

    edit = subparsers.add_parser("edit", help="Change fields of an existing order.")
    edit.add_argument("order_id")
    _add_field_args(edit)
    edit.set_defaults(handler=_handle_edit)

    delete = subparsers.add_parser("delete", help="Delete an order immediately.")
    delete.add_argument("order_id")
    delete.set_defaults(handler=_handle_delete)

    for name, action in (("toggle-payment", "toggle_payment"), ("toggle-delivery", "toggle_delivery")):
        toggle = subparsers.add_parser(name, help=f"Flip the {action.split('_')[1]} status of an order.")
        toggle.add_argument("order_id")
        toggle.set_defaults(handler=_toggle_handler(action))

    extract = subparsers.add_parser("extract", help="Extract order fields from free text and print them.")
    extract.add_argument("text")
    extract.set_defaults(handler=_handle_extract)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")
    args = build_parser().parse_args(provided)
    code = args.handler(args)
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
