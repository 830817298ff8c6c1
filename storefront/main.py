"""
CLI entry point for the Etsub storefront.

Wires together storage, pricing and the admin session guard and exposes
the day-to-day admin tasks on the command line.
"""

import argparse
import getpass
import json
import logging
import os
import sys
from pathlib import Path

from storefront.exceptions import AppException
from storefront.services.admin_service import BACKUP_FILENAME, AdminService
from storefront.services.catalog_service import ALL, search_products
from storefront.storage.kv_store import JsonFileKVStore
from storefront.utils.config_loader import CONFIG_PATH_ENV, AppConfig, load_config, load_env
from storefront.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Etsub Online Shopping storefront",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m storefront.main serve --port 8000
    python -m storefront.main rate show
    python -m storefront.main rate set 156.5
    python -m storefront.main products list --search dress --sort price-low
    python -m storefront.main products export -o backup.json
    python -m storefront.main stats
        """,
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to configuration file (default: $ETSUB_CONFIG or config/config.yaml)",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the web API")
    serve.add_argument("--host", help="Bind address (default: from config)")
    serve.add_argument("--port", type=int, help="Port (default: from config)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    rate = subparsers.add_parser("rate", help="Show or change the USD to ETB rate")
    rate_sub = rate.add_subparsers(dest="rate_command", required=True)
    rate_sub.add_parser("show", help="Show the current rate")
    rate_sub.add_parser("refresh", help="Refresh from cache or live providers")
    rate_set = rate_sub.add_parser("set", help="Set a manual rate")
    rate_set.add_argument("value", help="USD to ETB exchange rate")

    products = subparsers.add_parser("products", help="Catalog commands")
    products_sub = products.add_subparsers(dest="products_command", required=True)
    products_list = products_sub.add_parser("list", help="List products")
    products_list.add_argument("--search", "-s", default="", help="Search text")
    products_list.add_argument("--category", default=ALL, help="Category filter")
    products_list.add_argument("--status", default=ALL, help="in_stock, on_order or sold")
    products_list.add_argument("--sort", default="newest", help="newest, oldest, price-low, price-high or name")
    products_show = products_sub.add_parser("show", help="Show one product with its pricing breakdown")
    products_show.add_argument("product_id", help="Product id (or a unique prefix)")
    products_export = products_sub.add_parser("export", help="Write a JSON backup of the catalog")
    products_export.add_argument(
        "--output", "-o", type=Path, default=Path(BACKUP_FILENAME), help="Backup file path"
    )
    products_clear = products_sub.add_parser("clear", help="Delete every product and its media")
    products_clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser("stats", help="Show dashboard statistics")

    return parser.parse_args(argv)


def build_service(config: AppConfig) -> AdminService:
    kv_store = JsonFileKVStore(str(config.paths.storage_path))
    service = AdminService(config, kv_store)
    service.load()
    return service


def ensure_admin(service: AdminService) -> bool:
    """
    Make sure an admin session is live, prompting for the password if needed.

    Returns:
        bool: True when logged in.
    """
    if service.guard.authenticated:
        return True
    result = service.guard.submit(getpass.getpass("Admin password: "))
    if not result.success:
        print(f"\n✗ {result.message}")
    return result.success


def run_serve(args: argparse.Namespace, config: AppConfig) -> int:
    import uvicorn

    if args.config is not None:
        os.environ[CONFIG_PATH_ENV] = str(args.config.resolve())
    host = args.host or config.server.host
    port = args.port or config.server.port
    print("\n" + "=" * 60)
    print(config.server.title)
    print("=" * 60)
    print(f"Server running at: http://{host}:{port}")
    print("=" * 60 + "\n")
    uvicorn.run("storefront.webapp.main:app", host=host, port=port, reload=args.reload)
    return 0


def print_rate(service: AdminService) -> None:
    info = service.fx_provider.get_rate_info()
    print(f"  Rate:         1 USD = {info['rate']:.2f} ETB")
    print(f"  Source:       {info['source']}")
    print(f"  Last updated: {info['last_updated_at'] or 'never (default rate)'}")


def run_rate(args: argparse.Namespace, service: AdminService) -> int:
    if args.rate_command == "show":
        print_rate(service)
        return 0

    if not ensure_admin(service):
        return 1

    if args.rate_command == "refresh":
        result = service.refresh_rate()
        if result.success:
            how = "fetched live" if result.fetched else "from cache"
            print(f"\n✓ Rate refreshed ({how})")
        else:
            print(f"\n⚠ Rate not refreshed: {result.error or 'refresh already in progress'}")
        print_rate(service)
        return 0 if result.success else 1

    state = service.set_manual_rate(args.value)
    print(f"\n✓ Manual rate set: 1 USD = {state.current_rate:.2f} ETB")
    print(f"  Repriced {len(service.catalog)} products")
    return 0


def find_product(service: AdminService, product_id: str):
    """Find a product by id or unique id prefix; None when missing or ambiguous."""
    matches = [p for p in service.catalog.products if p.id.startswith(product_id)]
    exact = [p for p in matches if p.id == product_id]
    if exact:
        return exact[0]
    return matches[0] if len(matches) == 1 else None


def run_products(args: argparse.Namespace, service: AdminService) -> int:
    if args.products_command == "show":
        product = find_product(service, args.product_id)
        if product is None:
            print(f"\n✗ No single product matches '{args.product_id}'")
            return 1
        print(f"\n  {product.name}  [{product.status.value}]  id={product.id}")
        print(f"  {service.pricing.get_pricing_summary(product)}")
        return 0

    if args.products_command in ("export", "clear") and not ensure_admin(service):
        return 1

    if args.products_command == "export":
        exported = service.export_catalog()
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(exported, f, indent=2, ensure_ascii=False)
        print(f"\n✓ Exported {len(exported)} products to {args.output}")
        return 0

    if args.products_command == "clear":
        if not args.yes:
            answer = input(f"Delete all {len(service.catalog)} products and their media? [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Cancelled.")
                return 1
        removed = service.clear_catalog()
        print(f"\n✓ Deleted {removed} products")
        return 0

    products = search_products(
        service.catalog.products,
        term=args.search,
        category=args.category,
        status=args.status,
        sort_by=args.sort,
    )
    if not products:
        print("No products found.")
        return 0

    for p in products:
        print(
            f"  {p.id[:8]}  {p.name[:40]:<40}  {p.status.value:<9}  "
            f"${p.source_cost_usd:>8.2f}  {p.converted_cost_local:>8,} ETB cost  "
            f"{p.final_price_local:>10,.0f} ETB"
        )
    print(f"\n  {len(products)} product(s)")
    return 0


def run_stats(service: AdminService) -> int:
    stats = service.stats()
    print("\n" + "=" * 60)
    print("CATALOG SUMMARY")
    print("=" * 60)
    print(f"  Total products:   {stats.total}")
    print(f"  In stock:         {stats.in_stock}")
    print(f"  On order:         {stats.on_order}")
    print(f"  Sold:             {stats.sold}")
    print(f"  Inventory value:  {stats.total_value:,.0f} ETB")
    print(f"  In-stock value:   {stats.in_stock_value:,.0f} ETB")
    print(f"  Rate:             {service.fx_provider.get_rate():.2f}")
    print("=" * 60 + "\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point.

    Returns:
        int: Exit code.
    """
    load_env()
    args = parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.logging, verbose=args.verbose)

    try:
        if args.command == "serve":
            return run_serve(args, config)

        service = build_service(config)
        try:
            if args.command == "rate":
                return run_rate(args, service)
            if args.command == "products":
                return run_products(args, service)
            return run_stats(service)
        finally:
            service.shutdown()
    except AppException as e:
        logger.error(f"{e.error_code}: {e.message}")
        print(f"\n✗ Error: {e.message}")
        return 1
    except ValueError as e:
        print(f"\n✗ Error: {e}")
        return 2
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
