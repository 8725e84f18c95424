"""Developer CLI: inspect and exercise plugins without a real host.

Examples:
  arp-plugin plugins                                   # List discovered plugins
  arp-plugin routes arp-skeleton                       # Print the route table
  arp-plugin call arp-skeleton GET /products --query "limit=3&orderby=price"
  arp-plugin call arp-skeleton POST /products \\
      --header "content-type: application/json" \\
      --body '{"name": "X", "image_url": "u", "price": 1.0}'
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .core.config import get_settings_instance
from .core.exceptions import PluginLoadError
from .core.logging import setup_logging
from .loader import PluginLoader
from .testing import FakeHostRouter


def _parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


def cmd_plugins(loader: PluginLoader) -> bool:
    records = loader.discover()
    if not records:
        print(f"No plugins found under {loader.plugins_dir}", file=sys.stderr)
        return False
    for record in records.values():
        print(f"{record.name}\t{record.version}\t{record.description or ''}")
    return True


def cmd_routes(loader: PluginLoader, name: str) -> bool:
    plugin = loader.load_by_name(name)
    with plugin.routes() as handle:
        print(handle.text())
    return True


def cmd_call(
    loader: PluginLoader,
    name: str,
    method: str,
    path: str,
    *,
    query: str,
    headers: list[tuple[str, str]],
    body: str,
) -> bool:
    plugin = loader.load_by_name(name)
    host = FakeHostRouter(plugin)
    try:
        response = host.request(method, path, query=query, headers=dict(headers), body=body)
    except LookupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return False
    if response is None:
        print("Error: plugin returned no response", file=sys.stderr)
        return False
    if response.media_type:
        print(f"[{response.media_type}]", file=sys.stderr)
    print(response.text)
    return True


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="arp-plugin",
        description="Inspect and call arp router plugins",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--plugins-dir", type=Path, help="Override ARP_PLUGINS_ROOT")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("plugins", help="List discovered plugins")

    routes_parser = subparsers.add_parser("routes", help="Print a plugin's route table")
    routes_parser.add_argument("plugin", help="Plugin name from its manifest")

    call_parser = subparsers.add_parser("call", help="Dispatch one request through a fake host")
    call_parser.add_argument("plugin", help="Plugin name from its manifest")
    call_parser.add_argument("method", help="HTTP method, e.g. GET")
    call_parser.add_argument("path", help="Route path, e.g. /products")
    call_parser.add_argument("--query", default="", help="Raw query string, e.g. 'limit=3&orderby=price'")
    call_parser.add_argument(
        "--header",
        action="append",
        type=_parse_header,
        default=[],
        help="Request header as 'Name: value' (repeatable)",
    )
    call_parser.add_argument("--body", default="", help="Request body")

    args = parser.parse_args(argv)

    settings = get_settings_instance()
    setup_logging(settings)
    loader = PluginLoader(plugins_dir=args.plugins_dir, settings=settings)

    success = False
    try:
        if args.command == "plugins":
            success = cmd_plugins(loader)
        elif args.command == "routes":
            success = cmd_routes(loader, args.plugin)
        elif args.command == "call":
            success = cmd_call(
                loader,
                args.plugin,
                args.method,
                args.path,
                query=args.query,
                headers=args.header,
                body=args.body,
            )
    except PluginLoadError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":  # pragma: no cover
    main()
