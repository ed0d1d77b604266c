#!/usr/bin/env python3
"""
quick_restock.py

Purpose:
  Record a batch restock for a product in the stock ledger API.
  - Looks the product up by name (case-insensitive, exact match).
  - Posts a purchase of N batches; the server adds N x units_per_batch to stock.

API:
  Base: http://localhost:8000/api/v1
  List: GET  /products?limit=<n>&offset=<n>   -> returns a JSON list
  Create: POST /purchases                     -> body: {"product_id": "...", "batches_purchased": n, ...}
  Auth: X-API-Key: <token> (only when the server has API_KEY set)

Auth precedence:
  1) --token <value> (CLI)
  2) env LEDGER_API_TOKEN

Examples:
  python quick_restock.py "Coca-Cola 330ml"
  python quick_restock.py "Coca-Cola 330ml" -b 3 --cost-per-batch 60.00
  LEDGER_API_TOKEN=YOUR_TOKEN python quick_restock.py "Coca-Cola 330ml" -n "supplier delivery"

Exit codes:
  0 = purchase recorded
  1 = handled application error (unknown product, rejected purchase)
  2 = network/HTTP error
"""

from __future__ import annotations
import os
import sys
import json
import argparse
import requests
from typing import Any, Dict, Iterator, Optional

DEFAULT_BASE_URL = os.getenv("LEDGER_API_URL", "http://localhost:8000/api/v1")


class RestockError(Exception):
    """Raised for problems the operator can fix (bad name, rejected input)."""


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Record a batch restock for a product in the stock ledger API.")
    p.add_argument("product", help="Product name as registered (e.g. 'Coca-Cola 330ml').")
    p.add_argument("-b", "--batches", type=int, default=1,
                   help="Number of batches received (default: 1)")
    p.add_argument("--cost-per-batch", type=str, default=None,
                   help="Batch cost paid this time. Defaults to the product's current batch cost.")
    p.add_argument("-n", "--notes", default=None, help="Optional purchase notes.")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL,
                   help=f"Base API URL (default: {DEFAULT_BASE_URL})")
    p.add_argument("--token", default=None,
                   help="API token (X-API-Key). Overrides env LEDGER_API_TOKEN.")
    p.add_argument("--timeout", type=float, default=15.0,
                   help="HTTP timeout in seconds (default: 15)")
    p.add_argument("--page-size", type=int, default=200,
                   help="Pagination page size for GET /products (default: 200)")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Verbose logging to stderr.")
    return p.parse_args(argv)


def resolve_token(cli_token: Optional[str]) -> Optional[str]:
    return cli_token or os.getenv("LEDGER_API_TOKEN") or None


def build_headers(token: Optional[str], content_json: bool = False) -> Dict[str, str]:
    headers: Dict[str, str] = {"Accept": "application/json"}
    if content_json:
        headers["Content-Type"] = "application/json"
    if token:
        headers["X-API-Key"] = token
    return headers


def vprint(enabled: bool, *args: Any) -> None:
    if enabled:
        print(*args, file=sys.stderr)


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return json.dumps(body)


def api_list_products(session: requests.Session, base_url: str, token: Optional[str],
                      page_size: int, timeout: float, verbose: bool) -> Iterator[Dict[str, Any]]:
    offset = 0
    url = f"{base_url.rstrip('/')}/products"
    headers = build_headers(token)
    while True:
        params = {"limit": page_size, "offset": offset}
        vprint(verbose, f"GET {url} params={params}")
        r = session.get(url, headers=headers, params=params, timeout=timeout)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, list):
            raise RestockError(f"Expected list from GET {url}, got: {type(data).__name__}")
        yield from data
        if len(data) < page_size:
            break
        offset += page_size


def find_product(session: requests.Session, base_url: str, token: Optional[str], name: str,
                 page_size: int, timeout: float, verbose: bool) -> Dict[str, Any]:
    wanted = name.strip().casefold()
    for item in api_list_products(session, base_url, token, page_size, timeout, verbose):
        if isinstance(item, dict) and str(item.get("name", "")).strip().casefold() == wanted:
            return item
    raise RestockError(f"No product named {name!r}")


def api_record_purchase(session: requests.Session, base_url: str, token: Optional[str],
                        product_id: str, batches: int, cost_per_batch: Optional[str],
                        notes: Optional[str], timeout: float, verbose: bool) -> Dict[str, Any]:
    url = f"{base_url.rstrip('/')}/purchases"
    payload: Dict[str, Any] = {"product_id": product_id, "batches_purchased": batches}
    if cost_per_batch is not None:
        payload["cost_per_batch"] = cost_per_batch
    if notes:
        payload["notes"] = notes
    vprint(verbose, f"POST {url} json={payload}")
    r = session.post(url, headers=build_headers(token, content_json=True), json=payload, timeout=timeout)
    if r.status_code in (400, 404, 409, 422):
        raise RestockError(f"Purchase rejected ({r.status_code}): {_error_detail(r)}")
    r.raise_for_status()
    return r.json()


def main(argv: Optional[list[str]] = None, session: Optional[requests.Session] = None) -> int:
    args = parse_args(argv)
    token = resolve_token(args.token)
    session = session or requests.Session()
    try:
        if args.batches <= 0:
            raise RestockError("--batches must be greater than zero")
        product = find_product(session, args.base_url, token, args.product,
                               args.page_size, args.timeout, args.verbose)
        purchase = api_record_purchase(session, args.base_url, token, product["id"], args.batches,
                                       args.cost_per_batch, args.notes, args.timeout, args.verbose)
        print(json.dumps({
            "status": "recorded",
            "product": product.get("name"),
            "units_added": purchase.get("units_added"),
            "total_cost": purchase.get("total_cost"),
            "purchase": purchase,
        }, indent=2))
        return 0
    except RestockError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except requests.exceptions.RequestException as e:
        print(f"NETWORK_ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
