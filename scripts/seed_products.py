#!/usr/bin/env python3
"""Seed the starter catalog through the admin API.

Flow:
1) Login as admin
2) Skip products whose name already exists in the public catalog
3) Create each product together with its colour variants
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any, Dict, List, Set

import httpx


DEFAULT_BASE_URL = "http://127.0.0.1:8000"

STARTER_CATALOG: List[Dict[str, Any]] = [
    {
        "name": "Modern Black Watch",
        "base_price": 29.99,
        "description": "A modern black watch",
        "category": "watches",
        "image_url": "assets/images/1.jpg",
        "variants": [{"color_name": "Black", "color_code": "#000000", "stock_quantity": 50}],
    },
    {
        "name": "Blue Shoes",
        "base_price": 59.99,
        "description": "Blue shoes",
        "category": "shoes",
        "image_url": "assets/images/2.jpg",
        "variants": [{"color_name": "Blue", "color_code": "#1D4ED8", "stock_quantity": 30}],
    },
    {
        "name": "Red Shoes",
        "base_price": 49.99,
        "description": "Red shoes",
        "category": "shoes",
        "image_url": "assets/images/3.jpg",
        "variants": [{"color_name": "Red", "color_code": "#DC2626", "stock_quantity": 25}],
    },
    {
        "name": "Black Shoes",
        "base_price": 79.99,
        "description": "Black shoes",
        "category": "shoes",
        "image_url": "assets/images/4.jpg",
        "variants": [{"color_name": "Black", "color_code": "#000000", "stock_quantity": 40}],
    },
    {
        "name": "Black T-Shirt",
        "base_price": 39.99,
        "description": "Black T-Shirt",
        "category": "t-shirts",
        "image_url": "assets/images/5.jpg",
        "variants": [{"color_name": "Black", "color_code": "#000000", "stock_quantity": 35}],
    },
]


class ApiError(RuntimeError):
    pass


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _require_success(response: httpx.Response, context: str) -> Dict[str, Any]:
    payload = _json_or_text(response)
    if response.status_code >= 400:
        raise ApiError(f"{context} failed ({response.status_code}): {payload}")
    if not isinstance(payload, dict):
        raise ApiError(f"{context} returned non-JSON payload: {payload}")
    if payload.get("success") is False:
        raise ApiError(f"{context} returned success=false: {payload}")
    return payload


def login_admin(client: httpx.Client, email: str, password: str) -> None:
    login_resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    payload = _require_success(login_resp, "Admin login")
    user = (payload.get("data") or {}).get("user") or {}
    role = user.get("role")
    if role != "admin":
        raise ApiError(f"Authenticated user is not admin (role={role!r})")


def existing_product_names(client: httpx.Client) -> Set[str]:
    names: Set[str] = set()
    page = 1
    while True:
        resp = client.get("/api/v1/products/", params={"page": page, "limit": 100})
        payload = _require_success(resp, "Fetch products")
        names.update(product["name"] for product in payload.get("data") or [])
        if page >= (payload.get("meta") or {}).get("total_pages", 1):
            return names
        page += 1


def create_product(client: httpx.Client, product: Dict[str, Any]) -> Dict[str, Any]:
    resp = client.post("/api/v1/products/", json=product)
    payload = _require_success(resp, f"Create product '{product['name']}'")
    data_obj = payload.get("data") or {}
    if not isinstance(data_obj.get("id"), int):
        raise ApiError(f"Unexpected create-product response for '{product['name']}': {payload}")
    return data_obj


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the starter catalog via the storefront admin API")
    parser.add_argument("--base-url", default=os.getenv("STOREFRONT_BASE_URL", DEFAULT_BASE_URL))
    parser.add_argument("--admin-email", default=os.getenv("STOREFRONT_ADMIN_EMAIL", "admin@example.com"))
    parser.add_argument("--admin-password", default=os.getenv("STOREFRONT_ADMIN_PASSWORD", "CHANGE_ME"))
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if args.admin_password == "CHANGE_ME":
        print("ERROR: Set --admin-password or STOREFRONT_ADMIN_PASSWORD", file=sys.stderr)
        return 2

    with httpx.Client(base_url=args.base_url.rstrip("/"), timeout=30.0, follow_redirects=True) as client:
        login_admin(client, args.admin_email, args.admin_password)
        already_there = existing_product_names(client)

        print("Seeded products:")
        for product in STARTER_CATALOG:
            if product["name"] in already_there:
                print(f"- {product['name']}: already present, skipped")
                continue
            created = create_product(client, product)
            variant_ids = [variant["id"] for variant in created.get("variants") or []]
            print(f"- {product['name']}: id={created['id']}, variants={variant_ids}")

    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except ApiError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)
