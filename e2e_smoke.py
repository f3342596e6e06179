#!/usr/bin/env python3
"""
Order Service - E2E smoke tests against a running deployment.

Run:
  python e2e_smoke.py

Optional env:
  ORDER_BASE=http://localhost:8000
  TIMEOUT_SECONDS=30
  DEBUG=1
"""

from __future__ import annotations

import os
import re
import sys
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests


# =========================
# Simple CLI UI (ANSI)
# =========================

class Style:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


def section_title(text: str):
    print(f"\n{Style.BLUE}{Style.BOLD}== {text} =={Style.RESET}")


def info(msg: str):
    print(f"{Style.CYAN}ℹ {msg}{Style.RESET}")


def ok(msg: str):
    print(f"{Style.GREEN}✔ {msg}{Style.RESET}")


def fail(msg: str):
    print(f"{Style.RED}✘ {msg}{Style.RESET}")


# =========================
# Config
# =========================

ORDER_BASE = os.getenv("ORDER_BASE", "http://localhost:8000")
TIMEOUT_SECONDS = int(os.getenv("TIMEOUT_SECONDS", "30"))
DEBUG = os.getenv("DEBUG", "0").strip() in {"1", "true", "True", "YES", "yes"}

INVOICE_PATTERN = re.compile(r"^INV-\d{8}-\d{5}$")
MASKED_ID_PATTERN = re.compile(r"^ORD-\d{4}-\d{2}-\d{2}-[A-Z0-9]{6}$")


def debug(msg: str):
    if DEBUG:
        print(f"{Style.GRAY}… {msg}{Style.RESET}")


@dataclass
class CheckResult:
    name: str
    success: bool
    details: str = ""


# =========================
# HTTP helpers
# =========================

def http(method: str, path: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", 8)
    url = ORDER_BASE + path
    debug(f"{method} {url} kwargs={kwargs}")
    return requests.request(method, url, **kwargs)


def wait_for_health(timeout: int) -> bool:
    start = time.time()
    while time.time() - start < timeout:
        try:
            if http("GET", "/health").status_code == 200:
                ok("order service is healthy.")
                return True
        except requests.exceptions.RequestException as e:
            debug(f"order service not ready: {e}")
        time.sleep(1)
    fail(f"order service did not become healthy in {timeout} seconds.")
    return False


def expect(resp: requests.Response, status: int, ctx: str) -> Dict[str, Any]:
    if resp.status_code != status:
        raise AssertionError(f"{ctx}: expected HTTP {status}, got {resp.status_code}, body={resp.text}")
    return resp.json()


def check(name: str, fn) -> CheckResult:
    section_title(name)
    try:
        details = fn() or ""
        ok(details or name)
        return CheckResult(name, True, details)
    except (AssertionError, requests.exceptions.RequestException, KeyError) as e:
        fail(str(e))
        return CheckResult(name, False, str(e))


# =========================
# Scenarios
# =========================

class Scenario:
    def __init__(self):
        self.tag = uuid.uuid4().hex[:6].upper()
        self.products: List[Dict[str, Any]] = []
        self.billing: Optional[Dict[str, Any]] = None
        self.order: Optional[Dict[str, Any]] = None

    def seed(self):
        for name, price in (("Mug", 12.0), ("Teapot", 30.0)):
            body = expect(http("POST", "/api/products", json={
                "name": f"{name} {self.tag}", "sku": f"{name.upper()}-{self.tag}", "salesPrice": price,
            }), 201, f"create product {name}")
            self.products.append(body["product"])
        body = expect(http("POST", "/api/billing", json={
            "firstName": "Smoke", "lastName": f"Test{self.tag}", "phone": "+1 555 0100",
            "email": f"smoke-{self.tag.lower()}@shop.dev", "country": "US",
            "address": "1 Main St", "city": "Springfield", "postcode": "12345",
        }), 201, "create billing")
        self.billing = body["billing"]
        return f"{len(self.products)} products, billing {self.billing['id']}"

    def create_order(self):
        p1, p2 = self.products
        body = expect(http("POST", "/api/orders", json={
            "billingId": self.billing["id"],
            "orderItems": [
                {"productId": p1["id"], "quantity": 2, "unitPrice": 10.0},
                {"productId": p2["id"], "quantity": 1, "unitPrice": 25.0},
            ],
            "shippingCost": 5.0,
            "discountAmount": 3.0,
        }), 201, "create order")
        self.order = body["order"]
        assert self.order["total_amount"] == 47.0, f"total {self.order['total_amount']} != 47.0"
        assert INVOICE_PATTERN.match(self.order["invoice_no"]), self.order["invoice_no"]
        assert MASKED_ID_PATTERN.match(self.order["masked_order_id"]), self.order["masked_order_id"]
        return f"order {self.order['id']} {self.order['invoice_no']} total={self.order['total_amount']}"

    def unknown_product(self):
        before = expect(http("GET", "/api/orders"), 200, "list orders")["pagination"]["items"]
        resp = http("POST", "/api/orders", json={
            "billingId": self.billing["id"],
            "orderItems": [{"productId": 999999999, "quantity": 1, "unitPrice": 1.0}],
        })
        expect(resp, 404, "order with unknown product")
        after = expect(http("GET", "/api/orders"), 200, "list orders")["pagination"]["items"]
        assert before == after, f"order count changed {before} -> {after}"
        return "rejected with 404, nothing persisted"

    def update_shipping(self):
        body = expect(http("PUT", f"/api/orders/{self.order['id']}", json={"shippingCost": 10.0}), 200, "update order")
        assert body["order"]["total_amount"] == 52.0, body["order"]["total_amount"]
        assert body["order"]["invoice_no"] == self.order["invoice_no"]
        return "total recomputed to 52.0, invoice unchanged"

    def change_status(self):
        body = expect(http("PATCH", f"/api/orders/{self.order['id']}/status", json={"status": "processing"}),
                      200, "change status")
        assert body["order"]["status"] == "processing"
        return "pending -> processing"

    def track(self):
        body = expect(http("GET", "/api/track", params={"invoice_no": self.order["invoice_no"]}), 200, "track")
        assert body["order"]["id"] == self.order["id"]
        return f"tracked {self.order['invoice_no']}"


# =========================
# Summary
# =========================

def print_results(results: List[CheckResult]):
    print(f"\n{Style.BOLD}================ RESULTS ================{Style.RESET}")
    for r in results:
        color = Style.GREEN if r.success else Style.RED
        print(f"{color}{'✅' if r.success else '❌'} {r.name}{Style.RESET}")
        if r.details:
            print(f"    {Style.DIM}{r.details}{Style.RESET}")
    passed = sum(r.success for r in results)
    print(f"Total: {len(results)}  |  Passed: {Style.GREEN}{passed}{Style.RESET}"
          f"  |  Failed: {Style.RED}{len(results) - passed}{Style.RESET}")


def main():
    info(f"Waiting for {ORDER_BASE} ...")
    if not wait_for_health(TIMEOUT_SECONDS):
        sys.exit(1)

    scenario = Scenario()
    results = [check("Seed products and billing", scenario.seed)]
    if results[-1].success:
        results.append(check("Create order", scenario.create_order))
    if results[-1].success:
        results.append(check("Unknown product is rejected", scenario.unknown_product))
        results.append(check("Partial update recomputes total", scenario.update_shipping))
        results.append(check("Change status", scenario.change_status))
        results.append(check("Track by invoice number", scenario.track))

    print_results(results)
    sys.exit(0 if all(r.success for r in results) else 1)


if __name__ == "__main__":
    main()
