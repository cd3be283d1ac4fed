"""
Smoke test a running Chargeback API.

Checks:
1. GET /health returns 200
2. POST /chargebacks creates a pending chargeback (201)
3. Same transaction again is rejected (409)
4. Invalid reason is rejected (400)
5. Wrong Content-Type is rejected (415)
6. GET /chargebacks is rejected (405)

Usage:
    python scripts/smoke_test_api.py
    python scripts/smoke_test_api.py --base-url http://localhost:8080
"""

import argparse
import sys
import time

import httpx


def _payload(transaction_id: str, reason: str = "fraud") -> dict:
    return {
        "transaction_id": transaction_id,
        "merchant_id": "merchant-smoke",
        "amount": 99.99,
        "currency": "USD",
        "card_number": "4111111111111234",
        "reason": reason,
        "description": "Smoke test",
        "transaction_date": "2024-01-15T10:30:00Z",
    }


def _check(name: str, response: httpx.Response, expected: int) -> bool:
    if response.status_code == expected:
        print(f"[PASS] {name} - Status: {response.status_code}")
        return True
    print(f"[FAIL] {name} - Expected: {expected}, Received: {response.status_code}")
    print(f"       Body: {response.text}")
    return False


def run(base_url: str) -> int:
    transaction_id = f"tx-smoke-{int(time.time())}"
    results = []

    with httpx.Client(base_url=base_url, timeout=10.0) as client:
        results.append(_check("Health Check", client.get("/health"), 200))

        created = client.post("/chargebacks", json=_payload(transaction_id))
        ok = _check("Create Chargeback", created, 201)
        if ok:
            body = created.json()
            print(f"       id={body['id']} status={body['status']} card={body['card_number']}")
            ok = body["status"] == "pending" and body["card_number"].endswith("1234")
        results.append(ok)

        results.append(_check(
            "Duplicate Transaction",
            client.post("/chargebacks", json=_payload(transaction_id)),
            409,
        ))
        results.append(_check(
            "Invalid Reason",
            client.post("/chargebacks", json=_payload(f"{transaction_id}-r", "invalid_reason")),
            400,
        ))
        results.append(_check(
            "Wrong Content-Type",
            client.post(
                "/chargebacks",
                content="not json",
                headers={"Content-Type": "text/plain"},
            ),
            415,
        ))
        results.append(_check("Wrong Method", client.get("/chargebacks"), 405))

    passed = sum(1 for r in results if r)
    print("=" * 60)
    print(f"{passed}/{len(results)} checks passed")
    return 0 if passed == len(results) else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Smoke test a running Chargeback API")
    parser.add_argument("--base-url", default="http://localhost:8080")
    args = parser.parse_args()
    sys.exit(run(args.base_url))
