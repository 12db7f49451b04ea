#!/usr/bin/env python3
"""
Booking and magic link flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_magic_link.py
    python scripts/flow_magic_link.py --base-url http://localhost:8000 --type tutorial --date 2026-05-01T15:00:00Z

Flow:
    1. Create booking
    2. Preview magic link
    3. Follow magic link (counts an access)
    4. Confirm booking
    5. Report payment outcome
    6. Complete booking
    7. Show magic link analytics
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"


def api_request(client: httpx.Client, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make an API request and unwrap the response envelope."""
    if method == "GET":
        response = client.get(endpoint)
    elif method == "POST":
        response = client.post(endpoint, json=data or {})
    elif method == "PUT":
        response = client.put(endpoint, json=data or {})
    else:
        raise ValueError(f"Unknown method: {method}")

    body = response.json() if response.text else {}
    return {"status": response.status_code, "data": body.get("data") or body}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    if fields:
        filtered = {k: result["data"].get(k) for k in fields if k in result["data"]}
        print(json.dumps(filtered, indent=2))
    else:
        print(json.dumps(result["data"], indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="Booking and magic link flow")
    parser.add_argument("--base-url", default=BASE_URL, help="Backend base URL")
    parser.add_argument("--name", default="Jane Doe", help="Booking holder name")
    parser.add_argument("--phone", default="+15551234567", help="Booking holder phone")
    parser.add_argument("--type", default="consultation", help="Appointment type")
    parser.add_argument("--date", default="2026-03-01T10:00:00Z", help="Appointment date (ISO 8601)")
    parser.add_argument("--amount", type=float, default=100.00, help="Payment amount")
    parser.add_argument("--currency", default="USD", help="Payment currency")
    parser.add_argument("--fail-payment", action="store_true", help="Report a failed payment instead")
    args = parser.parse_args()

    client = httpx.Client(base_url=args.base_url, timeout=10.0)

    # Step 1: Create booking
    print_step(1, "Create booking")
    create_result = api_request(client, "POST", "/api/booking/create", {
        "userName": args.name,
        "userPhone": args.phone,
        "appointmentType": args.type,
        "appointmentDate": args.date,
        "bookingDetails": {"subject": "Flow script", "duration": 60},
    })
    if not print_result(create_result):
        sys.exit(1)

    booking_id = create_result["data"]["bookingId"]
    magic_link = create_result["data"]["magicLink"]
    token = magic_link.rsplit("/", 1)[1]
    print(f"\nBooking created: {booking_id}")
    print(f"Magic link:      {magic_link}")

    # Step 2: Preview magic link
    print_step(2, "Preview magic link")
    preview_result = api_request(client, "GET", f"/appt/{token}/preview")
    if not print_result(preview_result, ["bookingId", "redirectUrl", "status"]):
        sys.exit(1)

    # Step 3: Follow magic link
    print_step(3, "Follow magic link")
    response = client.get(f"/appt/{token}", follow_redirects=False)
    if response.status_code != 302:
        print(f"ERROR ({response.status_code}): {response.text}")
        sys.exit(1)
    print(f"Redirect: {response.headers['location']}")

    # Step 4: Confirm booking
    print_step(4, "Confirm booking")
    confirm_result = api_request(client, "POST", f"/api/booking/confirm/{booking_id}")
    if not print_result(confirm_result, ["bookingId", "status", "confirmedAt", "accessCount"]):
        sys.exit(1)
    print("\nBooking CONFIRMED")

    # Step 5: Report payment outcome
    outcome = "failed" if args.fail_payment else "completed"
    print_step(5, f"Report payment {outcome}")
    payment_result = api_request(client, "PUT", f"/api/booking/payment/{booking_id}", {
        "paymentStatus": outcome,
        "paymentId": f"flow_{booking_id}",
        "amount": args.amount,
        "currency": args.currency,
    })
    if not print_result(payment_result, ["bookingId", "paymentStatus", "paymentAmount", "paymentCurrency"]):
        sys.exit(1)

    # Step 6: Complete booking
    print_step(6, "Complete booking")
    complete_result = api_request(client, "POST", f"/api/booking/complete/{booking_id}")
    if not print_result(complete_result, ["bookingId", "status", "completedAt"]):
        sys.exit(1)
    print("\nBooking COMPLETED")

    # Step 7: Analytics
    print_step(7, "Magic link analytics")
    analytics_result = api_request(client, "GET", f"/appt/{token}/analytics")
    if not print_result(analytics_result, ["accessCount", "firstAccess", "lastAccess", "eventCounts"]):
        sys.exit(1)

    client.close()

    # Final summary
    print("\n" + "="*60)
    print("FULL FLOW COMPLETE")
    print("="*60)


if __name__ == "__main__":
    main()
