"""Compute the checkout callback signature for an order/payment pair.

Useful for exercising `/verify-payment` locally without opening the real
checkout popup. Optionally posts the signed payload to a running server.
"""

import argparse
import asyncio
import json
import os

import httpx

from checkoutpay.common.signature import compute_signature


async def post_verification(base_url: str, payload: dict) -> None:
    """Send one signed verification request and print the response."""

    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await client.post(f"{base_url}/api/verify-payment", json=payload)
    print(f"status={resp.status_code}")
    print(json.dumps(resp.json(), indent=2))


def main() -> None:
    """Parse CLI args, print the signed payload, optionally send it."""

    parser = argparse.ArgumentParser(description="Sign an order/payment pair like the gateway does.")
    parser.add_argument("--order-id", required=True)
    parser.add_argument("--payment-id", required=True)
    parser.add_argument("--secret", default=os.getenv("RAZORPAY_KEY_SECRET"), help="Defaults to $RAZORPAY_KEY_SECRET")
    parser.add_argument("--base-url", default=None, help="POST the payload to this server")
    args = parser.parse_args()

    if not args.secret:
        raise SystemExit("Provide --secret or set RAZORPAY_KEY_SECRET")

    payload = {
        "razorpay_order_id": args.order_id,
        "razorpay_payment_id": args.payment_id,
        "razorpay_signature": compute_signature(args.secret, args.order_id, args.payment_id),
    }
    print(json.dumps(payload, indent=2))
    if args.base_url:
        asyncio.run(post_verification(args.base_url.rstrip("/"), payload))


if __name__ == "__main__":
    main()
