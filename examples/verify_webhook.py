"""Verify a captured billing.io delivery.
Usage: python verify_webhook.py <body-file> <signature-header>
Requires env: BILLINGIO_WEBHOOK_SECRET; optional BILLINGIO_WEBHOOK_TOLERANCE (seconds)
"""
import json
import os
import sys

from billingio_sdk import DEFAULT_TOLERANCE, verify

secret = os.environ.get("BILLINGIO_WEBHOOK_SECRET")
tolerance = int(os.environ.get("BILLINGIO_WEBHOOK_TOLERANCE", DEFAULT_TOLERANCE))

if not secret or len(sys.argv) != 3:
    print(__doc__)
    raise SystemExit(2)

with open(sys.argv[1], "rb") as fh:
    body = fh.read()

res = verify(body, sys.argv[2], secret, tolerance)
if not res:
    print("invalid:", res.kind.value, "-", res.failure.message)
    raise SystemExit(1)
print("valid event:", json.dumps(res.event, indent=2))
