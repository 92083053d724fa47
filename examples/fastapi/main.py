from fastapi import FastAPI, Request, Header, HTTPException
from billingio_sdk import SIGNATURE_HEADER, DEFAULT_TOLERANCE, verify
import logging
import os

logger = logging.getLogger(__name__)

app = FastAPI()


def webhook_settings() -> tuple[str, int]:
    secret = os.environ.get("BILLINGIO_WEBHOOK_SECRET", "")
    tolerance = int(os.environ.get("BILLINGIO_WEBHOOK_TOLERANCE", DEFAULT_TOLERANCE))
    return secret, tolerance


@app.post("/webhooks/billingio")
async def webhook(request: Request, billing_signature: str = Header(None, alias=SIGNATURE_HEADER)):
    secret, tolerance = webhook_settings()
    body = await request.body()
    result = verify(body, billing_signature, secret, tolerance)
    if not result:
        # never log the header or the secret
        logger.warning("rejected billing.io webhook: %s", result.kind.value)
        raise HTTPException(status_code=400, detail=result.kind.value)
    event = result.event
    logger.info("billing.io event %s (%s)", event.get("event_id"), event.get("type"))
    return {"ok": True}
