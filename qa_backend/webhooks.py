"""
Identity provider webhook endpoint.

Events are logged only; users are provisioned through ``POST /users/me``
when they sign in.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/clerk-webhook")
async def clerk_webhook(request: Request) -> Response:
    try:
        payload = (await request.body()).decode("utf-8")
        logger.info(
            "Clerk webhook received (svix-id=%s): %s",
            request.headers.get("svix-id"),
            payload,
        )
        return Response(status_code=200)
    except Exception as e:
        logger.error("Error processing Clerk webhook: %s", e, exc_info=True)
        return Response(content="Webhook processing failed", status_code=500)
