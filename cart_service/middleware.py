"""
Shopper Identity Middleware

Resolves the bearer token on incoming requests into a shopper id.
Requests without a token proceed anonymously; routes that need a shopper
reject them through ShopperDependency.
"""

import logging
from typing import Callable, Optional

from fastapi import Request, HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Token from an Authorization header, or None if absent or malformed"""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


class ShopperIdentityMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches the shopper id to request state.

    Reference service: the bearer token is the user id.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user_id = parse_bearer(request.headers.get("Authorization"))

        if request.state.user_id is None and request.headers.get("Authorization"):
            logger.warning(f"Malformed Authorization header on {request.method} {request.url.path}")

        response = await call_next(request)
        return response


class ShopperDependency:
    """FastAPI dependency returning the signed-in shopper's id"""

    async def __call__(self, request: Request) -> str:
        user_id = getattr(request.state, "user_id", None)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Missing bearer token")
        return user_id


require_shopper = ShopperDependency()
