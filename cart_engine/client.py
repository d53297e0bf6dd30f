"""
Cart Service Client

HTTP client for the remote Cart Service and the catalog and promotions
lookups it fronts. Used by the session reconciler and, once a shopper is
signed in, by the write-through synchronizer.
"""

import json
import logging
from typing import Optional, Any

import httpx
from pydantic import ValidationError

from .config import settings
from .models import Cart, CatalogProduct, Coupon

logger = logging.getLogger(__name__)


class CartServiceError(Exception):
    """Base exception for Cart Service client errors"""
    pass


class CartServiceUnavailable(CartServiceError):
    """The service could not be reached or failed to answer"""
    pass


class CartServiceAuthError(CartServiceError):
    """The shopper's token was refused"""
    pass


class CartServiceClient:
    """
    Client for the remote Cart Service.

    Usage:
        client = CartServiceClient("http://localhost:8001")
        cart = await client.fetch_cart(token)
        await client.save_cart(token, cart)
        await client.close()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the Cart Service
            timeout: Request timeout in seconds
            transport: Custom httpx transport (in-process ASGI apps, tests)
        """
        self.base_url = (base_url or settings.cart_service_url).rstrip("/")
        self._http_client = httpx.AsyncClient(
            timeout=timeout or settings.request_timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    def _headers(self, token: Optional[str] = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        body: Optional[dict] = None,
        allow_not_found: bool = False,
    ) -> Optional[dict[str, Any]]:
        """Make an HTTP request and decode the JSON answer"""
        url = f"{self.base_url}{path}"
        body_str = json.dumps(body) if body is not None else None

        try:
            response = await self._http_client.request(
                method=method,
                url=url,
                headers=self._headers(token),
                content=body_str,
            )
        except httpx.HTTPError as e:
            logger.error(f"Cart Service request {method} {path} failed: {e}")
            raise CartServiceUnavailable(f"Cart Service unreachable: {e}") from e

        if response.status_code in (401, 403):
            logger.warning(f"Cart Service refused credentials for {method} {path}")
            raise CartServiceAuthError(f"Not authorized: {response.status_code}")

        if response.status_code == 404 and allow_not_found:
            return None

        if response.status_code >= 400:
            logger.error(f"Request failed: {response.status_code} - {response.text}")
            raise CartServiceUnavailable(
                f"Cart Service error {response.status_code}: {response.text}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise CartServiceError(f"Cart Service returned invalid JSON for {method} {path}") from e

    def _parse_cart(self, payload: Optional[dict]) -> Cart:
        try:
            return Cart.model_validate((payload or {})["cart"])
        except (KeyError, TypeError, ValidationError) as e:
            raise CartServiceError(f"Malformed cart in Cart Service response: {e}") from e

    # ==================== Cart APIs ====================

    async def fetch_cart(self, token: str) -> Cart:
        """Get the signed-in shopper's cart"""
        return self._parse_cart(await self._request("GET", "/api/cart", token=token))

    async def save_cart(self, token: str, cart: Cart) -> Cart:
        """Replace the shopper's cart with a full snapshot"""
        payload = await self._request(
            "PUT",
            "/api/cart",
            token=token,
            body=cart.model_dump(mode="json", by_alias=True),
        )
        saved = self._parse_cart(payload)
        logger.debug(f"Cart Service stored revision {saved.revision}")
        return saved

    async def delete_cart(self, token: str) -> None:
        """Drop the shopper's server-side cart"""
        await self._request("DELETE", "/api/cart", token=token)

    # ==================== Promotions & catalog ====================

    async def get_coupon(self, code: str) -> Optional[Coupon]:
        """Look up a coupon by code; None if it does not exist"""
        if not code.strip():
            return None
        payload = await self._request("GET", f"/api/coupons/{code.strip()}", allow_not_found=True)
        if payload is None:
            return None
        try:
            return Coupon.model_validate(payload)
        except ValidationError as e:
            raise CartServiceError(f"Malformed coupon '{code}': {e}") from e

    async def get_product(self, product_id: str) -> Optional[CatalogProduct]:
        """Current price and stock for a product; None if it does not exist"""
        payload = await self._request("GET", f"/api/products/{product_id}", allow_not_found=True)
        if payload is None:
            return None
        try:
            return CatalogProduct.model_validate(payload)
        except ValidationError as e:
            raise CartServiceError(f"Malformed product '{product_id}': {e}") from e
