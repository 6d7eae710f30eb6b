import json
import logging
import mimetypes
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.config import Settings, get_settings
from catalog_sync.core.enums import ExternalSystem, InventoryState
from catalog_sync.core.exceptions import CatalogVersionMismatchError, SquareAPIError
from catalog_sync.core.utils import parse_quantity
from catalog_sync.integrations.base import ExternalCatalogClient
from catalog_sync.schemas.square import CatalogItem, CatalogVariation, InventoryCountResult

logger = logging.getLogger(__name__)

# Square caps batch-retrieve inventory requests well above this; smaller
# chunks keep individual responses small.
INVENTORY_BATCH_SIZE = 100


class SquareClient(ExternalCatalogClient):
    """
    Async client for the Square Catalog and Inventory REST APIs (v2).

    One instance (and one underlying ``httpx.AsyncClient``) is shared per
    process. Each product maps to an ITEM with exactly one ITEM_VARIATION;
    prices are integer minor units and inventory is tracked per variation
    per location.

    Documentation: https://developer.squareup.com/reference/square
    """

    PRODUCTION_BASE_URL = "https://connect.squareup.com/v2"
    SANDBOX_BASE_URL = "https://connect.squareupsandbox.com/v2"

    system = ExternalSystem.SQUARE

    def __init__(
        self,
        access_token: str,
        location_id: str,
        use_sandbox: bool = True,
        api_version: str = "2024-10-17",
        currency: str = "USD",
        timeout: float = 30.0,
        page_size: int = 100,
        max_pages: int = 20,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(location_id)
        self.access_token = access_token
        self.use_sandbox = use_sandbox
        self.api_version = api_version
        self.currency = currency
        self.page_size = page_size
        self.max_pages = max_pages
        self.BASE_URL = self.SANDBOX_BASE_URL if use_sandbox else self.PRODUCTION_BASE_URL
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        logger.info(f"Initializing SquareClient with {'sandbox' if use_sandbox else 'production'} environment")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "SquareClient":
        settings = settings or get_settings()
        return cls(
            access_token=settings.SQUARE_ACCESS_TOKEN,
            location_id=settings.SQUARE_LOCATION_ID,
            use_sandbox=settings.SQUARE_USE_SANDBOX,
            api_version=settings.SQUARE_API_VERSION,
            currency=settings.SQUARE_CURRENCY,
            timeout=settings.SQUARE_TIMEOUT,
            page_size=settings.SQUARE_CATALOG_PAGE_SIZE,
            max_pages=settings.SQUARE_CATALOG_MAX_PAGES,
            **kwargs,
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _get_headers(self, json_body: bool = True) -> Dict[str, str]:
        """Get headers for API requests"""
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Square-Version": self.api_version,
            "Accept": "application/json",
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
        files: Optional[Dict] = None,
        allow_404: bool = False,
    ) -> Optional[Dict]:
        """
        Make a request to the Square API

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: API endpoint (without base URL)
            data: JSON payload for POST/PUT requests
            params: Query parameters
            files: Multipart parts, used instead of ``data`` for uploads
            allow_404: Return None instead of raising when the object doesn't exist

        Returns:
            Dict: Response data

        Raises:
            SquareAPIError: If the API request fails
        """
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        headers = self._get_headers(json_body=files is None)

        logger.debug(f"Making {method} request to {url}")
        if params:
            logger.debug(f"Params: {params}")
        if data:
            logger.debug(f"Data: {json.dumps(data)[:500]}...")

        request_kwargs: Dict[str, Any] = {"method": method, "url": url, "headers": headers, "params": params}
        if files is not None:
            request_kwargs["files"] = files
        else:
            request_kwargs["json"] = data

        try:
            response = await self._client.request(**request_kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error: {str(e)}")
            raise SquareAPIError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Network error: {str(e)}")
            raise SquareAPIError(f"Network error: {str(e)}")

        if response.status_code == 404 and allow_404:
            return None

        if response.status_code not in (200, 201, 202, 204):
            message = self._error_message(response)
            logger.error(f"Square API error ({response.status_code}): {message}")
            raise SquareAPIError(f"Request failed ({response.status_code}): {message}", status_code=response.status_code)

        if response.status_code == 204:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise SquareAPIError(f"Invalid JSON in response: {str(e)}", status_code=response.status_code)

    @staticmethod
    def _error_message(response) -> str:
        try:
            errors = response.json().get("errors") or []
        except (ValueError, AttributeError):
            return response.text
        if not errors:
            return response.text
        return ", ".join(e.get("detail") or e.get("code") or "Unknown error" for e in errors)

    # Catalog operations

    @staticmethod
    def _parse_catalog_item(obj: Dict[str, Any], image_urls: Dict[str, str]) -> CatalogItem:
        item_data = obj.get("item_data") or {}

        variations = []
        for variation in item_data.get("variations") or []:
            variation_data = variation.get("item_variation_data") or {}
            amount = (variation_data.get("price_money") or {}).get("amount")
            variations.append(CatalogVariation(
                id=variation["id"],
                sku=variation_data.get("sku"),
                price_cents=int(amount) if amount is not None else None,
            ))

        image_ids = item_data.get("image_ids") or []
        version = obj.get("version")

        return CatalogItem(
            id=obj["id"],
            type=obj.get("type", "ITEM"),
            version=int(version) if version is not None else None,
            name=item_data.get("name"),
            description=item_data.get("description"),
            variations=variations,
            image_url=image_urls.get(image_ids[0]) if image_ids else None,
            is_deleted=bool(obj.get("is_deleted", False)),
        )

    @staticmethod
    def _image_urls(objects: List[Dict[str, Any]]) -> Dict[str, str]:
        urls = {}
        for obj in objects:
            if obj.get("type") == "IMAGE":
                url = (obj.get("image_data") or {}).get("url")
                if url:
                    urls[obj["id"]] = url
        return urls

    async def list_catalog_items(self, exhaustive: bool = False) -> List[CatalogItem]:
        """
        List every ITEM in the catalog, resolving each item's primary image URL.

        Pages through ``/catalog/list`` and stops after ``max_pages`` pages.
        With ``exhaustive=True`` it follows the cursor to the end; callers that
        treat absence from the listing as a deletion must use that.
        """
        objects: List[Dict[str, Any]] = []
        cursor = None
        pages = 0

        while True:
            params = {"types": "ITEM,IMAGE", "limit": self.page_size}
            if cursor:
                params["cursor"] = cursor

            data = await self._make_request("GET", "/catalog/list", params=params)
            pages += 1
            objects.extend(data.get("objects") or [])
            cursor = data.get("cursor")
            if not cursor:
                break
            if not exhaustive and pages >= self.max_pages:
                logger.warning(
                    f"Catalog listing stopped after {self.max_pages} pages; remaining items were not fetched"
                )
                break

        image_urls = self._image_urls(objects)
        items = [
            self._parse_catalog_item(obj, image_urls)
            for obj in objects
            if obj.get("type") == "ITEM" and obj.get("id") and not obj.get("is_deleted")
        ]
        logger.info(f"Fetched {len(items)} catalog items from Square")
        return items

    async def _retrieve_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        return await self._make_request(
            "GET",
            f"/catalog/object/{object_id}",
            params={"include_related_objects": "true"},
            allow_404=True,
        )

    async def get_catalog_item(self, item_id: str) -> Optional[CatalogItem]:
        """Get a catalog object by ID, or None when Square doesn't have it"""
        data = await self._retrieve_object(item_id)
        if not data or not data.get("object"):
            return None

        obj = data["object"]
        if obj.get("is_deleted"):
            return None

        image_urls = self._image_urls(data.get("related_objects") or [])
        return self._parse_catalog_item(obj, image_urls)

    async def update_catalog_item(
        self,
        item_id: str,
        variation_id: str,
        version: int,
        price_cents: int,
    ) -> int:
        """
        Set the variation's price, guarded by the item's catalog version.

        Raises:
            CatalogVersionMismatchError: Square's current version differs from ``version``
            SquareAPIError: The item or variation doesn't exist, or the upsert fails
        """
        data = await self._retrieve_object(item_id)
        current = (data or {}).get("object")
        if not current or current.get("type") != "ITEM":
            raise SquareAPIError(f"Catalog item not found: {item_id}", status_code=404)

        current_version = current.get("version")
        if current_version is None or int(current_version) != int(version):
            raise CatalogVersionMismatchError(
                f"Catalog version mismatch: expected {version}, got {current_version}",
                status_code=409,
            )

        item_data = dict(current.get("item_data") or {})
        variations = [dict(v) for v in item_data.get("variations") or []]
        target = next((v for v in variations if v.get("id") == variation_id), None)
        if target is None:
            raise SquareAPIError(f"Catalog variation not found: {variation_id}", status_code=404)

        variation_data = dict(target.get("item_variation_data") or {})
        variation_data["item_id"] = item_id
        variation_data["pricing_type"] = "FIXED_PRICING"
        variation_data["price_money"] = {"amount": int(price_cents), "currency": self.currency}
        target["item_variation_data"] = variation_data
        item_data["variations"] = variations

        payload = {
            "idempotency_key": str(uuid.uuid4()),
            "batches": [{
                "objects": [{
                    "type": "ITEM",
                    "id": item_id,
                    "version": int(version),
                    "item_data": item_data,
                }]
            }],
        }
        result = await self._make_request("POST", "/catalog/batch-upsert", data=payload)

        updated = next((o for o in result.get("objects") or [] if o.get("id") == item_id), None)
        if not updated or updated.get("version") is None:
            raise SquareAPIError(f"Catalog upsert for {item_id} returned no version")

        new_version = int(updated["version"])
        logger.info(f"Updated price of Square item {item_id} to {price_cents} (version {version} -> {new_version})")
        return new_version

    async def upload_item_image(self, item_id: str, image: bytes, filename: str = "image.jpg") -> Optional[str]:
        """Upload an image and attach it to the item as its primary image"""
        content_type = mimetypes.guess_type(filename)[0] or "image/jpeg"
        request_body = {
            "idempotency_key": str(uuid.uuid4()),
            "object_id": item_id,
            "is_primary": True,
            "image": {
                "type": "IMAGE",
                "id": "#image",
                "image_data": {"name": filename},
            },
        }
        files = {
            "request": (None, json.dumps(request_body), "application/json"),
            "image_file": (filename, image, content_type),
        }
        data = await self._make_request("POST", "/catalog/images", files=files)
        return ((data.get("image") or {}).get("image_data") or {}).get("url")

    # Inventory operations

    async def get_inventory_counts(self, variation_ids: List[str], location_id: str) -> List[InventoryCountResult]:
        """In-stock counts for ``variation_ids`` at ``location_id``"""
        if not variation_ids:
            return []

        results: List[InventoryCountResult] = []
        for start in range(0, len(variation_ids), INVENTORY_BATCH_SIZE):
            chunk = variation_ids[start:start + INVENTORY_BATCH_SIZE]
            cursor = None
            while True:
                payload = {
                    "catalog_object_ids": chunk,
                    "location_ids": [location_id],
                    "states": [InventoryState.IN_STOCK.value],
                }
                if cursor:
                    payload["cursor"] = cursor
                data = await self._make_request("POST", "/inventory/counts/batch-retrieve", data=payload)

                for count in data.get("counts") or []:
                    if count.get("state") != InventoryState.IN_STOCK.value:
                        continue
                    results.append(InventoryCountResult(
                        catalog_object_id=count["catalog_object_id"],
                        location_id=count.get("location_id"),
                        state=count.get("state"),
                        quantity=parse_quantity(count.get("quantity")),
                    ))

                cursor = data.get("cursor")
                if not cursor:
                    break

        return results

    async def set_inventory_quantity(self, variation_id: str, location_id: str, quantity: int) -> None:
        """Record a physical count so Square's in-stock quantity becomes ``quantity``"""
        payload = {
            "idempotency_key": str(uuid.uuid4()),
            "changes": [{
                "type": "PHYSICAL_COUNT",
                "physical_count": {
                    "catalog_object_id": variation_id,
                    "location_id": location_id,
                    "quantity": str(quantity),
                    "state": InventoryState.IN_STOCK.value,
                    "occurred_at": datetime.now(timezone.utc).isoformat(),
                },
            }],
        }
        await self._make_request("POST", "/inventory/changes/batch-create", data=payload)
        logger.info(f"Set Square inventory for variation {variation_id} at {location_id} to {quantity}")
