"""
QuickBooks Online client.

Talks to the v3 accounting REST API with an OAuth bearer token. Token
acquisition and refresh live outside this service; the access token and
realm id come from settings.

Entity mapping:
    customer -> Customer
    product  -> Item
    invoice  -> Invoice

Documentation: https://developer.intuit.com/app/developer/qbo/docs/api/accounting/
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ledgersync.core.config import Settings
from ledgersync.core.enums import EntityType, Provider
from ledgersync.core.exceptions import (
    ProviderRejectedError,
    ProviderUnavailableError,
)
from ledgersync.integrations.base import ProviderClient
from ledgersync.schemas.sync import RemoteRecord

logger = logging.getLogger(__name__)

ENTITY_NAMES = {
    EntityType.CUSTOMER.value: "Customer",
    EntityType.PRODUCT.value: "Item",
    EntityType.INVOICE.value: "Invoice",
}

MAX_RESULTS = 1000


class QuickBooksClient(ProviderClient):

    name = Provider.QUICKBOOKS.value

    PRODUCTION_BASE_URL = "https://quickbooks.api.intuit.com"
    SANDBOX_BASE_URL = "https://sandbox-quickbooks.api.intuit.com"

    def __init__(
        self,
        realm_id: str,
        access_token: str,
        use_sandbox: bool = True,
        minor_version: int = 65,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.realm_id = realm_id
        self.access_token = access_token
        self.minor_version = minor_version
        self.timeout = timeout
        self.BASE_URL = self.SANDBOX_BASE_URL if use_sandbox else self.PRODUCTION_BASE_URL
        self._transport = transport
        logger.info(f"Initializing QuickBooksClient with {'sandbox' if use_sandbox else 'production'} environment")

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "QuickBooksClient":
        return cls(
            realm_id=settings.QBO_REALM_ID,
            access_token=settings.QBO_ACCESS_TOKEN,
            use_sandbox=settings.QBO_ENV.strip().lower() != "production",
            minor_version=settings.QBO_MINOR_VERSION,
            timeout=settings.QBO_REQUEST_TIMEOUT,
            **kwargs,
        )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _entity_name(self, entity_type: str) -> str:
        try:
            return ENTITY_NAMES[entity_type]
        except KeyError:
            raise ProviderRejectedError(f"QuickBooks does not support entity type '{entity_type}'") from None

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> Dict:
        """
        Make a request to the QuickBooks API

        Raises:
            ProviderUnavailableError: network failure, timeout, 429 or 5xx
            ProviderRejectedError: any other non-2xx response
        """
        url = f"{self.BASE_URL}/v3/company/{self.realm_id}/{endpoint.lstrip('/')}"
        params = {**(params or {}), "minorversion": self.minor_version}

        logger.debug(f"Making {method} request to {url}")
        if data:
            logger.debug(f"Data: {json.dumps(data)[:500]}...")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    json=data,
                    params=params,
                )
        except httpx.TimeoutException as e:
            logger.error(f"QuickBooks timeout: {str(e)}")
            raise ProviderUnavailableError(f"Request timed out: {str(e)}") from e
        except httpx.RequestError as e:
            logger.error(f"QuickBooks network error: {str(e)}")
            raise ProviderUnavailableError(f"Network error: {str(e)}") from e

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(f"QuickBooks unavailable ({response.status_code}): {response.text[:500]}")
            raise ProviderUnavailableError(
                f"QuickBooks returned {response.status_code}", status_code=response.status_code
            )
        if response.status_code not in (200, 201, 202, 204):
            logger.error(f"QuickBooks API error ({response.status_code}): {response.text[:500]}")
            raise ProviderRejectedError(
                f"QuickBooks rejected request: {response.text[:500]}", status_code=response.status_code
            )

        if response.status_code == 204:
            return {}
        return response.json()

    def _to_record(self, body: Dict[str, Any]) -> RemoteRecord:
        return RemoteRecord(external_id=str(body["Id"]), payload=body)

    async def fetch_all(self, entity_type: str) -> List[RemoteRecord]:
        entity_name = self._entity_name(entity_type)
        query = f"SELECT * FROM {entity_name} MAXRESULTS {MAX_RESULTS}"
        response = await self._make_request("GET", "query", params={"query": query})
        rows = response.get("QueryResponse", {}).get(entity_name, [])
        logger.info(f"Fetched {len(rows)} {entity_name} records from QuickBooks")
        return [self._to_record(row) for row in rows]

    async def fetch_one(self, entity_type: str, external_id: str) -> Optional[RemoteRecord]:
        entity_name = self._entity_name(entity_type)
        try:
            response = await self._make_request("GET", f"{entity_name.lower()}/{external_id}")
        except ProviderRejectedError as e:
            if e.status_code == 404:
                return None
            raise
        body = response.get(entity_name)
        return self._to_record(body) if body else None

    async def create(self, entity_type: str, payload: Dict[str, Any]) -> RemoteRecord:
        entity_name = self._entity_name(entity_type)
        body = {k: v for k, v in payload.items() if k not in ("Id", "SyncToken")}
        response = await self._make_request("POST", entity_name.lower(), data=body)
        return self._to_record(response[entity_name])

    async def update(self, entity_type: str, external_id: str, payload: Dict[str, Any]) -> RemoteRecord:
        """Sparse update. QuickBooks requires the current SyncToken, so it is read first."""
        entity_name = self._entity_name(entity_type)
        current = await self.fetch_one(entity_type, external_id)
        if current is None:
            raise ProviderRejectedError(f"{entity_name} {external_id} not found in QuickBooks", status_code=404)

        body = {
            **payload,
            "Id": external_id,
            "SyncToken": current.payload.get("SyncToken", "0"),
            "sparse": True,
        }
        response = await self._make_request("POST", entity_name.lower(), data=body)
        return self._to_record(response[entity_name])
