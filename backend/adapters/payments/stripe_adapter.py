"""
Stripe billing adapter for revenue reporting.

Read-only access to the Stripe REST API: cursor-paginated listing of
subscriptions, charges and payment intents, plus invoice retrieval used to
confirm whether a payment belongs to a subscription.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Custom Exceptions
class StripeError(Exception):
    """Base exception for Stripe adapter errors."""

    pass


class StripeAPIError(StripeError):
    """Raised when the Stripe API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StripeAuthError(StripeError):
    """Raised when no API key is configured."""

    pass


def _id_of(value: Any) -> str | None:
    """Stripe fields are either an id string or an expanded object with an id."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id")
    return None


# Dataclasses
@dataclass
class SubscriptionItem:
    """A single price line on a subscription."""

    id: str
    unit_amount: int | None
    recurring: bool
    interval: str | None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "SubscriptionItem":
        """Create item from API response data."""
        price = data.get("price") or {}
        recurring = price.get("recurring") or None
        return cls(
            id=data.get("id", ""),
            unit_amount=price.get("unit_amount"),
            recurring=recurring is not None,
            interval=recurring.get("interval") if recurring else None,
        )


@dataclass
class StripeSubscription:
    """Stripe subscription information."""

    id: str
    status: str  # active, canceled, past_due, trialing, incomplete, unpaid, paused
    created: int
    canceled_at: int | None
    customer_id: str | None
    livemode: bool
    items: list[SubscriptionItem] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StripeSubscription":
        """Create subscription from API response data."""
        items = (data.get("items") or {}).get("data") or []
        return cls(
            id=data.get("id", ""),
            status=data.get("status", ""),
            created=int(data.get("created") or 0),
            canceled_at=data.get("canceled_at"),
            customer_id=_id_of(data.get("customer")),
            livemode=bool(data.get("livemode", False)),
            items=[SubscriptionItem.from_api_response(item) for item in items],
        )


@dataclass
class StripeCharge:
    """Stripe charge information."""

    id: str
    amount: int
    status: str
    created: int
    invoice_id: str | None
    customer_id: str | None
    metadata: dict[str, str]
    description: str | None
    livemode: bool

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StripeCharge":
        """Create charge from API response data."""
        return cls(
            id=data.get("id", ""),
            amount=int(data.get("amount") or 0),
            status=data.get("status", ""),
            created=int(data.get("created") or 0),
            invoice_id=_id_of(data.get("invoice")),
            customer_id=_id_of(data.get("customer")),
            metadata=dict(data.get("metadata") or {}),
            description=data.get("description"),
            livemode=bool(data.get("livemode", False)),
        )


@dataclass
class StripePaymentIntent:
    """Stripe payment intent information."""

    id: str
    amount: int
    status: str
    created: int
    invoice_id: str | None
    customer_id: str | None
    metadata: dict[str, str]
    description: str | None
    livemode: bool
    latest_charge: StripeCharge | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StripePaymentIntent":
        """Create payment intent from API response data."""
        latest_charge = data.get("latest_charge")
        return cls(
            id=data.get("id", ""),
            amount=int(data.get("amount") or 0),
            status=data.get("status", ""),
            created=int(data.get("created") or 0),
            invoice_id=_id_of(data.get("invoice")),
            customer_id=_id_of(data.get("customer")),
            metadata=dict(data.get("metadata") or {}),
            description=data.get("description"),
            livemode=bool(data.get("livemode", False)),
            latest_charge=StripeCharge.from_api_response(latest_charge)
            if isinstance(latest_charge, dict)
            else None,
        )

    @property
    def settled_amount(self) -> int:
        """Amount actually collected, taken from the latest charge when there is one."""
        if self.latest_charge is not None:
            return self.latest_charge.amount if self.latest_charge.status == "succeeded" else 0
        return self.amount


@dataclass
class StripeInvoice:
    """Stripe invoice, reduced to its subscription linkage."""

    id: str
    subscription_id: str | None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StripeInvoice":
        """Create invoice from API response data.

        Older API versions expose ``subscription`` at the top level; newer ones
        nest it under ``parent.subscription_details``.
        """
        subscription_id = _id_of(data.get("subscription"))
        if subscription_id is None:
            parent = data.get("parent") or {}
            details = parent.get("subscription_details") or {}
            subscription_id = _id_of(details.get("subscription"))
        return cls(id=data.get("id", ""), subscription_id=subscription_id)


@dataclass
class StripeListPage(Generic[T]):
    """One page of a cursor-paginated Stripe list."""

    data: list[T]
    has_more: bool


class StripeAdapter:
    """
    Stripe API adapter for read-only billing queries.

    All requests share one HTTP client and pass through a semaphore so that
    concurrent metric collectors never exceed ``max_concurrent_requests``
    in-flight calls to Stripe.
    """

    API_BASE_URL = "https://api.stripe.com/v1"
    MAX_PAGE_SIZE = 100

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_concurrent_requests: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize Stripe adapter.

        Args:
            api_key: Stripe secret key (defaults to settings)
            base_url: API base URL (defaults to settings)
            timeout: Per-request timeout in seconds (defaults to settings)
            max_concurrent_requests: In-flight request bound (defaults to settings)
            http_client: Preconfigured client, mainly for tests
        """
        self.api_key = api_key or settings.stripe_secret_key
        self.base_url = (base_url or settings.stripe_api_base_url or self.API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.stripe_timeout_seconds
        self._semaphore = asyncio.Semaphore(
            max_concurrent_requests or settings.stripe_max_concurrent_requests
        )
        self._client = http_client
        self._owns_client = http_client is None

        if not self.api_key:
            logger.warning("Stripe API key not configured. Set stripe_secret_key in settings.")

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers for API requests."""
        if not self.api_key:
            raise StripeAuthError("Stripe API key not configured. Set stripe_secret_key in settings.")

        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _make_request(
        self,
        endpoint: str,
        params: list[tuple[str, str | int]] | None = None,
    ) -> dict[str, Any]:
        """
        Make a GET request to the Stripe API.

        Args:
            endpoint: API endpoint path
            params: Query parameters as pairs (Stripe repeats ``expand[]``)

        Returns:
            API response as dictionary

        Raises:
            StripeAuthError: If no API key is configured
            StripeAPIError: If the request fails
        """
        url = f"{self.base_url}/{endpoint}"
        headers = self._get_headers()

        async with self._semaphore:
            try:
                logger.debug("Making GET request to %s", endpoint)
                response = await self._get_client().get(url, headers=headers, params=params)
                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                error_detail = str(e)
                try:
                    error_data = e.response.json()
                    error_detail = (error_data.get("error") or {}).get("message") or error_detail
                except ValueError:
                    pass

                logger.error("Stripe API error on %s: %s", endpoint, error_detail)
                raise StripeAPIError(
                    f"API request failed: {error_detail}",
                    status_code=e.response.status_code,
                ) from e
            except httpx.RequestError as e:
                logger.error("HTTP request error on %s: %s", endpoint, e)
                raise StripeAPIError(f"Request failed: {e}") from e

    @staticmethod
    def _list_params(
        limit: int,
        starting_after: str | None,
        created_gte: int | None,
    ) -> list[tuple[str, str | int]]:
        params: list[tuple[str, str | int]] = [("limit", max(1, min(limit, StripeAdapter.MAX_PAGE_SIZE)))]
        if starting_after:
            params.append(("starting_after", starting_after))
        if created_gte is not None:
            params.append(("created[gte]", created_gte))
        return params

    async def list_subscriptions(
        self,
        status: str | None = None,
        created_gte: int | None = None,
        limit: int = 100,
        starting_after: str | None = None,
        expand_prices: bool = False,
    ) -> StripeListPage[StripeSubscription]:
        """
        List one page of subscriptions, newest first.

        Args:
            status: active, canceled, all, ... (Stripe omits canceled unless asked)
            created_gte: Only subscriptions created at or after this unix time
            limit: Page size (1-100)
            starting_after: Cursor, the id of the last item of the previous page
            expand_prices: Expand line-item prices inline

        Raises:
            StripeAPIError: If API request fails
        """
        params = self._list_params(limit, starting_after, created_gte)
        if status:
            params.append(("status", status))
        if expand_prices:
            params.append(("expand[]", "data.items.data.price"))

        response = await self._make_request("subscriptions", params)
        return StripeListPage(
            data=[StripeSubscription.from_api_response(item) for item in response.get("data", [])],
            has_more=bool(response.get("has_more", False)),
        )

    async def list_charges(
        self,
        created_gte: int | None = None,
        limit: int = 100,
        starting_after: str | None = None,
    ) -> StripeListPage[StripeCharge]:
        """
        List one page of charges, newest first.

        Stripe has no server-side status filter for charges; callers check
        ``status`` on each item.

        Raises:
            StripeAPIError: If API request fails
        """
        params = self._list_params(limit, starting_after, created_gte)
        response = await self._make_request("charges", params)
        return StripeListPage(
            data=[StripeCharge.from_api_response(item) for item in response.get("data", [])],
            has_more=bool(response.get("has_more", False)),
        )

    async def list_payment_intents(
        self,
        created_gte: int | None = None,
        limit: int = 100,
        starting_after: str | None = None,
    ) -> StripeListPage[StripePaymentIntent]:
        """
        List one page of payment intents, newest first, with the latest charge expanded.

        Raises:
            StripeAPIError: If API request fails
        """
        params = self._list_params(limit, starting_after, created_gte)
        params.append(("expand[]", "data.latest_charge"))
        response = await self._make_request("payment_intents", params)
        return StripeListPage(
            data=[StripePaymentIntent.from_api_response(item) for item in response.get("data", [])],
            has_more=bool(response.get("has_more", False)),
        )

    async def retrieve_invoice(self, invoice_id: str) -> StripeInvoice:
        """
        Retrieve an invoice and its subscription reference.

        The subscription is not expanded: only its id is needed, and the
        expandable path differs between API versions.

        Raises:
            StripeAPIError: If API request fails
        """
        response = await self._make_request(f"invoices/{invoice_id}")
        return StripeInvoice.from_api_response(response)


# Factory function for easy instantiation
def create_stripe_adapter(
    api_key: str | None = None,
    max_concurrent_requests: int | None = None,
) -> StripeAdapter:
    """
    Create a Stripe adapter instance.

    Args:
        api_key: Stripe secret key (defaults to settings)
        max_concurrent_requests: In-flight request bound (defaults to settings)

    Returns:
        StripeAdapter instance
    """
    return StripeAdapter(api_key=api_key, max_concurrent_requests=max_concurrent_requests)
