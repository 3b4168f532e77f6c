"""Vendor API client with typed error classification at the HTTP boundary."""

import gzip
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from uuid import uuid4

import httpx

from vendorsync.config import Settings, get_settings
from vendorsync.models import VendorAccount

logger = logging.getLogger(__name__)

THROTTLE_CODES = {"QuotaExceeded", "TooManyRequests", "429"}
THROTTLE_MARKERS = ("throttl", "rate limit", "quota exceeded", "too many requests", "429")


class VendorErrorKind(StrEnum):
    """Classification decided once, where the response is received."""

    THROTTLED = "throttled"
    TRANSIENT = "transient"
    TERMINAL = "terminal"


class VendorClientError(Exception):
    """Error raised by the vendor client, carrying its classification."""

    def __init__(
        self,
        kind: VendorErrorKind,
        message: str,
        status_code: int | None = None,
        vendor_request_id: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.vendor_request_id = vendor_request_id

    @property
    def throttled(self) -> bool:
        return self.kind is VendorErrorKind.THROTTLED

    @property
    def retryable(self) -> bool:
        """Only throttling is retried in-line; transient errors surface to the caller."""
        return self.throttled


class MissingCredentialsError(VendorClientError):
    """Account (or application) credentials are not configured."""

    def __init__(self, message: str):
        super().__init__(VendorErrorKind.TERMINAL, message)


@dataclass
class VendorPage:
    """One page of a list operation."""

    items: list[dict[str, Any]] = field(default_factory=list)
    next_token: str | None = None


@dataclass(frozen=True)
class ListOperation:
    """How a paginated list operation is addressed and unpacked."""

    name: str
    path: str
    items_key: str
    range_params: tuple[str, str]
    page_limit: bool = True
    extra_params: tuple[tuple[str, str], ...] = ()


def _is_throttle_text(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in THROTTLE_MARKERS)


def classify_response(response: httpx.Response) -> VendorClientError:
    """Map a non-2xx vendor response to a typed error."""
    status = response.status_code
    vendor_request_id = response.headers.get("x-amzn-RequestId")
    code = ""
    message = response.reason_phrase or f"HTTP {status}"
    try:
        body = response.json()
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors and isinstance(errors, list):
            first = errors[0]
            if isinstance(first, dict):
                code = str(first.get("code") or "")
                message = str(first.get("message") or message)
            elif first:
                message = str(first)
    except ValueError:
        pass

    if status == 429 or code in THROTTLE_CODES or _is_throttle_text(message):
        kind = VendorErrorKind.THROTTLED
    elif status >= 500:
        kind = VendorErrorKind.TRANSIENT
    else:
        kind = VendorErrorKind.TERMINAL

    detail = f"{code}: {message}" if code else message
    return VendorClientError(kind, f"HTTP {status} {detail}", status, vendor_request_id)


def classify_exception(exc: httpx.RequestError) -> VendorClientError:
    """Transport failures (timeouts, resets) are transient."""
    return VendorClientError(VendorErrorKind.TRANSIENT, f"Request error: {exc}")


class VendorClient:
    """
    Client for the vendor API of a single account.

    Features:
    - One request per call: throttling is not retried here, it is reported
      as ``VendorErrorKind.THROTTLED`` for the sync engine to handle
    - Report lifecycle calls (create, status, document, download)
    - Request ids on every call for log correlation
    """

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.vendor_base_url).rstrip("/")
        self.timeout = timeout or settings.vendor_timeout_seconds
        self.page_limit = settings.page_limit
        self._http_client = http_client

        self.headers: dict[str, str] = {
            "Accept": "application/json",
            "x-amz-access-token": access_token,
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make one HTTP request and return its decoded JSON body."""
        request_id = uuid4().hex
        url = f"{self.base_url}{path}"
        logger.debug(f"[{request_id}] {method} {path} params={params}")

        try:
            if self._http_client is not None:
                response = await self._http_client.request(
                    method, url, headers=self.headers, params=params, json=json
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, url, headers=self.headers, params=params, json=json
                    )
        except httpx.RequestError as e:
            error = classify_exception(e)
            logger.warning(f"[{request_id}] {method} {path} failed: {error}")
            raise error from e

        if response.is_error:
            error = classify_response(response)
            logger.warning(
                f"[{request_id}] {method} {path} -> {error.kind}: {error} "
                f"(vendorRequestId={error.vendor_request_id})"
            )
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise VendorClientError(
                VendorErrorKind.TERMINAL, f"Malformed JSON from {path}", response.status_code
            ) from e

    async def list_page(
        self,
        operation: ListOperation,
        range_start: str,
        range_end: str,
        page_token: str | None = None,
    ) -> VendorPage:
        """
        Fetch one page of a list operation.

        Args:
            operation: Operation descriptor (path, items key, range parameter names)
            range_start: ISO 8601 start of the range (inclusive)
            range_end: ISO 8601 end of the range (exclusive)
            page_token: Continuation token from the previous page

        Returns:
            VendorPage with the items and the next token (None on the last page)
        """
        after_param, before_param = operation.range_params
        params: dict[str, Any] = {after_param: range_start, before_param: range_end}
        params.update(dict(operation.extra_params))
        if operation.page_limit:
            params["limit"] = min(self.page_limit, 100)
        if page_token:
            params["nextToken"] = page_token

        body = await self._request("GET", operation.path, params=params)
        payload = body.get("payload", body) if isinstance(body, dict) else {}
        if not isinstance(payload, dict):
            raise VendorClientError(
                VendorErrorKind.TERMINAL, f"Unexpected {operation.name} payload shape"
            )

        items = payload.get(operation.items_key) or []
        pagination = payload.get("pagination") or {}
        next_token = pagination.get("nextToken") or payload.get("nextToken") or None
        return VendorPage(items=list(items), next_token=next_token)

    async def create_report(
        self,
        report_type: str,
        marketplace_ids: list[str],
        data_start_time: str | None = None,
        data_end_time: str | None = None,
        report_options: dict[str, str] | None = None,
    ) -> str:
        """Submit a report request and return the vendor's report id."""
        body: dict[str, Any] = {"reportType": report_type, "marketplaceIds": marketplace_ids}
        if data_start_time:
            body["dataStartTime"] = data_start_time
        if data_end_time:
            body["dataEndTime"] = data_end_time
        if report_options:
            body["reportOptions"] = report_options

        result = await self._request("POST", "/reports/2021-06-30/reports", json=body)
        report_id = result.get("reportId") if isinstance(result, dict) else None
        if not report_id:
            raise VendorClientError(VendorErrorKind.TERMINAL, "createReport returned no reportId")
        return str(report_id)

    async def get_report(self, report_id: str) -> dict[str, Any]:
        """Get a report's processing status (and document id once DONE)."""
        return await self._request("GET", f"/reports/2021-06-30/reports/{report_id}")

    async def get_report_document(self, document_id: str) -> dict[str, Any]:
        """Get a report document's download URL and compression algorithm."""
        return await self._request("GET", f"/reports/2021-06-30/documents/{document_id}")

    async def download_document(self, document: dict[str, Any]) -> bytes:
        """Download a report document, decompressing it when declared as GZIP."""
        url = document.get("url")
        if not url:
            raise VendorClientError(VendorErrorKind.TERMINAL, "Report document has no url")

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
        except httpx.RequestError as e:
            raise classify_exception(e) from e

        if response.is_error:
            raise classify_response(response)

        content = response.content
        if (document.get("compressionAlgorithm") or "").upper() == "GZIP":
            try:
                content = gzip.decompress(content)
            except OSError as e:
                raise VendorClientError(
                    VendorErrorKind.TERMINAL, f"Corrupt GZIP report document: {e}"
                ) from e
        return content


def build_vendor_client(account: VendorAccount, settings: Settings | None = None) -> VendorClient:
    """
    Create a client for an account.

    Raises:
        MissingCredentialsError: account token or application credentials missing
    """
    settings = settings or get_settings()
    if not account.access_token:
        raise MissingCredentialsError(f"Account {account.id} has no access token")
    if not settings.vendor_client_id or not settings.vendor_client_secret:
        raise MissingCredentialsError(
            "VENDOR_CLIENT_ID / VENDOR_CLIENT_SECRET are not configured"
        )
    return VendorClient(access_token=account.access_token, settings=settings)
