"""Tests for the vendor HTTP client and its error classification."""

import gzip

import httpx
import pytest

from vendorsync.models import VendorAccount
from vendorsync.services.streams import STREAMS, SyncType
from vendorsync.services.vendor_client import (
    MissingCredentialsError,
    VendorClient,
    VendorClientError,
    VendorErrorKind,
    build_vendor_client,
    classify_response,
)

BASE_URL = "https://vendor.test"


def make_client(handler, settings) -> VendorClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VendorClient("Atza|test", base_url=BASE_URL, http_client=http_client, settings=settings)


def error_response(status: int, code: str = "", message: str = "", headers=None) -> httpx.Response:
    body = {"errors": [{"code": code, "message": message}]} if code else {}
    return httpx.Response(status, json=body, headers=headers or {})


class TestClassifyResponse:
    """Tests for classify_response."""

    def test_http_429_is_throttled(self):
        """Test HTTP 429 is a throttling error carrying the vendor request id."""
        error = classify_response(
            error_response(429, "QuotaExceeded", "slow down", {"x-amzn-RequestId": "req-123"})
        )

        assert error.kind is VendorErrorKind.THROTTLED
        assert error.throttled
        assert error.vendor_request_id == "req-123"
        assert error.status_code == 429

    def test_quota_code_is_throttled(self):
        """Test a quota error code marks throttling regardless of status."""
        assert classify_response(error_response(400, "QuotaExceeded", "x")).throttled

    def test_throttle_text_is_throttled(self):
        """Test rate-limit wording in the message marks throttling."""
        error = classify_response(error_response(403, "Unauthorized", "Request is throttled"))
        assert error.kind is VendorErrorKind.THROTTLED

    def test_server_error_is_transient(self):
        """Test 5xx responses are transient."""
        error = classify_response(error_response(503, "InternalFailure", "try later"))
        assert error.kind is VendorErrorKind.TRANSIENT
        assert not error.retryable

    def test_client_error_is_terminal(self):
        """Test other 4xx responses are terminal."""
        error = classify_response(error_response(400, "InvalidInput", "createdAfter is invalid"))
        assert error.kind is VendorErrorKind.TERMINAL
        assert "InvalidInput" in str(error)

    def test_plain_string_errors_are_classified(self):
        """Test an errors list of plain strings still classifies instead of raising."""
        error = classify_response(httpx.Response(429, json={"errors": ["Too many requests"]}))
        assert error.kind is VendorErrorKind.THROTTLED
        assert "Too many requests" in str(error)

        error = classify_response(httpx.Response(400, json={"errors": ["bad createdAfter"]}))
        assert error.kind is VendorErrorKind.TERMINAL

    def test_non_json_body(self):
        """Test a non-JSON error body still classifies by status."""
        error = classify_response(httpx.Response(502, text="<html>Bad Gateway</html>"))
        assert error.kind is VendorErrorKind.TRANSIENT


class TestVendorClient:
    """Tests for VendorClient requests."""

    @pytest.mark.asyncio
    async def test_list_page_params_and_token(self, test_settings):
        """Test list requests carry the range, limit and continuation token."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "payload": {
                        "pagination": {"nextToken": "tok-2"},
                        "purchaseOrders": [{"purchaseOrderNumber": "4Z32PABC"}],
                    }
                },
            )

        client = make_client(handler, test_settings)
        page = await client.list_page(
            STREAMS[SyncType.PURCHASE_ORDERS].operation,
            "2024-07-19T00:00:00Z",
            "2024-07-26T00:00:00Z",
            page_token="tok-1",
        )

        assert page.next_token == "tok-2"
        assert page.items == [{"purchaseOrderNumber": "4Z32PABC"}]
        params = seen[0].url.params
        assert seen[0].url.path == "/vendor/orders/v1/purchaseOrders"
        assert params["createdAfter"] == "2024-07-19T00:00:00Z"
        assert params["createdBefore"] == "2024-07-26T00:00:00Z"
        assert params["limit"] == "100"
        assert params["nextToken"] == "tok-1"
        assert params["includeDetails"] == "true"
        assert seen[0].headers["x-amz-access-token"] == "Atza|test"

    @pytest.mark.asyncio
    async def test_direct_fulfillment_has_no_limit(self, test_settings):
        """Test operations without a page limit omit the parameter."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"payload": {"orders": []}})

        client = make_client(handler, test_settings)
        page = await client.list_page(
            STREAMS[SyncType.DIRECT_FULFILLMENT_ORDERS].operation, "a", "b"
        )

        assert page.items == []
        assert page.next_token is None
        assert "limit" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_throttled_response_raises_typed_error(self, test_settings):
        """Test a 429 surfaces as a throttled VendorClientError."""
        client = make_client(lambda request: error_response(429, "QuotaExceeded", "x"), test_settings)

        with pytest.raises(VendorClientError) as exc_info:
            await client.list_page(STREAMS[SyncType.SHIPMENTS].operation, "a", "b")

        assert exc_info.value.throttled

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self, test_settings):
        """Test connection failures are classified as transient."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, test_settings)

        with pytest.raises(VendorClientError) as exc_info:
            await client.get_report("R1")

        assert exc_info.value.kind is VendorErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_create_report(self, test_settings):
        """Test createReport posts the request body and returns the report id."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202, json={"reportId": "50001"})

        client = make_client(handler, test_settings)
        report_id = await client.create_report(
            "GET_VENDOR_SALES_REPORT",
            ["ATVPDKIKX0DER"],
            data_start_time="2024-08-02T00:00:00.000Z",
            data_end_time="2024-08-02T23:59:59.999Z",
            report_options={"reportPeriod": "DAY"},
        )

        assert report_id == "50001"
        assert seen[0].method == "POST"
        assert b'"reportOptions"' in seen[0].content
        assert b'"dataStartTime"' in seen[0].content

    @pytest.mark.asyncio
    async def test_download_gzip_document(self, test_settings):
        """Test GZIP documents are decompressed."""
        payload = b'[{"asin": "B07DFVDRAB"}]'

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=gzip.compress(payload))

        client = make_client(handler, test_settings)
        content = await client.download_document(
            {"url": "https://docs.test/doc-1", "compressionAlgorithm": "GZIP"}
        )

        assert content == payload

    @pytest.mark.asyncio
    async def test_download_without_url(self, test_settings):
        """Test a document without a url is a terminal error."""
        client = make_client(lambda request: httpx.Response(200), test_settings)

        with pytest.raises(VendorClientError) as exc_info:
            await client.download_document({})

        assert exc_info.value.kind is VendorErrorKind.TERMINAL


class TestBuildVendorClient:
    """Tests for build_vendor_client."""

    def test_builds_client(self, test_settings):
        """Test a configured account gets a client with its token."""
        account = VendorAccount(id="acct-1", access_token="Atza|abc")

        client = build_vendor_client(account, test_settings)

        assert client.headers["x-amz-access-token"] == "Atza|abc"

    def test_missing_token(self, test_settings):
        """Test an account without a token is refused."""
        with pytest.raises(MissingCredentialsError):
            build_vendor_client(VendorAccount(id="acct-1"), test_settings)

    def test_missing_application_credentials(self, test_settings):
        """Test missing client id/secret is refused."""
        test_settings.vendor_client_id = None

        with pytest.raises(MissingCredentialsError):
            build_vendor_client(VendorAccount(id="acct-1", access_token="t"), test_settings)
