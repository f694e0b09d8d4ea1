# tests/unit/discovery/test_unit_discovery.py - v1
"""Tests for discovery/validation.py and discovery/barcode_lookup.py.

HTTP is faked by patching aiohttp.ClientSession inside barcode_lookup.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import aiohttp
import pytest

from shelfscan.core.errors import InvalidResponseError, TransientError
from shelfscan.discovery.barcode_lookup import BarcodeLookupSearch
from shelfscan.discovery.base_search import DiscoveryQuery
from shelfscan.discovery.validation import SUPPORTED_FORMATS, infer_format, is_valid_barcode, normalize_format

SESSION = "shelfscan.discovery.barcode_lookup.aiohttp.ClientSession"


class FakeResponse:
    def __init__(self, status: int, payload: Any = None, text: str = "") -> None:
        self.status = status
        self._payload = payload
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self):
        return self._payload

    async def text(self):
        return self._text


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: BaseException | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, *args, **kwargs):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        if self.error is not None:
            raise self.error
        return self.response


class TestValidation:
    @pytest.mark.parametrize(
        "barcode,fmt",
        [("012345678905", "UPC-A"), ("4006381333931", "EAN-13"), ("96385074", "EAN-8"),
         ("0123456", "UPC-E"), ("12345678901234", "ITF"), ("ABC-123", "CODE-128")],
    )
    def test_infer(self, barcode, fmt):
        assert infer_format(barcode) == fmt

    def test_infer_unknown(self):
        assert infer_format("abc#") is None

    def test_normalize_format(self):
        assert normalize_format(" ean_13 ") == "EAN-13"

    def test_declared_format_checked(self):
        assert is_valid_barcode("4006381333931", "ean 13")
        assert not is_valid_barcode("012345678905", "EAN-13")
        assert not is_valid_barcode("12AB", "UPC-A")

    def test_empty_and_unknown(self):
        assert not is_valid_barcode("")
        assert not is_valid_barcode("123", "MAXICODE")

    @pytest.mark.parametrize("fmt", SUPPORTED_FORMATS)
    def test_every_supported_format_is_checked(self, fmt):
        samples = {
            "UPC-A": "012345678905", "UPC-E": "0123456", "EAN-13": "4006381333931",
            "EAN-8": "96385074", "CODE-39": "ABC-123", "CODE-93": "ABC123",
            "CODE-128": "SKU 42", "ITF": "12345678", "QR": "https://example.test/p",
        }
        assert is_valid_barcode(samples[fmt], fmt)

    def test_unsupported_declared_format_rejected(self):
        assert not is_valid_barcode("012345678905", "PDF417")


class TestBarcodeLookupSearch:
    @pytest.mark.asyncio
    async def test_picks_best_valid_candidate(self):
        session = FakeSession(FakeResponse(200, {"products": [
            {"barcode_number": "012345", "format": "EAN-13", "title": "Organic Oat Milk", "brand": "Oatly"},
            {"barcode_number": "012345678905", "title": "Chocolate Bar", "brand": "Lindt"},
            {"barcode_number": "4006381333931", "title": "Organic Oat Milk", "brand": "Oatly",
             "category": "Beverages"},
        ]}))
        search = BarcodeLookupSearch(api_key="key", base_url="https://example.test/v3/")
        with patch(SESSION, new=session):
            found = await search.find_barcode(DiscoveryQuery(product_name="Organic Oat Milk", brand="Oatly"))
        assert found.barcode == "4006381333931"
        assert found.barcode_format == "EAN-13"
        assert found.confidence == 1.0
        assert found.source_url.endswith("/4006381333931")
        url, params = session.requests[0]
        assert url == "https://example.test/v3/products"
        assert params["search"] == "Organic Oat Milk Oatly"
        assert params["key"] == "key"

    @pytest.mark.asyncio
    async def test_no_terms_skips_http(self):
        session = FakeSession(FakeResponse(200, {}))
        with patch(SESSION, new=session):
            assert await BarcodeLookupSearch(api_key="k").find_barcode(DiscoveryQuery()) is None
        assert session.requests == []

    @pytest.mark.asyncio
    async def test_not_found(self):
        with patch(SESSION, new=FakeSession(FakeResponse(404))):
            assert await BarcodeLookupSearch(api_key="k").find_barcode(DiscoveryQuery(brand="Oatly")) is None

    @pytest.mark.asyncio
    async def test_only_invalid_candidates(self):
        payload = {"products": [{"barcode_number": "12#", "title": "x"}]}
        with patch(SESSION, new=FakeSession(FakeResponse(200, payload))):
            assert await BarcodeLookupSearch(api_key="k").find_barcode(DiscoveryQuery(brand="Oatly")) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 503])
    async def test_server_errors_are_transient(self, status):
        with patch(SESSION, new=FakeSession(FakeResponse(status))):
            with pytest.raises(TransientError):
                await BarcodeLookupSearch(api_key="k").find_barcode(DiscoveryQuery(brand="Oatly"))

    @pytest.mark.asyncio
    async def test_client_error_is_invalid(self):
        with patch(SESSION, new=FakeSession(FakeResponse(403, text="bad key"))):
            with pytest.raises(InvalidResponseError, match="403"):
                await BarcodeLookupSearch(api_key="k").find_barcode(DiscoveryQuery(brand="Oatly"))

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        with patch(SESSION, new=session):
            with pytest.raises(TransientError):
                await BarcodeLookupSearch(api_key="k").find_barcode(DiscoveryQuery(brand="Oatly"))

    @pytest.mark.asyncio
    async def test_non_object_payload(self):
        with patch(SESSION, new=FakeSession(FakeResponse(200, ["x"]))):
            with pytest.raises(InvalidResponseError):
                await BarcodeLookupSearch(api_key="k").find_barcode(DiscoveryQuery(brand="Oatly"))
