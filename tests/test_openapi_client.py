import httpx
import pytest

from ingest.openapi_client import OpenApiClient, SpecFetchError
from services.contract_errors import NotFound, UpstreamUnavailable


def _client(settings, handler):
    return OpenApiClient(settings, transport=httpx.MockTransport(handler))


def test_fetch_descriptor_requests_docs_path(settings):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text='{"openapi": "3.0.1"}')

    body = _client(settings, handler).fetch_descriptor("user-service")

    assert body == '{"openapi": "3.0.1"}'
    assert seen == ["http://user-service.test/api-docs"]


def test_unknown_service_is_not_found(settings):
    client = _client(settings, lambda request: httpx.Response(200, text="{}"))

    with pytest.raises(NotFound):
        client.fetch_descriptor("billing-service")
    assert client.is_available("billing-service") is False


def test_connection_errors_mean_unavailable(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(settings, handler)

    with pytest.raises(UpstreamUnavailable):
        client.fetch_descriptor("user-service")
    assert client.is_available("user-service") is False


def test_http_errors_and_empty_bodies_are_fetch_errors(settings):
    with pytest.raises(SpecFetchError):
        _client(settings, lambda request: httpx.Response(500, text="boom")).fetch_descriptor("user-service")
    with pytest.raises(SpecFetchError):
        _client(settings, lambda request: httpx.Response(200, text="  ")).fetch_descriptor("user-service")


def test_is_available_on_success(settings):
    client = _client(settings, lambda request: httpx.Response(200, text="{}"))

    assert client.is_available("order-service") is True
