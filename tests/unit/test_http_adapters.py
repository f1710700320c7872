"""Unit tests for the HTTP adapters, driven through httpx mock transports"""
import json

import httpx
import pytest

from ehr_sync.adapters.document_parser import HTTPDocumentConverter
from ehr_sync.adapters.fhir_client import FHIRClientError, HTTPFHIRClient
from ehr_sync.adapters.sources.http import HTTPRecordSource
from ehr_sync.domain.errors import ConfigurationError, TransportError

BASE_URL = "https://ehr.example.test/api"


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fhir_batch_posts_to_base_url_with_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"resourceType": "Bundle", "type": "transaction-response", "entry": []})

    client = HTTPFHIRClient("https://fhir.example.test/R4/", access_token="secret", client=_client(handler))
    response = await client.execute_batch({"resourceType": "Bundle", "type": "transaction", "entry": []})

    assert response["type"] == "transaction-response"
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "https://fhir.example.test/R4"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert seen[0].headers["Content-Type"] == "application/fhir+json"


@pytest.mark.asyncio
async def test_fhir_http_error_maps_to_client_error():
    client = HTTPFHIRClient("https://fhir.example.test/R4",
                            client=_client(lambda request: httpx.Response(503)))

    with pytest.raises(FHIRClientError) as exc_info:
        await client.read("Patient", "1")

    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value, TransportError)


@pytest.mark.asyncio
async def test_fhir_network_error_maps_to_client_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = HTTPFHIRClient("https://fhir.example.test/R4", client=_client(handler))

    with pytest.raises(FHIRClientError):
        await client.create({"resourceType": "AuditEvent"})


@pytest.mark.asyncio
async def test_fhir_search_unwraps_bundle_entries():
    def handler(request):
        assert request.url.params["identifier"] == "urn:athena:Patient|1"
        return httpx.Response(200, json={"entry": [{"resource": {"resourceType": "Patient", "id": "p1"}}]})

    client = HTTPFHIRClient("https://fhir.example.test/R4", client=_client(handler))

    assert await client.search("Patient", {"identifier": "urn:athena:Patient|1"}) == [
        {"resourceType": "Patient", "id": "p1"}
    ]


@pytest.mark.asyncio
async def test_document_converter_sends_parameters():
    def handler(request):
        body = json.loads(request.content)
        params = {p["name"]: p["valueString"] for p in body["parameter"]}
        assert request.url.path == "/$convert-data"
        assert params["inputData"] == "<ClinicalDocument/>"
        assert params["rootTemplate"] == "DischargeSummary"
        return httpx.Response(200, json={"resourceType": "Bundle", "entry": []})

    converter = HTTPDocumentConverter("https://convert.example.test", client=_client(handler))

    assert (await converter.parse("<ClinicalDocument/>", "DischargeSummary"))["resourceType"] == "Bundle"


@pytest.mark.asyncio
async def test_document_converter_failure_is_transport_error():
    converter = HTTPDocumentConverter("https://convert.example.test",
                                      client=_client(lambda request: httpx.Response(500)))

    with pytest.raises(TransportError):
        await converter.parse("<ClinicalDocument/>")


def _source_handler(calls, records):
    """Token endpoint plus a records endpoint serving two items per page."""
    def handler(request):
        calls.append(request.url.path)
        if request.url.path.endswith("/oauth2/token"):
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        assert request.headers["Authorization"] == "Bearer tok"
        offset = int(request.url.params["offset"])
        if request.url.path.endswith("/records"):
            return httpx.Response(200, json={"data": records[offset:offset + 2], "total": len(records)})
        if request.url.path.endswith("/messages"):
            return httpx.Response(200, json={"data": [{"raw": "MSH|^~\\&|A"}, "MSH|^~\\&|B"], "total": 2})
        return httpx.Response(200, json={"data": [
            {"document_id": "D1", "template_type": "ProgressNote", "xml": "<x/>",
             "created_at": "2024-02-01T10:00:00"},
        ], "total": 1})
    return handler


@pytest.mark.asyncio
async def test_live_source_authenticates_once_and_pages():
    """Test records are drained page by page with a cached credential"""
    calls = []
    records = [{"patient": {"patientid": str(i)}} for i in range(5)]
    source = HTTPRecordSource("athena", base_url=BASE_URL, client_id="id", client_secret="secret",
                              client=_client(_source_handler(calls, records)))

    items = await source.fetch_all(source.fetch_native_records)

    assert items == records
    assert calls.count("/api/oauth2/token") == 1
    assert calls.count("/api/records") == 3


@pytest.mark.asyncio
async def test_live_source_decodes_documents_and_messages():
    calls = []
    source = HTTPRecordSource("elation", base_url=BASE_URL, client=_client(_source_handler(calls, [])))

    documents = (await source.fetch_documents()).data
    messages = (await source.fetch_messages()).data

    assert documents[0].document_id == "D1"
    assert documents[0].template_type == "ProgressNote"
    assert documents[0].created_at.year == 2024
    assert messages == ["MSH|^~\\&|A", "MSH|^~\\&|B"]


@pytest.mark.asyncio
async def test_live_source_auth_failure_is_transport_error():
    source = HTTPRecordSource("nextgen", base_url=BASE_URL,
                              client=_client(lambda request: httpx.Response(401)))

    with pytest.raises(TransportError, match="authentication failed"):
        await source.fetch_native_records()


def test_live_source_requires_base_url(monkeypatch):
    monkeypatch.delenv("ATHENA_BASE_URL", raising=False)

    with pytest.raises(ConfigurationError):
        HTTPRecordSource("athena")


@pytest.mark.asyncio
async def test_fhir_non_json_body_maps_to_client_error():
    client = HTTPFHIRClient("https://fhir.example.test/R4",
                            client=_client(lambda request: httpx.Response(200, text="<html>OK</html>")))

    with pytest.raises(FHIRClientError, match="unreadable body"):
        await client.execute_batch({"resourceType": "Bundle", "type": "transaction", "entry": []})


@pytest.mark.asyncio
async def test_document_converter_non_json_body_is_transport_error():
    converter = HTTPDocumentConverter("https://convert.example.test",
                                      client=_client(lambda request: httpx.Response(200, text="not json")))

    with pytest.raises(TransportError, match="unreadable body"):
        await converter.parse("<ClinicalDocument/>")


@pytest.mark.asyncio
@pytest.mark.parametrize("token_reply", [
    httpx.Response(200, json={"token": "x"}),
    httpx.Response(200, text="<html>login</html>"),
    httpx.Response(200, json=["tok"]),
])
async def test_live_source_unusable_token_reply_is_transport_error(token_reply):
    """Test a token reply without a usable access token fails as a transport error"""
    source = HTTPRecordSource("athena", base_url=BASE_URL, client=_client(lambda request: token_reply))

    with pytest.raises(TransportError, match="authentication failed"):
        await source.fetch_native_records()


@pytest.mark.asyncio
@pytest.mark.parametrize("page_reply", [
    httpx.Response(200, text="<html>maintenance</html>"),
    httpx.Response(200, json=["not", "a", "page"]),
])
async def test_live_source_unreadable_page_is_transport_error(page_reply):
    def handler(request):
        if request.url.path.endswith("/oauth2/token"):
            return httpx.Response(200, json={"access_token": "tok"})
        return page_reply

    source = HTTPRecordSource("elation", base_url=BASE_URL, client=_client(handler))

    with pytest.raises(TransportError):
        await source.fetch_documents()


@pytest.mark.asyncio
async def test_live_source_message_without_raw_text_is_kept_as_item():
    def handler(request):
        if request.url.path.endswith("/oauth2/token"):
            return httpx.Response(200, json={"access_token": "tok"})
        return httpx.Response(200, json={"data": [{"id": "M1"}, "MSH|^~\\&|B"], "total": 2})

    source = HTTPRecordSource("nextgen", base_url=BASE_URL, client=_client(handler))

    assert (await source.fetch_messages()).data == ["", "MSH|^~\\&|B"]
