"""Tests for the REST transport."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from cloudlib.catalog.api_models import CatalogEntry, NodesetDocument
from cloudlib.catalog.exceptions import MalformedResponseError, TransportError
from cloudlib.catalog.rest_transport import NamespaceId, RestTransport, UploadResult

from fakes import BASE_URL, DI_NS, FakeCatalog, http_client


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def rest(catalog):
    return RestTransport(BASE_URL, headers={"Authorization": "Bearer t"}, client=http_client(catalog))


def mock_http(response=None, side_effect=None):
    http = MagicMock()
    http.get = AsyncMock(return_value=response, side_effect=side_effect)
    return http


class TestUploadResult:
    """Tests for UploadResult status helpers."""

    def test_ok(self):
        result = UploadResult(status_code=200, message="12")
        assert result.ok and not result.conflict

    def test_conflict(self):
        result = UploadResult(status_code=409, message="exists")
        assert result.conflict and not result.ok


class TestListBasicInfo:
    """Tests for GET /infomodel/find2."""

    @pytest.mark.asyncio
    async def test_page(self, rest):
        entries = await rest.list_basic_info(0, 2)
        assert [e.id for e in entries] == [1, 2]
        assert entries[1].namespace_uri == DI_NS
        assert entries[1].publication_date == datetime(2021, 9, 7, tzinfo=timezone.utc)
        assert entries[1].required_nodesets[0].namespace_uri == "http://opcfoundation.org/UA/"

    @pytest.mark.asyncio
    async def test_offset(self, rest):
        entries = await rest.list_basic_info(2, 1)
        assert [e.id for e in entries] == [3]

    @pytest.mark.asyncio
    async def test_keywords_repeated(self, rest, catalog):
        entries = await rest.list_basic_info(0, 10, ["robot", "core"])
        assert {e.id for e in entries} == {1, 3}

    @pytest.mark.asyncio
    async def test_wildcard_when_no_keywords(self):
        response = MagicMock(status_code=200, json=MagicMock(return_value=[]))
        http = mock_http(response)
        await RestTransport(BASE_URL, client=http).list_basic_info(0, 10)
        params = http.get.call_args.kwargs["params"]
        assert ("keywords", "*") in params
        assert ("offset", 0) in params and ("limit", 10) in params

    @pytest.mark.asyncio
    async def test_non_array_is_malformed(self):
        response = MagicMock(status_code=200, json=MagicMock(return_value={"items": []}))
        with pytest.raises(MalformedResponseError):
            await RestTransport(BASE_URL, client=mock_http(response)).list_basic_info(0, 10)

    @pytest.mark.asyncio
    async def test_server_error_is_transport_error(self):
        response = MagicMock(status_code=500)
        with pytest.raises(TransportError) as exc:
            await RestTransport(BASE_URL, client=mock_http(response)).list_basic_info(0, 10)
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        http = mock_http(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(TransportError):
            await RestTransport(BASE_URL, client=http).list_basic_info(0, 10)


class TestScanBasicInfo:
    """Tests for reading the whole basic listing."""

    @pytest.mark.asyncio
    async def test_reads_until_short_page(self, rest, catalog):
        entries = await rest.scan_basic_info(4)
        assert [e.id for e in entries] == list(catalog.nodesets)
        assert catalog.rest_paths().count("/infomodel/find2") == 3

    @pytest.mark.asyncio
    async def test_stops_when_server_ignores_offset(self):
        page = [{"id": 1, "nameSpaceUri": "urn:a"}, {"id": 2, "nameSpaceUri": "urn:b"}]
        response = MagicMock(status_code=200, json=MagicMock(return_value=page))
        http = mock_http(response)
        entries = await RestTransport(BASE_URL, client=http).scan_basic_info(2)
        assert [e.id for e in entries] == [1, 2]
        assert http.get.await_count == 2


class TestDownload:
    """Tests for GET /infomodel/download/{id}."""

    @pytest.mark.asyncio
    async def test_full_document(self, rest):
        entry = await rest.download("2")
        assert entry.title == "DI"
        assert entry.nodeset.identifier == 2
        assert entry.nodeset.namespace_uri == DI_NS
        assert entry.nodeset.last_modified_date is not None
        assert "UANodeSet" in entry.nodeset.nodeset_xml
        assert entry.nodeset.required_models[0].available_model.identifier == 1

    @pytest.mark.asyncio
    async def test_metadata_only_has_no_body(self, rest):
        entry = await rest.download("2", metadata_only=True)
        assert entry.nodeset.nodeset_xml is None
        assert entry.nodeset.required_models

    @pytest.mark.asyncio
    async def test_unknown_identifier(self, rest):
        with pytest.raises(TransportError) as exc:
            await rest.download("999")
        assert exc.value.status_code == 404


class TestUpload:
    """Tests for PUT /infomodel/upload."""

    def entry(self):
        return CatalogEntry(
            title="Machinery",
            nodeset=NodesetDocument(
                namespace_uri="http://opcfoundation.org/UA/Machinery/",
                publication_date=datetime(2022, 2, 1, tzinfo=timezone.utc),
                version="1.02.0",
                nodeset_xml="<UANodeSet />",
            ),
        )

    @pytest.mark.asyncio
    async def test_new_identifier_in_message(self, rest, catalog):
        result = await rest.upload(self.entry())
        assert result.ok
        assert int(result.message) in catalog.nodesets

    @pytest.mark.asyncio
    async def test_duplicate_is_conflict_not_exception(self, rest):
        await rest.upload(self.entry())
        result = await rest.upload(self.entry())
        assert result.conflict
        assert "already exists" in result.message

    @pytest.mark.asyncio
    async def test_overwrite(self, rest):
        first = await rest.upload(self.entry())
        second = await rest.upload(self.entry(), overwrite=True)
        assert second.ok
        assert second.message == first.message


class TestNamespaceIds:
    """Tests for GET /infomodel/namespaces."""

    @pytest.mark.asyncio
    async def test_pairs(self, rest):
        ids = await rest.list_namespace_ids()
        assert NamespaceId(namespace_uri=DI_NS, identifier="2") in ids

    @pytest.mark.asyncio
    async def test_uri_with_comma_splits_on_last(self):
        response = MagicMock(status_code=200, json=MagicMock(return_value=["urn:a,b,17"]))
        ids = await RestTransport(BASE_URL, client=mock_http(response)).list_namespace_ids()
        assert ids == [NamespaceId(namespace_uri="urn:a,b", identifier="17")]

    @pytest.mark.asyncio
    async def test_entry_without_identifier_is_malformed(self):
        response = MagicMock(status_code=200, json=MagicMock(return_value=["urn:a"]))
        with pytest.raises(MalformedResponseError):
            await RestTransport(BASE_URL, client=mock_http(response)).list_namespace_ids()
