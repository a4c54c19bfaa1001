"""Tests for response normalization."""

from datetime import datetime, timezone

import pytest

from cloudlib.catalog.api_models import BasicListingEntry, NodesetDocument
from cloudlib.catalog.exceptions import MalformedResponseError
from cloudlib.catalog.normalizer import (
    approval_from_graph,
    converted_metadata,
    matches_key,
    nodeset_from_basic,
    nodeset_from_graph,
    page_from_basic,
    page_from_graph,
    reset_last_modified,
    validation_status_equals,
)
from cloudlib.catalog.query_builder import FieldSelection

DI_NS = "http://opcfoundation.org/UA/DI/"
UA_NS = "http://opcfoundation.org/UA/"


def graph_node(**overrides):
    node = {
        "modelUri": DI_NS,
        "publicationDate": "2021-09-07T00:00:00Z",
        "version": "1.04.0",
        "identifier": "2",
        "validationStatus": "INDEXED",
        "requiredModels": [
            {
                "modelUri": UA_NS,
                "publicationDate": "2022-11-01T00:00:00Z",
                "version": "1.05.02",
                "availableModel": {
                    "modelUri": UA_NS,
                    "publicationDate": "2022-11-01T00:00:00Z",
                    "version": "1.05.02",
                    "identifier": "1",
                    "requiredModels": [],
                },
            }
        ],
    }
    node.update(overrides)
    return node


def basic_entry(**overrides):
    data = {
        "id": 2,
        "title": "DI",
        "contributor": "OPC Foundation",
        "license": "MIT",
        "version": "1.04.0",
        "publicationDate": "2021-09-07T00:00:00",
        "nameSpaceUri": DI_NS,
        "requiredNodesets": [{"namespaceUri": UA_NS, "publicationDate": "2022-11-01T00:00:00", "version": "1.05.02"}],
        "creationTime": "2023-01-02T00:00:00",
    }
    data.update(overrides)
    return BasicListingEntry.model_validate(data)


class TestGraphConversion:
    """Tests for graph node -> NodesetDocument."""

    def test_model_uri_renamed_at_every_level(self):
        doc = nodeset_from_graph(graph_node())
        assert doc.namespace_uri == DI_NS
        edge = doc.required_models[0]
        assert edge.namespace_uri == UA_NS
        assert edge.available_model.namespace_uri == UA_NS
        assert edge.available_model.identifier == 1

    def test_identifier_string_parsed_to_int(self):
        assert nodeset_from_graph(graph_node()).identifier == 2

    def test_dates_are_utc(self):
        doc = nodeset_from_graph(graph_node())
        assert doc.publication_date == datetime(2021, 9, 7, tzinfo=timezone.utc)

    def test_omitted_subtrees_are_empty(self):
        node = graph_node()
        del node["requiredModels"]
        doc = nodeset_from_graph(node)
        assert doc.required_models == []
        assert doc.metadata is None
        assert doc.last_modified_date is None

    def test_validation_status_verbatim(self):
        assert nodeset_from_graph(graph_node(validationStatus="Indexed")).validation_status == "Indexed"

    def test_invalid_node_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            nodeset_from_graph(graph_node(identifier="not-a-number"))

    def test_page(self):
        payload = {
            "totalCount": 1,
            "pageInfo": {"endCursor": "0", "hasNextPage": False, "hasPreviousPage": False, "startCursor": "0"},
            "edges": [{"cursor": "0", "node": graph_node()}],
        }
        page = page_from_graph(payload)
        assert page.total_count == 1
        assert page.page_info.end_cursor == "0"
        assert page.nodes[0].namespace_uri == DI_NS

    def test_page_without_total_count(self):
        page = page_from_graph({"pageInfo": {}, "edges": []})
        assert page.total_count is None
        assert page.nodes == []

    def test_page_not_an_object(self):
        with pytest.raises(MalformedResponseError):
            page_from_graph([])

    def test_approval(self):
        result = approval_from_graph({
            "title": "DI",
            "approvalStatus": "APPROVED",
            "additionalProperties": [{"name": "reviewer", "value": "ops"}],
            "nodeSet": {"identifier": "2", "modelUri": DI_NS, "version": "1.04.0"},
        })
        assert result.approval_status == "APPROVED"
        assert result.nodeset.namespace_uri == DI_NS
        assert result.additional_properties[0].value == "ops"


class TestRestConversion:
    """Tests for REST entries -> shared model."""

    def test_converted_metadata_nulls_namespace_and_requirements(self):
        [entry] = converted_metadata([basic_entry()])
        assert entry.nodeset.namespace_uri is None
        assert entry.nodeset.required_models == []
        assert entry.nodeset.identifier == 2
        assert entry.title == "DI"
        assert entry.contributor.name == "OPC Foundation"

    def test_basic_to_nodeset_respects_selection(self):
        doc = nodeset_from_basic(basic_entry(), FieldSelection(omit_metadata=True, omit_required_models=True))
        assert doc.metadata is None
        assert doc.required_models == []
        assert doc.namespace_uri == DI_NS

    def test_basic_to_nodeset_drops_creation_time_by_default(self):
        doc = nodeset_from_basic(basic_entry(), FieldSelection())
        assert doc.metadata.creation_time is None
        assert doc.required_models[0].available_model is None

    def test_basic_page_has_no_cursors(self):
        page = page_from_basic([basic_entry()], FieldSelection(), has_next_page=True)
        assert page.edges[0].cursor is None
        assert page.page_info.start_cursor is None
        assert page.page_info.has_next_page is True
        assert page.total_count == 1

    def test_basic_page_cursors_are_listing_positions(self):
        entries = [basic_entry(), basic_entry(id=9)]
        page = page_from_basic(entries, FieldSelection(), has_next_page=True, offset=4, total_count=7)
        assert [e.cursor for e in page.edges] == ["4", "5"]
        assert page.page_info.start_cursor == "4"
        assert page.page_info.end_cursor == "5"
        assert page.page_info.has_previous_page is True
        assert page.total_count == 7

    def test_basic_page_total_count_suppressed(self):
        page = page_from_basic([basic_entry()], FieldSelection(omit_total_count=True))
        assert page.total_count is None

    def test_reset_last_modified(self):
        doc = NodesetDocument(
            identifier=2,
            last_modified_date=datetime(2023, 6, 1, tzinfo=timezone.utc),
            nodeset_xml="<UANodeSet />",
        )
        reset = reset_last_modified(doc)
        assert reset.last_modified_date is None
        assert reset.nodeset_xml is None
        assert doc.last_modified_date is not None

    def test_matches_key(self):
        entry = basic_entry()
        assert matches_key(entry, DI_NS)
        assert matches_key(entry, DI_NS, datetime(2021, 9, 7))
        assert not matches_key(entry, DI_NS, datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert not matches_key(entry, UA_NS)


class TestValidationStatus:
    """Tests for case-insensitive status comparison."""

    @pytest.mark.parametrize("actual,expected,equal", [
        ("INDEXED", "indexed", True),
        ("Parsed", "PARSED", True),
        ("ERROR", "INDEXED", False),
        (None, None, True),
        (None, "INDEXED", False),
    ])
    def test_equals(self, actual, expected, equal):
        assert validation_status_equals(actual, expected) is equal
