"""Tests for the cloudlib command line."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from cloudlib.catalog.api_models import CatalogEntry, NodesetDocument, PageEnvelope
from cloudlib.catalog.exceptions import ProtocolUnsupportedError
from cloudlib.catalog.rest_transport import NamespaceId
from cloudlib.cli import app

runner = CliRunner()


@pytest.fixture
def mock_client():
    """Patch CloudLibClient in the CLI with an async context manager mock."""
    instance = MagicMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=None)
    with patch("cloudlib.cli.CloudLibClient", return_value=instance), \
            patch("cloudlib.cli.configure_logging"):
        yield instance


class TestCli:
    """Tests for the cloudlib commands."""

    def test_nodesets(self, mock_client):
        mock_client.get_nodesets = AsyncMock(return_value=PageEnvelope[NodesetDocument](total_count=0))
        result = runner.invoke(app, ["nodesets", "--namespace", "urn:a", "-k", "robot", "--no-total-count"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["totalCount"] == 0
        kwargs = mock_client.get_nodesets.call_args.kwargs
        assert kwargs["namespace_uri"] == "urn:a"
        assert kwargs["keywords"] == ["robot"]
        assert kwargs["omit_total_count"] is True

    def test_dependencies_requires_key(self, mock_client):
        result = runner.invoke(app, ["dependencies"])
        assert result.exit_code == 2

    def test_dependencies_by_id(self, mock_client):
        mock_client.get_nodeset_dependencies = AsyncMock(return_value=[NodesetDocument(identifier=3)])
        result = runner.invoke(app, ["dependencies", "--id", "3"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]["identifier"] == 3
        mock_client.get_nodeset_dependencies.assert_awaited_once_with("3", None, None)

    def test_download_xml_only(self, mock_client):
        entry = CatalogEntry(nodeset=NodesetDocument(identifier=2, nodeset_xml="<UANodeSet />"))
        mock_client.download_nodeset = AsyncMock(return_value=entry)
        result = runner.invoke(app, ["download", "2", "--xml-only"])
        assert result.exit_code == 0
        assert result.stdout == "<UANodeSet />"

    def test_namespaces(self, mock_client):
        mock_client.get_namespace_ids = AsyncMock(return_value=[NamespaceId("urn:a", "7")])
        result = runner.invoke(app, ["namespaces"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"namespace_uri": "urn:a", "identifier": "7"}]

    def test_catalog_error_exits_non_zero(self, mock_client):
        mock_client.get_nodesets = AsyncMock(side_effect=ProtocolUnsupportedError())
        result = runner.invoke(app, ["nodesets"])
        assert result.exit_code == 1
        assert "PROTOCOL_UNSUPPORTED" in result.output
