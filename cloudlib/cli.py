"""Cloud Library command line.

Commands:
    cloudlib nodesets [--namespace URI] [--keyword K]...   Query one page of nodesets
    cloudlib dependencies (--id ID | --namespace URI)      Resolve required models
    cloudlib download <id>                                 Download a full document
    cloudlib namespaces                                    List namespace ids
"""

import asyncio
import json
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

import typer
from pydantic import BaseModel

from cloudlib.catalog.client import CloudLibClient
from cloudlib.catalog.exceptions import CatalogError
from cloudlib.core.config import ClientOptions, Credentials, load_client_options
from cloudlib.logging_config import configure_logging

EXIT_CATALOG_ERROR = 1
EXIT_USAGE_ERROR = 2

app = typer.Typer(
    name="cloudlib",
    help="Query a Cloud Library nodeset catalog.",
    no_args_is_help=True,
)


class OutputFormat(str, Enum):
    json = "json"
    pretty = "pretty"


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_to_jsonable(v) for v in value]
    if hasattr(value, "__dataclass_fields__"):
        return {k: _to_jsonable(getattr(value, k)) for k in value.__dataclass_fields__}
    return value


def output(result: Any, format: OutputFormat) -> None:
    indent = 2 if format == OutputFormat.pretty else None
    typer.echo(json.dumps(_to_jsonable(result), indent=indent, ensure_ascii=False))


def output_error(code: str, message: str, exit_code: int) -> None:
    typer.echo(json.dumps({"error": {"code": code, "message": message}}), err=True)
    raise typer.Exit(code=exit_code)


def _options(endpoint: Optional[str], username: Optional[str], password: Optional[str]) -> ClientOptions:
    options = load_client_options()
    if endpoint or username or password:
        options = ClientOptions(
            endpoint=endpoint or options.endpoint,
            credentials=Credentials(
                username=username or options.credentials.username,
                password=password or options.credentials.password,
                token=options.credentials.token,
            ),
            timeout=options.timeout,
        )
    return options


def _run(options: ClientOptions, call) -> Any:
    """Run one client call, mapping CatalogError to a JSON error exit."""

    async def runner():
        async with CloudLibClient(options) as client:
            return await call(client)

    try:
        return asyncio.run(runner())
    except CatalogError as e:
        output_error(code=e.code, message=e.message, exit_code=EXIT_CATALOG_ERROR)


EndpointOption = typer.Option(None, "--endpoint", "-e", help="Catalog base URI", envvar="CLOUDLIB_ENDPOINT")
UsernameOption = typer.Option(None, "--username", "-u", help="Catalog user name")
PasswordOption = typer.Option(None, "--password", "-p", help="Catalog password")
FormatOption = typer.Option(OutputFormat.json, "--format", "-f", help="Output format")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    configure_logging(log_level=log_level)


@app.command("nodesets")
def nodesets_cmd(
    identifier: Optional[str] = typer.Option(None, "--id", help="Nodeset identifier"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Namespace URI"),
    publication_date: Optional[datetime] = typer.Option(None, "--published", help="Publication date"),
    keyword: Optional[List[str]] = typer.Option(None, "--keyword", "-k", help="Keyword (repeatable)"),
    first: Optional[int] = typer.Option(None, "--first", help="Page size"),
    after: Optional[str] = typer.Option(None, "--after", help="Cursor of the previous page"),
    no_metadata: bool = typer.Option(False, "--no-metadata", help="Leave out metadata"),
    no_total_count: bool = typer.Option(False, "--no-total-count", help="Leave out the total count"),
    no_required_models: bool = typer.Option(False, "--no-required-models", help="Leave out required models"),
    endpoint: Optional[str] = EndpointOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
    format: OutputFormat = FormatOption,
) -> None:
    """Query one page of nodesets.

    Examples:
        cloudlib nodesets --namespace http://opcfoundation.org/UA/DI/
        cloudlib nodesets -k robot --first 5 --no-required-models
    """
    result = _run(
        _options(endpoint, username, password),
        lambda client: client.get_nodesets(
            identifier=identifier,
            namespace_uri=namespace,
            publication_date=publication_date,
            keywords=keyword or None,
            after=after,
            first=first,
            omit_metadata=no_metadata,
            omit_total_count=no_total_count,
            omit_required_models=no_required_models,
        ),
    )
    output(result, format)


@app.command("dependencies")
def dependencies_cmd(
    identifier: Optional[str] = typer.Option(None, "--id", help="Nodeset identifier"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Namespace URI"),
    publication_date: Optional[datetime] = typer.Option(None, "--published", help="Publication date"),
    endpoint: Optional[str] = EndpointOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
    format: OutputFormat = FormatOption,
) -> None:
    """Resolve a nodeset's required models.

    The identifier takes precedence over --namespace/--published.
    """
    if identifier is None and namespace is None:
        output_error(
            code="USAGE_ERROR",
            message="Either --id or --namespace is required",
            exit_code=EXIT_USAGE_ERROR,
        )
    result = _run(
        _options(endpoint, username, password),
        lambda client: client.get_nodeset_dependencies(identifier, namespace, publication_date),
    )
    output(result, format)


@app.command("download")
def download_cmd(
    identifier: str = typer.Argument(..., help="Nodeset identifier"),
    endpoint: Optional[str] = EndpointOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
    xml_only: bool = typer.Option(False, "--xml-only", help="Print only the raw nodeset body"),
    format: OutputFormat = FormatOption,
) -> None:
    """Download a full document."""
    result = _run(
        _options(endpoint, username, password),
        lambda client: client.download_nodeset(identifier),
    )
    if xml_only:
        typer.echo(result.nodeset.nodeset_xml or "", nl=False)
        return
    output(result, format)


@app.command("namespaces")
def namespaces_cmd(
    endpoint: Optional[str] = EndpointOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
    format: OutputFormat = FormatOption,
) -> None:
    """List every namespace with the identifier of its nodeset."""
    result = _run(
        _options(endpoint, username, password),
        lambda client: client.get_namespace_ids(),
    )
    output(result, format)


if __name__ == "__main__":
    app()
