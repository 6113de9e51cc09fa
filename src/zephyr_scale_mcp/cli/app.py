"""CLI application using Typer."""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from zephyr_scale_mcp.client import ZephyrClient
from zephyr_scale_mcp.config import load_settings
from zephyr_scale_mcp.domain.entities.result_types import DomainResult
from zephyr_scale_mcp.exceptions import ConfigurationError
from zephyr_scale_mcp.services import ServiceFactory
from zephyr_scale_mcp.services.request_parser import parse_query_request, parse_update_request

console = Console()
app = typer.Typer(
    name="zephyr-mcp",
    help="Zephyr Scale MCP - test case management from the command line",
    no_args_is_help=True,
)

cases_app = typer.Typer(help="Test case commands")
app.add_typer(cases_app, name="cases")


def _run(action: Callable[[ServiceFactory], Awaitable[DomainResult[Any]]]) -> DomainResult[Any]:
    """Run ``action`` against a freshly configured client, then close it."""

    async def runner() -> DomainResult[Any]:
        settings = load_settings().require_token()
        async with ZephyrClient.from_settings(settings) as client:
            return await action(ServiceFactory(client, settings))

    try:
        return asyncio.run(runner())
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e


def _fail(result: DomainResult[Any]) -> None:
    console.print(f"[red]Error:[/red] {result.error_message}")
    for suggestion in result.suggestions:
        console.print(f"  [dim]- {suggestion}[/dim]")
    raise typer.Exit(1)


@app.command("serve")
def serve() -> None:
    """Run the MCP server over stdio."""
    from zephyr_scale_mcp.server.mcp_server import main as server_main

    server_main()


@cases_app.command("search")
def cases_search(
    project_key: str = typer.Argument(..., help="Project key"),
    status: Optional[List[str]] = typer.Option(None, "--status", "-s", help="Status (repeatable)"),
    label: Optional[List[str]] = typer.Option(None, "--label", "-l", help="Label (repeatable)"),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Folder path"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Text contained in the title"),
    mode: str = typer.Option("AND", "--mode", "-m", help="Combine filters with AND or OR"),
    sort: str = typer.Option("name", "--sort", help="Sort key"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum results"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Search a project's test cases."""
    filters: Dict[str, Any] = {}
    if status:
        filters["status"] = list(status)
    if label:
        filters["labels"] = list(label)
    if folder:
        filters["folderPath"] = folder
    if title:
        filters["titleContains"] = title

    parsed = parse_query_request(
        {
            "projectKey": project_key,
            "filters": filters,
            "searchMode": mode,
            "sortBy": sort,
            "sortOrder": "desc" if desc else "asc",
            "limit": limit,
        }
    )
    if parsed.is_failure:
        _fail(parsed)

    result = _run(lambda factory: factory.get_test_case_service().get_test_cases(parsed.data))
    if result.is_failure:
        _fail(result)

    data = result.data
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return

    if not data["testCases"]:
        console.print("No test cases found.")
        return

    table = Table(title=f"Test cases in {project_key} ({data['returned']} of {data['total']})")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Folder")
    table.add_column("Labels")

    for tc in data["testCases"]:
        table.add_row(
            tc["key"],
            tc.get("name") or "",
            tc.get("status") or "",
            tc.get("priority") or "",
            (tc.get("folder") or {}).get("path") or "",
            ", ".join(tc.get("labels") or []),
        )

    console.print(table)
    for suggestion in result.suggestions:
        console.print(f"[yellow]{suggestion}[/yellow]")


@cases_app.command("show")
def cases_show(
    test_case_key: str = typer.Argument(..., help="Test case key, e.g. PROJ-T1"),
) -> None:
    """Show a test case and its steps."""
    result = _run(lambda factory: factory.get_test_case_service().get_test_case(test_case_key))
    if result.is_failure:
        _fail(result)

    data = result.data
    console.print(f"\n[bold]{data['key']}: {data.get('name') or ''}[/bold]")
    console.print(f"Status: {data.get('status')}")
    console.print(f"Priority: {data.get('priority')}")
    folder = (data.get("folder") or {}).get("path")
    if folder:
        console.print(f"Folder: {folder}")
    if data.get("labels"):
        console.print(f"Labels: {', '.join(data['labels'])}")
    if data.get("objective"):
        console.print(f"Objective: {data['objective']}")

    steps = data.get("steps", [])
    if steps:
        table = Table(title=f"Steps ({len(steps)})")
        table.add_column("#", justify="right")
        table.add_column("Description")
        table.add_column("Test data")
        table.add_column("Expected result")
        for step in steps:
            table.add_row(
                str(step["index"]), step["description"], step["testData"], step["expectedResult"]
            )
        console.print(table)


@cases_app.command("delete-steps")
def cases_delete_steps(
    test_case_key: str = typer.Argument(..., help="Test case key, e.g. PROJ-T1"),
    indexes: List[int] = typer.Argument(..., help="1-based step indexes to delete"),
) -> None:
    """Delete steps from a test case and renumber the rest."""
    parsed = parse_update_request(
        {
            "testCaseId": test_case_key,
            "updates": {"stepOperations": {"mode": "DELETE", "deleteIndexes": list(indexes)}},
            "options": {"returnUpdated": False},
        }
    )
    if parsed.is_failure:
        _fail(parsed)

    result = _run(lambda factory: factory.get_test_case_service().update_test_case(parsed.data))
    if result.is_failure:
        _fail(result)

    console.print(
        f"[green]Steps deleted:[/green] {test_case_key} now has {result.data['stepCount']} steps"
    )


def create_app() -> typer.Typer:
    """Create and return the Typer app."""
    return app
