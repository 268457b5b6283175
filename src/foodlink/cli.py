"""CLI for FoodLink.

Commands:
    init-db                      - Create database tables
    resolve <file>               - Resolve a JSON list of resolution inputs
    resolve-extraction <file>    - Resolve entities and attributes of an extraction output
    merge <source> <target>      - Fold a duplicate's aliases into the canonical entity
    add-alias <entity> <alias>   - Add an alias to an entity
    show-entity <entity>         - Show entity details
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any
from uuid import UUID

import typer
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from foodlink.config import Settings, settings
from foodlink.db import async_session_factory, init_db
from foodlink.exceptions import FoodLinkError
from foodlink.extraction.schemas import ExtractionOutput
from foodlink.models.enums import EntityType
from foodlink.resolution.aliases import AliasManager
from foodlink.resolution.config import AliasConfig, ResolutionConfig
from foodlink.resolution.contextual import AttributeContextResolver, entity_inputs_from_extraction
from foodlink.resolution.merge import EntityAliasResult, MergeCoordinator
from foodlink.resolution.resolver import EntityResolver
from foodlink.resolution.schemas import BatchResolutionResult, ResolutionInput
from foodlink.store.sql import SqlEntityStore

app = typer.Typer(
    name="foodlink",
    help="FoodLink: resolve restaurant, dish and attribute mentions to canonical entities",
    no_args_is_help=True,
)
console = Console()

_inputs_adapter = TypeAdapter(list[ResolutionInput])


@app.callback()
def main_callback(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Override LOG_LEVEL")
    ] = None,
) -> None:
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid UUID: {value}")
        raise typer.Exit(1) from None


def read_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]Error:[/red] File does not exist: {path}")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] Invalid JSON in {path}: {e}")
        raise typer.Exit(1) from None


def build_overrides(
    batch_size: int | None,
    threshold: float | None,
    no_fuzzy: bool,
    defer_creation: bool,
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    if threshold is not None:
        overrides["fuzzy_match_threshold"] = threshold
    if no_fuzzy:
        overrides["enable_fuzzy_matching"] = False
    if defer_creation:
        overrides["create_missing"] = False
    return overrides


def build_alias_manager(app_settings: Settings = settings) -> AliasManager:
    return AliasManager(AliasConfig.from_settings(app_settings))


def describe_alias_result(alias: str, result: EntityAliasResult, max_length: int) -> str:
    """One console line for an ``add-alias`` outcome."""
    if result.added:
        return f"[green]Added[/green] {alias!r} → {', '.join(result.aliases)}"
    if result.violations:
        return f"[yellow]Rejected[/yellow] {alias!r}: out of scope for this entity"
    if not alias.strip():
        return "[yellow]SKIP[/yellow] blank alias"
    if len(alias.strip()) > max_length:
        return f"[yellow]SKIP[/yellow] alias longer than {max_length} characters"
    return f"[yellow]SKIP[/yellow] {alias!r} already present"


def print_batch(result: BatchResolutionResult, title: str, config: ResolutionConfig) -> None:
    table = Table(title=title)
    table.add_column("Temp ID")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Tier")
    table.add_column("Confidence", justify="right")
    table.add_column("Entity")
    table.add_column("Matched")

    for r in result.resolution_results:
        band = config.confidence_thresholds.band(r.confidence)
        color = {"high": "green", "medium": "yellow", "low": "red"}[band]
        table.add_row(
            r.temp_id,
            r.original_input.normalized_name,
            r.original_input.entity_type.value,
            r.resolution_tier.value,
            f"[{color}]{r.confidence:.2f}[/{color}]",
            str(r.entity_id)[:8] + "..." if r.entity_id else "[red]-[/red]",
            r.matched_name or r.error or "",
        )
    console.print(table)

    m = result.performance_metrics
    console.print(
        f"[bold]Summary:[/bold] {m.total_processed} processed, "
        f"{m.exact_matches} exact, {m.alias_matches} alias, {m.fuzzy_matches} fuzzy, "
        f"{m.new_entities_created} new, {m.creation_failures} failed, {m.unmatched} unmatched "
        f"(avg confidence {m.average_confidence:.2f}, {m.processing_time_ms} ms)"
    )


BatchSizeOption = Annotated[int | None, typer.Option("--batch-size", help="Inputs per chunk")]
ThresholdOption = Annotated[
    float | None, typer.Option("--threshold", help="Fuzzy similarity threshold (0-1)")
]
NoFuzzyOption = Annotated[bool, typer.Option("--no-fuzzy", help="Disable the fuzzy tier")]
DeferOption = Annotated[
    bool,
    typer.Option("--defer-creation", help="Report unmatched inputs instead of creating entities"),
]


@app.command("init-db")
def init_database():
    """Create database tables if they don't exist."""
    async def _init():
        await init_db()
        console.print("[green]Database initialized.[/green]")

    run_async(_init())


@app.command()
def resolve(
    path: Annotated[Path, typer.Argument(help="JSON file with a list of resolution inputs")],
    batch_size: BatchSizeOption = None,
    threshold: ThresholdOption = None,
    no_fuzzy: NoFuzzyOption = False,
    defer_creation: DeferOption = False,
):
    """Resolve inputs to canonical entities, creating new ones as needed."""
    try:
        inputs = _inputs_adapter.validate_python(read_json(path))
    except SchemaValidationError as e:
        console.print(f"[red]Error:[/red] Invalid resolution inputs:\n{e}")
        raise typer.Exit(1) from None

    async def _resolve():
        config = ResolutionConfig.from_settings(settings)
        overrides = build_overrides(batch_size, threshold, no_fuzzy, defer_creation)
        async with async_session_factory() as session:
            resolver = EntityResolver(
                SqlEntityStore(session),
                alias_manager=build_alias_manager(),
                default_config=config,
            )
            result = await resolver.resolve_batch(inputs, overrides)
            await session.commit()
        print_batch(result, f"Resolved {path.name}", config.merged(overrides))

    try:
        run_async(_resolve())
    except FoodLinkError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


@app.command("resolve-extraction")
def resolve_extraction(
    path: Annotated[Path, typer.Argument(help="JSON file with an extraction output")],
    batch_size: BatchSizeOption = None,
    threshold: ThresholdOption = None,
    no_fuzzy: NoFuzzyOption = False,
    defer_creation: DeferOption = False,
):
    """Resolve restaurants, dishes and scoped attributes of an extraction output."""
    try:
        output = ExtractionOutput.model_validate(read_json(path))
    except SchemaValidationError as e:
        console.print(f"[red]Error:[/red] Invalid extraction output:\n{e}")
        raise typer.Exit(1) from None

    async def _resolve():
        config = ResolutionConfig.from_settings(settings)
        overrides = build_overrides(batch_size, threshold, no_fuzzy, defer_creation)
        async with async_session_factory() as session:
            resolver = EntityResolver(
                SqlEntityStore(session),
                alias_manager=build_alias_manager(),
                default_config=config,
            )
            entities = await resolver.resolve_batch(entity_inputs_from_extraction(output), overrides)
            attributes = await AttributeContextResolver(resolver).process_extraction_output(
                output, overrides
            )
            await session.commit()

        effective = config.merged(overrides)
        print_batch(entities, "Entities", effective)
        print_batch(attributes, "Attributes", effective)

    try:
        run_async(_resolve())
    except FoodLinkError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


@app.command()
def merge(
    source: Annotated[str, typer.Argument(help="Duplicate entity ID (UUID)")],
    target: Annotated[str, typer.Argument(help="Canonical entity ID (UUID)")],
    entity_type: Annotated[EntityType, typer.Option("--type", "-t", help="Entity type")],
):
    """Fold the source entity's aliases into the target entity.

    The source entity is left in place.
    """
    source_id = parse_uuid(source)
    target_id = parse_uuid(target)

    async def _merge():
        async with async_session_factory() as session:
            coordinator = MergeCoordinator(SqlEntityStore(session), build_alias_manager())
            result = await coordinator.merge_entities(
                source_id, target_id, entity_type
            )
            await session.commit()

        console.print(f"[green]Merged into {target_id}[/green]")
        console.print(f"  Aliases added: {result.aliases_added}")
        console.print(f"  Duplicates removed: {result.duplicates_removed}")
        if result.violations:
            console.print(f"  [yellow]Scope violations dropped:[/yellow] {', '.join(result.violations)}")

    try:
        run_async(_merge())
    except FoodLinkError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


@app.command("add-alias")
def add_alias(
    entity: Annotated[str, typer.Argument(help="Entity ID (UUID)")],
    alias: Annotated[str, typer.Argument(help="Alias to add")],
):
    """Add an alias to an entity."""
    entity_id = parse_uuid(entity)

    async def _add():
        async with async_session_factory() as session:
            alias_manager = build_alias_manager()
            coordinator = MergeCoordinator(SqlEntityStore(session), alias_manager)
            result = await coordinator.add_alias_to_entity(entity_id, alias)
            await session.commit()

        console.print(
            describe_alias_result(alias, result, alias_manager.config.max_alias_length)
        )

    try:
        run_async(_add())
    except FoodLinkError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


@app.command("show-entity")
def show_entity(
    entity: Annotated[str, typer.Argument(help="Entity ID (UUID)")],
):
    """Show details for a specific entity."""
    entity_id = parse_uuid(entity)

    async def _show():
        async with async_session_factory() as session:
            record = await SqlEntityStore(session).fetch_entity(entity_id)

        if record is None:
            console.print(f"[red]Error:[/red] Entity not found: {entity}")
            raise typer.Exit(1)

        panel_content = [
            f"[bold]ID:[/bold] {record.entity_id}",
            f"[bold]Name:[/bold] {record.name}",
            f"[bold]Type:[/bold] {record.entity_type.value}",
        ]
        if record.aliases:
            panel_content.append(f"[bold]Aliases:[/bold] {', '.join(record.aliases)}")

        console.print(Panel("\n".join(panel_content), title="Entity Details"))

    run_async(_show())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
