from __future__ import annotations

import json
import logging
import math
from contextlib import contextmanager
from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from archkit import __version__
from archkit.config import DEFAULT_ARCH_DIR_NAME
from archkit.exceptions import NotFoundError, StorageError, ToolkitError, ValidationError, exit_code_for
from archkit.model import ArtifactType
from archkit.serialization import format_timestamp, serialize
from archkit.services.batch import BatchPreview, BatchUpdate
from archkit.services.export import export_json, export_markdown
from archkit.services.health import BasicHealthReport, BasicHealthStrategy
from archkit.services.metrics import Metrics
from archkit.storage.file_store import ArtifactFilters, FileStore
from archkit.workspace import Workspace

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Manage RFCs, ADRs and decomposition plans.")
rfc_app = typer.Typer(add_completion=False, help="Requests for comments.")
adr_app = typer.Typer(add_completion=False, help="Architecture decision records.")
decomp_app = typer.Typer(add_completion=False, help="Decomposition plans.")
app.add_typer(rfc_app, name="rfc")
app.add_typer(adr_app, name="adr")
app.add_typer(decomp_app, name="decomp")

_FAILED_THRESHOLD_EXIT = 1
_PARTIAL_FAILURE_EXIT = 1


@dataclass(frozen=True)
class _Settings:
    arch_dir: Path
    config_path: Optional[Path]


def _json_default(value: object) -> object:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _emit_json(payload: object) -> None:
    if is_dataclass(payload):
        payload = asdict(payload)
    typer.echo(json.dumps(payload, indent=2, default=_json_default))


@contextmanager
def _reporting_errors() -> Iterator[None]:
    try:
        yield
    except ToolkitError as error:
        logger.debug("Command failed", exc_info=True)
        typer.secho(f"Error: {error.message}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=exit_code_for(error)) from error


def _settings(ctx: typer.Context) -> _Settings:
    settings = ctx.find_root().obj
    if isinstance(settings, _Settings):
        return settings
    return _Settings(arch_dir=Path(DEFAULT_ARCH_DIR_NAME), config_path=None)


def _workspace(ctx: typer.Context) -> Workspace:
    settings = _settings(ctx)
    return Workspace.open(settings.arch_dir, config_path=settings.config_path)


def _parse_date(value: Optional[str], option: str) -> Optional[datetime]:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid date for {option}: {value}", field=option) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _artifact_type(value: Optional[str]) -> Optional[ArtifactType]:
    if value is None:
        return None
    try:
        return ArtifactType(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in ArtifactType)
        raise ValidationError(
            f"Invalid artifact type '{value}'. Expected one of: {allowed}", field="type"
        ) from exc


@app.callback()
def main(
    ctx: typer.Context,
    arch_dir: Path = typer.Option(Path(DEFAULT_ARCH_DIR_NAME), "--arch-dir", help="Artifact directory."),
    config: Optional[Path] = typer.Option(None, "--config", help="Alternate config.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = _Settings(arch_dir=arch_dir, config_path=config)


@app.command("version")
def version() -> None:
    typer.echo(__version__)


@app.command("init")
def init(ctx: typer.Context) -> None:
    """Create the artifact directory layout."""
    with _reporting_errors():
        settings = _settings(ctx)
        FileStore(settings.arch_dir).initialize()
    typer.echo(f"Initialized {settings.arch_dir}")


def _print_listing(artifacts: list) -> None:
    if not artifacts:
        typer.echo("No artifacts found.")
        return
    for artifact in artifacts:
        tags = f" [{', '.join(artifact.tags)}]" if artifact.tags else ""
        typer.echo(f"{artifact.id}  {artifact.status:<12} {artifact.title}{tags}")


def _register_common_commands(sub_app: typer.Typer, artifact_type: ArtifactType) -> None:
    @sub_app.command("list")
    def list_artifacts(
        ctx: typer.Context,
        status: Optional[str] = typer.Option(None, "--status"),
        owner: Optional[str] = typer.Option(None, "--owner"),
        tag: List[str] = typer.Option([], "--tag", help="Require this tag; repeatable."),
        date_from: Optional[str] = typer.Option(None, "--from", help="Created on or after (ISO-8601)."),
        date_to: Optional[str] = typer.Option(None, "--to", help="Created on or before (ISO-8601)."),
        as_json: bool = typer.Option(False, "--json"),
    ) -> None:
        with _reporting_errors():
            workspace = _workspace(ctx)
            filters = ArtifactFilters(
                status=status,
                owner=owner,
                tags=tuple(tag),
                date_from=_parse_date(date_from, "--from"),
                date_to=_parse_date(date_to, "--to"),
            )
            artifacts = workspace.service_for(artifact_type).list(filters)
            skipped = len(workspace.store.last_skipped)
        if as_json:
            _emit_json([{"id": item.id, "title": item.title, "status": item.status} for item in artifacts])
        else:
            _print_listing(artifacts)
        if skipped:
            typer.secho(f"Skipped {skipped} unreadable file(s)", err=True, fg=typer.colors.YELLOW)

    @sub_app.command("show")
    def show(ctx: typer.Context, artifact_id: str = typer.Argument(...)) -> None:
        with _reporting_errors():
            artifact = _workspace(ctx).service_for(artifact_type).require(artifact_id)
        typer.echo(serialize(artifact), nl=False)

    @sub_app.command("edit")
    def edit(
        ctx: typer.Context,
        artifact_id: str = typer.Argument(...),
        title: Optional[str] = typer.Option(None, "--title"),
        owner: Optional[str] = typer.Option(None, "--owner"),
        tag: Optional[List[str]] = typer.Option(None, "--tag", help="Replace the tags; repeatable."),
    ) -> None:
        """Change the title, owner or tags of one artifact."""
        with _reporting_errors():
            if title is None and owner is None and tag is None:
                raise ValidationError("Nothing to change; pass --title, --owner or --tag", field="update")
            artifact = _workspace(ctx).service_for(artifact_type).update(
                artifact_id, title=title, owner=owner, tags=list(tag) if tag is not None else None
            )
        typer.echo(f"Updated {artifact.id}")

    @sub_app.command("delete")
    def delete(ctx: typer.Context, artifact_id: str = typer.Argument(...)) -> None:
        with _reporting_errors():
            service = _workspace(ctx).service_for(artifact_type)
            service.require(artifact_id)
            service.delete(artifact_id)
        typer.echo(f"Deleted {artifact_id}")


_register_common_commands(rfc_app, ArtifactType.RFC)
_register_common_commands(adr_app, ArtifactType.ADR)
_register_common_commands(decomp_app, ArtifactType.DECOMPOSITION)


@rfc_app.command("create")
def rfc_create(
    ctx: typer.Context,
    title: str = typer.Argument(...),
    owner: Optional[str] = typer.Option(None, "--owner"),
    tag: Optional[List[str]] = typer.Option(None, "--tag"),
    problem_statement: Optional[str] = typer.Option(None, "--problem"),
    recommended_approach: Optional[str] = typer.Option(None, "--approach"),
) -> None:
    with _reporting_errors():
        rfc = _workspace(ctx).rfcs.create(
            title,
            owner=owner,
            tags=tag or None,
            problem_statement=problem_statement,
            recommended_approach=recommended_approach,
        )
    typer.echo(f"Created {rfc.id}")


@rfc_app.command("status")
def rfc_status(
    ctx: typer.Context,
    artifact_id: str = typer.Argument(...),
    status: str = typer.Argument(...),
) -> None:
    with _reporting_errors():
        rfc = _workspace(ctx).rfcs.change_status(artifact_id, status)
    typer.echo(f"{rfc.id} is now {rfc.status}")


@rfc_app.command("signoff")
def rfc_signoff(
    ctx: typer.Context,
    artifact_id: str = typer.Argument(...),
    name: str = typer.Argument(...),
    role: str = typer.Option("", "--role"),
    approved: bool = typer.Option(False, "--approved/--pending"),
) -> None:
    with _reporting_errors():
        _workspace(ctx).rfcs.add_signoff(artifact_id, name, role=role, approved=approved)
    typer.echo(f"Recorded signoff from {name} on {artifact_id}")


@adr_app.command("create")
def adr_create(
    ctx: typer.Context,
    title: str = typer.Argument(...),
    owner: Optional[str] = typer.Option(None, "--owner"),
    tag: Optional[List[str]] = typer.Option(None, "--tag"),
    context: Optional[str] = typer.Option(None, "--context"),
    decision: Optional[str] = typer.Option(None, "--decision"),
) -> None:
    with _reporting_errors():
        adr = _workspace(ctx).adrs.create(
            title, owner=owner, tags=tag or None, context=context, decision=decision
        )
    typer.echo(f"Created {adr.id}")


@adr_app.command("status")
def adr_status(
    ctx: typer.Context,
    artifact_id: str = typer.Argument(...),
    status: str = typer.Argument(...),
    superseded_by: Optional[str] = typer.Option(None, "--superseded-by"),
) -> None:
    with _reporting_errors():
        adr = _workspace(ctx).adrs.change_status(artifact_id, status, superseded_by=superseded_by)
    typer.echo(f"{adr.id} is now {adr.status}")


@decomp_app.command("create")
def decomp_create(
    ctx: typer.Context,
    title: str = typer.Argument(...),
    owner: Optional[str] = typer.Option(None, "--owner"),
    tag: Optional[List[str]] = typer.Option(None, "--tag"),
    rationale: Optional[str] = typer.Option(None, "--rationale"),
) -> None:
    with _reporting_errors():
        plan = _workspace(ctx).decompositions.create(
            title, owner=owner, tags=tag or None, rationale=rationale
        )
    typer.echo(f"Created {plan.id}")


@decomp_app.command("status")
def decomp_status(
    ctx: typer.Context,
    artifact_id: str = typer.Argument(...),
    status: str = typer.Argument(...),
) -> None:
    with _reporting_errors():
        plan = _workspace(ctx).decompositions.change_status(artifact_id, status)
    typer.echo(f"{plan.id} is now {plan.status}")


@decomp_app.command("add-phase")
def decomp_add_phase(
    ctx: typer.Context,
    plan_id: str = typer.Argument(...),
    name: str = typer.Argument(...),
    description: str = typer.Option("", "--description"),
    depends_on: List[str] = typer.Option([], "--depends-on"),
    duration: str = typer.Option("", "--duration"),
) -> None:
    with _reporting_errors():
        plan = _workspace(ctx).decompositions.add_phase(
            plan_id,
            name,
            description=description,
            dependencies=depends_on,
            estimated_duration=duration,
        )
    typer.echo(f"Added {plan.phases[-1].id} to {plan.id}")


@decomp_app.command("phase-status")
def decomp_phase_status(
    ctx: typer.Context,
    plan_id: str = typer.Argument(...),
    phase_id: str = typer.Argument(...),
    status: str = typer.Argument(...),
) -> None:
    with _reporting_errors():
        decompositions = _workspace(ctx).decompositions
        if status == "completed":
            decompositions.complete_phase(plan_id, phase_id)
        else:
            decompositions.update_phase(plan_id, phase_id, status=status)
    typer.echo(f"{phase_id} is now {status}")


@decomp_app.command("add-task")
def decomp_add_task(
    ctx: typer.Context,
    plan_id: str = typer.Argument(...),
    phase_id: str = typer.Argument(...),
    description: str = typer.Argument(...),
    assignee: Optional[str] = typer.Option(None, "--assignee"),
) -> None:
    with _reporting_errors():
        plan = _workspace(ctx).decompositions.add_migration_task(
            plan_id, phase_id, description, assignee=assignee
        )
    typer.echo(f"Added {plan.migration_tasks[-1].id} to {plan.id}")


@decomp_app.command("task-status")
def decomp_task_status(
    ctx: typer.Context,
    plan_id: str = typer.Argument(...),
    task_id: str = typer.Argument(...),
    status: str = typer.Argument(...),
) -> None:
    with _reporting_errors():
        _workspace(ctx).decompositions.update_task_status(plan_id, task_id, status)
    typer.echo(f"{task_id} is now {status}")


@app.command("link")
def link(
    ctx: typer.Context,
    source_id: str = typer.Argument(...),
    target_ids: List[str] = typer.Argument(...),
    link_type: str = typer.Option("relates-to", "--type", "-t"),
) -> None:
    """Record references from SOURCE to each TARGET."""
    with _reporting_errors():
        results = _workspace(ctx).links.batch_link(source_id, target_ids, link_type)
    for result in results:
        if result.warning:
            typer.secho(f"Warning: {result.warning}", err=True, fg=typer.colors.YELLOW)
        typer.echo(f"Linked {result.link.source_id} --{result.link.type.value}--> {result.link.target_id}")


@app.command("unlink")
def unlink(
    ctx: typer.Context,
    source_id: str = typer.Argument(...),
    target_id: str = typer.Argument(...),
    link_type: Optional[str] = typer.Option(None, "--type", "-t"),
) -> None:
    with _reporting_errors():
        removed = _workspace(ctx).links.remove_link(source_id, target_id, link_type)
    typer.echo(f"Removed {removed} link(s) from {source_id} to {target_id}")


@app.command("links")
def links(
    ctx: typer.Context,
    artifact_id: str = typer.Argument(...),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    with _reporting_errors():
        workspace = _workspace(ctx)
        if not workspace.store.exists(artifact_id):
            raise NotFoundError("Artifact", artifact_id)
        entries = workspace.links.get_links_for_display(artifact_id)
    if as_json:
        _emit_json([asdict(entry) for entry in entries])
        return
    if not entries:
        typer.echo(f"{artifact_id} has no links.")
        return
    for entry in entries:
        arrow = "->" if entry.direction == "outgoing" else "<-"
        typer.echo(f"{arrow} {entry.id} ({entry.link_type.value}) {entry.title} [{entry.status}]")


@app.command("graph")
def graph(
    ctx: typer.Context,
    output_format: str = typer.Option("mermaid", "--format", "-f", help="mermaid or dot"),
    root: Optional[str] = typer.Option(None, "--root", help="Only the component around this artifact."),
    artifact_type: Optional[List[str]] = typer.Option(None, "--type", help="Include only these types."),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    with _reporting_errors():
        types = [_artifact_type(item) for item in artifact_type or []]
        rendered = _workspace(ctx).graph.generate_graph(
            output_format, root_id=root, include_types=types or None
        )
        _write_or_echo(rendered, output)


def _write_or_echo(text: str, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(text)
        return
    try:
        output.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Failed to write {output}: {exc}") from exc
    typer.echo(f"Wrote {output}")


def _echo_basic_report(report: BasicHealthReport) -> None:
    typer.echo(f"Health score: {report.score}/100")
    typer.echo(
        f"Artifacts: {report.total_artifacts} ({report.healthy_artifacts} healthy); "
        f"errors {report.summary.errors}, warnings {report.summary.warnings}, info {report.summary.info}"
    )
    for issue in report.issues:
        typer.echo(f"  [{issue.severity}] {issue.artifact_id} {issue.type}: {issue.message}")


@app.command("health")
def health(
    ctx: typer.Context,
    strategy: Optional[str] = typer.Option(None, "--strategy", help="basic or enhanced"),
    artifact_id: Optional[str] = typer.Option(None, "--artifact", help="Score a single artifact."),
    threshold: Optional[int] = typer.Option(None, "--threshold"),
    check: bool = typer.Option(False, "--check", help="Exit non-zero when any artifact is below threshold."),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    with _reporting_errors():
        workspace = _workspace(ctx)
        scorer = workspace.health(strategy)  # type: ignore[arg-type]
        if isinstance(scorer, BasicHealthStrategy):
            if artifact_id is not None or check:
                raise ValidationError("--artifact and --check need the enhanced strategy", field="strategy")
            report = scorer.run_health_check()
            if as_json:
                _emit_json(report)
            else:
                _echo_basic_report(report)
            return
        if artifact_id is not None:
            score = scorer.calculate_health(artifact_id)
            breakdown = scorer.get_health_breakdown(artifact_id)
            if as_json:
                _emit_json({"score": asdict(score), "breakdown": asdict(breakdown)})
                return
            typer.echo(f"{score.artifact_id}: {score.score}/100")
            for penalty in breakdown.penalties:
                typer.echo(f"  -{penalty.points} {penalty.reason}: {penalty.details}")
            return
        full = scorer.calculate_all_health(threshold)
    if as_json:
        _emit_json(full)
    else:
        typer.echo(
            f"Average: {full.summary.average}/100; below threshold: {full.summary.below_threshold}; "
            f"critical issues: {full.summary.critical_issues}"
        )
        for item in full.artifacts:
            typer.echo(f"  {item.artifact_id}: {item.score}")
        for cycle in full.circular_dependencies:
            typer.echo(f"  [{cycle.severity}] cycle: {' -> '.join(cycle.cycle)}")
        if full.skipped:
            typer.secho(f"Skipped {full.skipped} unreadable file(s)", err=True, fg=typer.colors.YELLOW)
    if check and full.summary.below_threshold:
        raise typer.Exit(code=_FAILED_THRESHOLD_EXIT)


@app.command("impact")
def impact(
    ctx: typer.Context,
    artifact_id: str = typer.Argument(...),
    checklist: bool = typer.Option(False, "--checklist", help="Print a deprecation checklist."),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    with _reporting_errors():
        service = _workspace(ctx).impact
        if checklist:
            result = service.generate_deprecation_checklist(artifact_id)
            if as_json:
                _emit_json(result)
                return
            typer.echo(f"Deprecation checklist for {artifact_id}:")
            for task in result.tasks:
                typer.echo(f"  [{task.priority}] {task.action}")
            if not result.tasks:
                typer.echo("  Nothing depends on this artifact.")
            return
        report = service.analyze_impact(artifact_id)
    if as_json:
        _emit_json(report)
        return
    typer.echo(f"Impact of {report.artifact_id}: risk {report.risk_score}/100, max depth {report.max_depth}")
    typer.echo(f"  direct: {', '.join(report.direct_dependents) or '-'}")
    typer.echo(f"  transitive: {', '.join(report.transitive_dependents) or '-'}")


@app.command("search")
def search(
    ctx: typer.Context,
    query: str = typer.Argument(...),
    artifact_type: Optional[str] = typer.Option(None, "--type"),
    date_from: Optional[str] = typer.Option(None, "--from"),
    date_to: Optional[str] = typer.Option(None, "--to"),
) -> None:
    with _reporting_errors():
        results = _workspace(ctx).search.search(
            query,
            artifact_type=_artifact_type(artifact_type),
            date_from=_parse_date(date_from, "--from"),
            date_to=_parse_date(date_to, "--to"),
        )
    if not results:
        typer.echo("No matches.")
        return
    for result in results:
        typer.echo(f"{result.artifact.id} ({result.score}) {result.artifact.title}")
        if result.snippet:
            typer.echo(f"    {result.snippet}")


@app.command("export")
def export(
    ctx: typer.Context,
    output_format: str = typer.Option("json", "--format", "-f", help="json or markdown"),
    artifact_type: Optional[str] = typer.Option(None, "--type"),
    status: Optional[str] = typer.Option(None, "--status"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    with _reporting_errors():
        workspace = _workspace(ctx)
        filters = ArtifactFilters(type=_artifact_type(artifact_type), status=status)
        if output_format == "json":
            text = export_json(workspace.store, filters, graph=workspace.graph)
        elif output_format == "markdown":
            text = export_markdown(workspace.store, filters)
        else:
            raise ValidationError(f"Unknown export format: {output_format}", field="format")
        _write_or_echo(text.rstrip("\n"), output)


def _split_tags(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(tag.strip() for tag in value.split(",") if tag.strip())


def _echo_preview(preview: BatchPreview) -> None:
    typer.echo(f"Found {preview.count} artifact(s) matching the filter:")
    for item in preview.changes:
        typer.echo(f"  {item.artifact_id}: {item.artifact_title}")
        for change in item.changes:
            old = json.dumps(change.old_value)
            new = json.dumps(change.new_value)
            typer.echo(f"    - {change.field}: {old} -> {new}")
    if preview.count and not preview.changes:
        typer.echo("  No changes would be made (artifacts already have the specified values)")


@app.command("update")
def update(
    ctx: typer.Context,
    filter_expression: str = typer.Option(
        ..., "--filter", "-f", help='Filter expression, e.g. "type:rfc status:draft owner:alice".'
    ),
    status: Optional[str] = typer.Option(None, "--status", "-s"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o"),
    add_tags: Optional[str] = typer.Option(None, "--add-tags", help="Comma-separated tags to add."),
    remove_tags: Optional[str] = typer.Option(None, "--remove-tags", help="Comma-separated tags to remove."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview changes without applying them."),
) -> None:
    """Apply one status, owner or tag change to every matching artifact."""
    with _reporting_errors():
        changes = BatchUpdate(
            status=status,
            owner=owner,
            add_tags=_split_tags(add_tags),
            remove_tags=_split_tags(remove_tags),
        )
        if changes.is_empty:
            raise ValidationError(
                "At least one of --status, --owner, --add-tags or --remove-tags is required",
                field="update",
            )
        batch = _workspace(ctx).batch
        selection = batch.parse_filter(filter_expression)
        preview = batch.preview(selection, changes)
    if not preview.count:
        typer.echo("No artifacts match the specified filter.")
        return
    _echo_preview(preview)
    if dry_run:
        typer.echo("Dry run complete. No changes were made.")
        return
    if not preview.changes:
        return
    if not yes and not typer.confirm(f"Apply these changes to {len(preview.changes)} artifact(s)?"):
        typer.echo("Operation cancelled.")
        return
    with _reporting_errors():
        result = batch.update(selection, changes)
    for artifact_id in result.updated_ids:
        typer.echo(f"Updated {artifact_id}")
    for failure in result.errors:
        typer.secho(f"Failed {failure.artifact_id}: {failure.message}", err=True, fg=typer.colors.RED)
    if not result.success:
        raise typer.Exit(code=_PARTIAL_FAILURE_EXIT)


def _bar(count: int, total: int) -> str:
    return "#" * math.ceil(count / total * 20)


def _echo_metrics(metrics: Metrics) -> None:
    typer.echo(f"Total artifacts: {metrics.total}")
    typer.echo(f"Average age: {metrics.average_age_days} days")
    typer.echo(f"Average health: {metrics.average_health}/100")
    typer.echo(f"Stale: {metrics.stale_count}; orphaned: {metrics.orphaned_count}")
    for heading, counts in (("By type", metrics.by_type), ("By status", metrics.by_status)):
        typer.echo(f"{heading}:")
        for name, count in counts.items():
            typer.echo(f"  {name:<15} {_bar(count, metrics.total)} {count}")
    typer.echo("Top contributors:")
    for owner, count in metrics.top_contributors():
        typer.echo(f"  {owner:<20} {count} artifact(s)")
    for label, mention in (("Oldest", metrics.oldest), ("Newest", metrics.newest)):
        if mention is not None:
            typer.echo(f"{label}: {mention.id} - {mention.title} ({mention.created_at:%Y-%m-%d})")


@app.command("stats")
def stats(
    ctx: typer.Context,
    artifact_type: Optional[str] = typer.Option(None, "--type", "-t"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Counts, ages, health and link coverage across the artifacts."""
    with _reporting_errors():
        metrics = _workspace(ctx).metrics().calculate_metrics(_artifact_type(artifact_type))
    if as_json:
        _emit_json(metrics)
    elif not metrics.total:
        typer.echo("No artifacts found.")
    else:
        _echo_metrics(metrics)
    if metrics.skipped:
        typer.secho(f"Skipped {metrics.skipped} unreadable file(s)", err=True, fg=typer.colors.YELLOW)
