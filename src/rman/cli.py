"""Command line interface for the Receipt Manager core."""

from __future__ import annotations

import difflib
import logging
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, List, Optional

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from rman import paths
from rman.actors import Actor
from rman.config import ConfigError, ConfigManager, RmanConfig, resolve_with_precedence
from rman.config.models import LoggingSettings
from rman.errors import (
    ConflictError,
    InvalidDestinationError,
    ListingError,
    NotFoundError,
    PermissionDeniedError,
    RequestStateError,
    RmanError,
)
from rman.manager import FileManager
from rman.operations import BulkResult, Selection
from rman.requests import PendingRequest
from rman.search import SearchQuery, TagCondition
from rman.tree import TreeNode, sort_entries, sort_names
from rman.uploads import UploadSource

console = Console()

_ERROR_CODES: list[tuple[type[Exception], str]] = [
    (ConfigError, "config_error"),
    (NotFoundError, "not_found"),
    (ConflictError, "conflict"),
    (InvalidDestinationError, "invalid_destination"),
    (PermissionDeniedError, "permission_denied"),
    (RequestStateError, "request_state"),
    (ListingError, "listing_error"),
    (RmanError, "rman_error"),
]


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


@contextmanager
def _guarded(action: str, *, json_output: bool) -> Iterator[None]:
    """Translate domain errors raised inside a command into CLI errors."""
    try:
        yield
    except click.ClickException as exc:
        _handle_cli_error(
            exc.format_message(), code="cli_error", json_output=json_output, original=exc
        )
    except (ConfigError, RmanError) as exc:
        code = next(code for kind, code in _ERROR_CODES if isinstance(exc, kind))
        _handle_cli_error(str(exc), code=code, json_output=json_output, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while {action}: {exc}",
            code="internal_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )


def _emit_message(message: Any, *, mode: str, quiet: bool) -> None:
    """Print CLI output unless quiet mode suppresses it.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
    """

    if quiet and mode != "error":
        return
    console.print(message)


def _format_summary_line(command: str, target: str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {target}: {parts}.[/green]"


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """

    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


def _configure_logging(settings: LoggingSettings, data_dir: Path) -> None:
    """Attach rich console logging and, when enabled, a rotating log file."""
    logger = logging.getLogger("rman")
    level = getattr(logging, settings.level.upper(), logging.WARNING)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.addHandler(
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=False)
    )
    if settings.log_to_file:
        data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            data_dir / "rman.log",
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)
    logger.propagate = False


class _Session:
    """Per-invocation state shared by subcommands."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        user: Optional[str] = None,
        role: Optional[str] = None,
    ) -> None:
        self.config_path = config_path
        self.user = user
        self.role = role
        self._config: Optional[RmanConfig] = None
        self._manager: Optional[FileManager] = None

    def config(self) -> RmanConfig:
        if self._config is None:
            manager = ConfigManager(self.config_path)
            manager.ensure_exists()
            self._config = manager.load()
            _configure_logging(
                self._config.logging, Path(self._config.storage.data_dir).expanduser()
            )
        return self._config

    def manager(self) -> FileManager:
        if self._manager is None:
            self._manager = FileManager.open_local(self.config())
        return self._manager

    def actor(self) -> Actor:
        config = self.config()
        return Actor(
            id=self.user or config.cli.default_user,
            role=self.role or config.cli.default_role,  # type: ignore[arg-type]
        )


def _session(ctx: click.Context) -> _Session:
    return ctx.ensure_object(_Session)


def _selection(manager: FileManager, targets: tuple[str, ...]) -> Selection:
    """Split CLI targets into object keys and folder paths.

    Targets ending with a slash are folders; otherwise an existing object is a
    file and anything else is treated as a folder.
    """

    files: List[str] = []
    folders: List[str] = []
    for target in targets:
        if target.endswith("/"):
            folders.append(manager.normalize(target))
            continue
        key = _object_key(manager, target)
        try:
            manager.objects.get_metadata(key)
        except NotFoundError:
            folders.append(manager.normalize(target))
        else:
            files.append(key)
    return Selection(files=files, folders=folders)


def _object_key(manager: FileManager, target: str) -> str:
    parent, name = paths.split_object_key(target, manager.root)
    return paths.object_key_for(parent, name, manager.root)


def _emit_bulk(result: BulkResult, *, command: str, target: str, json_output: bool, quiet: bool):
    if json_output:
        console.print_json(data=result.model_dump(mode="json"))
        return
    for error in result.errors:
        _emit_message(f"[red]  - {error}[/red]", mode="error", quiet=quiet)
    color = "yellow" if result.partial_failure else "green"
    _emit_message(f"[{color}]{result.summary()}[/{color}]", mode="summary", quiet=quiet)
    _emit_message(
        _format_summary_line(
            command,
            target,
            {"succeeded": result.succeeded, "skipped": result.skipped, "failed": result.failed},
        ),
        mode="summary",
        quiet=quiet,
    )


def _request_table(requests: List[PendingRequest]) -> Table:
    table = Table(title="Requests")
    table.add_column("ID", overflow="fold")
    table.add_column("Request")
    table.add_column("By")
    table.add_column("Status")
    table.add_column("Response", overflow="fold")
    for request in requests:
        table.add_row(
            request.id,
            request.describe,
            request.requested_by,
            request.status,
            request.admin_response or "",
        )
    return table


def _parse_condition(raw: str) -> TagCondition:
    """Parse ``key=value`` or ``key:operator:value`` into a condition."""
    if "=" in raw and ":" not in raw.split("=", 1)[0]:
        key, value = raw.split("=", 1)
        return TagCondition(key=key.strip(), operator="equals", value=value)
    parts = raw.split(":", 2)
    if len(parts) != 3:
        raise click.BadParameter(
            f"Expected KEY=VALUE or KEY:OPERATOR:VALUE, got '{raw}'.", param_hint="--condition"
        )
    key, operator, value = parts
    try:
        return TagCondition(key=key.strip(), operator=operator, value=value)
    except ValidationError as exc:
        message = exc.errors()[0]["msg"].removeprefix("Value error, ")
        raise click.BadParameter(message, param_hint="--condition") from exc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="rman")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file to use instead of ~/.rman/config.yaml.",
)
@click.option("--user", type=str, help="Identifier of the acting user.")
@click.option(
    "--role",
    type=click.Choice(["admin", "user", "viewer"]),
    help="Role of the acting user.",
)
@click.pass_context
def cli(
    ctx: click.Context, config_path: Optional[Path], user: Optional[str], role: Optional[str]
) -> None:
    """Browse, upload, and organize files in a virtual folder tree."""
    ctx.obj = _Session(config_path, user, role)


@cli.command("ls")
@click.argument("path", default="/", required=False)
@click.option("--deep", is_flag=True, help="Include files from every nested folder.")
@click.option(
    "--sort",
    "sort_key",
    type=click.Choice(["name", "size", "type"]),
    default="name",
    show_default=True,
    help="Ordering applied to files.",
)
@click.option("--desc", is_flag=True, help="Reverse the ordering.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON instead of a table.")
@click.pass_context
def ls_command(
    ctx: click.Context, path: str, deep: bool, sort_key: str, desc: bool, json_output: bool
) -> None:
    """List the folders and files directly inside PATH."""
    with _guarded("listing files", json_output=json_output):
        manager = _session(ctx).manager()
        folder = manager.normalize(path)
        node = manager.expand(folder)
        if deep:
            listing = manager.deep_listing(folder)
            entries = listing.files
        else:
            entries = manager.entries(folder)
        ordered = sort_entries(entries, key=sort_key, descending=desc)  # type: ignore[arg-type]
        folders = sort_names(node.children, descending=desc)
        labels = manager.labels.labels()

        if json_output:
            console.print_json(
                data={
                    "path": folder,
                    "folders": [f"{folder}{name}/" for name in folders],
                    "files": [entry.model_dump(mode="json") for entry in ordered],
                }
            )
            return

        table = Table(title=folder)
        table.add_column("Name", overflow="fold")
        table.add_column("Size", justify="right")
        table.add_column("Type")
        table.add_column("Tags", overflow="fold")
        for name in folders:
            label = labels.get(f"{folder}{name}/")
            tags = ", ".join(label.tags) if label else ""
            table.add_row(f"[bold blue]{name}/[/bold blue]", "", "folder", tags)
        for entry in ordered:
            display = entry.name if not deep else f"{entry.parent_path}{entry.name}"
            table.add_row(
                display,
                str(entry.size) if entry.size is not None else "",
                entry.content_type or "",
                ", ".join(f"{key}={value}" for key, value in entry.tags.items()),
            )
        console.print(table)
        console.print(
            _format_summary_line("List", folder, {"folders": len(folders), "files": len(ordered)})
        )


@cli.command("tree")
@click.argument("path", default="/", required=False)
@click.option("--depth", type=int, default=2, show_default=True, help="Levels to expand.")
@click.pass_context
def tree_command(ctx: click.Context, path: str, depth: int) -> None:
    """Render the folder hierarchy below PATH."""
    with _guarded("rendering the tree", json_output=False):
        manager = _session(ctx).manager()
        node = manager.expand(path)
        favorites = manager.labels.favorites(_session(ctx).actor().id)
        root = Tree(f"[bold]{node.path}[/bold]")

        def _add(branch: Tree, current: TreeNode, remaining: int) -> None:
            for name in sort_names(current.children):
                child = current.children[name]
                if remaining > 0 and not child.materialized:
                    manager.tree.load_children(child.path)
                star = " *" if child.path in favorites else ""
                counts = (
                    f" ({child.direct_file_count} files)" if child.materialized else ""
                )
                sub = branch.add(f"[blue]{name}/[/blue]{star}{counts}")
                if remaining > 0:
                    _add(sub, child, remaining - 1)

        _add(root, node, max(0, depth - 1))
        console.print(root)


@cli.command("mkdir")
@click.argument("parent")
@click.argument("name")
@click.pass_context
def mkdir_command(ctx: click.Context, parent: str, name: str) -> None:
    """Create folder NAME inside PARENT."""
    with _guarded("creating a folder", json_output=False):
        session = _session(ctx)
        folder = session.manager().create_folder(session.actor(), parent, name)
        console.print(f"[green]Created {folder}[/green]")


@cli.command("upload")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--to", "target", default="/", show_default=True, help="Destination folder.")
@click.option(
    "--optimize",
    type=click.Choice(["off", "lossless", "balanced"]),
    help="JPEG preprocessing mode; defaults to uploads.optimization.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the batch.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def upload_command(
    ctx: click.Context,
    files: tuple[Path, ...],
    target: str,
    optimize: Optional[str],
    json_output: bool,
    quiet: bool,
) -> None:
    """Upload FILES (or whole directories) into a folder."""
    with _guarded("uploading files", json_output=json_output):
        session = _session(ctx)
        manager = session.manager()
        quiet_enabled = (quiet or session.config().cli.quiet_default) and not json_output
        sources: List[UploadSource] = []
        for item in files:
            if item.is_dir():
                for path in sorted(found for found in item.rglob("*") if found.is_file()):
                    relative = path.parent.relative_to(item.parent).as_posix()
                    sources.append(UploadSource.from_path(path, relative_path=relative))
            else:
                sources.append(UploadSource.from_path(item))

        result = manager.upload(
            session.actor(),
            sources,
            target,
            mode=optimize,  # type: ignore[arg-type]
        )
        if json_output:
            console.print_json(data=result.model_dump(mode="json"))
            return
        for name, error in result.failures.items():
            _emit_message(f"[red]  - {name}: {error}[/red]", mode="error", quiet=quiet_enabled)
        _emit_message(result.message, mode="summary", quiet=quiet_enabled)
        _emit_message(
            _format_summary_line(
                "Upload",
                manager.normalize(target),
                {"done": result.done, "errors": result.errors, "canceled": result.canceled},
            ),
            mode="summary",
            quiet=quiet_enabled,
        )


def _transfer_command(
    ctx: click.Context,
    *,
    move: bool,
    sources: tuple[str, ...],
    destination: str,
    overwrite: bool,
    into: bool,
    json_output: bool,
    quiet: bool,
) -> None:
    verb = "moving" if move else "copying"
    with _guarded(f"{verb} items", json_output=json_output):
        session = _session(ctx)
        manager = session.manager()
        selection = _selection(manager, sources)
        operation = manager.move if move else manager.copy
        result = operation(
            session.actor(),
            selection,
            destination,
            policy="overwrite" if overwrite else None,
            nest_folders=into,
        )
        _emit_bulk(
            result,
            command="Move" if move else "Copy",
            target=manager.normalize(destination),
            json_output=json_output,
            quiet=quiet and not json_output,
        )


_TRANSFER_OPTIONS = [
    click.argument("sources", nargs=-1, required=True),
    click.argument("destination"),
    click.option("--overwrite", is_flag=True, help="Replace existing destination objects."),
    click.option(
        "--into",
        is_flag=True,
        help="Place folders under DESTINATION/<name>/ instead of merging their contents.",
    ),
    click.option("--json", "json_output", is_flag=True, help="Emit JSON describing outcomes."),
    click.option("--quiet", is_flag=True, help="Suppress non-error output."),
]


def _with_transfer_options(func: Any) -> Any:
    for option in reversed(_TRANSFER_OPTIONS):
        func = option(func)
    return func


@cli.command("cp")
@_with_transfer_options
@click.pass_context
def cp_command(ctx: click.Context, **options: Any) -> None:
    """Copy SOURCES (object keys or folders) into DESTINATION."""
    _transfer_command(ctx, move=False, **options)


@cli.command("mv")
@_with_transfer_options
@click.pass_context
def mv_command(ctx: click.Context, **options: Any) -> None:
    """Move SOURCES (object keys or folders) into DESTINATION."""
    _transfer_command(ctx, move=True, **options)


@cli.command("rm")
@click.argument("targets", nargs=-1, required=True)
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing outcomes.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def rm_command(
    ctx: click.Context, targets: tuple[str, ...], json_output: bool, quiet: bool
) -> None:
    """Delete TARGETS, or submit delete requests when not an admin."""
    with _guarded("deleting items", json_output=json_output):
        session = _session(ctx)
        manager = session.manager()
        outcome = manager.delete(session.actor(), _selection(manager, targets))
        if outcome.result is not None:
            _emit_bulk(
                outcome.result,
                command="Delete",
                target=", ".join(targets),
                json_output=json_output,
                quiet=quiet and not json_output,
            )
            return
        if json_output:
            console.print_json(data=outcome.model_dump(mode="json"))
            return
        _emit_message(f"[yellow]{outcome.message}[/yellow]", mode="summary", quiet=quiet)


@cli.command("rename")
@click.argument("target")
@click.argument("new_name")
@click.option("--folder", "is_folder", is_flag=True, help="TARGET is a folder.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the result.")
@click.pass_context
def rename_command(
    ctx: click.Context, target: str, new_name: str, is_folder: bool, json_output: bool
) -> None:
    """Rename a file (or, with --folder, a folder) to NEW_NAME."""
    with _guarded("renaming", json_output=json_output):
        session = _session(ctx)
        manager = session.manager()
        if is_folder:
            new_path = manager.rename_folder(session.actor(), target, new_name)
            if json_output:
                console.print_json(data={"path": new_path})
            else:
                console.print(f"[green]Renamed folder to {new_path}[/green]")
            return
        outcome = manager.rename(session.actor(), _object_key(manager, target), new_name)
        if json_output:
            console.print_json(data=outcome.model_dump(mode="json"))
            return
        color = "green" if outcome.executed else "yellow"
        console.print(f"[{color}]{outcome.message}[/{color}]")


@cli.group("tag")
def tag_group() -> None:
    """Edit file tags."""


@tag_group.command("set")
@click.argument("target")
@click.argument("pairs", nargs=-1, required=True)
@click.pass_context
def tag_set(ctx: click.Context, target: str, pairs: tuple[str, ...]) -> None:
    """Set KEY=VALUE tags on the file TARGET."""
    with _guarded("tagging", json_output=False):
        tags: dict[str, str] = {}
        for pair in pairs:
            if "=" not in pair:
                raise click.BadParameter(f"Expected KEY=VALUE, got '{pair}'.", param_hint="PAIRS")
            key, value = pair.split("=", 1)
            tags[key.strip()] = value.strip()
        session = _session(ctx)
        manager = session.manager()
        entry = manager.set_tags(session.actor(), _object_key(manager, target), tags)
        rendered = ", ".join(f"{key}={value}" for key, value in entry.tags.items())
        console.print(f"[green]Tags for {entry.name}: {rendered or '(none)'}[/green]")


@tag_group.command("clear")
@click.argument("target")
@click.argument("keys", nargs=-1)
@click.pass_context
def tag_clear(ctx: click.Context, target: str, keys: tuple[str, ...]) -> None:
    """Remove KEYS (or every tag) from the file TARGET."""
    with _guarded("clearing tags", json_output=False):
        session = _session(ctx)
        manager = session.manager()
        key = _object_key(manager, target)
        matches = manager.catalog.find_by_key(key)
        if not matches:
            raise NotFoundError(f"No metadata document found for {key}")
        remaining = {
            name: value for name, value in matches[0].tags.items() if keys and name not in keys
        }
        entry = manager.set_tags(session.actor(), key, remaining, merge=False)
        console.print(f"[green]Cleared tags on {entry.name}.[/green]")


@cli.command("search")
@click.option(
    "-c",
    "--condition",
    "conditions",
    multiple=True,
    help="KEY=VALUE or KEY:OPERATOR:VALUE (equals, contains, not_contains).",
)
@click.option("--any", "match_any", is_flag=True, help="Match any condition instead of all.")
@click.option("--save", "save_name", type=str, help="Store the query under this name.")
@click.option("--saved", "saved_name", type=str, help="Run a saved query by name.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON results.")
@click.pass_context
def search_command(
    ctx: click.Context,
    conditions: tuple[str, ...],
    match_any: bool,
    save_name: Optional[str],
    saved_name: Optional[str],
    json_output: bool,
) -> None:
    """Find files by tag conditions."""
    with _guarded("searching", json_output=json_output):
        session = _session(ctx)
        manager = session.manager()
        actor = session.actor()
        if saved_name:
            saved = [
                item
                for item in manager.search_engine.list_saved(actor.id)
                if item.name == saved_name
            ]
            if not saved:
                raise NotFoundError(f"No saved search named '{saved_name}'.")
            query = saved[-1].query
        else:
            query = SearchQuery(
                conditions=[_parse_condition(raw) for raw in conditions],
                combine="OR" if match_any else "AND",
            )
        if save_name:
            manager.search_engine.save(actor.id, save_name, query)

        result = manager.run_search(query)
        if json_output:
            console.print_json(data=result.model_dump(mode="json"))
            return
        if result.hint:
            console.print(f"[yellow]{result.hint}[/yellow]")
        table = Table(title=f"Search results ({result.strategy})")
        table.add_column("File", overflow="fold")
        table.add_column("Folder", overflow="fold")
        table.add_column("Tags", overflow="fold")
        for entry in result.entries:
            table.add_row(
                entry.name,
                entry.parent_path,
                ", ".join(f"{key}={value}" for key, value in entry.tags.items()),
            )
        console.print(table)
        console.print(
            _format_summary_line("Search", manager.root, {"matches": len(result.entries)})
        )


@cli.group("requests")
def requests_group() -> None:
    """Review delete, rename, and role requests."""


@requests_group.command("list")
@click.option("--mine", is_flag=True, help="Only show requests submitted by the acting user.")
@click.option("--pending", "pending_only", is_flag=True, help="Only show pending requests.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON.")
@click.pass_context
def requests_list(ctx: click.Context, mine: bool, pending_only: bool, json_output: bool) -> None:
    """List requests, newest first."""
    with _guarded("listing requests", json_output=json_output):
        session = _session(ctx)
        workflow = session.manager().requests
        if mine:
            requests = workflow.requests_for(session.actor().id)
        elif pending_only:
            requests = workflow.pending()
        else:
            requests = workflow.all()
        if pending_only and mine:
            requests = [request for request in requests if request.status == "pending"]
        if json_output:
            console.print_json(data=[request.model_dump(mode="json") for request in requests])
            return
        console.print(_request_table(requests))


@requests_group.command("submit-role")
@click.argument("role", type=click.Choice(["admin", "user", "viewer"]))
@click.pass_context
def requests_submit_role(ctx: click.Context, role: str) -> None:
    """Ask an admin to change the acting user's role."""
    with _guarded("submitting a role request", json_output=False):
        session = _session(ctx)
        workflow = session.manager().requests
        request = workflow.submit_role_upgrade(session.actor(), role)  # type: ignore[arg-type]
        console.print(f"[green]Submitted request {request.id}.[/green]")


@requests_group.command("approve")
@click.argument("request_id")
@click.option("--response", default="", help="Message recorded with the decision.")
@click.pass_context
def requests_approve(ctx: click.Context, request_id: str, response: str) -> None:
    """Approve and apply REQUEST_ID."""
    with _guarded("approving a request", json_output=False):
        session = _session(ctx)
        request = session.manager().requests.approve(session.actor(), request_id, response)
        if request.status == "error":
            console.print(f"[red]Request {request_id} failed: {request.admin_response}[/red]")
            raise SystemExit(1)
        console.print(f"[green]Approved {request.describe}.[/green]")


@requests_group.command("reject")
@click.argument("request_id")
@click.option("--reason", default="", help="Explanation shown to the requester.")
@click.pass_context
def requests_reject(ctx: click.Context, request_id: str, reason: str) -> None:
    """Reject REQUEST_ID."""
    with _guarded("rejecting a request", json_output=False):
        session = _session(ctx)
        request = session.manager().requests.reject(session.actor(), request_id, reason)
        console.print(f"[yellow]Rejected {request.describe}.[/yellow]")


@cli.group()
def config() -> None:
    """Manage rman configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.pass_context
def config_view(ctx: click.Context, no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        ctx: Click context carrying the selected config path.
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager(_session(ctx).config_path)
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        ctx: Click context carrying the selected config path.
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager(_session(ctx).config_path)
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'uploads.quality'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    file_data = manager.load_file_overrides()

    try:
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=RmanConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line.startswith(("-# Last updated", "+# Last updated"))
    ]

    changed = [line for line in diff if not line.startswith(("+++", "---"))]
    if not any(line.startswith(("+", "-")) for line in changed):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
@click.pass_context
def config_edit(ctx: click.Context) -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager(_session(ctx).config_path)
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=RmanConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
