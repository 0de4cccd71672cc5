"""CLI interface for pybuildsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from .api import BuildEngineClient
from .config import LOCAL_CONNECTION_ID, config
from .exceptions import BuildSyncError, CompletionError
from .models import ProjectIdentity, validate_project
from .output import OutputFormatter
from .sync import SyncEngine, SyncResult
from .utils import format_millis

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--api-url",
    envvar="PYBUILDSYNC_API_URL",
    help="Remote engine API URL (overrides the connection profile)",
)
@click.option("--token", envvar="PYBUILDSYNC_TOKEN", help="Bearer access token")
@click.option("--conid", help="Connection ID to use")
@click.option("--insecure", is_flag=True, help="Disable certificate checking")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pybuildsync")
@click.pass_context
def main(
    ctx: Any,
    api_url: Optional[str],
    token: Optional[str],
    conid: Optional[str],
    insecure: bool,
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pybuildsync - Bind and sync local projects with a remote build engine."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["token"] = token
    ctx.obj["conid"] = conid
    ctx.obj["insecure"] = insecure
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pybuildsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _create_client(ctx: Any, project_id: Optional[str] = None) -> BuildEngineClient:
    """Build a client for the selected remote engine.

    The URL comes from ``--api-url``, then ``--conid``, then the project's
    stored connection, then the local connection.
    """
    api_url = ctx.obj["api_url"]
    if not api_url:
        connection_id = ctx.obj["conid"]
        if not connection_id:
            connection_id = (
                config.get_project_connection(project_id)
                if project_id
                else LOCAL_CONNECTION_ID
            )
        api_url = config.get_connection(connection_id).url
    logger.debug(f"Using remote engine at {api_url}")
    return BuildEngineClient(
        api_url=api_url, token=ctx.obj["token"], verify=not ctx.obj["insecure"]
    )


def _validate_identity(
    name: str, language: str, build_type: str, path: str
) -> ProjectIdentity:
    if not name.strip():
        raise click.BadParameter("--name must not be empty")

    validation = validate_project(path, language, build_type)
    if not validation.ok or validation.project_type is None:
        raise click.BadParameter(str(validation.message))

    project_type = validation.project_type
    return ProjectIdentity(
        name=name.strip(),
        language=project_type.language,
        build_type=project_type.build_type,
        local_path=validation.project_path,
    )


def _run_with_progress(out: OutputFormatter, client: BuildEngineClient, run: Any):
    """Call ``run(engine)`` with a progress bar unless output is silent."""
    if out.quiet or out.json_output:
        return run(SyncEngine(client))

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        transient=True,
    ) as progress:
        task = progress.add_task("Uploading", total=None)

        def on_progress(done: int, total: int, path: str) -> None:
            progress.update(task, completed=done, total=total, description=path)

        return run(SyncEngine(client, progress_callback=on_progress))


def _report(out: OutputFormatter, title: str, result: SyncResult, cursor: int) -> None:
    if out.json_output:
        out.output_json(
            {
                "projectID": result.project_id,
                "fileList": result.all_files,
                "modifiedList": result.modified_files,
                "skipped": [
                    {"path": s.relative_path, "reason": s.reason}
                    for s in result.skipped
                ],
                "timeStamp": cursor,
                "nextTimeStamp": result.started_at,
            }
        )
        return

    for skipped in result.skipped:
        out.warning(f"Skipped {skipped.relative_path}: {skipped.reason}")
    out.print_summary(
        title,
        [
            ("Project ID", result.project_id),
            ("Files", str(len(result.all_files))),
            ("Transferred", str(len(result.modified_files))),
            ("Skipped", str(len(result.skipped))),
            (
                "Next cursor",
                f"{result.started_at} ({format_millis(result.started_at)})",
            ),
        ],
    )


@main.command()
@click.option("--name", "-n", required=True, help="The name of the project")
@click.option("--language", "-l", required=True, help="The project language")
@click.option("--type", "-t", "build_type", required=True, help="The project type")
@click.option("--path", "-p", required=True, help="The path to the project")
@click.pass_context
def bind(ctx: Any, name: str, language: str, build_type: str, path: str) -> None:
    """Bind a project to the remote engine for building and running.

    Registers the project and transfers every file under PATH.

    Examples:
        pybuildsync bind -n myapp -l nodejs -t nodejs -p ./myapp
        pybuildsync --conid remote1 bind -n api -l java -t liberty -p ~/api
    """
    out: OutputFormatter = ctx.obj["out"]
    identity = _validate_identity(name, language, build_type, path)

    try:
        with _create_client(ctx) as client:
            try:
                result = _run_with_progress(
                    out, client, lambda engine: engine.run_bind(identity)
                )
            except CompletionError as e:
                out.warning(f"{e} - retrying end call")
                e.session.retry_complete()
                result = e.result
        if ctx.obj["conid"]:
            config.set_project_connection(result.project_id, ctx.obj["conid"])
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    _report(out, "Bind Complete", result, 0)


@main.command()
@click.option("--language", "-l", required=True, help="The project language")
@click.option("--type", "-t", "build_type", required=True, help="The project type")
@click.option("--path", "-p", required=True, help="The path to the project")
@click.pass_context
def validate(ctx: Any, language: str, build_type: str, path: str) -> None:
    """Check that a project can be bound, without contacting the engine.

    Examples:
        pybuildsync --json validate -l nodejs -t nodejs -p ./myapp
    """
    out: OutputFormatter = ctx.obj["out"]
    validation = validate_project(path, language, build_type)

    if out.json_output:
        out.output_json(validation.to_dict())
    elif validation.project_type is not None:
        out.success(
            f"{validation.project_path}: {validation.project_type.language} / "
            f"{validation.project_type.build_type}"
        )
    else:
        out.error(f"{validation.project_path}: {validation.message}")

    if not validation.ok:
        ctx.exit(1)


@main.command()
@click.option("--path", "-p", required=True, help="The path to the project")
@click.option("--id", "-i", "project_id", required=True, help="The project ID")
@click.option(
    "--time",
    "-t",
    "cursor",
    required=True,
    type=click.IntRange(min=0),
    help="Time of the last sync in ms since epoch (0 for a full transfer)",
)
@click.pass_context
def sync(ctx: Any, path: str, project_id: str, cursor: int) -> None:
    """Synchronize a bound project with the remote engine.

    Uploads only the files modified after the last sync time.

    Examples:
        pybuildsync sync -p ./myapp -i 3f2a... -t 1700000000000
    """
    out: OutputFormatter = ctx.obj["out"]
    project_id = project_id.strip()
    if not project_id:
        raise click.BadParameter("must not be empty", param_hint="--id")
    project_path = Path(path).expanduser().resolve()

    try:
        with _create_client(ctx, project_id) as client:
            try:
                result = _run_with_progress(
                    out,
                    client,
                    lambda engine: engine.run_sync(project_id, project_path, cursor),
                )
            except CompletionError as e:
                out.warning(f"{e} - retrying end call")
                e.session.retry_complete()
                result = e.result
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    _report(out, "Sync Complete", result, cursor)


# =========================
# Connection profiles
# =========================


@main.group()
def connections() -> None:
    """Manage remote engine connections."""


@connections.command("list")
@click.pass_context
def connections_list(ctx: Any) -> None:
    """List connection profiles."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        rows = [
            {"id": c.id, "label": c.label, "url": c.url}
            for c in config.get_connections()
        ]
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    out.output_table(
        rows, ["id", "label", "url"], {"id": "ID", "label": "Label", "url": "URL"}
    )


@connections.command("add")
@click.option("--id", "-i", "connection_id", required=True, help="Connection ID")
@click.option("--url", "-u", required=True, help="Remote engine API URL")
@click.option("--label", "-l", default="", help="Display label")
@click.pass_context
def connections_add(ctx: Any, connection_id: str, url: str, label: str) -> None:
    """Add a connection profile."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        connection = config.add_connection(connection_id, label, url)
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(
            {"id": connection.id, "label": connection.label, "url": connection.url}
        )
    else:
        out.success(f"Added connection '{connection.id}'")


@connections.command("remove")
@click.option("--id", "-i", "connection_id", required=True, help="Connection ID")
@click.pass_context
def connections_remove(ctx: Any, connection_id: str) -> None:
    """Remove a connection profile."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        config.remove_connection(connection_id)
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Removed connection '{connection_id}'")


# =========================
# Project -> connection mappings
# =========================


@main.group("project-connection")
def project_connection() -> None:
    """Manage which connection a project uses."""


@project_connection.command("set")
@click.option("--id", "-i", "project_id", required=True, help="Project ID")
@click.option("--conid", required=True, help="Connection ID")
@click.pass_context
def project_connection_set(ctx: Any, project_id: str, conid: str) -> None:
    """Set the connection for a project."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        config.set_project_connection(project_id, conid)
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Project {project_id} now uses connection '{conid}'")


@project_connection.command("get")
@click.option("--id", "-i", "project_id", required=True, help="Project ID")
@click.pass_context
def project_connection_get(ctx: Any, project_id: str) -> None:
    """Show the connection for a project."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        connection_id = config.get_project_connection(project_id)
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"projectID": project_id, "connectionID": connection_id})
    else:
        click.echo(connection_id)


@project_connection.command("remove")
@click.option("--id", "-i", "project_id", required=True, help="Project ID")
@click.pass_context
def project_connection_remove(ctx: Any, project_id: str) -> None:
    """Remove the connection mapping of a project."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        removed = config.remove_project_connection(project_id)
    except BuildSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    if removed:
        out.success(f"Removed connection mapping for {project_id}")
    else:
        out.info(f"Project {project_id} had no connection mapping")


if __name__ == "__main__":
    main()
