# tagcoder/cli.py
"""
TagCoder CLI 主入口（通过 TurnRunner 服务层调用）
"""
from pathlib import Path
from typing import Optional

import click
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from tagflow.core.patch import apply_patch, side_by_side
from tagflow.core.models import files_by_name
from tagstream.core.tokenizer import valid_namespace

from tagcoder.core.coder import TurnRunner, iter_chunks, write_workspace
from tagcoder.core.config import CONFIG_FILE, Config, ConfigError, load_config
from tagcoder.core.init import render_config, render_protocol_prompt
from tagcoder.utils.console import (
    console, info, success, warning, error, heading, confirm, print_table,
    configure_logging, STATUS_STYLES, styled,
)

# ------------------------------
# CLI 主入口
# ------------------------------

@click.group()
@click.version_option("0.1.0", message="TagCoder CLI v%(version)s")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Configuration file (default: .tagcoder/config.yaml)")
@click.option("--project", "project_id", default=None, help="Override the configured project id")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[Path], project_id: Optional[str], verbose: bool):
    """TagCoder - stream tagged model output into versioned project files"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["project_id"] = project_id
    ctx.obj["verbose"] = verbose


def _load_config(ctx) -> Config:
    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        error(str(e))
        raise click.Abort()
    if ctx.obj.get("project_id"):
        config.project_id = ctx.obj["project_id"]
    configure_logging("DEBUG" if ctx.obj.get("verbose") else config.log_level)
    return config


def _load_runner(ctx, config: Optional[Config] = None) -> TurnRunner:
    config = config or _load_config(ctx)
    try:
        return TurnRunner.from_config(config)
    except (OSError, RuntimeError) as e:
        error(f"Cannot open store at {config.storage_dir}: {e}")
        raise click.Abort()


def _load_history(runner: TurnRunner):
    try:
        return runner.history()
    except (RuntimeError, ValueError) as e:
        error(f"Cannot read history of '{runner.project_id}': {e}")
        raise click.Abort()


def _find_entry(runner: TurnRunner, turn_id: str):
    try:
        entry = runner.find_turn(turn_id)
    except KeyError:
        error(f"Turn '{turn_id}' not found for project '{runner.project_id}'.")
        raise click.Abort()
    except (RuntimeError, ValueError) as e:
        error(f"Cannot read history of '{runner.project_id}': {e}")
        raise click.Abort()
    if entry.error:
        warning(f"Turn '{turn_id}' could not be reconstructed: {entry.error}")
    return entry

# ------------------------------
# 命令 1: init
# ------------------------------

@cli.command()
@click.option("--namespace", default=None, help="Tag namespace, e.g. 'ns' for <ns-file>")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration")
@click.pass_context
def init(ctx, namespace: Optional[str], force: bool):
    """Create .tagcoder/config.yaml"""
    heading("Project Initialization")
    if namespace is not None and not valid_namespace(namespace):
        error(f"Invalid namespace {namespace!r}: use a lowercase letter followed by a-z, 0-9 or _.")
        raise click.Abort()
    config_file = ctx.obj.get("config_path") or CONFIG_FILE
    if config_file.exists() and not force:
        if not confirm(f"{config_file} already exists. Overwrite?", default=False):
            info("Cancelled.")
            return
    content = render_config(namespace=namespace)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(content, encoding="utf-8")
    success(f"Generated: {config_file}")

# ------------------------------
# 命令 2: config / prompt
# ------------------------------

@cli.command(name="config")
@click.pass_context
def show_config(ctx):
    """Show the effective configuration"""
    config = _load_config(ctx)
    source = config.source or "defaults"
    console.print(f"[bold cyan]### Configuration ({escape(str(source))}):[/bold cyan]")
    console.print_json(data=config.to_dict())


@cli.command()
@click.option("--no-plan", is_flag=True, help="Leave the plan tag out of the instructions")
@click.pass_context
def prompt(ctx, no_plan: bool):
    """Print the tag protocol instructions for the model"""
    config = _load_config(ctx)
    runner = _load_runner(ctx, config)
    click.echo(render_protocol_prompt(config, runner.current_files(), plan=not no_plan), nl=False)

# ------------------------------
# 命令 3: apply
# ------------------------------

@cli.command()
@click.argument("transcript", type=click.File("r", encoding="utf-8"))
@click.option("--chunk-size", type=click.IntRange(min=1), default=None,
              help="Characters per chunk fed to the tokenizer")
@click.option("--dry-run", is_flag=True, help="Parse and report without committing the turn")
@click.option("--write", "write_dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Also write the resulting files into this directory")
@click.option("--turn-id", default=None, help="Explicit id for the committed turn")
@click.pass_context
def apply(ctx, transcript, chunk_size: Optional[int], dry_run: bool, write_dir: Optional[Path],
          turn_id: Optional[str]):
    """Stream a model transcript (file or '-') into the project"""
    config = _load_config(ctx)
    runner = _load_runner(ctx, config)
    text = transcript.read()
    try:
        result = runner.run(iter_chunks(text, chunk_size or config.chunk_size))
    except (RuntimeError, ValueError) as e:
        error(f"Cannot load files of '{runner.project_id}': {e}")
        raise click.Abort()
    state = result.state

    heading(f"Turn for project '{runner.project_id}'")
    if state.plan:
        info(f"Plan {state.plan.current_step}/{state.plan.total_steps}: {state.plan.task}")

    if state.file_statuses:
        table = Table(title="Files", show_header=True, header_style="bold magenta")
        table.add_column("File", style="path")
        table.add_column("Status")
        for name, status in state.file_statuses.items():
            table.add_row(escape(name), styled(status.value, STATUS_STYLES[status.value]))
        console.print(table)

    if state.annotations:
        print_table(
            [(a.file, a.line, a.type.value, a.message, a.suggestion or "") for a in state.annotations],
            headers=["File", "Line", "Type", "Message", "Suggestion"],
            title="Annotations",
        )
    if state.dependencies:
        print_table(sorted(state.dependencies.items()), headers=["Package", "Version"], title="Dependencies")
    for command in state.commands:
        console.print(f"[dim]$[/dim] [cyan]{escape(command)}[/cyan]")
    if state.summary_text.strip():
        console.print(Panel(Text(state.summary_text.strip()), title="Summary"))

    for name in result.failed:
        warning(f"{name} was not applied; its previous content is kept.")

    if dry_run:
        info("Dry run: turn not committed.")
    else:
        try:
            turn = runner.commit(result, turn_id=turn_id)
        except (RuntimeError, ValueError) as e:
            error(f"Failed to commit turn: {e}")
            raise click.Abort()
        if turn is None:
            info("No file changes; nothing committed.")
        else:
            success(f"Committed turn {turn.turn_id} ({len(result.files)} files).")

    if write_dir is not None:
        try:
            written = write_workspace(result.files, write_dir)
        except (OSError, ValueError) as e:
            error(f"Failed to write files: {e}")
            raise click.Abort()
        success(f"Wrote {len(written)} files to {write_dir}")

# ------------------------------
# 命令 4: history / show / diff
# ------------------------------

@cli.command()
@click.pass_context
def history(ctx):
    """List committed turns, newest first"""
    runner = _load_runner(ctx)
    entries = _load_history(runner)
    if not entries:
        info(f"No turns recorded for project '{runner.project_id}'.")
        return
    table = Table(title=escape(f"History of {runner.project_id}"), show_header=True, header_style="bold magenta")
    table.add_column("Turn", style="cyan")
    table.add_column("Files before")
    table.add_column("Files after")
    table.add_column("Summary")
    for entry in entries:
        if entry.error:
            summary = styled(f"reconstruction failed: {escape(entry.error)}", "error")
        else:
            lines = (entry.meta.get("summary") or "").splitlines()
            summary = escape(lines[0]) if lines else ""
        table.add_row(escape(entry.turn_id), str(len(entry.files_before)), str(len(entry.files_after)), summary)
    console.print(table)


@cli.command()
@click.argument("turn_id")
@click.argument("file_name", required=False)
@click.option("--before", is_flag=True, help="Show the state before the turn instead of after it")
@click.pass_context
def show(ctx, turn_id: str, file_name: Optional[str], before: bool):
    """List files as of a turn, or print one of them"""
    runner = _load_runner(ctx)
    entry = _find_entry(runner, turn_id)
    files = entry.files_before if before else entry.files_after
    if file_name is None:
        print_table([(f.name, f.language, len(f.content)) for f in files],
                    headers=["File", "Language", "Size"],
                    title=f"{'Before' if before else 'After'} {turn_id}")
        return
    target = files_by_name(files).get(file_name)
    if target is None:
        error(f"{file_name} does not exist at that point.")
        raise click.Abort()
    console.print(Syntax(target.content, target.language if target.language != "plaintext" else "text",
                         line_numbers=True))


@cli.command()
@click.argument("turn_id")
@click.argument("file_name")
@click.pass_context
def diff(ctx, turn_id: str, file_name: str):
    """Side-by-side diff of a file across a turn"""
    runner = _load_runner(ctx)
    entry = _find_entry(runner, turn_id)
    old = files_by_name(entry.files_before).get(file_name)
    new = files_by_name(entry.files_after).get(file_name)
    if old is None and new is None:
        error(f"{file_name} is not part of turn {turn_id}.")
        raise click.Abort()

    table = Table(show_header=True, header_style="bold magenta", title=escape(file_name), expand=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Before")
    table.add_column("#", justify="right", style="dim")
    table.add_column("After")
    styles = {"eq": None, "add": "added", "del": "removed", "change": "changed"}
    for row in side_by_side(old.content if old else "", new.content if new else ""):
        table.add_row(
            str(row.old_no or ""), Text(row.old_text), str(row.new_no or ""), Text(row.new_text),
            style=styles[row.kind],
        )
    console.print(table)

# ------------------------------
# 命令 5: patch / projects
# ------------------------------

@cli.command()
@click.argument("target", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("diff_file", type=click.File("r", encoding="utf-8"))
@click.option("--in-place", "-i", is_flag=True, help="Write the result back to TARGET")
@click.pass_context
def patch(ctx, target: Path, diff_file, in_place: bool):
    """Apply unified-diff hunks to TARGET by context, ignoring line numbers"""
    configure_logging("DEBUG" if ctx.obj.get("verbose") else "WARNING")
    original = target.read_text(encoding="utf-8")
    result = apply_patch(original, diff_file.read())
    if in_place:
        target.write_text(result.content, encoding="utf-8")
        success(f"Patched {target}: {result.applied} hunks applied, {result.skipped} skipped.")
    else:
        click.echo(result.content, nl=not result.content.endswith("\n"))
    if result.skipped:
        # 有未能定位的 hunk 时以非零状态退出，方便脚本判断
        ctx.exit(1)


@cli.command()
@click.pass_context
def projects(ctx):
    """List projects known to the store"""
    runner = _load_runner(ctx)
    names = runner.store.list_projects()
    if not names:
        info("No projects stored yet.")
        return
    for name in names:
        marker = "*" if name == runner.project_id else " "
        console.print(f"{marker} [path]{escape(name)}[/path]")


if __name__ == "__main__":
    cli(obj={})
