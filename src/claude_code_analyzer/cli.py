"""CLI for Claude Code Analyzer."""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .analyzer.context_tracker import COMPACTION_MODES
from .analyzer.network_tab import NetworkTabResult, RequestFilter, network_filters
from .cache import AnalysisCache
from .config import Config
from .hooks import HookEventStore, load_hook_log
from .models import to_json_dict
from .parser import discover_sessions
from .renderer import (
    render_context_tracker,
    render_network_tab,
    render_skill_impact,
    render_timeline,
    render_tool_dashboard,
)
from .summary import SessionAnalysis, analyze_session_path, write_json_summary

logger = logging.getLogger(__name__)


def _load_analysis(
    ctx: click.Context, path: Path, cfg: Config, bundle: bool = True
) -> SessionAnalysis:
    """Analyze a transcript, exiting with an error message on I/O failure."""
    try:
        analysis = analyze_session_path(path, cfg, bundle=bundle)
    except OSError as e:
        click.echo(f"Error reading {path}: {e}", err=True)
        ctx.exit(1)

    if not analysis.tree.events:
        click.echo("No events found in file.", err=True)
        ctx.exit(1)
    return analysis


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to config file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, config: Optional[Path], verbose: bool):
    """Analyze Claude Code session transcripts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["config"] = Config.load(config)
    logger.debug("Loaded configuration from %s", config or "default location")


@main.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Write the JSON summary to a file",
)
@click.option("--tool-filter", type=str, default=None, help="Only show stats for this tool")
@click.option("--no-thinking", is_flag=True, help="Hide thinking blocks in the timeline")
@click.option(
    "--bundle/--no-bundle",
    default=True,
    help="Include subagent transcripts (default: on)",
)
@click.option(
    "--context-limit",
    type=int,
    default=None,
    help="Context window size in tokens (overrides config)",
)
@click.pass_context
def analyze(
    ctx,
    path: Path,
    as_json: bool,
    output: Optional[Path],
    tool_filter: Optional[str],
    no_thinking: bool,
    bundle: bool,
    context_limit: Optional[int],
):
    """Analyze a session transcript."""
    cfg: Config = ctx.obj["config"]
    if context_limit:
        cfg.context_limit = context_limit

    analysis = _load_analysis(ctx, path, cfg, bundle=bundle)
    result = analysis.result

    if output:
        write_json_summary(result, output)
        click.echo(f"Wrote summary to {output}")
        return

    if as_json:
        click.echo(json.dumps(to_json_dict(result), indent=2))
        return

    click.echo(click.style(f"Session {result.session_id}", bold=True))
    click.echo(f"  {result.session_start} -> {result.session_end} ({result.total_events} events)")
    click.echo(render_timeline(result.timeline, show_thinking=not no_thinking))
    click.echo(
        render_tool_dashboard(
            result.tool_stats, result.file_access, result.tool_patterns, tool_filter
        )
    )
    click.echo(render_context_tracker(result.token_turns, result.compaction_events))
    skills = render_skill_impact(result.skill_impacts)
    if skills:
        click.echo(skills)


@main.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print scopes and filters as JSON")
@click.option("--scope", "scope_id", type=str, default=None, help="Only show this scope")
@click.option("--tool", "tools", multiple=True, help="Only show requests for this tool")
@click.option(
    "--status",
    "statuses",
    type=click.Choice(["ok", "error"]),
    multiple=True,
    help="Only show requests with this status",
)
@click.option("--search", type=str, default="", help="Case-insensitive text search")
@click.option("--min-time", type=int, default=None, help="Minimum request time in ms")
@click.option("--events", "show_events", is_flag=True, help="Also list timeline events")
@click.pass_context
def network(
    ctx,
    path: Path,
    as_json: bool,
    scope_id: Optional[str],
    tools: tuple[str, ...],
    statuses: tuple[str, ...],
    search: str,
    min_time: Optional[int],
    show_events: bool,
):
    """Show tool requests and events per agent scope."""
    cfg: Config = ctx.obj["config"]
    analysis = _load_analysis(ctx, path, cfg)
    result = analysis.network

    scopes = result.scopes
    if scope_id:
        scope = result.get_scope(scope_id)
        if scope is None:
            available = ", ".join(s.id for s in result.scopes)
            click.echo(f"No scope '{scope_id}'. Available: {available}", err=True)
            ctx.exit(1)
        scopes = [scope]

    request_filter = RequestFilter(
        tool_names=list(tools),
        statuses=list(statuses),
        search=search,
        min_time_ms=min_time,
    )
    requests_by_scope = {s.id: request_filter.apply(s.requests) for s in scopes}

    if as_json:
        payload = {
            "scopes": [
                {**to_json_dict(s), "requests": to_json_dict(requests_by_scope[s.id])}
                for s in scopes
            ],
            "filters": to_json_dict(network_filters(result)),
        }
        click.echo(json.dumps(payload, indent=2))
        return

    shown = NetworkTabResult(scopes=scopes)
    click.echo(render_network_tab(shown, requests_by_scope, show_events=show_events))


@main.command("list")
@click.option(
    "--projects-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to Claude projects directory (overrides config)",
)
@click.option("--limit", type=int, default=20, help="Maximum sessions to show")
@click.pass_context
def list_sessions(ctx, projects_dir: Optional[Path], limit: int):
    """List available session transcripts, newest first."""
    cfg: Config = ctx.obj["config"]
    if projects_dir:
        cfg.projects_dir = projects_dir

    entries = discover_sessions(cfg.projects_dir)
    if not entries:
        click.echo(f"No sessions found in {cfg.projects_dir}")
        return

    for entry in entries[:limit]:
        modified = datetime.fromtimestamp(entry.mtime).strftime("%Y-%m-%d %H:%M")
        size_kb = entry.size / 1024
        click.echo(
            f"{modified}  {entry.project_name:<24}  {entry.session_id}  {size_kb:,.1f} KB"
        )
    if len(entries) > limit:
        click.echo(f"... and {len(entries) - limit} more")


@main.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--interval", type=float, default=2.0, help="Seconds between polls")
@click.option("--count", type=int, default=0, help="Stop after N polls (0 = forever)")
@click.pass_context
def watch(ctx, path: Path, interval: float, count: int):
    """Re-analyze a transcript whenever it changes."""
    cfg: Config = ctx.obj["config"]
    cache = AnalysisCache(analyze=lambda p: analyze_session_path(p, cfg))

    last = None
    polls = 0
    while True:
        try:
            analysis = cache.get(path)
        except OSError as e:
            click.echo(f"Error reading {path}: {e}", err=True)
            ctx.exit(1)

        if analysis is not last:
            last = analysis
            result = analysis.result
            peak = max((t.total_tokens for t in result.token_turns), default=0)
            tool_calls = sum(s.count for s in result.tool_stats)
            click.echo(
                f"[{datetime.now().strftime('%H:%M:%S')}] {result.total_events} events, "
                f"{len(result.token_turns)} turns, peak {peak:,} tokens, "
                f"{tool_calls} tool calls, {len(result.compaction_events)} compactions"
            )

        polls += 1
        if count and polls >= count:
            break
        time.sleep(interval)


@main.command()
@click.argument("log", type=click.Path(path_type=Path))
@click.option("--session", "session_id", type=str, default=None, help="Show one session")
@click.pass_context
def hooks(ctx, log: Path, session_id: Optional[str]):
    """Summarize a JSONL log of hook events."""
    store = HookEventStore()
    try:
        loaded = load_hook_log(log, store)
    except OSError as e:
        click.echo(f"Error reading {log}: {e}", err=True)
        ctx.exit(1)

    if session_id:
        events = store.get_session(session_id)
        if events is None:
            click.echo(f"Session not found: {session_id}", err=True)
            ctx.exit(1)
        click.echo(f"Session {session_id}: {len(events)} events")
        for name, n in sorted(store.summarize_tools(session_id).items()):
            click.echo(f"  {name}: {n}")
        return

    click.echo(f"Loaded {loaded} hook events")
    for summary in store.list_sessions():
        click.echo(
            f"  {summary.session_id}  {summary.event_count} events  "
            f"last: {summary.last_event or '-'}"
        )


@main.command()
@click.option(
    "--projects-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Set Claude projects directory",
)
@click.option("--context-limit", type=int, default=None, help="Set context window size")
@click.option(
    "--compaction-mode",
    type=click.Choice(list(COMPACTION_MODES)),
    default=None,
    help="Set how compaction signals are combined",
)
@click.option(
    "--show",
    is_flag=True,
    help="Show current configuration",
)
@click.pass_context
def config(
    ctx,
    projects_dir: Optional[Path],
    context_limit: Optional[int],
    compaction_mode: Optional[str],
    show: bool,
):
    """Configure analyzer settings."""
    cfg: Config = ctx.obj["config"]

    if show or not (projects_dir or context_limit or compaction_mode):
        click.echo("Current configuration:")
        for key, value in cfg.to_dict().items():
            click.echo(f"  {key}: {value}")
        return

    if projects_dir:
        cfg.projects_dir = projects_dir
    if context_limit:
        cfg.context_limit = context_limit
    if compaction_mode:
        cfg.compaction_mode = compaction_mode

    cfg.save(ctx.obj["config_path"])
    click.echo("Configuration saved.")
    click.echo(f"  projects_dir: {cfg.projects_dir}")
    click.echo(f"  context_limit: {cfg.context_limit}")
    click.echo(f"  compaction_mode: {cfg.compaction_mode}")


if __name__ == "__main__":
    main()
