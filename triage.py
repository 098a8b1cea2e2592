#!/usr/bin/env python3
"""
Triage - turn helpdesk conversations into tracker issues

Usage:
    python triage.py check                      # Validate config and credentials
    python triage.py fetch <conversation-id>    # Show a normalized conversation
    python triage.py classify <conversation-id> # Ask the LLM whether it is a bug
    python triage.py analyze <conversation-id>  # Find existing issues that match
        [--app-id ID] [--error "message"] [--title "title"]
    python triage.py create <conversation-id>   # Analyze, then file a new issue
        [--app-id ID] [--error "message"] [--title "title"] [--yes]
    python triage.py help                       # Show this help

Settings come from config.yaml; secrets may also be set in the environment
or a .env file next to this script.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from helpdesk import IntercomClient
from llm import BugClassifier, LLMClient, LocalCompletionEngine, create_engine
from shared.config import TriageConfig, load_config
from shared.deduplication import AnalysisResult, AnalysisState, get_duplicate_analyzer
from shared.errors import InputValidationError, TriageError, describe_error
from shared.logging import configure_logging, get_logger
from tracker import (
    IssueCreator,
    IssueSearchClient,
    build_enrichment,
    build_proposed_issue,
    template_from_conversation,
)

load_dotenv(Path(__file__).parent / ".env")

console = Console()
log = get_logger("triage", "cli")

STATE_LABELS = {
    AnalysisState.QUERY_GENERATION: "Generating search queries",
    AnalysisState.SEARCHING: "Searching the tracker",
    AnalysisState.DEDUPLICATING: "Merging results",
    AnalysisState.SCORING: "Scoring candidates",
    AnalysisState.RANKED: "Ranking",
}


def _option(args: list[str], name: str) -> Optional[str]:
    """Value following `--name` in args, if present."""
    if name in args:
        index = args.index(name)
        if index + 1 < len(args):
            return args[index + 1]
        raise InputValidationError(f"{name} needs a value")
    return None


def _conversation_id(args: list[str]) -> str:
    if not args or args[0].startswith("--"):
        raise InputValidationError("A conversation ID is required", hint="e.g. python triage.py fetch 12345")
    return args[0]


def _load(require_valid: bool = True) -> TriageConfig:
    config = load_config()
    configure_logging(config.log_level, config.log_json)
    if require_valid:
        config.require_valid()
    return config


def _llm_client(config: TriageConfig) -> LLMClient:
    return LLMClient(
        openai_api_key=config.openai_api_key,
        anthropic_api_key=config.anthropic_api_key,
        local_url=config.local_url,
    )


def _classifier(config: TriageConfig, client: LLMClient) -> BugClassifier:
    if config.use_local_inference:
        return BugClassifier(client, "local", config.local_model, config.llm_timeout_seconds)
    return BugClassifier(client, config.llm_backend, config.llm_model, config.llm_timeout_seconds)


def _print_conversation(conversation):
    console.print(Panel(
        f"[bold]{conversation.title}[/bold]\n"
        f"Customer: {conversation.customer_name} ({conversation.customer_email or 'no email'})\n"
        f"Status: {conversation.status}   Priority: {conversation.priority.value}\n"
        f"Tags: {', '.join(conversation.tags) or 'None'}",
        title=f"Conversation {conversation.id}",
    ))
    for message in conversation.messages:
        stamp = message.created_at.strftime("%Y-%m-%d %H:%M")
        console.print(f"[dim]{stamp}[/dim] [bold]{message.author.name}[/bold] ({message.author.role.value})")
        console.print(f"  {message.body[:300]}")


def _print_classification(result):
    verdict = "[red]BUG[/red]" if result.is_bug else "[green]not a bug[/green]"
    console.print(Panel(
        f"{verdict}  ({result.bug_type}, severity {result.severity}, "
        f"confidence {result.confidence:.0%})\n\n"
        f"{result.reasoning}\n\n"
        f"[dim]Indicators: {', '.join(result.key_indicators) or 'None'}[/dim]",
        title="Classification",
    ))


def _print_analysis(result: AnalysisResult):
    if not result.analyzed_issues:
        console.print("[green]No similar issues found.[/green]")
    else:
        table = Table(title=f"Similar issues ({result.total_searched} examined)")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("State")
        table.add_column("Score", justify="right")
        table.add_column("Relationship")
        table.add_column("Reasoning")
        for scored in result.analyzed_issues:
            style = "red" if scored.relationship_type.value == "duplicate" else None
            table.add_row(
                str(scored.issue.number),
                scored.issue.title[:60],
                scored.issue.state,
                f"{scored.similarity_score:.0%}",
                scored.relationship_type.value,
                scored.reasoning[:80],
                style=style,
            )
        console.print(table)

    footer = f"[dim]Model: {result.ai_model_used}  ·  {result.search_time_ms:.0f} ms"
    if result.failed_queries:
        footer += f"  ·  {len(result.failed_queries)} searches failed"
    console.print(footer + "[/dim]")


def _on_state_change(state: AnalysisState):
    label = STATE_LABELS.get(state)
    if label:
        console.print(f"[dim]  {label}...[/dim]")


async def _check(config: TriageConfig):
    async with IssueSearchClient(config.github_token, config.github_base_url, config.github_timeout_seconds) as search:
        access = await search.validate_access()
    if not access.valid:
        console.print("[red]✗ GitHub token rejected[/red]")
    elif not access.can_search:
        console.print(f"[yellow]! GitHub user {access.user} cannot use issue search[/yellow]")
    else:
        console.print(f"[green]✓ GitHub: {access.user} (search allowed)[/green]")

    console.print(
        "[green]✓ Intercom token set[/green]" if config.intercom_token
        else "[yellow]! Intercom token missing[/yellow]"
    )

    client = _llm_client(config)
    try:
        if config.use_local_inference:
            status = await LocalCompletionEngine(client, config.local_model).check_status()
            if status.ready:
                console.print(f"[green]✓ Local model {config.local_model} ready[/green]")
            elif status.server_reachable:
                console.print(f"[yellow]! Local server has no model {config.local_model}[/yellow]")
            else:
                console.print(f"[red]✗ Local server at {config.local_url} unreachable[/red]")
        else:
            console.print(f"[green]✓ LLM backend: {config.llm_backend}[/green]")
    finally:
        await client.close()


async def _fetch(config: TriageConfig, conversation_id: str):
    async with IntercomClient(config.intercom_token, config.intercom_base_url, config.intercom_timeout_seconds) as intercom:
        return await intercom.get_conversation(conversation_id)


async def _classify(config: TriageConfig, conversation_id: str):
    conversation = await _fetch(config, conversation_id)
    client = _llm_client(config)
    try:
        result = await _classifier(config, client).classify(conversation)
    finally:
        await client.close()
    return conversation, result


async def _analyze(config: TriageConfig, conversation_id: str, args: list[str]):
    conversation, bug_result = await _classify(config, conversation_id)
    _print_classification(bug_result)

    fields = template_from_conversation(
        conversation,
        bug_result,
        app_id=_option(args, "--app-id") or "",
        error_message=_option(args, "--error") or "",
    )
    title = _option(args, "--title") or (bug_result.initial_analysis.title if bug_result.is_bug else None)
    issue = build_proposed_issue(fields, title, bug_result.severity, conversation.priority.value)
    context = build_enrichment(fields)

    client = _llm_client(config)
    engine = create_engine(
        client,
        use_local=config.use_local_inference,
        backend=config.llm_backend,
        model=config.llm_model,
        local_model=config.local_model,
        timeout_seconds=config.llm_timeout_seconds,
    )
    try:
        await engine.initialize(lambda progress, text: console.print(f"[dim]  {text}[/dim]"))
        async with IssueSearchClient(config.github_token, config.github_base_url, config.github_timeout_seconds) as search:
            analyzer = get_duplicate_analyzer(config, search, engine)
            console.print(f"\n[bold]Looking for similar issues:[/bold] {issue.title}")
            result = await analyzer.analyze(issue, context, on_state_change=_on_state_change)
    finally:
        await engine.close()

    _print_analysis(result)
    return conversation, issue, context, result


def cmd_check(args):
    """Validate configuration and credentials."""
    config = _load()
    console.print("[green]✓ Configuration valid[/green]")
    asyncio.run(_check(config))


def cmd_fetch(args):
    """Fetch and show a conversation."""
    conversation_id = _conversation_id(args)
    config = _load(require_valid=False)
    _print_conversation(asyncio.run(_fetch(config, conversation_id)))


def cmd_classify(args):
    """Classify a conversation."""
    conversation_id = _conversation_id(args)
    config = _load()
    conversation, result = asyncio.run(_classify(config, conversation_id))
    _print_conversation(conversation)
    _print_classification(result)


def cmd_analyze(args):
    """Run duplicate analysis for a conversation."""
    conversation_id = _conversation_id(args)
    config = _load()
    asyncio.run(_analyze(config, conversation_id, args))


def cmd_create(args):
    """Analyze, confirm and file a new issue."""
    conversation_id = _conversation_id(args)
    config = _load()
    conversation, template_issue, context, result = asyncio.run(_analyze(config, conversation_id, args))

    if result.has_duplicates:
        numbers = ", ".join(f"#{c.issue.number}" for c in result.duplicates)
        console.print(f"[yellow]Likely duplicates: {numbers}. Consider commenting there instead.[/yellow]")

    async def draft():
        client = _llm_client(config)
        try:
            return await _classifier(config, client).draft_issue(conversation, context)
        finally:
            await client.close()

    console.print("\n[bold]Drafting issue...[/bold]")
    issue = asyncio.run(draft()).issue
    # Drafted labels extend the template's fixed ones
    labels = list(dict.fromkeys(template_issue.labels + issue.labels))

    repository = config.target_repository
    console.print(Panel(issue.body[:1500], title=f"{issue.title}  →  {repository}"))
    console.print(f"[dim]Labels: {', '.join(labels)}[/dim]")
    if "--yes" not in args and not Confirm.ask("File this issue?", default=False):
        console.print("[yellow]Not filed.[/yellow]")
        return

    async def create():
        async with IssueCreator(config.github_token, config.github_base_url, config.github_timeout_seconds) as creator:
            return await creator.create_issue(repository, issue.title, issue.body, labels)

    created = asyncio.run(create())
    console.print(f"\n[green]✓ Created #{created.number}: {created.html_url}[/green]\n")


def cmd_help(args=None):
    """Show help."""
    console.print(__doc__)


COMMANDS = {
    "check": cmd_check,
    "fetch": cmd_fetch,
    "classify": cmd_classify,
    "analyze": cmd_analyze,
    "create": cmd_create,
    "help": cmd_help,
    "--help": cmd_help,
    "-h": cmd_help,
}


def main():
    if len(sys.argv) < 2:
        cmd_help()
        return

    cmd = sys.argv[1].lower()

    if cmd not in COMMANDS:
        console.print(f"[red]Unknown command: {cmd}[/red]")
        cmd_help()
        sys.exit(2)

    try:
        COMMANDS[cmd](sys.argv[2:])
    except TriageError as e:
        kind, message, hint = describe_error(e)
        log.error("triage.command.failed", command=cmd, kind=kind, error=message)
        console.print(f"\n[red]✗ {message}[/red]")
        if hint:
            console.print(f"[dim]{hint}[/dim]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
