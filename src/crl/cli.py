from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter

from code_relay import (
    EngineError,
    EngineRole,
    EngineSettings,
    ExecutionOrchestrator,
    ExecutionOutcome,
    ExecutionRequest,
    InvalidRequestError,
    RelayConfig,
    map_language,
)
from code_relay.input_detection import reads_stdin
from code_relay.languages import LANGUAGE_TABLE
from code_relay.orchestrator import ALL_FAILED_HEADER

_CONSOLE = Console(no_color=False)
_MAX_INPUT_ROUNDS = 10


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="crl")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {escape(message)}", border_style="red"))
        self.print_usage()
        raise SystemExit(2)


def _configure_logging(verbose: bool) -> None:
    """Send library logs through Rich on stderr.

    Example:
        ```python
        _configure_logging(verbose=True)
        ```
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for the code-relay CLI.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="crl",
        description=(
            "code-relay CLI\n"
            "Run source files on a remote Piston or Judge0 engine,\n"
            "failing over to the secondary engine when the primary cannot serve."
        ),
        epilog=(
            "Quick Examples:\n"
            "  crl run hello.py --language Python\n"
            "  crl run main.cpp --language \"C++\" --stdin \"3 4\"\n"
            "  crl run ask.py --language Python --interactive\n"
            "  crl languages\n"
            "  crl runtimes --engine secondary --language Java\n"
            "  crl health\n\n"
            "Self-hosted Examples:\n"
            "  crl --primary-url http://localhost:2000/api/v2 --no-secondary run hello.py -l Python\n"
            "  CODE_RELAY_SECONDARY_URL=http://judge0:2358 crl health"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a TOML file with [engines.primary] and [engines.secondary].\n"
            "Defaults to the bundled configuration."
        ),
    )
    parser.add_argument(
        "--primary-url",
        help="Override the primary engine base URL.\nExample: --primary-url http://localhost:2000/api/v2",
    )
    parser.add_argument(
        "--secondary-url",
        help="Override the secondary engine base URL.\nExample: --secondary-url http://localhost:2358",
    )
    parser.add_argument(
        "--no-secondary",
        action="store_true",
        help="Disable failover to the secondary engine.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logs for engine requests and failover.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Execute a source file on the remote engines.",
        description=(
            "Execute one source file and print the normalized outcome.\n"
            "Exit code is 0 on success or when the program waits for input."
        ),
        epilog=(
            "Examples:\n"
            "  crl run hello.py --language Python\n"
            "  crl run sum.c --language C --stdin \"1 2\"\n"
            "  crl run echo.rb --language Ruby --arg one --arg two"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("file", help="Source file to execute.")
    run_cmd.add_argument(
        "-l",
        "--language",
        required=True,
        help="Language label, e.g. Python, \"C++\", \"Java Language\".",
    )
    run_cmd.add_argument("--stdin", default="", help="Text passed to the program's standard input.")
    run_cmd.add_argument(
        "--arg",
        dest="args",
        action="append",
        default=[],
        help="Command-line argument for the program (repeatable).",
    )
    run_cmd.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help=(
            "Prompt for a line whenever the program waits for input,\n"
            f"then re-run it with the accumulated stdin (at most {_MAX_INPUT_ROUNDS} rounds)."
        ),
    )

    sub.add_parser(
        "languages",
        help="List the language labels the CLI understands.",
        description="Show display names and the canonical engine ids they map to.",
        formatter_class=_HELP_FORMATTER,
    )

    runtimes_cmd = sub.add_parser(
        "runtimes",
        help="Show the live runtime inventory of one engine.",
        description="Query an engine for its installed runtimes.",
        epilog=(
            "Examples:\n"
            "  crl runtimes\n"
            "  crl runtimes --engine secondary --language Python"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    runtimes_cmd.add_argument(
        "--engine",
        choices=[role.value for role in EngineRole],
        default=EngineRole.PRIMARY.value,
        help="Engine role to query (default: primary).",
    )
    runtimes_cmd.add_argument("--language", help="Only show runtimes matching this language label.")

    sub.add_parser(
        "health",
        help="Probe every configured engine.",
        description="Check whether each configured engine answers its probe endpoint.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def load_config(args: argparse.Namespace) -> RelayConfig:
    """Load configuration and apply the global CLI overrides.

    Example:
        ```python
        config = load_config(build_parser().parse_args(["health"]))
        ```
    """
    config = RelayConfig.load(args.config)
    primary = config.primary
    if args.primary_url:
        primary = replace(primary, base_url=args.primary_url)
    secondary = config.secondary
    if args.secondary_url:
        if secondary is None:
            secondary = EngineSettings(kind="judge0", base_url=args.secondary_url)
        else:
            secondary = replace(secondary, base_url=args.secondary_url)
    if args.no_secondary:
        secondary = None
    return RelayConfig(primary=primary, secondary=secondary)


def build_orchestrator(config: RelayConfig) -> ExecutionOrchestrator:
    """Create the orchestrator for a loaded configuration.

    Example:
        ```python
        orchestrator = build_orchestrator(RelayConfig.defaults())
        ```
    """
    return ExecutionOrchestrator.from_config(config)


def _settings_for(config: RelayConfig, role: EngineRole) -> EngineSettings | None:
    """Return the settings configured for one role.

    Example:
        ```python
        settings = _settings_for(config, EngineRole.PRIMARY)
        ```
    """
    return config.primary if role == EngineRole.PRIMARY else config.secondary


def _print_outcome(outcome: ExecutionOutcome) -> None:
    """Render an execution outcome in a panel.

    Example:
        ```python
        _print_outcome(ExecutionOutcome(success=True, output="Hello"))
        ```
    """
    engine = outcome.engine_used.value if outcome.engine_used is not None else "none"
    subtitle = f"engine: {engine} | time: {outcome.elapsed_time_label}"
    if outcome.awaiting_input:
        body = outcome.output or "(program is waiting for input)"
        _CONSOLE.print(Panel(Text(body), title="Awaiting Input", subtitle=subtitle, border_style="yellow"))
    elif outcome.success:
        _CONSOLE.print(Panel(Text(outcome.output or "(no output)"), title="Output", subtitle=subtitle, border_style="green"))
    else:
        if outcome.output:
            _CONSOLE.print(Panel(Text(outcome.output), title="Output", border_style="cyan"))
        _CONSOLE.print(Panel(Text(outcome.error_message or "Execution failed"), title="Error", subtitle=subtitle, border_style="red"))
    if outcome.failures and not outcome.error_message.startswith(ALL_FAILED_HEADER):
        _CONSOLE.print(Panel.fit(Text("\n".join(outcome.failures)), title="Failover", border_style="yellow"))


def _is_waiting(outcome: ExecutionOutcome, request: ExecutionRequest) -> bool:
    """Treat an empty successful run of a stdin-reading program as waiting for input.

    Example:
        ```python
        _is_waiting(ExecutionOutcome(success=True), ExecutionRequest("input()", "Python"))  # True
        ```
    """
    if outcome.awaiting_input:
        return True
    return (
        outcome.success
        and not outcome.output
        and not request.stdin
        and reads_stdin(request.source_code, request.language_label)
    )


def _run(orchestrator: ExecutionOrchestrator, args: argparse.Namespace) -> int:
    """Handle the `run` command.

    Example:
        ```python
        code = _run(orchestrator, build_parser().parse_args(["run", "a.py", "-l", "Python"]))
        ```
    """
    path = Path(args.file)
    try:
        source_code = path.read_text(encoding="utf-8")
    except OSError as exc:
        _CONSOLE.print(Panel.fit(Text(f"Cannot read {path}: {exc.strerror or exc}"), style="bold red"))
        return 1
    request = ExecutionRequest(
        source_code=source_code,
        language_label=args.language,
        stdin=args.stdin,
        args=tuple(args.args),
    )
    outcome = orchestrator.execute(request)
    waiting = _is_waiting(outcome, request)

    rounds = 0
    while args.interactive and waiting and rounds < _MAX_INPUT_ROUNDS:
        rounds += 1
        if outcome.output:
            _CONSOLE.print(Text(outcome.output))
        prompt = Text(outcome.output.splitlines()[-1] if outcome.output else "Input")
        line = Prompt.ask(prompt, console=_CONSOLE)
        request = replace(request, stdin=request.stdin + line + "\n")
        outcome = orchestrator.execute(request)
        waiting = _is_waiting(outcome, request)

    if waiting and not outcome.awaiting_input:
        outcome = replace(outcome, awaiting_input=True)
    _print_outcome(outcome)
    return 0 if outcome.success or outcome.awaiting_input else 1


def _print_languages() -> None:
    """Render the language table.

    Example:
        ```python
        _print_languages()
        ```
    """
    table = Table(title="Supported Languages")
    table.add_column("Language", style="cyan")
    table.add_column("Engine Id", style="magenta")
    for name, language_id in sorted(LANGUAGE_TABLE.items(), key=lambda item: item[0].casefold()):
        table.add_row(name, language_id)
    _CONSOLE.print(table)


def _runtimes(orchestrator: ExecutionOrchestrator, args: argparse.Namespace) -> int:
    """Handle the `runtimes` command.

    Example:
        ```python
        code = _runtimes(orchestrator, build_parser().parse_args(["runtimes"]))
        ```
    """
    role = EngineRole(args.engine)
    try:
        runtimes = orchestrator.list_runtimes(role)
    except ValueError as exc:
        _CONSOLE.print(Panel.fit(Text(str(exc)), style="bold red"))
        return 1
    except EngineError as exc:
        _CONSOLE.print(Panel.fit(Text(f"Inventory query failed: {exc}"), style="bold red"))
        return 1
    if args.language:
        language_id = map_language(args.language)
        runtimes = [runtime for runtime in runtimes if runtime.matches(language_id)]
    if not runtimes:
        _CONSOLE.print(Panel.fit(f"No runtimes reported by the {role.value} engine", style="bold yellow"))
        return 0

    table = Table(title=f"{role.value.title()} Engine Runtimes")
    table.add_column("Language", style="cyan")
    table.add_column("Version", style="magenta")
    table.add_column("Aliases")
    table.add_column("Ref")
    for runtime in runtimes:
        table.add_row(
            Text(runtime.engine_language_id),
            Text(runtime.version or "-"),
            Text(", ".join(sorted(runtime.aliases))),
            Text(runtime.engine_ref or ""),
        )
    _CONSOLE.print(table)
    return 0


def _health(orchestrator: ExecutionOrchestrator, config: RelayConfig) -> int:
    """Handle the `health` command.

    Example:
        ```python
        code = _health(orchestrator, config)
        ```
    """
    results = orchestrator.health()
    table = Table(title="Engine Health")
    table.add_column("Role", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("URL")
    table.add_column("Status")
    for role, healthy in results.items():
        settings = _settings_for(config, role)
        table.add_row(
            role.value,
            settings.kind if settings else "-",
            Text(settings.base_url) if settings else "-",
            "[bold green]up[/bold green]" if healthy else "[bold red]down[/bold red]",
        )
    _CONSOLE.print(table)
    return 0 if all(results.values()) else 1


def _dispatch(args: argparse.Namespace, config: RelayConfig) -> int:
    """Run a network-backed command with an orchestrator that is always closed.

    Example:
        ```python
        code = _dispatch(args, config)
        ```
    """
    with build_orchestrator(config) as orchestrator:
        if args.command == "run":
            return _run(orchestrator, args)
        if args.command == "runtimes":
            return _runtimes(orchestrator, args)
        return _health(orchestrator, config)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `crl` CLI command handler.

    Example:
        ```python
        code = main(["run", "hello.py", "--language", "Python"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    if args.command == "languages":
        _print_languages()
        return 0

    try:
        config = load_config(args)
    except (OSError, ValueError) as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}", border_style="red"))
        return 1

    try:
        return _dispatch(args, config)
    except InvalidRequestError as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Invalid request:[/bold red] {escape(str(exc))}", border_style="red"))
        return 1
