"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from latex_tailor.billing.account_store import SQLiteAccountStore
from latex_tailor.billing.admission import AdmissionController
from latex_tailor.clients.gateway import ProviderGateway
from latex_tailor.config import AppConfig, load_config
from latex_tailor.errors import PipelineError
from latex_tailor.models.caller import Caller, CallerRole, ProviderCredentials
from latex_tailor.models.round import Round
from latex_tailor.pipeline.ledger import IterationLedger
from latex_tailor.pipeline.orchestrator import PipelineOrchestrator
from latex_tailor.pipeline.session import Session

app = typer.Typer(
    name="latex-tailor",
    help="Tailor a LaTeX resume to a job description, round by round.",
    no_args_is_help=True,
)
console = Console()

BAND_COLORS = {"excellent": "green", "good": "yellow", "needs_work": "red"}
BAND_LABELS = {"excellent": "Excellent!", "good": "Good Progress", "needs_work": "Needs Work"}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _store(config: AppConfig) -> SQLiteAccountStore:
    return SQLiteAccountStore(config.billing.resolved_db_path)


def build_orchestrator(config: AppConfig, store: SQLiteAccountStore, on_phase=None) -> PipelineOrchestrator:
    """Wire the orchestrator from configuration."""
    admission = AdmissionController(
        store,
        paying_roles=config.billing.paying_roles,
        plans=config.billing.top_up_plans,
    )

    def gateway_factory(credentials: ProviderCredentials) -> ProviderGateway:
        return ProviderGateway(
            credentials.primary_key,
            credentials.fallback_key,
            timeout=config.llm.timeout,
            max_attempts=config.gateway.max_attempts,
            backoff_multiplier=config.gateway.backoff_multiplier,
            backoff_max=config.gateway.backoff_max,
            jitter=config.gateway.jitter,
        )

    return PipelineOrchestrator(
        gateway_factory,
        admission,
        store,
        model=config.llm.model,
        eval_model=config.llm.eval_model,
        writer_temperature=config.llm.writer_temperature,
        max_tokens=config.llm.max_tokens,
        max_iterations=config.pipeline.max_iterations,
        target_score=config.pipeline.target_score,
        on_phase=on_phase,
    )


def _print_round(round_: Round, orchestrator: PipelineOrchestrator) -> None:
    ev = round_.evaluation
    color = BAND_COLORS[ev.band]
    lines = [
        f"[bold {color}]Score: {ev.score}/100 - {BAND_LABELS[ev.band]}[/bold {color}]",
        f"Round {round_.round_number} of at most {orchestrator.max_iterations}",
        "",
        ev.overall_assessment,
    ]
    if orchestrator.target_achieved(round_):
        lines.append("\n[green]Target score achieved. You can stop here or keep optimizing.[/green]")
    console.print(Panel("\n".join(lines), title="Evaluation"))

    for title, items, style in (
        ("Strengths", ev.strengths, "green"),
        ("Improvements", ev.improvements, "yellow"),
        ("Missing elements", ev.missing_elements, "red"),
    ):
        if items:
            console.print(f"[{style}]{title}:[/{style}]")
            for item in items:
                console.print(f"  - {item}")


def _print_history(ledger: IterationLedger) -> None:
    latest = ledger.latest
    best = ledger.best()
    table = Table(
        title="Iteration history",
        caption=f"{latest.round_number} round(s), best is round {best.round_number}" if latest else None,
    )
    table.add_column("Round", justify="right")
    table.add_column("Step")
    table.add_column("Score", justify="right")
    table.add_column("Time")
    current = ledger.current_number
    for r in ledger.list():
        marker = " *" if r.round_number == current else ""
        score = f"[bold green]{r.score}[/bold green]" if r is best else str(r.score)
        table.add_row(
            f"{r.round_number}{marker}", r.step, score, r.timestamp.strftime("%H:%M:%S")
        )
    console.print(table)


def _print_error(exc: PipelineError) -> None:
    payload = exc.to_dict()
    body = payload["detail"]
    if payload.get("plans"):
        body += "\n\nAvailable plans:"
        for plan in payload["plans"]:
            body += (
                f"\n  - {plan['label']}: {plan['credits']} credits"
                f" for {plan['price']:.2f} {plan['currency']}"
            )
    console.print(Panel(f"[red]{escape(body)}[/red]", title=payload["kind"]))


def _save(session: Session, output: Path) -> None:
    current = session.ledger.current
    if current is None:
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(current.document, encoding="utf-8")
    history_path = output.with_suffix(".rounds.json")
    history_path.write_text(session.ledger.to_json(), encoding="utf-8")
    console.print(f"[green]Resume saved: {output} (round {current.round_number})[/green]")
    console.print(f"[dim]History saved: {history_path}[/dim]")


async def _run_session(
    orchestrator: PipelineOrchestrator,
    session: Session,
    output: Path,
    auto: int | None,
) -> None:
    try:
        round_ = await orchestrator.tailor(session.session_id)
    except PipelineError as exc:
        _print_error(exc)
        orchestrator.stop(session.session_id)
        raise typer.Exit(1) from exc
    _print_round(round_, orchestrator)

    remaining_auto = auto
    while True:
        if remaining_auto is not None:
            if remaining_auto <= 0:
                break
            choice = "o"
            remaining_auto -= 1
        else:
            choice = Prompt.ask(
                "[o]ptimize, [l N] load round N, [h]istory, [s]top and save",
                default="s",
            ).strip().lower()

        if choice == "o":
            try:
                round_ = await orchestrator.optimize(session.session_id)
            except PipelineError as exc:
                _print_error(exc)
                if session.is_terminated:
                    break
                continue
            _print_round(round_, orchestrator)
        elif choice.startswith("l"):
            try:
                round_ = orchestrator.restore(session.session_id, int(choice[1:].strip()))
            except ValueError:
                console.print("[red]Usage: l N[/red]")
                continue
            except PipelineError as exc:
                _print_error(exc)
                continue
            console.print(f"[cyan]Loaded round {round_.round_number}[/cyan]")
            _print_round(round_, orchestrator)
        elif choice == "h":
            _print_history(session.ledger)
        elif choice == "s":
            break

    orchestrator.stop(session.session_id)
    _save(session, output)


@app.command()
def tailor(
    account: str = typer.Argument(help="Account id"),
    jd: Path = typer.Option(..., "--jd", help="Job description text file"),
    role: CallerRole = typer.Option(CallerRole.CLIENT, "--role", help="Caller role"),
    base: Path = typer.Option(None, "--base", help="Store this LaTeX file as the base resume first"),
    output: Path = typer.Option(None, "--output", "-o", help="Output .tex path"),
    model: str = typer.Option(None, "--model", help="Writer model override"),
    auto: int = typer.Option(None, "--auto", help="Run N optimize rounds without prompting"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a tailoring session: tailor once, then optimize as many rounds as you like."""
    _setup_logging(verbose)
    if not jd.exists():
        console.print(f"[red]Job description not found: {jd}[/red]")
        raise typer.Exit(1)

    primary_key = os.environ.get("ANTHROPIC_API_KEY")
    if not primary_key:
        console.print("[red]ANTHROPIC_API_KEY is not set[/red]")
        raise typer.Exit(1)
    credentials = ProviderCredentials(
        primary_key=primary_key,
        fallback_key=os.environ.get("ANTHROPIC_API_KEY_FALLBACK") or None,
        model=model,
    )

    config = load_config()
    store = _store(config)
    if base is not None:
        if not base.exists():
            console.print(f"[red]Base resume not found: {base}[/red]")
            raise typer.Exit(1)
        store.set_base_document(account, base.read_text(encoding="utf-8"))

    def on_phase(phase: str, detail: str) -> None:
        if phase != "done":
            console.print(f"[dim]{detail}...[/dim]")

    orchestrator = build_orchestrator(config, store, on_phase=on_phase)
    session = orchestrator.start_session(
        Caller(account_id=account, role=role),
        jd.read_text(encoding="utf-8"),
        credentials,
    )
    if output is None:
        output = Path(f"./output/{account}_{session.session_id[:8]}.tex")

    asyncio.run(_run_session(orchestrator, session, output, auto))

    if verbose:
        usage = session.gateway.get_token_summary()
        console.print(f"[dim]Tokens: {usage['input']} in / {usage['output']} out[/dim]")


@app.command()
def balance(account: str = typer.Argument(help="Account id")) -> None:
    """Show the remaining tailoring credits of an account."""
    store = _store(load_config())
    value = store.get_balance(account)
    if value is None:
        console.print(f"[yellow]Unknown account: {account}[/yellow]")
        raise typer.Exit(1)
    console.print(f"{account}: [bold]{value}[/bold] credit(s)")


@app.command()
def topup(
    account: str = typer.Argument(help="Account id"),
    credits: int = typer.Option(..., "--credits", min=1, help="Credits to add"),
) -> None:
    """Grant credits to an account (operator action)."""
    store = _store(load_config())
    new_balance = store.credit(account, credits)
    console.print(f"[green]{account}: balance is now {new_balance}[/green]")


@app.command("set-base")
def set_base(
    account: str = typer.Argument(help="Account id"),
    latex: Path = typer.Argument(help="Base LaTeX resume file"),
) -> None:
    """Store the base LaTeX resume used by the Tailor step."""
    if not latex.exists():
        console.print(f"[red]File not found: {latex}[/red]")
        raise typer.Exit(1)
    store = _store(load_config())
    store.set_base_document(account, latex.read_text(encoding="utf-8"))
    console.print(f"[green]Base resume stored for {account}[/green]")


@app.command()
def history(
    rounds_file: Path = typer.Argument(help="A .rounds.json file saved by a tailor session"),
    round_number: int = typer.Option(None, "--round", "-r", help="Round to extract (default: best)"),
    extract: Path = typer.Option(None, "--extract", help="Write the chosen round's LaTeX here"),
) -> None:
    """Browse a saved session's rounds and optionally extract one as LaTeX."""
    if not rounds_file.exists():
        console.print(f"[red]File not found: {rounds_file}[/red]")
        raise typer.Exit(1)
    try:
        ledger = IterationLedger.from_json(rounds_file.read_text(encoding="utf-8"))
    except ValueError as exc:
        console.print(f"[red]Not a valid rounds file: {escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc
    if len(ledger) == 0:
        console.print("[yellow]No rounds recorded[/yellow]")
        raise typer.Exit(1)
    _print_history(ledger)

    if extract is None:
        return
    try:
        chosen = ledger.best() if round_number is None else ledger.get(round_number)
    except PipelineError as exc:
        _print_error(exc)
        raise typer.Exit(1) from exc
    extract.parent.mkdir(parents=True, exist_ok=True)
    extract.write_text(chosen.document, encoding="utf-8")
    console.print(
        f"[green]Round {chosen.round_number} (score {chosen.score}) saved: {extract}[/green]"
    )


if __name__ == "__main__":
    app()
