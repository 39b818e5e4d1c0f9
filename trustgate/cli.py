"""trustgate CLI -- run the gateway checks locally and serve the API."""

import asyncio

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from trustgate import __version__
from trustgate.config import GatewaySettings, configure_logging

console = Console()

_ACTION_STYLE = {"allow": "green", "content_warning": "yellow", "block": "red"}


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
@click.pass_context
def main(ctx: click.Context, log_level: str | None):
    """trustgate -- write-path trust gateway.

    Rate limiting and content moderation for content submissions.
    """
    settings = GatewaySettings.from_env()
    if log_level:
        settings.log_level = log_level.upper()
    configure_logging(settings.log_level)
    ctx.obj = settings


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option("--operation", "-o", default="post", help="Protected operation to gate")
@click.option("--user", default="cli-user", help="User identifier for the user-scoped quota")
@click.option("--ip", default="127.0.0.1", help="IP identifier for the IP-scoped quota")
@click.pass_obj
def check(settings: GatewaySettings, text: str, operation: str, user: str, ip: str):
    """Run TEXT through the full gateway and print the decision."""
    from trustgate.errors import InvalidInputError
    from trustgate.gateway import TrustGateway
    from trustgate.moderation.domain import detect_domain_content

    gateway = TrustGateway.from_settings(settings)
    try:
        result = asyncio.run(
            gateway.evaluate(
                text,
                operation,
                {"ip": ip, "user": user},
                domain=detect_domain_content(text),
            )
        )
    except InvalidInputError as exc:
        raise click.ClickException(exc.message)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--operation")
    finally:
        gateway.close()

    if not result.quota.allowed:
        console.print(
            f"[red]Quota exceeded[/] -- retry in {result.quota.retry_after}s "
            f"(limit {result.quota.limit})"
        )
        raise SystemExit(2)

    decision = result.decision
    style = _ACTION_STYLE[decision.action.value]
    body = [
        f"[bold]Decision:[/] [{style}]{decision.action.value}[/]",
        f"[bold]Sentiment:[/] {result.classification.sentiment.value}",
        f"[bold]Reasoning:[/] {decision.reasoning}",
    ]
    if decision.warnings:
        body.append(f"[bold]Warnings:[/] {', '.join(decision.warnings)}")
    if result.degraded:
        body.append("[dim]One or more services ran in fallback mode.[/]")
    console.print(Panel("\n".join(body), title="trustgate"))
    if decision.blocked:
        raise SystemExit(1)


# ── Detect ───────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
def detect(text: str):
    """Run only the local domain detector on TEXT."""
    from trustgate.moderation.domain import detect_domain_content

    detection = detect_domain_content(text)
    if not detection.detected:
        console.print("[green]No domain policy matches.[/]")
        return
    console.print(f"[bold]Severity:[/] {detection.severity.value}")
    for match in detection.matches:
        console.print(f"  - {match}")


# ── Policies ─────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def policies(settings: GatewaySettings):
    """List quota policies per protected operation."""
    from trustgate.policy import PROTECTED_OPERATIONS, QUOTA_POLICIES, load_policy_overrides

    table_data = load_policy_overrides(settings.policy_file) if settings.policy_file else QUOTA_POLICIES

    table = Table(title="Protected operations")
    table.add_column("Operation", style="cyan")
    table.add_column("Order", justify="right", style="dim")
    table.add_column("Scope")
    table.add_column("Action")
    table.add_column("Limit", justify="right", style="green")
    table.add_column("Window (s)", justify="right")

    for operation, steps in PROTECTED_OPERATIONS.items():
        for i, (scope, action) in enumerate(steps):
            policy = table_data[action]
            table.add_row(
                operation if i == 0 else "",
                str(i + 1),
                scope,
                action,
                str(policy.limit),
                str(policy.window_seconds),
            )

    console.print(table)


# ── Serve ────────────────────────────────────────────────────────────


@main.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=8000, type=int)
def serve(host: str, port: int):
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    console.print(f"\n[bold blue]trustgate[/] -- serving on http://{host}:{port}\n")
    uvicorn.run("web.backend.app.main:app", host=host, port=port)


if __name__ == "__main__":
    main()
