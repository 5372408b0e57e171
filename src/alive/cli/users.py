"""User management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from alive.database import get_session_context
from alive.errors import DuplicateIdentity
from alive.models import IdentityStatus
from alive.services.audit import AuditLogService
from alive.services.credentials import CredentialService
from alive.services.identity_store import IdentityStore
from alive.services.notifications import get_notification_gateway

console = Console()
app = typer.Typer(help="User management commands")


@app.command("list")
def list_users(
    status: IdentityStatus | None = typer.Option(None, "--status", help="Filter by status"),
    limit: int = typer.Option(50, "--limit", "-l", help="Number of users to show"),
):
    """List accounts, newest first."""

    async def _list():
        async with get_session_context() as session:
            identities, total = await IdentityStore(session).list_identities(limit=limit, status=status)

            table = Table(title=f"Users ({total})")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Phone")
            table.add_column("Roles", style="magenta")
            table.add_column("Status")
            table.add_column("Verified")
            table.add_column("Created", style="dim")

            for identity in identities:
                verified = "[green]Yes[/green]" if identity.email_verified and identity.phone_verified else "No"
                created = identity.created_at.strftime("%Y-%m-%d") if identity.created_at else "-"
                table.add_row(
                    identity.id,
                    identity.email,
                    identity.phone_number,
                    ", ".join(identity.roles or []),
                    identity.status,
                    verified,
                    created,
                )

            console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    phone_number: str = typer.Argument(..., help="Phone number, e.g. +254712345678"),
    national_id: str = typer.Argument(..., help="National identifier"),
    first_name: str | None = typer.Option(None, "--first-name", help="First name"),
    last_name: str | None = typer.Option(None, "--last-name", help="Last name"),
    role: list[str] | None = typer.Option(None, "--role", "-r", help="Role (repeatable)"),
):
    """Create a pre-verified account and send its temporary password by SMS."""

    async def _create():
        async with get_session_context() as session:
            store = IdentityStore(session)
            service = CredentialService(
                store=store,
                notifications=get_notification_gateway(),
                audit=AuditLogService(session),
            )
            try:
                identity = await service.create_by_admin(
                    email=email,
                    phone_number=phone_number,
                    national_id=national_id,
                    first_name=first_name,
                    last_name=last_name,
                    roles=role or None,
                )
            except DuplicateIdentity:
                console.print("[red]Error:[/red] A user with that email, phone, or national id exists")
                raise typer.Exit(1) from None

            console.print(
                f"[green]Created user:[/green] {identity.email} (roles={', '.join(identity.roles)})"
            )

    asyncio.run(_create())


@app.command("grant-role")
def grant_role(
    email: str = typer.Argument(..., help="User email"),
    role: str = typer.Argument("admin", help="Role to grant"),
):
    """Add a role to an account."""

    async def _grant():
        async with get_session_context() as session:
            store = IdentityStore(session)
            identity = await store.get_by_email(email)

            if not identity:
                console.print(f"[red]Error:[/red] User {email} not found")
                raise typer.Exit(1)

            if role in identity.roles:
                console.print(f"[yellow]Warning:[/yellow] User {email} already has role {role}")
                return

            identity.roles = [*identity.roles, role]
            await store.save(identity)
            console.print(f"[green]Granted {role} to:[/green] {email}")

    asyncio.run(_grant())
