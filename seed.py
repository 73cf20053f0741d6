#!/usr/bin/env python3
"""
Create the initial admin account.

    python seed.py
    python seed.py --email admin@synos.se --password "..." --name "Admin"

Email and password default to ADMIN_EMAIL / ADMIN_PASSWORD from the
environment (or .env). Running it again for an existing email is a no-op.
"""

import logging

import click
from rich.console import Console

import config
import database
from auth import create_user
from logging_setup import setup_logging

console = Console()
logger = logging.getLogger(__name__)


def seed_admin(email: str, password: str, name: str) -> bool:
    """Create an admin user; False when the email is already registered."""
    email = email.strip().lower()
    if database.collection("user").find_one({"email": email}):
        logger.info("Admin %s already exists", email)
        return False
    create_user(name, email, password, role="admin")
    return True


@click.command()
@click.option("--email", default=lambda: config.ADMIN_EMAIL, help="Admin email (ADMIN_EMAIL).")
@click.option("--password", default=lambda: config.ADMIN_PASSWORD, help="Admin password (ADMIN_PASSWORD).")
@click.option("--name", default=lambda: config.ADMIN_NAME, show_default=True, help="Display name.")
def main(email, password, name):
    setup_logging(config.LOG_LEVEL)
    if not email or not password:
        console.print("[bold red]ADMIN_EMAIL and ADMIN_PASSWORD must be set[/bold red]")
        raise SystemExit(1)
    if len(password) < 8:
        console.print("[bold red]Password must be at least 8 characters[/bold red]")
        raise SystemExit(1)
    database.get_db()
    if seed_admin(email, password, name):
        console.print(f"[green]Admin {email} created[/green]")
    else:
        console.print(f"[yellow]Admin {email} already exists, nothing to do[/yellow]")


if __name__ == "__main__":
    main()
