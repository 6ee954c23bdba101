# app/cli.py
from __future__ import annotations

import click
from flask import Flask
from sqlalchemy.exc import IntegrityError

from .extensions import db
from .models import Role, User
from .utils.tokens import issue_token


def register_cli(app: Flask) -> None:
    @app.cli.command("create-user")
    @click.argument("username")
    @click.argument("role", type=click.Choice([r.value for r in Role]))
    @click.option("--phone", default=None, help="Phone number for SMS notifications.")
    def create_user(username: str, role: str, phone: str | None):
        """Insert a user record and print a bearer token for it."""
        user = User(username=username.strip(), role=Role(role), phone_number=phone)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise click.ClickException("Username or phone already exists.")

        click.echo(f"Created {user.role.value} user #{user.id} ({user.username})")
        click.echo(issue_token(user.id, user.role))

    @app.cli.command("issue-token")
    @click.argument("user_id", type=int)
    def issue_token_command(user_id: int):
        """Print a fresh bearer token for an existing user."""
        user = db.session.get(User, user_id)
        if user is None:
            raise click.ClickException(f"User #{user_id} not found.")
        click.echo(issue_token(user.id, user.role))
