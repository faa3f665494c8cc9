# homenet/cli.py
"""Operator commands registered on ``flask``."""

import click
from flask.cli import with_appcontext

from homenet import db
from homenet.admin.utils import seed_cost_items
from homenet.models import Admin, ADMIN_ROLES


@click.command("create-admin")
@click.argument("username")
@click.password_option(help="Password (prompted when omitted)")
@click.option("--role", type=click.Choice(ADMIN_ROLES), default="admin", show_default=True)
@with_appcontext
def create_admin_command(username: str, password: str, role: str) -> None:
    """Create an admin account, or reset the password of an existing one."""
    if len(password) < 8:
        raise click.BadParameter("must be at least 8 characters", param_hint="password")
    admin = Admin.query.filter_by(username=username).first()
    if admin is None:
        admin = Admin(username=username, role=role)
        db.session.add(admin)
        action = "Created"
    else:
        admin.role = role
        admin.login_attempts = 0
        admin.lock_until = None
        action = "Updated"
    admin.set_password(password)
    db.session.commit()
    click.echo(f"{action} {role} '{username}'")


@click.command("seed-cost-items")
@with_appcontext
def seed_cost_items_command() -> None:
    """Insert the default cost items and bill of materials."""
    created, skipped = seed_cost_items()
    click.echo(f"{created} created, {skipped} already present")
