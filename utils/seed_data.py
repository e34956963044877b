import logging

import click
from flask import current_app
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash

from extensions import db
from models.user import ROLES, User

logger = logging.getLogger(__name__)


def parse_admin_accounts(raw):
    """Parse ``"name|email|password;name|email|password"`` into dicts."""
    accounts = []
    for chunk in (raw or "").split(";"):
        if not chunk.strip():
            continue
        parts = [p.strip() for p in chunk.split("|")]
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Invalid admin account entry: {chunk!r}")
        name, email, password = parts
        accounts.append({"name": name, "email": email.lower(), "password": password})
    return accounts


def seed_admins():
    created = 0
    for account in parse_admin_accounts(current_app.config["ADMIN_ACCOUNTS"]):
        if User.query.filter_by(email=account["email"]).first():
            continue

        db.session.add(
            User(
                name=account["name"],
                email=account["email"],
                password_hash=generate_password_hash(account["password"]),
                role="admin",
                is_active=True
            )
        )
        created += 1

    db.session.commit()
    logger.info("Admin accounts verified (%d created)", created)
    return created


@click.command("seed-admins")
@with_appcontext
def seed_admins_command():
    """Create the configured admin accounts if they are missing."""
    created = seed_admins()
    click.echo(f"Admin accounts verified ({created} created)")


@click.command("create-user")
@click.option("--name", required=True)
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--role", type=click.Choice(ROLES), default="student", show_default=True)
@click.option("--admission-number", default=None)
@click.option("--class-name", default=None)
@with_appcontext
def create_user_command(name, email, password, role, admission_number, class_name):
    """Add a staff, student or admin account."""
    if role == "student" and not (admission_number and class_name):
        raise click.UsageError("Students need --admission-number and --class-name")
    if User.query.filter_by(email=email.strip().lower()).first():
        raise click.UsageError(f"A user with email {email} already exists")

    user = User(
        name=name,
        email=email,
        password_hash=generate_password_hash(password),
        role=role,
        admission_number=admission_number if role == "student" else None,
        class_name=class_name if role == "student" else None,
        is_active=True
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"Created {role} {user.email} (id {user.user_id})")


def register_commands(app):
    app.cli.add_command(seed_admins_command)
    app.cli.add_command(create_user_command)
