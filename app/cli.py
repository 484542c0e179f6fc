from datetime import datetime

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from app.extensions import db
from app.models.topic import Topic
from app.models.user import ROLE_CHOICES, User
from app.utils.helpers import as_aware
from app.utils.validators import is_valid_email

# Starter topics for a fresh board
DEFAULT_TOPICS = (
    ("Feature Request", "Ideas for new functionality", "#0284c7", "lightbulb"),
    ("Bug Report", "Something isn't working as expected", "#dc2626", "bug"),
    ("Improvement", "Make an existing feature better", "#16a34a", "sparkles"),
    ("Question", "Ask the team", "#9333ea", "help-circle"),
)


def _find_user(email: str) -> User:
    user = db.session.execute(
        db.select(User).where(func.lower(User.email) == func.lower(email))
    ).scalar_one_or_none()
    if not user:
        raise click.ClickException(f"No user with email {email}")
    return user


@click.group()
def users():
    """User management."""


@users.command("create")
@click.option("--email", required=True)
@click.option("--name", required=True)
@click.option("--password", required=True)
@click.option("--role", type=click.Choice(ROLE_CHOICES), default="user")
@with_appcontext
def users_create(email, name, password, role):
    email = email.strip().lower()
    if not is_valid_email(email):
        raise click.ClickException("Invalid email address")
    if db.session.query(User).filter(func.lower(User.email) == email).count():
        raise click.ClickException("User already exists")

    user = User(email=email, name=name.strip(), role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    click.echo(f"User created id={user.id} email={user.email} role={role}")


@users.command("set-role")
@click.option("--email", required=True)
@click.option("--role", type=click.Choice(ROLE_CHOICES), required=True)
@with_appcontext
def users_set_role(email, role):
    user = _find_user(email)
    user.role = role
    db.session.commit()
    click.echo(f"User {user.email} is now {role}")


@users.command("ban")
@click.option("--email", required=True)
@click.option("--reason", default=None)
@click.option("--expires", type=click.DateTime(), default=None, help="UTC expiry; permanent when omitted")
@with_appcontext
def users_ban(email, reason, expires: datetime | None):
    user = _find_user(email)
    user.banned = True
    user.ban_reason = reason
    user.ban_expires_at = as_aware(expires)
    db.session.commit()
    click.echo(f"User {user.email} banned" + (f" until {user.ban_expires_at.isoformat()}" if expires else ""))


@users.command("unban")
@click.option("--email", required=True)
@with_appcontext
def users_unban(email):
    user = _find_user(email)
    user.banned = False
    user.ban_reason = None
    user.ban_expires_at = None
    db.session.commit()
    click.echo(f"User {user.email} unbanned")


@click.group()
def topics():
    """Topic bootstrap."""


@topics.command("seed")
@with_appcontext
def topics_seed():
    created = 0
    for name, description, color, icon in DEFAULT_TOPICS:
        if db.session.query(Topic.id).filter(Topic.name == name).first():
            continue
        db.session.add(Topic(name=name, description=description, color=color, icon=icon))
        created += 1
    db.session.commit()
    click.echo(f"Seeded {created} topic(s)")


def register_cli(app):
    app.cli.add_command(users)
    app.cli.add_command(topics)
