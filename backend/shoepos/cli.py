# Overview: Flask CLI command groups for bootstrap, user creation, import inspection, and ledger audit.

# backend/shoepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent) and a default owner account if none exists.
#
# Users:
# - python -m flask users create --email owner@shoepos.local --password "Password123!" --role OWNER
#   Create a staff account (prompts if options are omitted).
#
# Imports:
# - python -m flask imports status 42 [--audit-limit 20]
#   Show an inventory import batch with its most recent audit entries.
#
# Ledger:
# - python -m flask ledger audit
#   Scan the full stock ledger for duplicate initial counts and negative on-hand.
#   Exits with status 1 when any problem is found.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .services.auth_service import create_user
from .services.import_batch_service import get_import_batch_status
from .services.ledger_service import audit_ledger
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@click.option('--owner-email', default='owner@shoepos.local', help='Email for the default owner account')
@click.option('--owner-password', default='Password123!', help='Password for the default owner account')
@with_appcontext
def init_db(owner_email, owner_password):
    """
    Create tables and bootstrap a default OWNER account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing database...")
    db.create_all()
    click.echo("PASS Tables created")

    if db.session.query(User).filter_by(role="OWNER").first():
        click.echo("WARN  An owner account already exists, skipping...")
        return

    try:
        user = create_user(
            email=owner_email,
            password=owner_password,
            first_name="Store",
            last_name="Owner",
            role="OWNER",
        )
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created owner: {user.email}")


@click.group('users')
def users_group():
    """Staff account commands."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--first-name', prompt=True)
@click.option('--last-name', prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='EMPLOYEE', show_default=True)
@with_appcontext
def create_user_command(email, password, first_name, last_name, role):
    """Create a staff account."""
    try:
        user = create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@click.group('imports')
def imports_group():
    """Inventory import inspection commands."""


@imports_group.command('status')
@click.argument('batch_id', type=int)
@click.option('--audit-limit', default=20, show_default=True, help='Number of audit entries to show')
@with_appcontext
def import_status(batch_id, audit_limit):
    """Show an import batch with its recent audit trail."""
    try:
        status = get_import_batch_status(batch_id, audit_limit=audit_limit)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"Batch {status['id']}: {status['status']} "
        f"({status['processed_rows']}/{status['total_rows']} rows, chunk size {status['chunk_size']})"
    )
    if status.get("failure_reason"):
        click.echo(f"FAIL {status['failure_reason']}")
    for entry in status["audit_log"]:
        metadata = json.dumps(entry["metadata"]) if entry.get("metadata") else ""
        click.echo(f"  [{entry['level']:<5}] {entry['created_at']} {entry['message']} {metadata}".rstrip())


@click.group('ledger')
def ledger_group():
    """Stock ledger maintenance commands."""


@ledger_group.command('audit')
@with_appcontext
def ledger_audit():
    """Report duplicate initial counts and negative on-hand across the ledger."""
    result = audit_ledger()
    click.echo(f"Variants checked: {result['variants_checked']}")

    problems = 0
    for variant_id in result["duplicate_initial_counts"]:
        click.echo(f"FAIL Variant {variant_id} has more than one INITIAL_COUNT entry")
        problems += 1
    for variant_id in result["negative_on_hand"]:
        click.echo(f"FAIL Variant {variant_id} has negative on-hand")
        problems += 1

    if problems:
        raise click.exceptions.Exit(1)
    click.echo("PASS Ledger is consistent")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(imports_group)
    app.cli.add_command(ledger_group)
