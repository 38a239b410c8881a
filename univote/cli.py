# univote/cli.py

# Bootstrap accounts from the command line, e.g.
#   flask --app univote create-user --username dean --email dean@college.edu \
#       --department Admin --student-id STAFF-1 --role developer

import click
from flask import current_app
from flask.cli import with_appcontext

from univote.authentication.rbac import UserRole
from univote.errors import UniVoteError

ROLE_CHOICES = [role.value for role in UserRole]


@click.command("create-user")
@click.option("--username", required=True)
@click.option("--email", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--department", required=True)
@click.option("--student-id", "student_id", required=True)
@click.option("--year", default=None)
@click.option("--role", "roles", multiple=True, type=click.Choice(ROLE_CHOICES), default=["voter"], show_default=True)
@with_appcontext
def create_user_command(username, email, password, department, student_id, year, roles):
    """Create an account with the given roles."""
    accounts = current_app.extensions["univote"]["accounts"]
    roles = list(dict.fromkeys([UserRole.VOTER.value, *roles]))
    try:
        user = accounts.sign_up(
            {
                "username": username,
                "email": email,
                "password": password,
                "department": department,
                "studentId": student_id,
                "year": year,
            },
            roles=roles,
        )
    except UniVoteError as e:
        raise click.ClickException(e.message)
    click.echo(f"Created user {user['username']} ({user['id']}) with roles: {', '.join(user['roles'])}")


def register_cli(app):
    app.cli.add_command(create_user_command)
