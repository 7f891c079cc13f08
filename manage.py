import click
from flask.cli import with_appcontext

from classes.validators import validate_password, validate_username
from models import db
from models.users import User


@click.command("create-admin")
@click.argument("username")
@click.argument("name")
@click.password_option()
@with_appcontext
def create_admin(username, name, password):
    """Create an admin account, or promote USERNAME if it already exists."""
    try:
        validate_username(username)
        validate_password(password)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    user = User.query.filter_by(username=username).first()
    if user:
        user.role = "admin"
        user.status = "active"
        click.echo(f"Promoted existing user {username} to admin")
    else:
        user = User(username=username, name=name, role="admin")
        db.session.add(user)
        click.echo(f"Created admin {username}")
    user.set_password(password)
    db.session.commit()


def register_commands(app):
    # `flask db ...` comes from Flask-Migrate
    app.cli.add_command(create_admin)
