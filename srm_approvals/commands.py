import click
from flask.cli import AppGroup

from srm_approvals.constants import Role, DEPARTMENT_CHECK_ROLES
from srm_approvals.models import CheckRouting, User
from srm_approvals.services.routing_service import RoutingService
from srm_approvals.services.user_service import UserService

users_cli = AppGroup('users', help='Manage approver and requester accounts.')
routing_cli = AppGroup('routing', help='Manage department check routing.')


@users_cli.command('create')
@click.option('--name', required=True)
@click.option('--email', required=True)
@click.option('--role', required=True, type=click.Choice([r.value for r in Role]))
@click.option('--college')
@click.option('--dept')
@click.option('--password')
def create_user(name, email, role, college, dept, password):
    try:
        user = UserService.create_or_update_user({
            'name': name, 'email': email, 'role': role,
            'college': college, 'dept': dept, 'password': password,
        })
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created user #{user.id} {user.email} ({user.role})")


@users_cli.command('deactivate')
@click.argument('email')
def deactivate_user(email):
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user or not UserService.deactivate_user(user.id):
        raise click.ClickException(f"No user with email {email}")
    click.echo(f"Deactivated {user.email}")


@users_cli.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role]))
def list_users(role):
    query = User.query.order_by(User.role, User.email)
    if role: query = query.filter_by(role=role)
    for u in query.all():
        click.echo(f"{u.id}\t{u.email}\t{u.role}\t{'active' if u.is_active else 'inactive'}")


@routing_cli.command('list')
def list_routes():
    for category, role in RoutingService.list_routes().items():
        click.echo(f"{category}\t{role}")


@routing_cli.command('set')
@click.argument('category')
@click.argument('role', type=click.Choice(sorted(r.value for r in DEPARTMENT_CHECK_ROLES)))
def set_route(category, role):
    """Routes CATEGORY to ROLE, replacing any existing mapping."""
    route = CheckRouting.query.filter_by(expense_category=category.strip()).first()
    try:
        if route:
            RoutingService.manage_check_route('check_route', {'id': route.id, 'role': role})
        else:
            RoutingService.manage_check_route('add_check_mapping', {'category': category, 'role': role})
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"{category.strip()} -> {role}")


@routing_cli.command('delete')
@click.argument('category')
def delete_route(category):
    route = CheckRouting.query.filter_by(expense_category=category.strip()).first()
    if not route:
        raise click.ClickException(f"No routing for {category}")
    name = route.expense_category
    RoutingService.manage_check_route('delete_check_mapping', {'id': route.id})
    click.echo(f"Removed routing for {name}")


def register_commands(app):
    app.cli.add_command(users_cli)
    app.cli.add_command(routing_cli)
