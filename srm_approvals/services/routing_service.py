from srm_approvals.constants import Role, DEPARTMENT_CHECK_ROLES
from srm_approvals.extensions import db
from srm_approvals.models import CheckRouting
from srm_approvals.services.workflow_definition import category_resolver


class RoutingService:

    # --- DEPARTMENT CHECK ROUTING ---
    @staticmethod
    def manage_check_route(action, data):
        if action == 'check_route':  # Update
            route = db.session.get(CheckRouting, data.get('id'))
            if route: route.role = RoutingService._check_role(data.get('role'))

        elif action == 'add_check_mapping':
            category = (data.get('category') or '').strip()
            if not category:
                raise ValueError("Expense category is required.")
            role = RoutingService._check_role(data.get('role'))
            if not CheckRouting.query.filter_by(expense_category=category).first():
                db.session.add(CheckRouting(expense_category=category, role=role))

        elif action == 'delete_check_mapping':
            route = db.session.get(CheckRouting, data.get('id'))
            if route: db.session.delete(route)

        else:
            raise ValueError(f"Unknown routing action: {action}")

        db.session.commit()

    @staticmethod
    def list_routes():
        return {r.expense_category: r.role for r in CheckRouting.query.order_by(CheckRouting.expense_category).all()}

    @staticmethod
    def _check_role(value):
        try:
            role = Role(value)
        except ValueError:
            raise ValueError(f"Unknown role: {value}")
        if role not in DEPARTMENT_CHECK_ROLES:
            raise ValueError(f"{role.value} cannot run department checks.")
        return role.value


def routing_table_resolver(fallback_routing=None, default_role=Role.MMA):
    """Resolver that reads CheckRouting first, then the configured table, then ``default_role``.

    Needs an application context when called.
    """
    fallback = category_resolver(fallback_routing, default_role)

    def resolve(stage, attributes):
        category = ((attributes or {}).get('expense_category') or '').strip()
        if category:
            route = CheckRouting.query.filter(
                db.func.lower(CheckRouting.expense_category) == category.lower()).first()
            if route: return {Role(route.role)}
        return fallback(stage, attributes)

    return resolve
