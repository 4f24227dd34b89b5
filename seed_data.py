import logging
from srm_approvals import create_app
from srm_approvals.constants import Role
from srm_approvals.extensions import db
from srm_approvals.models import User
from srm_approvals.services.routing_service import RoutingService

logger = logging.getLogger(__name__)

# One account per role: (role, name, email)
SEED_USERS = [
    (Role.REQUESTER, 'Faculty Requester', 'requester@srm.edu'),
    (Role.INSTITUTION_MANAGER, 'Institution Manager', 'manager@srm.edu'),
    (Role.SOP_VERIFIER, 'SOP Verifier', 'sop@srm.edu'),
    (Role.ACCOUNTANT, 'Accounts Team', 'accounts@srm.edu'),
    (Role.VP, 'Vice President', 'vp@srm.edu'),
    (Role.HEAD_OF_INSTITUTION, 'Head of Institution', 'hoi@srm.edu'),
    (Role.DEAN, 'Dean', 'dean@srm.edu'),
    (Role.MMA, 'MMA Team', 'mma@srm.edu'),
    (Role.HR, 'HR Team', 'hr@srm.edu'),
    (Role.AUDIT, 'Audit Team', 'audit@srm.edu'),
    (Role.IT, 'IT Team', 'it@srm.edu'),
    (Role.CHIEF_DIRECTOR, 'Chief Director', 'chief.director@srm.edu'),
    (Role.CHAIRMAN, 'Chairman', 'chairman@srm.edu'),
]


def seed(app):
    with app.app_context():
        logger.info("Creating users...")
        for role, name, email in SEED_USERS:
            if User.query.filter_by(email=email).first():
                continue
            u = User(username=name, email=email, role=role.value, college='SRMIST - E&T')
            u.set_password('pass123')
            db.session.add(u)
        db.session.commit()

        logger.info("Loading department check routing...")
        for category, role in app.config['DEPARTMENT_CHECK_ROUTING'].items():
            RoutingService.manage_check_route('add_check_mapping', {'category': category, 'role': role})
        logger.info("Done.")


if __name__ == '__main__':
    seed(create_app())
