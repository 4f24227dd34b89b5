from srm_approvals.constants import Role
from srm_approvals.extensions import db
from srm_approvals.models import User

class UserService:
    @staticmethod
    def create_or_update_user(data):
        """
        Creates a new user or updates an existing one.
        Expects data dictionary with: id, name, email, role, college, dept, password.
        """
        user_id = data.get('id')
        name = data.get('name')
        email = (data.get('email') or '').strip().lower()
        role = data.get('role')

        # Basic Validation
        if not name or not email:
            raise ValueError("User Name and Email are mandatory fields.")
        try:
            role = Role(role).value
        except ValueError:
            raise ValueError(f"Unknown role: {role}")

        if user_id:
            # UPDATE EXISTING
            user = db.session.get(User, user_id)
            if not user:
                raise ValueError("User not found.")
            clash = User.query.filter_by(email=email).first()
            if clash and clash.id != user.id:
                raise ValueError("User with this email already exists.")
            user.username = name
            user.email = email
            user.role = role
            user.college = data.get('college')
            user.department = data.get('dept')
        else:
            # CREATE NEW
            if User.query.filter_by(email=email).first():
                raise ValueError("User with this email already exists.")

            user = User(username=name, email=email, role=role,
                        college=data.get('college'), department=data.get('dept'))
            user.set_password(data.get('password') or 'pass123') # Default password policy
            db.session.add(user)

        db.session.commit()
        return user

    @staticmethod
    def deactivate_user(user_id):
        """Deactivates a user. Their history entries keep pointing at them."""
        user = db.session.get(User, user_id)
        if user:
            user.is_active = False
            db.session.commit()
            return True
        return False
