from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, current_user, login_required
from srm_approvals.models import User

auth_bp = Blueprint('auth', __name__)

@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email_in = (data.get('email') or '').strip().lower()
    user = User.query.filter_by(email=email_in).first()
    if user and user.is_active and user.check_password(data.get('password') or ''):
        login_user(user)
        return jsonify(user.to_dict())
    return jsonify({'error': 'Invalid credentials.'}), 401

@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})

@auth_bp.route('/me')
@login_required
def me():
    return jsonify(current_user.to_dict())
