"""Tests for actor account maintenance."""

import pytest

from srm_approvals.constants import Role
from srm_approvals.services.user_service import UserService


class TestUserService:

    def test_create_with_default_password(self, app):
        user = UserService.create_or_update_user({
            'name': 'Asha Rao', 'email': ' Asha.Rao@SRM.test ', 'role': 'dean',
        })
        assert user.email == 'asha.rao@srm.test'
        assert user.role == Role.DEAN.value
        assert user.check_password('pass123')
        assert user.is_active

    def test_update(self, app, users):
        dean = users[Role.DEAN]
        user = UserService.create_or_update_user({
            'id': dean.id, 'name': 'New Dean', 'email': dean.email, 'role': 'dean', 'dept': 'Physics',
        })
        assert user.username == 'New Dean'
        assert user.department == 'Physics'

    def test_duplicate_email(self, app, users):
        with pytest.raises(ValueError):
            UserService.create_or_update_user({'name': 'Copy', 'email': 'dean@srm.test', 'role': 'vp'})

    def test_unknown_role(self, app):
        with pytest.raises(ValueError):
            UserService.create_or_update_user({'name': 'X', 'email': 'x@srm.test', 'role': 'janitor'})

    def test_missing_fields(self, app):
        with pytest.raises(ValueError):
            UserService.create_or_update_user({'email': 'x@srm.test', 'role': 'vp'})

    def test_deactivate(self, app, users):
        assert UserService.deactivate_user(users[Role.VP].id) is True
        assert users[Role.VP].is_active is False
        assert UserService.deactivate_user(9999) is False
