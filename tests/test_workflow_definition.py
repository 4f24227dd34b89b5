"""Tests for the declarative stage table."""

import pytest

from srm_approvals.constants import Role, Stage, STAGE_ORDER
from srm_approvals.services.workflow_definition import (
    DEFAULT_RULES, WorkflowDefinition, category_resolver,
)


@pytest.fixture
def definition():
    return WorkflowDefinition()


class TestStageTable:

    def test_every_non_terminal_stage_has_a_rule(self, definition):
        ruled = {rule.stage for rule in DEFAULT_RULES}
        assert ruled == {s for s in Stage if not s.is_terminal}

    def test_terminal_stages(self, definition):
        assert definition.is_terminal(Stage.APPROVED)
        assert definition.is_terminal(Stage.REJECTED)
        assert not definition.is_terminal(Stage.CHAIRMAN_APPROVAL)

    def test_initial_stage_is_manager_review(self, definition):
        assert definition.initial_stage == Stage.MANAGER_REVIEW

    def test_only_parallel_verification_is_parallel(self, definition):
        parallel = [s for s in Stage if definition.is_parallel(s)]
        assert parallel == [Stage.PARALLEL_VERIFICATION]

    def test_parallel_stage_needs_two_roles(self, definition):
        roles = definition.roles_for(Stage.PARALLEL_VERIFICATION)
        assert roles == {Role.SOP_VERIFIER, Role.ACCOUNTANT}

    @pytest.mark.parametrize('stage,role', [
        (Stage.MANAGER_REVIEW, Role.INSTITUTION_MANAGER),
        (Stage.VP_APPROVAL, Role.VP),
        (Stage.HOI_APPROVAL, Role.HEAD_OF_INSTITUTION),
        (Stage.DEAN_REVIEW, Role.DEAN),
        (Stage.CHIEF_DIRECTOR_APPROVAL, Role.CHIEF_DIRECTOR),
        (Stage.CHAIRMAN_APPROVAL, Role.CHAIRMAN),
    ])
    def test_sequential_stage_roles(self, definition, stage, role):
        assert definition.roles_for(stage) == {role}

    def test_path_follows_stage_order(self, definition):
        path = definition.stages_path()
        assert path[0] == Stage.DRAFT
        assert path[-1] == Stage.APPROVED
        assert [s.position for s in path] == sorted(s.position for s in path)
        assert Stage.REJECTED not in path
        assert len(path) == len(STAGE_ORDER) - 1

    @pytest.mark.parametrize('next_stage', [Stage.MANAGER_REVIEW, Stage.DRAFT, Stage.REJECTED])
    def test_rule_table_must_move_forward(self, next_stage):
        rules = tuple(
            rule._replace(next_stage=next_stage) if rule.stage == Stage.VP_APPROVAL else rule
            for rule in DEFAULT_RULES
        )
        with pytest.raises(ValueError):
            WorkflowDefinition(rules=rules)

    def test_terminal_stage_has_no_rule(self, definition):
        with pytest.raises(KeyError):
            definition.roles_for(Stage.APPROVED)

    def test_valid_edges(self, definition):
        assert definition.is_valid_edge(Stage.DEAN_REVIEW, Stage.DEPARTMENT_CHECKS)
        assert definition.is_valid_edge(Stage.DEAN_REVIEW, Stage.REJECTED)
        assert definition.is_valid_edge(Stage.DEAN_REVIEW, Stage.DEAN_REVIEW)
        assert not definition.is_valid_edge(Stage.DEAN_REVIEW, Stage.CHAIRMAN_APPROVAL)
        assert not definition.is_valid_edge(Stage.DEAN_REVIEW, Stage.VP_APPROVAL)
        assert not definition.is_valid_edge(Stage.REJECTED, Stage.MANAGER_REVIEW)


class TestDepartmentCheckRouting:

    def test_default_routes_to_mma(self, definition):
        assert definition.roles_for(Stage.DEPARTMENT_CHECKS, {}) == {Role.MMA}

    def test_category_routing(self):
        definition = WorkflowDefinition(resolver=category_resolver({'Software': 'it', 'Staffing': 'hr'}))
        assert definition.roles_for(Stage.DEPARTMENT_CHECKS, {'expense_category': 'software'}) == {Role.IT}
        assert definition.roles_for(Stage.DEPARTMENT_CHECKS, {'expense_category': 'Staffing'}) == {Role.HR}
        assert definition.roles_for(Stage.DEPARTMENT_CHECKS, {'expense_category': 'Travel'}) == {Role.MMA}

    def test_resolver_only_consulted_for_routed_stage(self):
        calls = []

        def resolver(stage, attributes):
            calls.append(stage)
            return {Role.AUDIT}

        definition = WorkflowDefinition(resolver=resolver)
        assert definition.roles_for(Stage.VP_APPROVAL, {}) == {Role.VP}
        assert definition.roles_for(Stage.DEPARTMENT_CHECKS, {}) == {Role.AUDIT}
        assert calls == [Stage.DEPARTMENT_CHECKS]

    def test_resolver_returning_foreign_role_is_rejected(self):
        definition = WorkflowDefinition(resolver=lambda stage, attrs: {Role.CHAIRMAN})
        with pytest.raises(ValueError):
            definition.roles_for(Stage.DEPARTMENT_CHECKS, {})

    def test_unknown_role_in_routing_table(self):
        with pytest.raises(ValueError):
            category_resolver({'Software': 'janitor'})
