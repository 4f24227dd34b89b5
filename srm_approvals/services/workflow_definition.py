"""Declarative stage table for the approval pipeline.

Every non-terminal stage has one rule: the roles allowed to act on it and the
stage reached on approval. Reject always goes to ``Stage.REJECTED`` and is not
part of the table. Stages whose roles depend on the request itself (the
department checks) are marked ``routed`` and answered by a resolver function.
"""
from collections import namedtuple

from srm_approvals.constants import Stage, Role, DEPARTMENT_CHECK_ROLES


StageRule = namedtuple('StageRule', ['stage', 'roles', 'next_stage', 'parallel', 'routed'])


def _rule(stage, roles, next_stage, parallel=False, routed=False):
    return StageRule(stage, frozenset(roles), next_stage, parallel, routed)


DEFAULT_RULES = (
    _rule(Stage.DRAFT, {Role.REQUESTER}, Stage.MANAGER_REVIEW),
    _rule(Stage.MANAGER_REVIEW, {Role.INSTITUTION_MANAGER}, Stage.PARALLEL_VERIFICATION),
    _rule(Stage.PARALLEL_VERIFICATION, {Role.SOP_VERIFIER, Role.ACCOUNTANT}, Stage.VP_APPROVAL,
          parallel=True),
    _rule(Stage.VP_APPROVAL, {Role.VP}, Stage.HOI_APPROVAL),
    _rule(Stage.HOI_APPROVAL, {Role.HEAD_OF_INSTITUTION}, Stage.DEAN_REVIEW),
    _rule(Stage.DEAN_REVIEW, {Role.DEAN}, Stage.DEPARTMENT_CHECKS),
    # `roles` lists every role the resolver may pick from
    _rule(Stage.DEPARTMENT_CHECKS, DEPARTMENT_CHECK_ROLES, Stage.CHIEF_DIRECTOR_APPROVAL,
          routed=True),
    _rule(Stage.CHIEF_DIRECTOR_APPROVAL, {Role.CHIEF_DIRECTOR}, Stage.CHAIRMAN_APPROVAL),
    _rule(Stage.CHAIRMAN_APPROVAL, {Role.CHAIRMAN}, Stage.APPROVED),
)


def category_resolver(routing=None, default_role=Role.MMA):
    """Builds a resolver that picks the department-check role from the expense category.

    ``routing`` maps category names to role values; categories that are not
    mapped (or a request without a category) fall back to ``default_role``.
    """
    table = {}
    for category, role in (routing or {}).items():
        table[category.strip().lower()] = Role(role)

    def resolve(stage, attributes):
        category = (attributes or {}).get('expense_category') or ''
        return {table.get(category.strip().lower(), default_role)}

    return resolve


class WorkflowDefinition:
    """Read-only view of the stage graph. Safe to share between threads."""

    def __init__(self, rules=DEFAULT_RULES, resolver=None):
        self._rules = {rule.stage: rule for rule in rules}
        for rule in self._rules.values():
            # Approval only ever moves forward through STAGE_ORDER
            if rule.next_stage == Stage.REJECTED or rule.next_stage.position <= rule.stage.position:
                raise ValueError(f"Rule for '{rule.stage.value}' does not move forward "
                                 f"(next stage '{rule.next_stage.value}')")
        self._resolver = resolver or category_resolver()
        self.initial_stage = self.next_on_approve(Stage.DRAFT)

    def rule_for(self, stage):
        stage = Stage(stage)
        if stage.is_terminal:
            raise KeyError(f"'{stage.value}' is terminal and has no rule")
        return self._rules[stage]

    def roles_for(self, stage, attributes=None):
        rule = self.rule_for(stage)
        if not rule.routed:
            return rule.roles
        resolved = frozenset(Role(r) for r in self._resolver(rule.stage, attributes or {}))
        if not resolved or not resolved <= rule.roles:
            raise ValueError(f"Resolver returned invalid roles for '{rule.stage.value}': "
                             f"{sorted(r.value for r in resolved)}")
        return resolved

    def next_on_approve(self, stage):
        return self.rule_for(stage).next_stage

    def is_parallel(self, stage):
        stage = Stage(stage)
        return not stage.is_terminal and self._rules[stage].parallel

    @staticmethod
    def is_terminal(stage):
        return Stage(stage).is_terminal

    def stages_path(self, start=Stage.DRAFT):
        """Stages visited on the all-approve path, ending in ``Stage.APPROVED``."""
        path = [Stage(start)]
        while not path[-1].is_terminal:
            path.append(self.next_on_approve(path[-1]))
        return path

    def is_valid_edge(self, previous, new):
        """True when moving from ``previous`` to ``new`` follows the stage graph."""
        previous, new = Stage(previous), Stage(new)
        if previous.is_terminal:
            return previous == new
        if new == previous:
            return True
        return new == Stage.REJECTED or new == self.next_on_approve(previous)
