from enum import Enum


class Stage(str, Enum):
    """Stages of the approval pipeline, in the order a request moves through them."""
    DRAFT = 'draft'
    MANAGER_REVIEW = 'manager_review'
    PARALLEL_VERIFICATION = 'parallel_verification'
    VP_APPROVAL = 'vp_approval'
    HOI_APPROVAL = 'hoi_approval'
    DEAN_REVIEW = 'dean_review'
    DEPARTMENT_CHECKS = 'department_checks'
    CHIEF_DIRECTOR_APPROVAL = 'chief_director_approval'
    CHAIRMAN_APPROVAL = 'chairman_approval'

    # End states
    APPROVED = 'approved'
    REJECTED = 'rejected'

    @property
    def is_terminal(self):
        return self in TERMINAL_STAGES

    @property
    def position(self):
        return STAGE_ORDER.index(self)


STAGE_ORDER = tuple(Stage)
TERMINAL_STAGES = frozenset({Stage.APPROVED, Stage.REJECTED})


class Role(str, Enum):
    """Actor categories for permissions."""
    REQUESTER = 'requester'
    INSTITUTION_MANAGER = 'institution_manager'
    SOP_VERIFIER = 'sop_verifier'
    ACCOUNTANT = 'accountant'
    VP = 'vp'
    HEAD_OF_INSTITUTION = 'head_of_institution'
    DEAN = 'dean'
    MMA = 'mma'
    HR = 'hr'
    AUDIT = 'audit'
    IT = 'it'
    CHIEF_DIRECTOR = 'chief_director'
    CHAIRMAN = 'chairman'


# Roles that can own the department checks stage
DEPARTMENT_CHECK_ROLES = frozenset({Role.MMA, Role.HR, Role.AUDIT, Role.IT})


class Action(str, Enum):
    """Kinds of history entries."""
    SUBMIT = 'submit'
    APPROVE = 'approve'
    REJECT = 'reject'
    QUERY = 'query'
    RESPOND = 'respond'


class NotificationType(str, Enum):
    APPROVAL_PENDING = 'approval_pending'
    APPROVAL_APPROVED = 'approval_approved'
    APPROVAL_REJECTED = 'approval_rejected'
    QUERY_RECEIVED = 'query_received'
    QUERY_RESPONDED = 'query_responded'
    REQUEST_CREATED = 'request_created'
    REQUEST_COMPLETED = 'request_completed'
