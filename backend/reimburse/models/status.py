"""Validation status tokens shared by folders and purchases (stored verbatim)."""
STATUS_DRAFT = 'DRAFT'
STATUS_UNDER_REVIEW = 'UNDER_REVIEW'
STATUS_VALIDATED = 'VALIDATED'
STATUS_REJECTED = 'REJECTED'
ALL_STATUSES = (STATUS_DRAFT, STATUS_UNDER_REVIEW, STATUS_VALIDATED, STATUS_REJECTED)
# Statuses in which the reviewer fields may be populated
REVIEWED_STATUSES = (STATUS_VALIDATED, STATUS_REJECTED)
