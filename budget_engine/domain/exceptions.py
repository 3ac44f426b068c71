"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input or stored record is malformed (bad decision, missing amount, unknown cycle)"""

    pass


class NotFoundError(DomainException):
    """Referenced record does not exist or belongs to another user"""

    pass


class AlreadyProcessedError(DomainException):
    """Decision or pending action was already applied"""

    pass


class TransientStoreError(DomainException):
    """Ledger store I/O failed; the unit stays eligible for the next run"""

    pass
