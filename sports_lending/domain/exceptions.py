"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Referenced student, equipment item or loan does not exist"""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateError(DomainException):
    """Operation violates a precondition on the current state"""

    pass


class EquipmentUnavailableError(InvalidStateError):
    """Equipment item is not in 'available' status"""

    def __init__(self, equipment_id: str, status: str):
        self.equipment_id = equipment_id
        self.status = status
        super().__init__(f"Equipment {equipment_id} is not available (status: {status})")


class StudentSuspendedError(InvalidStateError):
    """Student is currently suspended from borrowing"""

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Student {student_id} is suspended from borrowing")


class LoanAlreadyReturnedError(InvalidStateError):
    """Loan has already been closed"""

    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} has already been returned")


class InvalidSuspensionError(InvalidStateError):
    """Suspension end date or reason is missing or invalid"""

    pass


class ConcurrencyConflictError(DomainException):
    """A concurrent write invalidated an earlier check; retry the whole operation"""

    pass


class StoreFailureError(DomainException):
    """Underlying persistence error"""

    pass
