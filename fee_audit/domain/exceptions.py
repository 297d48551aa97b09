"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidTransactionDataError(DomainException):
    """Transaction data is malformed or invalid"""

    pass


class AnalysisError(DomainException):
    """Analysis input cannot be processed at all"""

    pass


class CommentaryServiceError(DomainException):
    """AI commentary service returned an error or is unavailable"""

    pass
