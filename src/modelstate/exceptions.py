"""Exception hierarchy for model state operations."""

from typing import Dict, Optional


class ModelStateError(Exception):
    """Base exception for all modelstate errors."""

    pass


class ModelDefinitionError(ModelStateError):
    """Model class declares inconsistent attributes (unknown dependency, cycle)."""

    pass


class UnknownAttributeError(ModelStateError, KeyError):
    """Attribute name is not declared on the model."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ''


class BranchNotFoundError(ModelStateError, KeyError):
    """Branch was never committed on this attribute."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ''


class UnsupportedOperationError(ModelStateError, TypeError):
    """Operation is not available for this attribute kind."""

    pass


class CodecError(ModelStateError, ValueError):
    """Value cannot be converted to the attribute's canonical form."""

    pass


class RecalculationError(ModelStateError):
    """Recalculation pass failed or did not reach a fixed point."""

    pass


class ModelDestructedError(ModelStateError):
    """Operation attempted on a destructed model."""

    pass


class ValidationError(ModelStateError):
    """Base class for validation failures.

    Carries a human-readable ``message`` and a ``code`` classifying the failure.
    """

    def __init__(self, message: str, code: str = 'invalid'):
        super().__init__(message)
        self.message = message
        self.code = code


class AttributeValidationError(ValidationError):
    """Single attribute failed validation."""

    def __init__(self, message: str, attribute: Optional[str] = None, code: str = 'invalid'):
        super().__init__(message, code)
        self.attribute = attribute


class ModelValidationError(ValidationError):
    """One or more attributes of a model failed validation.

    ``errors`` maps attribute name to the error raised for it.
    """

    def __init__(self, errors: Dict[str, Exception]):
        names = ', '.join(sorted(errors))
        super().__init__(f"Invalid attributes: {names}", code='invalid_model')
        self.errors = errors
