"""
Custom exception hierarchy for the Model Search Pipeline.
"""

class ModelSearchException(Exception):
    """Base exception for all system errors."""
    pass

class ConfigurationError(ModelSearchException):
    """Configuration validation failed."""
    pass

class ValidationError(ModelSearchException):
    """A training set invariant was violated."""
    pass

class MalformedInputError(ValidationError):
    """Training set files are inconsistent with each other or unparseable."""
    pass

class InvalidFractionsError(ValidationError):
    """Split fractions do not sum to one."""
    pass

class ModelTrainingError(ModelSearchException):
    """Model training failed."""
    pass

class BackendTrainingError(ModelTrainingError):
    """A backend failed to train or score a candidate."""
    pass

class PredictionError(ModelSearchException):
    """Prediction generation failed."""
    pass

class ModelDisposedError(PredictionError):
    """Prediction was requested on a model whose resources were released."""
    pass

class EmptySearchSpaceError(ModelSearchException):
    """No candidate survived evaluation, so no optimum can be chosen."""
    pass

class OptimizationTimeoutError(ModelSearchException):
    """The optimization run exceeded its time budget."""
    pass
