"""
Custom exception classes for oPOSSUM counts.

Provides clear, module-specific error types for parameter validation,
collaborator (database/store) failures and counts bookkeeping.
"""

import logging

logger = logging.getLogger(__name__)


class OpossumError(Exception):
    """Base exception for all oPOSSUM errors."""
    pass


# ============================================================================
# Parameter validation errors
# ============================================================================

class ValidationError(OpossumError):
    """Raised when request parameters fail validation checks."""
    pass


class MissingRequiredParameterError(ValidationError):
    """Raised when one or more mandatory selectors were not supplied."""

    def __init__(self, params: list, strategy: str = "counts"):
        super().__init__(
            f"Missing required parameter(s) for {strategy} counts: {', '.join(params)}"
        )
        self.params = list(params)
        self.strategy = strategy


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is out of valid range."""

    def __init__(self, param: str, value, valid_range: str = ""):
        msg = f"Invalid value for '{param}': {value}"
        if valid_range:
            msg += f". Expected: {valid_range}"
        super().__init__(msg)
        self.param = param
        self.value = value


class UnknownClusterError(ValidationError):
    """Raised when a cluster or motif ID cannot be resolved by the catalog."""

    def __init__(self, cluster_id):
        super().__init__(f"Unknown TFBS cluster or motif: {cluster_id}")
        self.cluster_id = cluster_id


# ============================================================================
# Collaborator errors
# ============================================================================

class CollaboratorError(OpossumError):
    """Base class for failures of external data collaborators."""
    pass


class CollaboratorUnavailableError(CollaboratorError):
    """Raised when a site source, gene store or operon store fetch fails.

    Carries enough context (strategy, gene, cluster) to diagnose which unit
    of work was in progress.
    """

    def __init__(
        self,
        collaborator: str,
        operation: str,
        reason: str = "",
        strategy: str = None,
        gene_id=None,
        cluster_id=None,
    ):
        context = []
        if strategy:
            context.append(f"strategy={strategy}")
        if gene_id is not None:
            context.append(f"gene_id={gene_id}")
        if cluster_id is not None:
            context.append(f"cluster_id={cluster_id}")

        msg = f"{collaborator}.{operation} failed"
        if context:
            msg += f" ({', '.join(context)})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)

        self.collaborator = collaborator
        self.operation = operation
        self.reason = reason
        self.strategy = strategy
        self.gene_id = gene_id
        self.cluster_id = cluster_id


# ============================================================================
# Counts errors
# ============================================================================

class CountsError(OpossumError):
    """Base class for counts matrix errors."""
    pass


class CountsMatrixError(CountsError):
    """Raised on an invalid operation against a counts matrix."""
    pass


class IncompleteCountsError(CountsError):
    """Raised when an assembly pass leaves required cells unpopulated."""

    def __init__(self, missing: list, strategy: str = "counts"):
        preview = ", ".join(f"({g}, {c})" for g, c in missing[:5])
        more = f" and {len(missing) - 5} more" if len(missing) > 5 else ""
        super().__init__(
            f"{strategy} counts incomplete: {len(missing)} unpopulated cell(s) {preview}{more}"
        )
        self.missing = list(missing)
        self.strategy = strategy


class CountsFormatError(CountsError):
    """Raised when a counts file is malformed or the format is unsupported."""
    pass


class EnrichmentError(CountsError):
    """Raised when target and background counts cannot be compared."""
    pass


# ============================================================================
# Warnings
# ============================================================================

class InconsistentOperonReference(UserWarning):
    """A gene's canonical operon gene has no row in the canonical counts."""
    pass


# ============================================================================
# Validation helpers
# ============================================================================

def require_params(strategy: str, **values) -> None:
    """Ensure every named selector was supplied.

    ``None`` always counts as missing. ``0`` is a legitimate value for
    thresholds and bp windows, so only ``None`` and empty strings fail.

    Raises
    ------
    MissingRequiredParameterError
        Naming every missing parameter at once.
    """
    missing = [name for name, value in values.items() if value is None or value == ""]
    if missing:
        logger.error(f"{strategy} counts request missing {missing}")
        raise MissingRequiredParameterError(missing, strategy)


def validate_numeric_param(value, name: str, min_val=None, max_val=None) -> None:
    """Validate a numeric parameter is within acceptable bounds.

    Raises
    ------
    InvalidParameterError
        If the value is out of range.
    """
    if min_val is not None and value < min_val:
        raise InvalidParameterError(name, value, f">= {min_val}")
    if max_val is not None and value > max_val:
        raise InvalidParameterError(name, value, f"<= {max_val}")
