"""Error and warning types raised by the cohort pipeline."""
import logging
import warnings

logger = logging.getLogger(__name__)


class SchemaError(ValueError):
    """A required input table or column is missing or has the wrong type."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"[{table}] {message}")


class JoinCardinalityWarning(UserWarning):
    """A one-row-per-key pick had several candidates and was tie-broken."""


def warn_cardinality(stage: str, n_keys: int, detail: str = "") -> None:
    """Report keys resolved by a tie-break instead of a unique match.

    Args:
        stage: Name of the stage doing the pick
        n_keys: Number of keys with more than one candidate row
        detail: Tie-break rule that was applied
    """
    if n_keys <= 0:
        return
    message = f"{stage}: {n_keys} key(s) had multiple candidate rows"
    if detail:
        message = f"{message}; resolved by {detail}"
    logger.warning(message)
    warnings.warn(message, JoinCardinalityWarning, stacklevel=3)
