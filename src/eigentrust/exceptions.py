"""EigenTrust exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from EigenTrustError for easy catching.
"""

from __future__ import annotations


class EigenTrustError(Exception):
    """Base exception for all EigenTrust errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code.
    """

    code: str = "eigentrust_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ConfigurationError(EigenTrustError):
    """Configuration error.

    Raised when propagation parameters are out of range, or when a seed is
    referenced on a graph with no vertices. Always raised before any graph
    work begins.
    """

    code: str = "configuration_error"


class InvalidWeightError(EigenTrustError):
    """A rating weight is negative or not finite.

    Attributes:
        src_id: Rating source vertex.
        dst_id: Rating destination vertex.
        weight: The offending weight.
    """

    code: str = "invalid_weight"

    def __init__(self, src_id: int, dst_id: int, weight: float) -> None:
        self.src_id = src_id
        self.dst_id = dst_id
        self.weight = weight
        super().__init__(
            f"Rating {src_id} -> {dst_id} has invalid weight {weight!r}; "
            "weights must be finite and non-negative"
        )

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "src_id": self.src_id,
                "dst_id": self.dst_id,
                "weight": self.weight,
                "message": self.message,
            }
        }


class StorageError(EigenTrustError):
    """Storage operation failed.

    Raised when reading ratings or writing scores fails.
    """

    code: str = "storage_error"


class CredentialsError(EigenTrustError):
    """Database credentials could not be loaded.

    Attributes:
        path: Credentials file that was read.
    """

    code: str = "credentials_error"

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class NonConvergenceWarning(UserWarning):
    """Propagation hit its iteration cap before every vertex stabilised.

    Not an error: the best-effort scores are still returned.

    Attributes:
        supersteps: Number of supersteps that ran.
        active_vertices: Vertices still above tolerance at the cutoff.
    """

    def __init__(self, supersteps: int, active_vertices: int) -> None:
        self.supersteps = supersteps
        self.active_vertices = active_vertices
        super().__init__(
            f"EigenTrust did not converge after {supersteps} supersteps "
            f"({active_vertices} vertices still active); returning best-effort scores"
        )
