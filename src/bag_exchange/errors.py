class ConfigurationError(ValueError):
    """The model itself is malformed (bad matrix rows, mismatched sizes)."""


class DimensionMismatch(ValueError):
    """Vector and matrix sizes do not line up at call time."""


class InvalidArgument(ValueError):
    """A count or step argument is out of range."""


class InternalConsistencyError(RuntimeError):
    """A propagated distribution drifted out of tolerance.

    This points at an ill-formed transition matrix, not at the caller.
    """
