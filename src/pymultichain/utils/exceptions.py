"""Custom exceptions for pyMultiChain.

This module defines the exception hierarchy for the pyMultiChain package,
providing specific error types for the different ways a sampling run can fail.
"""


class PyMultiChainError(Exception):
    """Base exception class for all pyMultiChain-specific errors.

    This is the root exception class from which all other pyMultiChain
    exceptions inherit. It can be used to catch any pyMultiChain-related
    error in a general exception handler.
    """

    pass


class ConfigError(PyMultiChainError):
    """Raised when the configuration of a sampling run is malformed.

    This exception is raised before any sampler runs, when:
    - The number of initial values does not match the number of chains
    - An initial value has the wrong number of parameters
    - The algorithm name is not recognised
    - The thinning rate, chain count or iteration count is out of range
    - Bounds or covariance matrices have incompatible shapes

    Parameters
    ----------
    msg : str, optional
        Human-readable error message describing the configuration problem.
    """

    def __init__(self, msg="Invalid sampling configuration"):
        super().__init__(msg)


class DomainError(PyMultiChainError):
    """Raised when a point lies outside the declared bounds of its parameter.

    Typically this means a caller-supplied initial value sits on or beyond
    a lower or upper bound, where the unconstrained transform diverges.

    Parameters
    ----------
    msg : str, optional
        Human-readable error message naming the offending coordinate.
    """

    def __init__(self, msg="Point outside the bounded domain"):
        super().__init__(msg)


class SamplerFailure(PyMultiChainError):
    """Raised when a sampler invocation fails for one of the chains.

    The original exception is attached as ``__cause__``. A single failing
    chain aborts the whole multi-chain run.

    Parameters
    ----------
    msg : str, optional
        Human-readable error message naming the failing chain.
    """

    def __init__(self, msg="Sampler failed"):
        super().__init__(msg)
