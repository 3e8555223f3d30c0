"""Utility functions and types for pyMultiChain.

This module contains type definitions, custom exceptions and helper classes
used throughout the pyMultiChain package:

- Type annotations for sample arrays and protocols for models and samplers
- Custom exception classes for error handling
- An adapter turning plain objective/gradient callables into a model handle
"""

from .exceptions import ConfigError, DomainError, PyMultiChainError, SamplerFailure
from .model import FunctionModel

__all__ = [
    "ConfigError",
    "DomainError",
    "FunctionModel",
    "PyMultiChainError",
    "SamplerFailure",
]
