"""Optional numba acceleration and the shared random generator."""
from functools import cached_property, lru_cache
from importlib import import_module
from typing import Callable

from numpy.random import default_rng


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """Process-wide state: the random generator used for test sequences and optional module lookups."""

    @cached_property
    def rng(self):
        return default_rng()

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """``True`` if ``module_name`` can be imported."""
        try:
            import_module(module_name)
        except ImportError:
            return False
        return True


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Compiles a kernel with ``numba.jit`` when numba is installed and leaves it as plain Python otherwise.

    Works bare (``@jit``) or with options (``@jit(nopython=True, cache=True)``); options are dropped without numba.
    """
    if not RESOURCES.has_module('numba'):
        if callable(signature_or_function): return signature_or_function
        return lambda func: func
    from numba import jit as numba_jit
    if callable(signature_or_function): return numba_jit(signature_or_function)
    return numba_jit(signature_or_function, **options)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
