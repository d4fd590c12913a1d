"""Use cases layer - prestage scope bookkeeping.

- ScopeCache: reverse index of serial -> prestage id
- ScopeResolver: authoritative scope reads
- ScopeMutator: version-checked assign/unassign

Use cases depend only on ports, not concrete implementations.
"""

from .mutate_scope import ScopeMutator, normalize_serials
from .resolve_scope import ScopeResolver
from .scope_cache import ScopeCache

__all__ = [
    "ScopeCache",
    "ScopeMutator",
    "ScopeResolver",
    "normalize_serials",
]
