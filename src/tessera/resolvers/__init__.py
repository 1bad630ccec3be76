"""Resolver chain and built-in resolvers."""

from tessera.resolvers.base import (
    BUILTIN_PRIORITY,
    DEFAULT_PRIORITY,
    NOT_FOUND,
    FunctionResolver,
    ResolutionContext,
    ResolverChain,
    ValueResolver,
)
from tessera.resolvers.builtins import Entry, default_resolvers

__all__ = [
    "BUILTIN_PRIORITY",
    "DEFAULT_PRIORITY",
    "NOT_FOUND",
    "Entry",
    "FunctionResolver",
    "ResolutionContext",
    "ResolverChain",
    "ValueResolver",
    "default_resolvers",
]
