"""Tessera environment: configuration, loaders, registry and errors."""

from tessera.environment.exceptions import (
    ErrorCode,
    IncludeDepthError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
)
from tessera.environment.loaders import ChoiceLoader, DictLoader, FileSystemLoader, Loader
from tessera.environment.registry import SectionRegistry
from tessera.environment.core import Environment

__all__ = [
    "ChoiceLoader",
    "DictLoader",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "IncludeDepthError",
    "Loader",
    "SectionRegistry",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "UndefinedError",
]
