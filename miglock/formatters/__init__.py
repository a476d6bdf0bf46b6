"""Output formatters module."""

from .base import Formatter
from .json_formatter import JsonFormatter
from .markdown_formatter import MarkdownFormatter

__all__ = [
    "Formatter",
    "JsonFormatter",
    "MarkdownFormatter",
]
