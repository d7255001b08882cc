"""Utility helpers shared across appstream-builder modules."""

from .helpers import (
    ensure_directory,
    ensure_empty_directory,
    glob_matches_any,
    glob_value_search,
    remove_tree,
    serialize_json,
)
from .logging import configure_logging, get_logger, log_timing, logging_context

__all__ = [
    "configure_logging",
    "get_logger",
    "logging_context",
    "log_timing",
    "ensure_directory",
    "ensure_empty_directory",
    "remove_tree",
    "serialize_json",
    "glob_matches_any",
    "glob_value_search",
]
