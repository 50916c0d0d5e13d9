"""Parsing module for the type declaration DSL."""

from mini_record.parsing.type_parser import TypeParser

__all__ = [
    "TypeParser",
]
