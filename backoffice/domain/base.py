"""Shared base for the catalog's immutable domain types."""

from abc import ABC
from dataclasses import dataclass


@dataclass(frozen=True)
class ValueObject(ABC):
    """Immutable value compared by its fields.

    Subclasses are frozen dataclasses themselves and validate in
    ``__post_init__``, raising ``ValidationError`` so bad input never
    reaches the services. Variant references, selections, uploads and
    deletion outcomes are all value objects.
    """
