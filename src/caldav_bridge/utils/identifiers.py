"""
Identifier generation for records, store resources and webhooks.

Everything that needs a fresh identifier goes through an IdentifierGenerator
so tests can swap in a predictable sequence.
"""

import itertools
import uuid
from abc import ABC, abstractmethod


class IdentifierGenerator(ABC):
    """Source of globally unique identifiers"""

    @abstractmethod
    def new_id(self) -> str:
        """Return an identifier that has not been returned before"""


class UUIDGenerator(IdentifierGenerator):
    """Random UUID4 identifiers"""

    def new_id(self) -> str:
        return str(uuid.uuid4())


class SequenceGenerator(IdentifierGenerator):
    """Deterministic identifiers: <prefix>-1, <prefix>-2, ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def new_id(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


default_generator = UUIDGenerator()
