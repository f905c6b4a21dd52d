"""
Typed access to the values of a delimited response.
"""

from collections.abc import Sequence
from typing import Iterator, List, Optional

from jpe_cpsc.utils.exceptions import InvalidResponseError, ValueParseError


class ResponseValues(Sequence):
    """
    Values of one response whose count has already been checked.

    Built by :meth:`ResponseValues.checked`, which enforces the expected
    count once. Command result mappers then read fixed offsets with
    :meth:`as_text`, :meth:`as_int` and :meth:`as_float`. Those accessors still
    bounds-check every index and raise ``InvalidResponseError`` rather than
    ``IndexError``, so a mapper that disagrees with its declared count
    fails loudly instead of reading the wrong field.
    """

    def __init__(self, values: Sequence[str]):
        self._values = list(values)

    @classmethod
    def checked(cls, values: Sequence[str], expected: Optional[int]) -> "ResponseValues":
        """
        Args:
            values: Raw values from a delimited frame.
            expected: Required count, or None for variable-length responses.

        Raises:
            InvalidResponseError: If the count does not match.
        """
        if expected is not None and len(values) != expected:
            raise InvalidResponseError(f"Expected {expected} values, got {len(values)}")
        return cls(values)

    def __getitem__(self, idx):
        return self._values[idx]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"ResponseValues({self._values!r})"

    def as_text(self, idx: int = 0) -> str:
        if not 0 <= idx < len(self._values):
            raise InvalidResponseError(
                f"Response has {len(self._values)} values, no value at index {idx}"
            )
        return self._values[idx]

    def as_int(self, idx: int = 0) -> int:
        raw = self.as_text(idx).strip()
        try:
            return int(raw)
        except ValueError as e:
            raise ValueParseError(f"Expected an integer at index {idx}, got {raw!r}") from e

    def as_float(self, idx: int = 0) -> float:
        raw = self.as_text(idx).strip()
        try:
            return float(raw)
        except ValueError as e:
            raise ValueParseError(f"Expected a number at index {idx}, got {raw!r}") from e

    def to_list(self) -> List[str]:
        return list(self._values)
