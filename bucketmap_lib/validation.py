"""Field validation helper for record types.

Records collect problems into an errors-by-field map which is kept out of
the stored payload. Validation never touches storage; callers decide
whether to save an invalid record.

    class User(Model):
        name: str = ""

        def validate_fields(self) -> bool:
            self.reset_errors()
            self.validate_presence("name", self.name)
            self.validate_length("name", self.name, 2, 40)
            return self.valid()
"""
from __future__ import annotations
import re
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, PrivateAttr

Errors = Dict[str, List[str]]
Number = Union[int, float]


class Validator(BaseModel):
    _errors: Errors = PrivateAttr(default_factory=dict)

    def reset_errors(self) -> None:
        self._errors = {}

    def add_error(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def valid(self) -> bool:
        return len(self._errors) == 0

    def get_errors(self) -> Errors:
        return self._errors

    def set_errors(self, errors: Optional[Errors]) -> None:
        self._errors = dict(errors or {})

    def validate_presence(self, field: str, value: Optional[str]) -> None:
        if not value:
            self.add_error(field, "can't be blank")

    def validate_length(self, field: str, value: str, min_len: int = -1, max_len: int = -1) -> None:
        """Check the character length of `value`; a bound <= 0 is ignored."""
        n = len(value or "")
        if min_len > 0 and n < min_len:
            self.add_error(field, f"minimum length is {min_len}")
        if max_len > 0 and n > max_len:
            self.add_error(field, f"maximum length is {max_len}")

    def validate_range(self, field: str, value: Number, min_value: Number = -1, max_value: Number = -1) -> None:
        """Check a numeric value against inclusive bounds; a bound <= 0 is ignored."""
        if min_value > 0 and value < min_value:
            self.add_error(field, f"minimum value is {min_value}")
        if max_value > 0 and value > max_value:
            self.add_error(field, f"maximum value is {max_value}")

    def validate_format(self, field: str, value: str, pattern: str) -> None:
        if re.search(pattern, value or "") is None:
            self.add_error(field, "invalid format")
