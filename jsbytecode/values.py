"""Tagged constant values stored in the constant pool."""

from __future__ import annotations

import json
import math
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from .literals import has_unpaired_surrogate


class ValueTag(str, Enum):
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


_PAYLOAD_TYPES: dict[ValueTag, type] = {
    ValueTag.NUMBER: float,
    ValueTag.BOOLEAN: bool,
    ValueTag.STRING: str,
}

# JSON has no literal for these; they are written as strings and read back.
_NON_FINITE_NUMBERS: dict[str, float] = {
    "Infinity": math.inf,
    "-Infinity": -math.inf,
    "NaN": math.nan,
}


class Value(BaseModel):
    """A constant: ``Number(float)``, ``Boolean(bool)`` or ``String(str)``.

    Two values are only ever compared within the same tag; a Number and a
    String holding similar text are distinct constants. String payloads must
    be encodable as UTF-8, so lone surrogates are rejected.
    """

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="strings")

    tag: ValueTag
    value: bool | float | str

    @model_validator(mode="before")
    @classmethod
    def _read_non_finite(cls, data: Any) -> Any:
        if (
            isinstance(data, dict)
            and data.get("tag") == ValueTag.NUMBER
            and isinstance(data.get("value"), str)
            and data["value"] in _NON_FINITE_NUMBERS
        ):
            return {**data, "value": _NON_FINITE_NUMBERS[data["value"]]}
        return data

    @model_validator(mode="after")
    def _check_payload(self) -> Value:
        expected = _PAYLOAD_TYPES[self.tag]
        payload = self.value
        if expected is float and isinstance(payload, int) and not isinstance(payload, bool):
            object.__setattr__(self, "value", float(payload))
            return self
        if type(payload) is not expected:
            raise ValueError(
                f"{self.tag.value} value expects {expected.__name__}, got {type(payload).__name__}"
            )
        if expected is str and has_unpaired_surrogate(payload):
            raise ValueError("string value contains an unpaired surrogate")
        return self

    @classmethod
    def number(cls, value: float) -> Value:
        return cls(tag=ValueTag.NUMBER, value=float(value))

    @classmethod
    def boolean(cls, value: bool) -> Value:
        return cls(tag=ValueTag.BOOLEAN, value=bool(value))

    @classmethod
    def string(cls, value: str) -> Value:
        return cls(tag=ValueTag.STRING, value=value)

    def is_number(self) -> bool:
        return self.tag == ValueTag.NUMBER

    def is_boolean(self) -> bool:
        return self.tag == ValueTag.BOOLEAN

    def is_string(self) -> bool:
        return self.tag == ValueTag.STRING

    def get_number(self) -> float:
        if not self.is_number():
            raise TypeError(f"Not a number: {self}")
        return self.value

    def get_boolean(self) -> bool:
        if not self.is_boolean():
            raise TypeError(f"Not a boolean: {self}")
        return self.value

    def get_string(self) -> str:
        if not self.is_string():
            raise TypeError(f"Not a string: {self}")
        return self.value

    def __str__(self) -> str:
        if self.tag == ValueTag.NUMBER:
            return format_number(self.value)
        if self.tag == ValueTag.BOOLEAN:
            return "true" if self.value else "false"
        return json.dumps(self.value, ensure_ascii=False)


def format_number(number: float) -> str:
    """Render a float the way JavaScript's ``Number#toString`` does."""
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    text = repr(number)
    if "e" not in text:
        return text
    mantissa, exponent = text.split("e")
    power = int(exponent)
    # JavaScript uses positional notation for 1e-6 <= |x| < 1e21.
    if -7 < power < 21:
        return format(Decimal(text), "f")
    sign = "+" if power > 0 else "-"
    return f"{mantissa}e{sign}{abs(power)}"
