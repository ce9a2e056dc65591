"""
Typed settings bags consumed by the pipeline stages' load_settings.
"""

from typing import Any, Dict, Iterator, Tuple, Union
from pydantic import BaseModel, Field, field_validator

SettingValue = Union[bool, int, float, str]


class TypedSettings(BaseModel):
    """
    Named bag of concrete parameter values for one pipeline stage.

    Attributes:
        section (str): Stage the values belong to, e.g. 'preprocessor' or 'localizer'.
        values (Dict): Parameter values keyed by parameter name.
    """

    section: str
    values: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('values')
    @classmethod
    def validate_value_types(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        for name, value in v.items():
            if not isinstance(value, (bool, int, float, str)):
                raise ValueError(f"Setting '{name}' has unsupported type {type(value).__name__}")
        return v

    def set_value(self, name: str, value: SettingValue) -> None:
        if not isinstance(value, (bool, int, float, str)):
            raise TypeError(f"Setting '{name}' has unsupported type {type(value).__name__}")
        self.values[name] = value

    def get_value(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def update(self, values: Dict[str, Any]) -> "TypedSettings":
        """Merge a (possibly partial) set of values; keys not given keep their current value."""
        for name, value in values.items():
            self.set_value(name, value)
        return self

    def copy_settings(self) -> "TypedSettings":
        return TypedSettings(section=self.section, values=dict(self.values))

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.values)

    def describe(self) -> str:
        """Human readable listing, one 'section.name: value' per line."""
        return "\n".join(f"{self.section}.{name}: {value}" for name, value in sorted(self.values.items()))

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(self.values.items())

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __len__(self) -> int:
        return len(self.values)
