"""Input coercion shared by the services."""
import enum
from typing import TypeVar, Union

from hub.core.errors import ValidationError

E = TypeVar("E", bound=enum.Enum)


def coerce_enum(enum_cls: type[E], value: Union[E, str], field: str = "value") -> E:
    """Turn a raw string (or enum member) into `enum_cls`, raising ValidationError otherwise."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field}: {value!r}. Expected one of: {allowed}", field=field)


def normalize_email(email: str) -> str:
    normalized = (email or "").strip().lower()
    local, _, domain = normalized.partition("@")
    if not local or not domain or "." not in domain or " " in normalized:
        raise ValidationError(f"Invalid email address: {email!r}", field="email")
    return normalized
