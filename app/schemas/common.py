from typing import Annotated, Any, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def _coerce_id(value: Any) -> Optional[str]:
    """Record ids arrive as strings or numbers; blank means absent."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


# An identifier that may be given as a number or a string
RecordId = Annotated[Optional[str], BeforeValidator(_coerce_id)]

# Free text that the mobile client may send as a number
LooseText = Annotated[Optional[str], BeforeValidator(_coerce_text)]


class CamelModel(BaseModel):
    """Schema exchanged with the client using camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RegistryStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
