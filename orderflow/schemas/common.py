import enum
from decimal import Decimal
from typing import Annotated, Any, Dict, Iterable, Optional

from pydantic import BaseModel, BeforeValidator, Field

from orderflow.core.money import to_major, to_minor


def _minor_to_major(value: Any) -> Any:
    # Stored values are ints in minor units (or basis points); responses show major units
    if isinstance(value, int) and not isinstance(value, bool):
        return to_major(value)
    return value


# Response side: built from ORM rows / internal dataclasses holding ints
MajorAmount = Annotated[Decimal, BeforeValidator(_minor_to_major)]

# Request side: what clients send, at most two decimal places
MoneyIn = Annotated[Decimal, Field(ge=0, decimal_places=2)]


def dump_minor(obj: BaseModel, money_fields: Iterable[str], *, exclude_unset: bool = False) -> Dict[str, Any]:
    """model_dump() with Decimal money fields turned into minor-unit ints and enums into their values."""
    data = obj.model_dump(exclude_unset=exclude_unset)
    for field in money_fields:
        if data.get(field) is not None:
            data[field] = to_minor(data[field])
    for key, value in data.items():
        if isinstance(value, enum.Enum):
            data[key] = value.value
    return data


class Address(BaseModel):
    street_address: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip: str = Field(..., min_length=1)
    name: Optional[str] = None
