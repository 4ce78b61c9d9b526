"""
Shared schema building blocks: camelCase wire format and rupee amounts.

Internally every amount is integer paise. Requests carry rupee decimals
which are converted once, on the way in; responses are converted back
once, on the way out.
"""

from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from app.services.payment_calculator import paise_to_rupees, rupees_to_paise

# Rupees with two decimal places, rendered as a JSON number.
Money = Annotated[Decimal, PlainSerializer(lambda value: float(value), return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def to_paise(rupees: Optional[Decimal]) -> Optional[int]:
    return None if rupees is None else rupees_to_paise(rupees)


def to_rupees(paise: Optional[int]) -> Optional[Decimal]:
    return None if paise is None else paise_to_rupees(paise)
