from decimal import Decimal
from typing import Annotated

from pydantic import Field, PlainSerializer

# Fixed-point currency that still renders as a JSON number.
Money = Annotated[
    Decimal,
    PlainSerializer(lambda value: float(value), return_type=float, when_used="json"),
]

PriceInput = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]
