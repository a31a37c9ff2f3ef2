from datetime import datetime
from typing import Annotated, Literal
from pydantic import Field

from app.schemas.common import CamelModel

AddressType = Literal["home", "work", "other"]
Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]


class AddressCreate(CamelModel):
    type: AddressType = "home"
    address: str = Field(min_length=1, max_length=500)
    apartment: str | None = Field(None, max_length=100)
    instructions: str | None = None
    latitude: Latitude
    longitude: Longitude
    is_default: bool = False


class AddressUpdate(CamelModel):
    type: AddressType | None = None
    address: str | None = Field(None, min_length=1, max_length=500)
    apartment: str | None = Field(None, max_length=100)
    instructions: str | None = None
    latitude: Latitude | None = None
    longitude: Longitude | None = None
    is_default: bool | None = None


class ValidateAddressRequest(CamelModel):
    latitude: Latitude
    longitude: Longitude


class AddressOut(CamelModel):
    id: int
    type: str
    address: str
    apartment: str | None = None
    instructions: str | None = None
    latitude: float
    longitude: float
    is_default: bool
    created_at: datetime
