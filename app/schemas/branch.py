from pydantic import Field

from app.schemas.common import CamelModel


class BranchCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    address: str | None = None
    phone: str | None = None
    is_active: bool = True


class BranchOut(CamelModel):
    id: int
    name: str
    address: str | None = None
    phone: str | None = None
    is_active: bool
