from pydantic import BaseModel, ConfigDict, Field, model_validator
from enum import Enum
from datetime import datetime
from typing import Literal, Optional


class BookingStatus(str, Enum):
    pending               = "PENDING"
    accepted              = "ACCEPTED"
    rejected              = "REJECTED"
    confirmed             = "CONFIRMED"
    in_progress           = "IN_PROGRESS"
    completed             = "COMPLETED"
    cancelled_by_client   = "CANCELLED_BY_CLIENT"
    cancelled_by_provider = "CANCELLED_BY_PROVIDER"


class ActorRole(str, Enum):
    client   = "client"
    provider = "provider"


class BookingAction(str, Enum):
    accept   = "accept"
    reject   = "reject"
    cancel   = "cancel"
    start    = "start"
    complete = "complete"


class Schedule(BaseModel):
    start: datetime
    end: datetime


class BookingCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_id: str = Field(..., alias="providerId", min_length=1)
    service_id: str = Field(..., alias="serviceId", min_length=1)
    start: datetime
    end: datetime
    price_total: float = Field(..., alias="priceTotal", gt=0)
    address: Optional[str] = None

    @model_validator(mode="after")
    def check_schedule(self):
        if self.end <= self.start:
            raise ValueError("end debe ser posterior a start")
        return self


class CheckoutCreate(BookingCreate):
    gateway: Literal["delayed", "immediate"] = "delayed"


class BookingOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    client_id: str = Field(alias="clientId")
    provider_id: str = Field(alias="providerId")
    service_id: str = Field(alias="serviceId")
    start: datetime
    end: datetime
    price_total: float = Field(alias="priceTotal")
    address: Optional[str] = None
    status: BookingStatus


class ActionPatch(BaseModel):
    action: BookingAction


class ActionsOut(BaseModel):
    role: ActorRole
    status: BookingStatus
    actions: list[BookingAction]
