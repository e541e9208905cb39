from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
from datetime import datetime
from typing import Any, Optional


class PaymentStatus(str, Enum):
    created    = "CREATED"
    authorized = "AUTHORIZED"
    captured   = "CAPTURED"
    voided     = "VOIDED"
    failed     = "FAILED"


class GatewayName(str, Enum):
    paypal = "paypal"
    stripe = "stripe"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------- Peticiones ----------

class AmountIn(_CamelModel):
    # Se valida en el orquestador: ausente o no numérico es InvalidAmount (400)
    amount_local: Optional[Any] = Field(None, alias="amountLocal")
    booking_id: Optional[str] = Field(None, alias="bookingId")


class OrderMetaIn(_CamelModel):
    order_id: Optional[str] = Field(None, alias="orderId")


class AuthorizationIn(_CamelModel):
    authorization_id: Optional[str] = Field(None, alias="authorizationId")
    order_id: Optional[str] = Field(None, alias="orderId")


class ChargeConfirmIn(_CamelModel):
    charge_id: Optional[str] = Field(None, alias="chargeId")


# ---------- Respuestas ----------

class OrderOut(_CamelModel):
    order_id: str = Field(alias="orderId")
    settlement_amount: float = Field(alias="settlementAmount")
    rate: float


class OrderMetaOut(_CamelModel):
    settlement_amount: float = Field(alias="settlementAmount")
    rate: float


class CaptureOut(_CamelModel):
    capture_id: str = Field(alias="captureId")
    status: str


class VoidOut(_CamelModel):
    status: str = "VOIDED"


class ChargeOut(_CamelModel):
    client_secret: str = Field(alias="clientSecret")
    charge_id: str = Field(alias="chargeId")


class ChargeConfirmOut(_CamelModel):
    charge_id: str = Field(alias="chargeId")
    gateway_status: str = Field(alias="gatewayStatus")
    status: PaymentStatus


class PaymentOut(_CamelModel):
    id: str
    booking_id: str = Field(alias="bookingId")
    client_id: str = Field(alias="clientId")
    provider_id: str = Field(alias="providerId")
    gateway: GatewayName
    order_id: str = Field(alias="orderId")
    authorization_id: Optional[str] = Field(None, alias="authorizationId")
    capture_id: Optional[str] = Field(None, alias="captureId")
    amount_local: float = Field(alias="amountLocal")
    currency: str
    settlement_amount: Optional[float] = Field(None, alias="settlementAmount")
    rate: Optional[float] = None
    status: PaymentStatus
    created_at: datetime = Field(alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
