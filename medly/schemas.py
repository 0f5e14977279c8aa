from datetime import date, datetime
from datetime import date as date_type
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from medly.core.permissions import ProfilePermissions
from medly.core.timeutils import FULL_DAY_SHIFT, parse_hhmm, shift_duration
from medly.core.validators import (
    is_valid_cep,
    is_valid_cpf,
    is_valid_email,
    is_valid_phone,
    is_valid_time,
    password_problems,
)

UserRole = Literal["admin", "gestor", "escalista", "medico"]
UserStatus = Literal["ativo", "inativo", "pendente"]
ScaleStatus = Literal["rascunho", "publicada", "em_andamento", "concluida", "cancelada"]
CandidatureStatus = Literal["interessado", "aceito", "negado", "aguardando"]
DocumentStatus = Literal["pendente", "aprovado", "rejeitado"]
DocumentCategory = Literal["identidade", "crm", "diploma", "comprovante", "contrato", "outro"]
PaymentStatus = Literal["pendente", "pago", "atrasado"]
Shift = Literal["manha", "tarde", "noite", "plantao_12h", "plantao_24h"]
LocationType = Literal["upa", "ubs", "hospital", "clinica", "pronto_socorro", "outro"]
RatingType = Literal["doctor_to_location", "location_to_doctor"]
NotificationType = Literal["info", "success", "warning", "error"]


# ---------------------------------------------------------------------------
# Stored entities
# ---------------------------------------------------------------------------


class BaseEntity(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class Address(BaseModel):
    cep: str
    street: str
    number: str
    complement: Optional[str] = None
    neighborhood: str
    city: str
    state: str = Field(min_length=2, max_length=2)


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class CheckRecord(BaseModel):
    timestamp: datetime
    coordinates: Coordinates
    verified: bool
    distance_m: Optional[float] = None


class WorkflowEvent(BaseModel):
    step: int
    at: datetime
    actor_id: Optional[str] = None


class UserProfile(BaseEntity):
    name: str
    email: str
    phone: Optional[str] = None
    cpf: Optional[str] = None
    role: UserRole
    status: UserStatus
    avatar_url: Optional[str] = None
    address: Optional[Address] = None
    crm: Optional[str] = None
    crm_state: Optional[str] = None
    specialties: list[str] = Field(default_factory=list)
    manager_id: Optional[str] = None
    average_rating: Optional[float] = None
    completed_scales: Optional[int] = None
    cancellation_rate: Optional[float] = None
    password_hash: Optional[str] = Field(default=None, exclude=True)


class RoleProfile(BaseEntity):
    name: str
    role: UserRole
    description: str = ""
    permissions: ProfilePermissions = Field(default_factory=ProfilePermissions)

    @field_validator("permissions", mode="before")
    @classmethod
    def _backfill(cls, value):
        return value or {}


class Location(BaseEntity):
    name: str
    type: LocationType
    address: Address
    coordinates: Optional[Coordinates] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    average_rating: Optional[float] = None


class Specialty(BaseEntity):
    name: str
    description: Optional[str] = None
    scale_type_ids: list[str] = Field(default_factory=list)


class ScaleType(BaseEntity):
    name: str
    description: Optional[str] = None
    default_duration_hours: int
    default_shift: Shift


class Scale(BaseEntity):
    location_id: str
    scale_type_id: str
    specialty_id: str
    title: str
    description: Optional[str] = None
    date: date
    start_time: str
    end_time: str
    shift: Shift
    status: ScaleStatus
    cancellation_deadline_days: int = 0
    transfer_deadline_days: int = 0
    payment_value: float
    payment_date: Optional[date] = None
    payment_status: PaymentStatus = "pendente"
    min_patients: Optional[int] = None
    max_patients: Optional[int] = None
    meal_break_minutes: Optional[int] = None
    required_documents: list[str] = Field(default_factory=list)
    assigned_doctor_id: Optional[str] = None
    candidate_ids: list[str] = Field(default_factory=list)
    check_in: Optional[CheckRecord] = None
    check_out: Optional[CheckRecord] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    late_cancellation: Optional[bool] = None
    patients_attended: Optional[int] = None
    observations: Optional[str] = None


class Candidature(BaseEntity):
    scale_id: str
    doctor_id: str
    status: CandidatureStatus
    applied_at: datetime
    responded_at: Optional[datetime] = None
    responded_by: Optional[str] = None
    workflow_step: Optional[int] = Field(default=None, ge=1, le=6)
    workflow_history: list[WorkflowEvent] = Field(default_factory=list)
    denial_reason: Optional[str] = None


class Document(BaseEntity):
    user_id: str
    name: str
    category: DocumentCategory
    file_url: str
    expiration_date: Optional[date] = None
    status: DocumentStatus
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None


class Payment(BaseEntity):
    scale_id: str
    doctor_id: str
    amount: float
    due_date: date
    paid_date: Optional[date] = None
    status: PaymentStatus
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    confirmed_by_doctor: bool = False
    confirmed_at: Optional[datetime] = None


class Rating(BaseEntity):
    scale_id: str
    from_user_id: str
    to_user_id: Optional[str] = None
    to_location_id: Optional[str] = None
    type: RatingType
    overall_score: int
    punctuality_score: Optional[int] = None
    quality_score: Optional[int] = None
    professionalism_score: Optional[int] = None
    comment: Optional[str] = None


class Notification(BaseEntity):
    user_id: str
    title: str
    message: str
    type: NotificationType = "info"
    read: bool = False
    action_url: Optional[str] = None


class AuditLog(BaseModel):
    id: str
    timestamp: datetime
    user_id: str
    user_name: str
    action: str
    entity: str
    entity_id: str
    details: Optional[dict] = None

    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class AddressPayload(BaseModel):
    cep: str
    street: str = Field(min_length=1)
    number: str = Field(min_length=1)
    complement: Optional[str] = None
    neighborhood: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)

    @field_validator("cep")
    @classmethod
    def _cep(cls, value: str) -> str:
        if not is_valid_cep(value):
            raise ValueError("CEP inválido")
        return value


class RegisterPayload(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    email: str
    phone: str
    cpf: str
    password: str
    confirm_password: str
    address: AddressPayload

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Email inválido")
        return value.strip()

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        if not is_valid_phone(value):
            raise ValueError("Telefone inválido. Ex: (11) 99999-9999")
        return value

    @field_validator("cpf")
    @classmethod
    def _cpf(cls, value: str) -> str:
        if not is_valid_cpf(value):
            raise ValueError("CPF inválido")
        return value

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        problems = password_problems(value)
        if problems:
            raise ValueError(problems[0])
        return value

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("As senhas não coincidem")
        return self


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str
    phone: str = Field(min_length=1)
    cpf: str
    role: UserRole
    status: UserStatus = "ativo"
    password: Optional[str] = None
    crm: Optional[str] = None
    crm_state: Optional[str] = None
    specialties: list[str] = Field(default_factory=list)
    manager_id: Optional[str] = None
    address: Optional[AddressPayload] = None

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Email inválido")
        return value.strip()

    @field_validator("cpf")
    @classmethod
    def _cpf(cls, value: str) -> str:
        if not is_valid_cpf(value):
            raise ValueError("CPF inválido")
        return value


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    crm: Optional[str] = None
    crm_state: Optional[str] = None
    specialties: Optional[list[str]] = None
    manager_id: Optional[str] = None
    address: Optional[AddressPayload] = None

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_email(value):
            raise ValueError("Email inválido")
        return value.strip() if value else value


class RoleProfilePayload(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    role: UserRole
    description: str = ""
    permissions: ProfilePermissions = Field(default_factory=ProfilePermissions)


class LocationPayload(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: LocationType
    address: AddressPayload
    phone: Optional[str] = None
    email: Optional[str] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_valid_email(value):
            raise ValueError("Email inválido")
        return value or None

    @model_validator(mode="after")
    def _coordinates_pair(self):
        if (self.lat is None) != (self.lng is None):
            raise ValueError("Informe latitude e longitude juntas")
        return self


class SpecialtyPayload(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    scale_type_ids: list[str] = Field(default_factory=list)


class ScaleTypePayload(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    default_duration_hours: int = Field(ge=1, le=48)
    default_shift: Shift


class ScalePayload(BaseModel):
    location_id: str = Field(min_length=1)
    scale_type_id: str = Field(min_length=1)
    specialty_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    date: date
    start_time: str
    end_time: str
    shift: Shift
    cancellation_deadline_days: int = Field(default=0, ge=0, le=30)
    transfer_deadline_days: int = Field(default=0, ge=0, le=30)
    payment_value: float = Field(ge=0)
    payment_date: Optional[date] = None
    min_patients: Optional[int] = Field(default=None, ge=0)
    max_patients: Optional[int] = Field(default=None, ge=0)
    meal_break_minutes: Optional[int] = Field(default=None, ge=0, le=180)
    required_documents: list[str] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, value: str) -> str:
        if not is_valid_time(value):
            raise ValueError("Horário inválido, use HH:MM")
        return value

    @model_validator(mode="after")
    def _consistency(self):
        if (
            self.min_patients is not None
            and self.max_patients is not None
            and self.min_patients > self.max_patients
        ):
            raise ValueError("Mínimo de pacientes maior que o máximo")
        if parse_hhmm(self.start_time) == parse_hhmm(self.end_time) and self.shift != FULL_DAY_SHIFT:
            raise ValueError("Horário de término deve ser diferente do início")
        duration = shift_duration(self.start_time, self.end_time)
        if self.meal_break_minutes and self.meal_break_minutes * 60 >= duration.total_seconds():
            raise ValueError("Intervalo maior que a duração do plantão")
        return self


class ScaleUpdate(BaseModel):
    location_id: Optional[str] = None
    scale_type_id: Optional[str] = None
    specialty_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    shift: Optional[Shift] = None
    cancellation_deadline_days: Optional[int] = None
    transfer_deadline_days: Optional[int] = None
    payment_value: Optional[float] = None
    payment_date: Optional[date] = None
    min_patients: Optional[int] = None
    max_patients: Optional[int] = None
    meal_break_minutes: Optional[int] = None
    required_documents: Optional[list[str]] = None
    date: Optional[date_type] = None


class PositionPayload(BaseModel):
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    use_mock: bool = False
    mock_offset_lat: float = 0.0
    mock_offset_lng: float = 0.0
    timestamp: Optional[datetime] = None


class CheckoutPayload(PositionPayload):
    patients_attended: Optional[int] = Field(default=None, ge=0)
    overall_score: Optional[int] = Field(default=None, ge=1, le=5)
    observations: Optional[str] = Field(default=None, max_length=1000)


class TransferPayload(BaseModel):
    doctor_id: str


class CancelPayload(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class WorkflowPayload(BaseModel):
    step: int = Field(ge=1, le=6)


class DenyPayload(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class DocumentPayload(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: DocumentCategory
    user_id: str = Field(min_length=1)
    expiration_date: Optional[date] = None
    review_notes: Optional[str] = Field(default=None, max_length=500)


class DocumentReview(BaseModel):
    status: Literal["aprovado", "rejeitado"]
    notes: Optional[str] = Field(default=None, max_length=500)


class PaymentPayload(BaseModel):
    scale_id: str = Field(min_length=1)
    doctor_id: str = Field(min_length=1)
    amount: float = Field(ge=0)
    due_date: date
    notes: Optional[str] = Field(default=None, max_length=500)


class MarkPaidPayload(BaseModel):
    paid_date: Optional[date] = None
    proof_url: Optional[str] = None


class RatingPayload(BaseModel):
    scale_id: str
    type: RatingType
    to_user_id: Optional[str] = None
    to_location_id: Optional[str] = None
    overall_score: int = Field(ge=1, le=5)
    punctuality_score: Optional[int] = Field(default=None, ge=1, le=5)
    quality_score: Optional[int] = Field(default=None, ge=1, le=5)
    professionalism_score: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _target(self):
        if self.type == "doctor_to_location" and not self.to_location_id:
            raise ValueError("Avaliação de local exige to_location_id")
        if self.type == "location_to_doctor" and not self.to_user_id:
            raise ValueError("Avaliação de médico exige to_user_id")
        return self


class NotificationPayload(BaseModel):
    user_id: str
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    type: NotificationType = "info"
    action_url: Optional[str] = None
