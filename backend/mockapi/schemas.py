"""Pydantic schemas for the simulated hospital console API."""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _required_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Hospital name is required")
    return value


class Hospital(BaseModel):
    """A tenant hospital managed from the super-admin console."""

    id: str = Field(..., description="Sequential identifier assigned on creation")
    name: str
    country: Optional[str] = None
    timezone: str = "UTC"
    created_at: datetime


class HospitalCreate(BaseModel):
    """Hospital creation payload including the first administrator."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    country: Optional[str] = None
    timezone: Optional[str] = None
    admin_email: EmailStr = Field(..., alias="adminEmail")
    admin_password: str = Field(..., alias="adminPassword", min_length=1)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return _required_name(value)


class HospitalUpdate(BaseModel):
    """Partial hospital update; omitted fields keep their current value."""

    name: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _required_name(value)


class Created(BaseModel):
    id: str
    name: str


class User(BaseModel):
    """Console account record (not an authenticated session)."""

    id: str
    name: str
    email: EmailStr
    role: str
    hospital_id: Optional[str] = None
    last_active: str = "Today"


class UserListing(User):
    """User as returned by list calls, with the hospital display name resolved."""

    hospital: Optional[str] = None


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    role: str = Field(..., min_length=1)
    password: Optional[str] = None
    hospital_id: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    role: Optional[str] = Field(None, min_length=1)
    hospital_id: Optional[str] = None


class Role(BaseModel):
    """Named permission bundle; the name is what users reference."""

    id: str
    name: str
    description: str = ""
    permissions: List[str] = []
    created_at: datetime


class RoleListing(Role):
    user_count: int = 0


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    permissions: List[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    permissions: Optional[List[str]] = None


class Patient(BaseModel):
    """Patient registered at a hospital, identified by its MRN."""

    id: int
    hospital_id: str
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    mrn: str = Field(..., description="Medical record number, assigned once")
    created_at: datetime


class PatientCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None


class PatientUpdate(BaseModel):
    """Partial patient update. The MRN is assigned once and cannot change."""

    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None


class PatientCreated(BaseModel):
    id: int
    mrn: str


def _as_specialties(value: Union[str, List[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [item for item in value if item]


class Clinician(BaseModel):
    """Clinical staff member with a free-form profile."""

    id: int
    hospital_id: str
    name: str
    specialty: List[str] = []
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    qualifications: Optional[str] = None
    home_address: Optional[str] = None
    date_joined: Optional[date] = None
    marital_status: Optional[str] = None
    created_at: datetime

    @field_validator("specialty", mode="before")
    @classmethod
    def normalize_specialty(cls, value):
        return _as_specialties(value)


class ClinicianCreate(BaseModel):
    name: str = Field(..., min_length=1)
    specialty: List[str] = Field(
        default_factory=list,
        description="One or many specialties; a single string is accepted",
    )
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    qualifications: Optional[str] = None
    home_address: Optional[str] = None
    date_joined: Optional[date] = None
    marital_status: Optional[str] = None

    @field_validator("specialty", mode="before")
    @classmethod
    def normalize_specialty(cls, value):
        return _as_specialties(value)


class ClinicianUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    specialty: Optional[List[str]] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    qualifications: Optional[str] = None
    home_address: Optional[str] = None
    date_joined: Optional[date] = None
    marital_status: Optional[str] = None

    @field_validator("specialty", mode="before")
    @classmethod
    def normalize_specialty(cls, value):
        return None if value is None else _as_specialties(value)


class ClinicianCreated(BaseModel):
    id: int


class ListQuery(BaseModel):
    """Filter and pagination arguments parsed from a query string."""

    model_config = ConfigDict(populate_by_name=True)

    search: Optional[str] = None
    page: Optional[int] = Field(None, ge=1)
    page_size: Optional[int] = Field(None, ge=1, alias="pageSize")
    limit: Optional[int] = Field(None, ge=0)
    offset: Optional[int] = Field(None, ge=0)


class MetricsQuery(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class HospitalLookup(BaseModel):
    id: Optional[str] = None


class HospitalAdmins(BaseModel):
    hospital_id: str
    admin_count: int
    admins: List[User] = []


class ConsoleRole(str, Enum):
    """Console personas returned by the login call."""

    super_admin = "super_admin"
    hospital_admin = "hospital_admin"


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResult(BaseModel):
    ok: bool = True
    role: ConsoleRole
    hospital_id: Optional[str] = None


class ImpersonateRequest(BaseModel):
    hospital_id: str


class ImpersonateResult(BaseModel):
    ok: bool = True
    hospital_id: str


class Ok(BaseModel):
    ok: bool = True


class ProviderQueue(BaseModel):
    name: str
    queued: int
    sent: int
    failed: int


class QueueOverview(BaseModel):
    queued: int
    sent: int
    failed: int
    retry_rate: float
    providers: List[ProviderQueue] = []


class DeliveryStatus(str, Enum):
    queued = "Queued"
    sent = "Sent"
    failed = "Failed"


class ChannelBreakdown(BaseModel):
    channel: str
    provider: str
    status: DeliveryStatus
    count: int
    trend: int
    trend_direction: str


class WorkflowHealth(BaseModel):
    name: str
    last_success: str
    last_error: Optional[str] = None
    avg_duration: str


class MetricsRange(BaseModel):
    start: datetime
    end: datetime


class StatusCount(BaseModel):
    status: str
    count: int


class ChannelDelivery(BaseModel):
    channel: str
    sent: int
    failed: int


class HospitalMetrics(BaseModel):
    hospital_id: str
    range: MetricsRange
    total_appointments: int
    by_status: List[StatusCount]
    notif_breakdown: List[ChannelDelivery]


class NotificationType(str, Enum):
    """Closed set of events the notification feed understands."""

    system_abnormal = "system_abnormal"
    role_added = "role_added"
    role_deleted = "role_deleted"
    role_assigned = "role_assigned"
    role_changed = "role_changed"
    hospital_admin_added = "hospital_admin_added"
    hospital_admin_deleted = "hospital_admin_deleted"
    hospital_added = "hospital_added"
    hospital_deleted = "hospital_deleted"
    user_added = "user_added"
    user_deleted = "user_deleted"
    user_role_assigned = "user_role_assigned"
    user_role_removed = "user_role_removed"
    password_changed = "password_changed"
    new_login = "new_login"
    n8n_workflow_healthy = "n8n_workflow_healthy"
    n8n_workflow_error = "n8n_workflow_error"
    n8n_workflow_warning = "n8n_workflow_warning"
    n8n_workflow_running = "n8n_workflow_running"


class NotificationEvent(BaseModel):
    """Inbound shape accepted by the notification feed."""

    type: NotificationType
    title: str
    message: str
    route: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class Notification(NotificationEvent):
    id: str
    timestamp: datetime
    read: bool = False


class NotificationFeed(BaseModel):
    notifications: List[Notification] = []


class ThemeMode(str, Enum):
    light = "light"
    dark = "dark"


class UIState(BaseModel):
    theme: ThemeMode = ThemeMode.light
    sidebar_collapsed: bool = False


class TwoFactorMethod(str, Enum):
    google = "google"
    authenticator = "authenticator"


class TwoFactorState(BaseModel):
    """Two-factor enrollment of the current browser session."""

    enabled: bool = False
    method: Optional[TwoFactorMethod] = None
    secret: Optional[str] = None
    backup_codes: Optional[List[str]] = None


class ProfileState(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = Field(
        None, description="URL or data reference of the profile picture"
    )


class SessionStatus(str, Enum):
    idle = "idle"
    authenticated = "authenticated"


class SessionState(BaseModel):
    """Active console session as seen by the browser."""

    status: SessionStatus = SessionStatus.idle
    role: Optional[ConsoleRole] = None
    hospital_id: Optional[str] = None
    impersonating: Optional[str] = None
