"""In-memory entity store backing the simulated console API."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from . import integrity, schemas
from .config import Settings
from .errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _next_id(records: Iterable[BaseModel]) -> int:
    numeric = [int(record.id) for record in records if str(record.id).isdigit()]
    return max(numeric, default=0) + 1


def _copies(records: Iterable[ModelT]) -> list[ModelT]:
    return [record.model_copy(deep=True) for record in records]


def _paginate(items: Sequence[ModelT], query: Optional[schemas.ListQuery]) -> list[ModelT]:
    if query is None:
        return list(items)
    results = list(items)
    if query.offset is not None or query.limit is not None:
        start = query.offset or 0
        end = start + query.limit if query.limit is not None else None
        results = results[start:end]
    if query.page_size is not None:
        page = query.page or 1
        start = (page - 1) * query.page_size
        results = results[start : start + query.page_size]
    return results


def _matches(search: Optional[str], *values: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    return any(needle in value.lower() for value in values if value)


def _merged(record: ModelT, changes: dict) -> ModelT:
    """Apply a partial update and validate the result as a whole record."""

    try:
        return type(record).model_validate({**record.model_dump(), **changes})
    except ValidationError as error:
        first = error.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "body"
        raise ValidationFailedError(f"{location}: {first['msg']}") from error


@dataclass
class EntityDataset:
    """Initial collections of the simulated backend."""

    hospitals: list[schemas.Hospital] = field(default_factory=list)
    users: list[schemas.User] = field(default_factory=list)
    roles: list[schemas.Role] = field(default_factory=list)
    patients: list[schemas.Patient] = field(default_factory=list)
    clinicians: list[schemas.Clinician] = field(default_factory=list)


_DEMO_ADMINS = [
    ("Dr. Benjamin Carter", "1", "1 day ago"),
    ("Dr. Chloe Bennett", "2", "3 days ago"),
    ("Dr. Daniel Evans", "3", "1 week ago"),
    ("Dr. Eleanor Foster", "4", "2 days ago"),
    ("Dr. Finnigan Graham", "5", "1 day ago"),
    ("Dr. Gabriel Hughes", "2", "4 days ago"),
    ("Dr. Isabella Jones", "3", "2 weeks ago"),
    ("Dr. James Wilson", "1", "5 days ago"),
    ("Dr. Katherine Lee", "3", "3 days ago"),
    ("Dr. Lucas Martinez", "5", "1 week ago"),
    ("Dr. Maya Patel", "4", "2 days ago"),
    ("Dr. Nathan Brown", "1", "4 days ago"),
    ("Dr. Olivia Davis", "2", "1 day ago"),
    ("Dr. Patrick Taylor", "3", "6 days ago"),
    ("Dr. Quinn Anderson", "5", "3 days ago"),
    ("Dr. Rachel Green", "4", "2 weeks ago"),
    ("Dr. Samuel White", "1", "1 day ago"),
    ("Dr. Taylor Johnson", "2", "5 days ago"),
    ("Dr. Uma Singh", "3", "4 days ago"),
    ("Dr. Victor Chen", "5", "2 days ago"),
    ("Dr. Wendy Kim", "4", "1 week ago"),
    ("Dr. Xavier Rodriguez", "1", "3 days ago"),
    ("Dr. Yara Ali", "2", "1 day ago"),
]


def _demo_email(name: str) -> str:
    first, last = name.replace("Dr. ", "").lower().split(" ")
    return f"{first}.{last}@example.com"


def default_dataset(settings: Settings) -> EntityDataset:
    """Seed data mirroring the console's demo tenant."""

    now = _utcnow()
    day = timedelta(days=1)
    founded = datetime(2023, 1, 1, tzinfo=timezone.utc)
    hospitals = [
        schemas.Hospital(
            id="1",
            name="City General Hospital",
            country="USA",
            timezone="America/New_York",
            created_at=datetime(2023, 10, 27, tzinfo=timezone.utc),
        ),
        schemas.Hospital(
            id="2",
            name="St. Jude's",
            country="Canada",
            timezone="America/Toronto",
            created_at=datetime(2023, 9, 15, tzinfo=timezone.utc),
        ),
        schemas.Hospital(
            id="3",
            name="Mercy West",
            country="USA",
            timezone="America/Chicago",
            created_at=datetime(2023, 8, 1, tzinfo=timezone.utc),
        ),
        schemas.Hospital(
            id="4",
            name="Demo General Hospital",
            country="NG",
            timezone="Africa/Lagos",
            created_at=now,
        ),
        schemas.Hospital(
            id="5",
            name="City Medical Center",
            country="USA",
            timezone="America/Los_Angeles",
            created_at=now - day,
        ),
        schemas.Hospital(
            id="6",
            name="Regional Health Clinic",
            country="United Kingdom",
            timezone="Europe/London",
            created_at=now - 2 * day,
        ),
    ]
    users = [
        schemas.User(
            id="1",
            name="Dr. Amelia Harper",
            email="amelia.harper@example.com",
            role=settings.top_level_role,
            hospital_id=None,
            last_active="2 days ago",
        )
    ]
    for index, (name, hospital_id, last_active) in enumerate(_DEMO_ADMINS, start=2):
        users.append(
            schemas.User(
                id=str(index),
                name=name,
                email=_demo_email(name),
                role=settings.hospital_admin_role,
                hospital_id=hospital_id,
                last_active=last_active,
            )
        )
    roles = [
        schemas.Role(
            id="1",
            name=settings.top_level_role,
            description="Full system access and control",
            permissions=["All Permissions"],
            created_at=founded,
        ),
        schemas.Role(
            id="2",
            name=settings.hospital_admin_role,
            description="Manage hospital operations and users",
            permissions=["Hospital Management", "User Management", "Reports"],
            created_at=founded,
        ),
        schemas.Role(
            id="3",
            name="Clinician",
            description="Access patient data and appointments",
            permissions=["Patient Management", "Appointments", "Medical Records"],
            created_at=founded,
        ),
        schemas.Role(
            id="4",
            name="Receptionist",
            description="Manage appointments and patient check-ins",
            permissions=["Appointments", "Patient Check-in", "Basic Reports"],
            created_at=founded,
        ),
        schemas.Role(
            id="5",
            name="Patient",
            description="Access personal health information and appointments",
            permissions=["Personal Health Information", "View Appointments"],
            created_at=now,
        ),
        schemas.Role(
            id="6",
            name="Support Staff",
            description="Limited access for administrative tasks",
            permissions=["Administrative Tasks", "Basic Reports"],
            created_at=now,
        ),
    ]
    patients = [
        schemas.Patient(
            id=1,
            hospital_id="1",
            first_name="John",
            last_name="Doe",
            email="john.doe@example.com",
            phone="+2348012345678",
            mrn=format_mrn(settings, 1),
            created_at=now,
        ),
        schemas.Patient(
            id=2,
            hospital_id="1",
            first_name="Jane",
            last_name="Smith",
            email="jane.smith@example.com",
            phone="+2348023456789",
            mrn=format_mrn(settings, 2),
            created_at=now,
        ),
        schemas.Patient(
            id=3,
            hospital_id="1",
            first_name="Michael",
            last_name="Johnson",
            email="michael.j@example.com",
            phone="+2348034567890",
            mrn=format_mrn(settings, 3),
            created_at=now - day,
        ),
    ]
    clinicians = [
        schemas.Clinician(
            id=1,
            hospital_id="1",
            name="Dr. Emily Carter",
            specialty=["Cardiology", "Internal Medicine"],
            email="emily.carter@hospital.com",
            phone="+2348034567890",
            role="Clinician",
            qualifications="MD, Board Certified in Cardiology",
            home_address="123 Medical Plaza, New York, NY 10001",
            date_joined=date(2020, 1, 15),
            marital_status="Married",
            created_at=now,
        ),
        schemas.Clinician(
            id=2,
            hospital_id="1",
            name="Dr. Michael Brown",
            specialty=["Pediatrics"],
            email="michael.brown@hospital.com",
            phone="+2348045678901",
            role="Clinician",
            created_at=now,
        ),
        schemas.Clinician(
            id=3,
            hospital_id="1",
            name="Dr. Sarah Williams",
            specialty=["General Medicine"],
            email="sarah.williams@hospital.com",
            phone="+2348056789012",
            role="Clinician",
            created_at=now - day,
        ),
    ]
    return EntityDataset(
        hospitals=hospitals,
        users=users,
        roles=roles,
        patients=patients,
        clinicians=clinicians,
    )


def format_mrn(settings: Settings, sequence: int) -> str:
    return f"{settings.mrn_prefix}{sequence:0{settings.mrn_width}d}"


class EntityStore:
    """Owns the hospital, user, role, patient and clinician collections.

    Every mutation runs to completion synchronously. Callers receive copies,
    so nothing outside the store can change a record in place.
    """

    def __init__(
        self,
        settings: Settings,
        dataset: Optional[EntityDataset] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self._clock = clock
        dataset = dataset or EntityDataset()
        self._hospitals = _copies(dataset.hospitals)
        self._users = _copies(dataset.users)
        self._roles = _copies(dataset.roles)
        self._patients = _copies(dataset.patients)
        self._clinicians = _copies(dataset.clinicians)
        # MRN sequence only moves forward
        self._mrn_sequence = max((patient.id for patient in self._patients), default=0)

    # Hospitals -----------------------------------------------------------

    def _find_hospital(self, hospital_id: str) -> schemas.Hospital:
        hospital = next((item for item in self._hospitals if item.id == hospital_id), None)
        if hospital is None:
            raise NotFoundError("Hospital not found")
        return hospital

    def list_hospitals(
        self, query: Optional[schemas.ListQuery] = None
    ) -> list[schemas.Hospital]:
        search = query.search if query else None
        matches = [
            hospital
            for hospital in self._hospitals
            if _matches(search, hospital.name, hospital.country)
        ]
        return _copies(_paginate(matches, query))

    def get_hospital(self, hospital_id: str) -> schemas.Hospital:
        return self._find_hospital(hospital_id).model_copy(deep=True)

    def create_hospital(
        self, payload: schemas.HospitalCreate
    ) -> tuple[schemas.Hospital, schemas.User]:
        """Create a hospital together with its first Hospital Admin."""

        admin_role = self.settings.hospital_admin_role
        integrity.ensure_role_exists(self._roles, admin_role)
        hospital = schemas.Hospital(
            id=str(_next_id(self._hospitals)),
            name=payload.name,
            country=payload.country or None,
            timezone=payload.timezone or self.settings.default_timezone,
            created_at=self._clock(),
        )
        try:
            admin = schemas.User(
                id=str(_next_id(self._users)),
                name=f"Admin {payload.name.split(' ')[0]}",
                email=payload.admin_email,
                role=admin_role,
                hospital_id=hospital.id,
                last_active="Today",
            )
        except ValidationError as error:
            raise ValidationFailedError("Invalid administrator details") from error
        # Both records are fully built before either collection changes
        self._hospitals.append(hospital)
        self._users.append(admin)
        logger.info("Created hospital %s with admin user %s", hospital.id, admin.id)
        return hospital.model_copy(deep=True), admin.model_copy(deep=True)

    def update_hospital(
        self, hospital_id: str, payload: schemas.HospitalUpdate
    ) -> schemas.Hospital:
        hospital = self._find_hospital(hospital_id)
        changes = payload.model_dump(exclude_unset=True)
        if "name" in changes and not changes["name"]:
            raise ValidationFailedError("Hospital name is required")
        if "timezone" in changes and not changes["timezone"]:
            changes.pop("timezone")
        updated = _merged(hospital, changes)
        self._hospitals[self._hospitals.index(hospital)] = updated
        logger.info("Updated hospital %s", hospital_id)
        return updated.model_copy(deep=True)

    def delete_hospital(self, hospital_id: str) -> schemas.Hospital:
        hospital = self._find_hospital(hospital_id)
        self._hospitals.remove(hospital)
        logger.info("Deleted hospital %s", hospital_id)
        orphaned = [user.id for user in self._users if user.hospital_id == hospital_id]
        if orphaned:
            logger.warning(
                "Hospital %s deleted while %d user(s) still reference it",
                hospital_id,
                len(orphaned),
            )
        return hospital.model_copy(deep=True)

    def hospital_admins(self, hospital_id: str) -> schemas.HospitalAdmins:
        self._find_hospital(hospital_id)
        admins = integrity.admins_of(
            self._users, hospital_id, self.settings.hospital_admin_role
        )
        return schemas.HospitalAdmins(
            hospital_id=hospital_id,
            admin_count=len(admins),
            admins=_copies(admins),
        )

    def admin_count(self, hospital_id: str) -> int:
        return integrity.admin_count(
            self._users, hospital_id, self.settings.hospital_admin_role
        )

    # Users ---------------------------------------------------------------

    def _find_user(self, user_id: str) -> schemas.User:
        user = next((item for item in self._users if item.id == user_id), None)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _hospital_name(self, hospital_id: Optional[str]) -> Optional[str]:
        if not hospital_id:
            return None
        return next(
            (hospital.name for hospital in self._hospitals if hospital.id == hospital_id),
            None,
        )

    def _check_assignment(self, role: str, hospital_id: Optional[str]) -> None:
        integrity.ensure_role_exists(self._roles, role)
        integrity.ensure_hospital_assignment(
            role, hospital_id, self._hospitals, self.settings.top_level_role
        )

    def list_users(
        self, query: Optional[schemas.ListQuery] = None
    ) -> list[schemas.UserListing]:
        search = query.search if query else None
        matches = [
            user
            for user in self._users
            if _matches(search, user.name, user.email, user.role)
        ]
        return [
            schemas.UserListing(
                **user.model_dump(), hospital=self._hospital_name(user.hospital_id)
            )
            for user in _paginate(matches, query)
        ]

    def get_user(self, user_id: str) -> schemas.User:
        return self._find_user(user_id).model_copy(deep=True)

    def create_user(self, payload: schemas.UserCreate) -> schemas.User:
        hospital_id = payload.hospital_id or None
        if payload.role == self.settings.top_level_role:
            hospital_id = None
        self._check_assignment(payload.role, hospital_id)
        user = schemas.User(
            id=str(_next_id(self._users)),
            name=payload.name,
            email=payload.email,
            role=payload.role,
            hospital_id=hospital_id,
            last_active="Today",
        )
        self._users.append(user)
        logger.info("Created user %s with role %s", user.id, user.role)
        return user.model_copy(deep=True)

    def update_user(self, user_id: str, payload: schemas.UserUpdate) -> schemas.User:
        user = self._find_user(user_id)
        changes = payload.model_dump(exclude_unset=True)
        if "hospital_id" in changes:
            changes["hospital_id"] = changes["hospital_id"] or None
        merged = _merged(user, changes)
        if merged.role == self.settings.top_level_role:
            merged = merged.model_copy(update={"hospital_id": None})
        self._check_assignment(merged.role, merged.hospital_id)
        self._users[self._users.index(user)] = merged
        logger.info("Updated user %s", user_id)
        return merged.model_copy(deep=True)

    def delete_user(self, user_id: str) -> schemas.User:
        user = self._find_user(user_id)
        self._users.remove(user)
        logger.info("Deleted user %s", user_id)
        return user.model_copy(deep=True)

    # Roles ---------------------------------------------------------------

    def _reserved_roles(self) -> tuple[str, str]:
        return (self.settings.top_level_role, self.settings.hospital_admin_role)

    def _find_role(self, role_id: str) -> schemas.Role:
        role = next((item for item in self._roles if item.id == role_id), None)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    def role_usage(self, role_name: str) -> int:
        return integrity.role_usage(self._users, role_name)

    def list_roles(
        self, query: Optional[schemas.ListQuery] = None
    ) -> list[schemas.RoleListing]:
        search = query.search if query else None
        matches = [
            role
            for role in self._roles
            if _matches(search, role.name, role.description)
        ]
        return [
            schemas.RoleListing(**role.model_dump(), user_count=self.role_usage(role.name))
            for role in _paginate(matches, query)
        ]

    def create_role(self, payload: schemas.RoleCreate) -> schemas.Role:
        name = payload.name.strip()
        integrity.ensure_unique_role_name(self._roles, name)
        role = schemas.Role(
            id=str(_next_id(self._roles)),
            name=name,
            description=payload.description,
            permissions=list(dict.fromkeys(payload.permissions)),
            created_at=self._clock(),
        )
        self._roles.append(role)
        logger.info("Created role %s (%s)", role.id, role.name)
        return role.model_copy(deep=True)

    def update_role(self, role_id: str, payload: schemas.RoleUpdate) -> schemas.Role:
        role = self._find_role(role_id)
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("name") is not None:
            changes["name"] = changes["name"].strip()
            if changes["name"] != role.name:
                integrity.ensure_role_not_reserved(role, self._reserved_roles(), "renamed")
            integrity.ensure_unique_role_name(self._roles, changes["name"], exclude_id=role_id)
        else:
            changes.pop("name", None)
        if changes.get("permissions") is not None:
            changes["permissions"] = list(dict.fromkeys(changes["permissions"]))
        else:
            changes.pop("permissions", None)
        if changes.get("description") is None:
            changes.pop("description", None)
        updated = _merged(role, changes)
        if updated.name != role.name:
            # users reference roles by name, so a rename carries them along
            for index, user in enumerate(self._users):
                if user.role == role.name:
                    self._users[index] = user.model_copy(update={"role": updated.name})
        self._roles[self._roles.index(role)] = updated
        logger.info("Updated role %s", role_id)
        return updated.model_copy(deep=True)

    def delete_role(self, role_id: str) -> schemas.Role:
        role = self._find_role(role_id)
        integrity.ensure_role_not_reserved(role, self._reserved_roles(), "deleted")
        integrity.ensure_role_unused(self._users, role)
        self._roles.remove(role)
        logger.info("Deleted role %s (%s)", role_id, role.name)
        return role.model_copy(deep=True)

    # Patients ------------------------------------------------------------

    def list_patients(
        self, hospital_id: str, query: Optional[schemas.ListQuery] = None
    ) -> list[schemas.Patient]:
        self._find_hospital(hospital_id)
        search = query.search if query else None
        matches = [
            patient
            for patient in self._patients
            if patient.hospital_id == hospital_id
            and _matches(
                search,
                patient.first_name,
                patient.last_name,
                patient.email,
                patient.mrn,
            )
        ]
        return _copies(_paginate(matches, query))

    def create_patient(
        self, hospital_id: str, payload: schemas.PatientCreate
    ) -> schemas.Patient:
        self._find_hospital(hospital_id)
        sequence = self._mrn_sequence + 1
        patient = schemas.Patient(
            id=sequence,
            hospital_id=hospital_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            phone=payload.phone,
            date_of_birth=payload.date_of_birth,
            mrn=format_mrn(self.settings, sequence),
            created_at=self._clock(),
        )
        self._patients.append(patient)
        self._mrn_sequence = sequence
        logger.info("Registered patient %s at hospital %s", patient.mrn, hospital_id)
        return patient.model_copy(deep=True)

    def _find_patient(self, hospital_id: str, patient_id: int) -> schemas.Patient:
        self._find_hospital(hospital_id)
        patient = next(
            (
                item
                for item in self._patients
                if item.id == patient_id and item.hospital_id == hospital_id
            ),
            None,
        )
        if patient is None:
            raise NotFoundError("Patient not found")
        return patient

    def update_patient(
        self, hospital_id: str, patient_id: int, payload: schemas.PatientUpdate
    ) -> schemas.Patient:
        patient = self._find_patient(hospital_id, patient_id)
        updated = _merged(patient, payload.model_dump(exclude_unset=True))
        self._patients[self._patients.index(patient)] = updated
        logger.info("Updated patient %s", patient.mrn)
        return updated.model_copy(deep=True)

    # Clinicians ----------------------------------------------------------

    def list_clinicians(
        self, hospital_id: str, query: Optional[schemas.ListQuery] = None
    ) -> list[schemas.Clinician]:
        self._find_hospital(hospital_id)
        search = query.search if query else None
        matches = [
            clinician
            for clinician in self._clinicians
            if clinician.hospital_id == hospital_id
            and _matches(search, clinician.name, clinician.email, *clinician.specialty)
        ]
        return _copies(_paginate(matches, query))

    def create_clinician(
        self, hospital_id: str, payload: schemas.ClinicianCreate
    ) -> schemas.Clinician:
        self._find_hospital(hospital_id)
        if payload.role:
            integrity.ensure_role_exists(self._roles, payload.role)
        clinician = schemas.Clinician(
            id=_next_id(self._clinicians),
            hospital_id=hospital_id,
            created_at=self._clock(),
            **payload.model_dump(),
        )
        self._clinicians.append(clinician)
        logger.info("Added clinician %s at hospital %s", clinician.id, hospital_id)
        return clinician.model_copy(deep=True)

    def _find_clinician(self, hospital_id: str, clinician_id: int) -> schemas.Clinician:
        self._find_hospital(hospital_id)
        clinician = next(
            (
                item
                for item in self._clinicians
                if item.id == clinician_id and item.hospital_id == hospital_id
            ),
            None,
        )
        if clinician is None:
            raise NotFoundError("Clinician not found")
        return clinician

    def update_clinician(
        self, hospital_id: str, clinician_id: int, payload: schemas.ClinicianUpdate
    ) -> schemas.Clinician:
        clinician = self._find_clinician(hospital_id, clinician_id)
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("role"):
            integrity.ensure_role_exists(self._roles, changes["role"])
        if "specialty" in changes and changes["specialty"] is None:
            changes["specialty"] = []
        updated = _merged(clinician, changes)
        self._clinicians[self._clinicians.index(clinician)] = updated
        logger.info("Updated clinician %s", clinician_id)
        return updated.model_copy(deep=True)

    def delete_clinician(self, hospital_id: str, clinician_id: int) -> schemas.Clinician:
        clinician = self._find_clinician(hospital_id, clinician_id)
        self._clinicians.remove(clinician)
        logger.info("Removed clinician %s from hospital %s", clinician_id, hospital_id)
        return clinician.model_copy(deep=True)
