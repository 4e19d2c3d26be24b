"""Typed async endpoints used by the console pages."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from . import schemas
from .router import MockRouter


class _Endpoints:
    def __init__(self, router: MockRouter) -> None:
        self.router = router

    def _path(self, path: str) -> str:
        return f"{self.router.settings.api_prefix.rstrip('/')}{path}"


class AuthAPI(_Endpoints):
    async def login(self, email: str, password: str) -> schemas.LoginResult:
        data = await self.router.post(
            self._path("/auth/login"), json={"email": email, "password": password}
        )
        return schemas.LoginResult.model_validate(data)

    async def logout(self) -> schemas.Ok:
        return schemas.Ok.model_validate(await self.router.post(self._path("/auth/logout")))

    async def refresh(self) -> schemas.Ok:
        return schemas.Ok.model_validate(await self.router.post(self._path("/auth/refresh")))


class SuperAPI(_Endpoints):
    """Super-admin endpoints: tenants, accounts, roles and monitoring."""

    async def list_hospitals(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> list[schemas.Hospital]:
        data = await self.router.get(
            self._path("/super/hospitals"), limit=limit, offset=offset
        )
        return [schemas.Hospital.model_validate(item) for item in data]

    async def create_hospital(
        self,
        *,
        name: str,
        admin_email: str,
        admin_password: str,
        country: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> schemas.Created:
        data = await self.router.post(
            self._path("/super/hospitals"),
            json={
                "name": name,
                "country": country,
                "timezone": timezone,
                "adminEmail": admin_email,
                "adminPassword": admin_password,
            },
        )
        return schemas.Created.model_validate(data)

    async def update_hospital(self, hospital_id: str, **changes) -> schemas.Ok:
        data = await self.router.put(
            self._path(f"/super/hospitals/{hospital_id}"), json=changes
        )
        return schemas.Ok.model_validate(data)

    async def delete_hospital(self, hospital_id: str) -> schemas.Ok:
        data = await self.router.delete(self._path(f"/super/hospitals/{hospital_id}"))
        return schemas.Ok.model_validate(data)

    async def hospital_admins(self, hospital_id: str) -> schemas.HospitalAdmins:
        data = await self.router.get(self._path(f"/super/hospitals/{hospital_id}/admins"))
        return schemas.HospitalAdmins.model_validate(data)

    async def impersonate(self, hospital_id: str) -> schemas.ImpersonateResult:
        data = await self.router.post(
            self._path("/super/impersonate"), json={"hospital_id": hospital_id}
        )
        return schemas.ImpersonateResult.model_validate(data)

    async def list_users(self, search: Optional[str] = None) -> list[schemas.UserListing]:
        data = await self.router.get(self._path("/super/users"), search=search)
        return [schemas.UserListing.model_validate(item) for item in data]

    async def create_user(
        self,
        *,
        name: str,
        email: str,
        role: str,
        password: Optional[str] = None,
        hospital_id: Optional[str] = None,
    ) -> schemas.Created:
        data = await self.router.post(
            self._path("/super/users"),
            json={
                "name": name,
                "email": email,
                "role": role,
                "password": password,
                "hospital_id": hospital_id,
            },
        )
        return schemas.Created.model_validate(data)

    async def update_user(self, user_id: str, **changes) -> schemas.Ok:
        data = await self.router.put(self._path(f"/super/users/{user_id}"), json=changes)
        return schemas.Ok.model_validate(data)

    async def delete_user(self, user_id: str) -> schemas.Ok:
        data = await self.router.delete(self._path(f"/super/users/{user_id}"))
        return schemas.Ok.model_validate(data)

    async def list_roles(self) -> list[schemas.RoleListing]:
        data = await self.router.get(self._path("/super/roles"))
        return [schemas.RoleListing.model_validate(item) for item in data]

    async def create_role(
        self, name: str, description: str = "", permissions: Optional[list[str]] = None
    ) -> schemas.Created:
        data = await self.router.post(
            self._path("/super/roles"),
            json={
                "name": name,
                "description": description,
                "permissions": permissions or [],
            },
        )
        return schemas.Created.model_validate(data)

    async def update_role(self, role_id: str, **changes) -> schemas.Ok:
        data = await self.router.put(self._path(f"/super/roles/{role_id}"), json=changes)
        return schemas.Ok.model_validate(data)

    async def delete_role(self, role_id: str) -> schemas.Ok:
        data = await self.router.delete(self._path(f"/super/roles/{role_id}"))
        return schemas.Ok.model_validate(data)

    async def queue_overview(self) -> schemas.QueueOverview:
        data = await self.router.get(self._path("/super/monitoring/queue"))
        return schemas.QueueOverview.model_validate(data)

    async def notifications_breakdown(self) -> list[schemas.ChannelBreakdown]:
        data = await self.router.get(self._path("/super/monitoring/notifications"))
        return [schemas.ChannelBreakdown.model_validate(item) for item in data]

    async def workflow_health(self) -> list[schemas.WorkflowHealth]:
        data = await self.router.get(self._path("/super/monitoring/n8n-health"))
        return [schemas.WorkflowHealth.model_validate(item) for item in data]


class HospitalAPI(_Endpoints):
    """Endpoints scoped to a single hospital."""

    async def me(self, hospital_id: Optional[str] = None) -> schemas.Hospital:
        data = await self.router.get(self._path("/hospitals/me"), id=hospital_id)
        return schemas.Hospital.model_validate(data)

    async def list_patients(
        self,
        hospital_id: str,
        search: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> list[schemas.Patient]:
        data = await self.router.get(
            self._path(f"/hospitals/{hospital_id}/patients"),
            search=search,
            page=page,
            pageSize=page_size,
        )
        return [schemas.Patient.model_validate(item) for item in data]

    async def create_patient(self, hospital_id: str, **fields) -> schemas.PatientCreated:
        data = await self.router.post(
            self._path(f"/hospitals/{hospital_id}/patients"), json=fields
        )
        return schemas.PatientCreated.model_validate(data)

    async def update_patient(
        self, hospital_id: str, patient_id: int, **changes
    ) -> schemas.Ok:
        data = await self.router.put(
            self._path(f"/hospitals/{hospital_id}/patients/{patient_id}"), json=changes
        )
        return schemas.Ok.model_validate(data)

    async def list_clinicians(
        self, hospital_id: str, search: Optional[str] = None
    ) -> list[schemas.Clinician]:
        data = await self.router.get(
            self._path(f"/hospitals/{hospital_id}/clinicians"), search=search
        )
        return [schemas.Clinician.model_validate(item) for item in data]

    async def create_clinician(self, hospital_id: str, **fields) -> schemas.ClinicianCreated:
        data = await self.router.post(
            self._path(f"/hospitals/{hospital_id}/clinicians"), json=fields
        )
        return schemas.ClinicianCreated.model_validate(data)

    async def update_clinician(
        self, hospital_id: str, clinician_id: int, **changes
    ) -> schemas.Ok:
        data = await self.router.put(
            self._path(f"/hospitals/{hospital_id}/clinicians/{clinician_id}"),
            json=changes,
        )
        return schemas.Ok.model_validate(data)

    async def delete_clinician(self, hospital_id: str, clinician_id: int) -> schemas.Ok:
        data = await self.router.delete(
            self._path(f"/hospitals/{hospital_id}/clinicians/{clinician_id}")
        )
        return schemas.Ok.model_validate(data)

    async def metrics(
        self,
        hospital_id: str,
        start: Optional[Union[str, datetime]] = None,
        end: Optional[Union[str, datetime]] = None,
    ) -> schemas.HospitalMetrics:
        data = await self.router.get(
            self._path(f"/hospitals/{hospital_id}/metrics"),
            start=start.isoformat() if isinstance(start, datetime) else start,
            end=end.isoformat() if isinstance(end, datetime) else end,
        )
        return schemas.HospitalMetrics.model_validate(data)
