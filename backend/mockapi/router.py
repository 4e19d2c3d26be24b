"""Dispatches HTTP-shaped calls to the in-memory entity store.

The route table is an ordered list of ``(method, path pattern, handler)``
entries. A call that matches no entry is logged and answered with ``{}``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from re import Pattern
from typing import Any, Awaitable, Callable, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ValidationError
from starlette.convertors import Convertor
from starlette.datastructures import QueryParams
from starlette.routing import compile_path

from . import monitoring, schemas
from .config import Settings
from .errors import NotFoundError, UnroutedRequestError, ValidationFailedError
from .notifications import NotificationStore
from .storage import EntityStore

logger = logging.getLogger(__name__)

HOSPITALS_PAGE = "/super/hospitals"
USERS_PAGE = "/super/users"
ROLES_PAGE = "/super/roles"


@dataclass
class RouteRequest:
    method: str
    path: str
    path_params: dict[str, Any]
    query: QueryParams
    body: Any = None


@dataclass
class Outcome:
    """Handler result: the response body and the domain events it produced."""

    body: Any
    events: list[schemas.NotificationEvent] = field(default_factory=list)


Handler = Callable[[RouteRequest], Outcome]


@dataclass
class Route:
    method: str
    path: str
    handler: Handler
    latency_ms: int = 500
    regex: Pattern = field(init=False, repr=False)
    convertors: dict[str, Convertor] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.regex, _, self.convertors = compile_path(self.path)

    def match(self, method: str, path: str) -> Optional[dict[str, Any]]:
        if method != self.method:
            return None
        matched = self.regex.match(path)
        if matched is None:
            return None
        return {
            name: self.convertors[name].convert(value)
            for name, value in matched.groupdict().items()
        }


def parse_body(model: type[BaseModel], body: Any) -> Any:
    try:
        return model.model_validate(body if body is not None else {})
    except ValidationError as error:
        first = error.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "body"
        raise ValidationFailedError(f"{location}: {first['msg']}") from error


def parse_query(model: type[BaseModel], query: QueryParams) -> Any:
    present = {key: value for key, value in query.items() if value != ""}
    return parse_body(model, present)


def console_role_for(email: str) -> schemas.ConsoleRole:
    lowered = email.lower()
    if "hospital" in lowered or ("admin" in lowered and "super" not in lowered):
        return schemas.ConsoleRole.hospital_admin
    return schemas.ConsoleRole.super_admin


class MockRouter:
    """Routes logical API calls onto an :class:`EntityStore`.

    Every routed call waits for the route's simulated latency first and then
    runs its handler without yielding, so a mutation is never observed half
    applied. Overlapping writes to the same record resolve last-write-wins.
    """

    def __init__(
        self,
        store: EntityStore,
        settings: Settings,
        notifications: Optional[NotificationStore] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.settings = settings
        self.notifications = notifications
        self._sleep = sleep
        self.routes = self._build_routes(settings.api_prefix.rstrip("/"))

    def _build_routes(self, prefix: str) -> list[Route]:
        table = [
            ("POST", "/auth/login", self._login, 300),
            ("POST", "/auth/logout", self._acknowledge, 100),
            ("POST", "/auth/refresh", self._acknowledge, 100),
            ("GET", "/super/hospitals", self._list_hospitals, 600),
            ("POST", "/super/hospitals", self._create_hospital, 800),
            ("PUT", "/super/hospitals/{hospital_id}", self._update_hospital, 500),
            ("DELETE", "/super/hospitals/{hospital_id}", self._delete_hospital, 500),
            ("GET", "/super/hospitals/{hospital_id}/admins", self._hospital_admins, 400),
            ("POST", "/super/impersonate", self._impersonate, 400),
            ("GET", "/super/users", self._list_users, 600),
            ("POST", "/super/users", self._create_user, 800),
            ("PUT", "/super/users/{user_id}", self._update_user, 500),
            ("DELETE", "/super/users/{user_id}", self._delete_user, 500),
            ("GET", "/super/roles", self._list_roles, 600),
            ("POST", "/super/roles", self._create_role, 800),
            ("PUT", "/super/roles/{role_id}", self._update_role, 500),
            ("DELETE", "/super/roles/{role_id}", self._delete_role, 500),
            ("GET", "/super/monitoring/queue", self._queue_overview, 600),
            ("GET", "/super/monitoring/notifications", self._notifications_breakdown, 600),
            ("GET", "/super/monitoring/n8n-health", self._workflow_health, 600),
            ("GET", "/hospitals/me", self._current_hospital, 400),
            ("GET", "/hospitals/{hospital_id}/patients", self._list_patients, 500),
            ("POST", "/hospitals/{hospital_id}/patients", self._create_patient, 600),
            (
                "PUT",
                "/hospitals/{hospital_id}/patients/{patient_id:int}",
                self._update_patient,
                500,
            ),
            ("GET", "/hospitals/{hospital_id}/clinicians", self._list_clinicians, 400),
            ("POST", "/hospitals/{hospital_id}/clinicians", self._create_clinician, 600),
            (
                "PUT",
                "/hospitals/{hospital_id}/clinicians/{clinician_id:int}",
                self._update_clinician,
                500,
            ),
            (
                "DELETE",
                "/hospitals/{hospital_id}/clinicians/{clinician_id:int}",
                self._delete_clinician,
                500,
            ),
            ("GET", "/hospitals/{hospital_id}/metrics", self._metrics, 500),
        ]
        return [
            Route(method, f"{prefix}{path}", handler, latency)
            for method, path, handler, latency in table
        ]

    def resolve(self, method: str, path: str) -> tuple[Route, dict[str, Any]]:
        for route in self.routes:
            params = route.match(method, path)
            if params is not None:
                return route, params
        raise UnroutedRequestError(f"No handler for {method} {path}")

    def latency_for(self, route: Route) -> float:
        """Seconds to wait before the route's handler runs."""

        bounded = min(
            max(route.latency_ms, self.settings.latency_min_ms),
            self.settings.latency_max_ms,
        )
        return bounded * self.settings.latency_scale / 1000

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        method = method.upper()
        path_only, _, query_string = path.partition("?")
        params = dict(QueryParams(query_string))
        if query:
            params.update({key: str(value) for key, value in query.items() if value is not None})
        try:
            route, path_params = self.resolve(method, path_only)
        except UnroutedRequestError as error:
            logger.warning("%s", error.detail)
            return {}

        delay = self.latency_for(route)
        if delay > 0:
            await self._sleep(delay)

        logger.debug("Dispatching %s %s", method, path_only)
        outcome = route.handler(
            RouteRequest(
                method=method,
                path=path_only,
                path_params=path_params,
                query=QueryParams(params),
                body=json,
            )
        )
        if self.notifications is not None:
            for event in outcome.events:
                self.notifications.add(event)
        return jsonable_encoder(outcome.body)

    async def get(self, path: str, **query: Any) -> Any:
        return await self.request("GET", path, query=query)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    # Auth ----------------------------------------------------------------

    def _login(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.LoginRequest, request.body)
        role = console_role_for(payload.email)
        hospital_id = None
        if role == schemas.ConsoleRole.hospital_admin:
            hospitals = self.store.list_hospitals()
            hospital_id = hospitals[0].id if hospitals else None
        return Outcome(schemas.LoginResult(role=role, hospital_id=hospital_id))

    def _acknowledge(self, request: RouteRequest) -> Outcome:
        return Outcome(schemas.Ok())

    def _impersonate(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.ImpersonateRequest, request.body)
        hospital = self.store.get_hospital(payload.hospital_id)
        return Outcome(schemas.ImpersonateResult(hospital_id=hospital.id))

    # Hospitals -----------------------------------------------------------

    def _list_hospitals(self, request: RouteRequest) -> Outcome:
        query = parse_query(schemas.ListQuery, request.query)
        return Outcome(self.store.list_hospitals(query))

    def _create_hospital(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.HospitalCreate, request.body)
        hospital, admin = self.store.create_hospital(payload)
        return Outcome(
            schemas.Created(id=hospital.id, name=hospital.name),
            [
                schemas.NotificationEvent(
                    type=schemas.NotificationType.hospital_added,
                    title="Hospital Added",
                    message=f'Hospital "{hospital.name}" has been created.',
                    route=HOSPITALS_PAGE,
                    metadata={"hospital_id": hospital.id},
                ),
                schemas.NotificationEvent(
                    type=schemas.NotificationType.hospital_admin_added,
                    title="Hospital Admin Added",
                    message=f"{admin.email} is now an administrator of {hospital.name}.",
                    route=USERS_PAGE,
                    metadata={"hospital_id": hospital.id, "user_id": admin.id},
                ),
            ],
        )

    def _update_hospital(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.HospitalUpdate, request.body)
        self.store.update_hospital(request.path_params["hospital_id"], payload)
        return Outcome(schemas.Ok())

    def _delete_hospital(self, request: RouteRequest) -> Outcome:
        hospital = self.store.delete_hospital(request.path_params["hospital_id"])
        return Outcome(
            schemas.Ok(),
            [
                schemas.NotificationEvent(
                    type=schemas.NotificationType.hospital_deleted,
                    title="Hospital Deleted",
                    message=f'Hospital "{hospital.name}" has been deleted.',
                    route=HOSPITALS_PAGE,
                    metadata={"hospital_id": hospital.id},
                )
            ],
        )

    def _hospital_admins(self, request: RouteRequest) -> Outcome:
        return Outcome(self.store.hospital_admins(request.path_params["hospital_id"]))

    # Users ---------------------------------------------------------------

    def _list_users(self, request: RouteRequest) -> Outcome:
        query = parse_query(schemas.ListQuery, request.query)
        return Outcome(self.store.list_users(query))

    def _create_user(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.UserCreate, request.body)
        user = self.store.create_user(payload)
        return Outcome(
            schemas.Created(id=user.id, name=user.name),
            [
                schemas.NotificationEvent(
                    type=schemas.NotificationType.user_added,
                    title="User Added",
                    message=f"{user.name} was added as {user.role}.",
                    route=USERS_PAGE,
                    metadata={"user_id": user.id, "role": user.role},
                )
            ],
        )

    def _update_user(self, request: RouteRequest) -> Outcome:
        user_id = request.path_params["user_id"]
        payload = parse_body(schemas.UserUpdate, request.body)
        previous = self.store.get_user(user_id)
        user = self.store.update_user(user_id, payload)
        events = []
        if user.role != previous.role:
            events.append(
                schemas.NotificationEvent(
                    type=schemas.NotificationType.user_role_assigned,
                    title="Role Assigned",
                    message=f"{user.name} is now {user.role} (was {previous.role}).",
                    route=USERS_PAGE,
                    metadata={"user_id": user.id, "role": user.role},
                )
            )
        return Outcome(schemas.Ok(), events)

    def _delete_user(self, request: RouteRequest) -> Outcome:
        user = self.store.delete_user(request.path_params["user_id"])
        return Outcome(
            schemas.Ok(),
            [
                schemas.NotificationEvent(
                    type=schemas.NotificationType.user_deleted,
                    title="User Deleted",
                    message=f"{user.name} has been removed.",
                    route=USERS_PAGE,
                    metadata={"user_id": user.id},
                )
            ],
        )

    # Roles ---------------------------------------------------------------

    def _list_roles(self, request: RouteRequest) -> Outcome:
        query = parse_query(schemas.ListQuery, request.query)
        return Outcome(self.store.list_roles(query))

    def _create_role(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.RoleCreate, request.body)
        role = self.store.create_role(payload)
        return Outcome(
            schemas.Created(id=role.id, name=role.name),
            [
                schemas.NotificationEvent(
                    type=schemas.NotificationType.role_added,
                    title="Role Added",
                    message=f'Role "{role.name}" has been created.',
                    route=ROLES_PAGE,
                    metadata={"role_id": role.id},
                )
            ],
        )

    def _update_role(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.RoleUpdate, request.body)
        role = self.store.update_role(request.path_params["role_id"], payload)
        return Outcome(
            schemas.Ok(),
            [
                schemas.NotificationEvent(
                    type=schemas.NotificationType.role_changed,
                    title="Role Updated",
                    message=f'Role "{role.name}" has been updated.',
                    route=ROLES_PAGE,
                    metadata={"role_id": role.id},
                )
            ],
        )

    def _delete_role(self, request: RouteRequest) -> Outcome:
        role = self.store.delete_role(request.path_params["role_id"])
        return Outcome(
            schemas.Ok(),
            [
                schemas.NotificationEvent(
                    type=schemas.NotificationType.role_deleted,
                    title="Role Deleted",
                    message=f'Role "{role.name}" has been deleted.',
                    route=ROLES_PAGE,
                    metadata={"role_id": role.id},
                )
            ],
        )

    # Monitoring ----------------------------------------------------------

    def _queue_overview(self, request: RouteRequest) -> Outcome:
        return Outcome(monitoring.queue_overview())

    def _notifications_breakdown(self, request: RouteRequest) -> Outcome:
        return Outcome(monitoring.notifications_breakdown())

    def _workflow_health(self, request: RouteRequest) -> Outcome:
        return Outcome(monitoring.workflow_health())

    # Hospital scope ------------------------------------------------------

    def _current_hospital(self, request: RouteRequest) -> Outcome:
        lookup = parse_query(schemas.HospitalLookup, request.query)
        if lookup.id:
            return Outcome(self.store.get_hospital(lookup.id))
        hospitals = self.store.list_hospitals()
        if not hospitals:
            raise NotFoundError("Hospital not found")
        return Outcome(hospitals[0])

    def _list_patients(self, request: RouteRequest) -> Outcome:
        query = parse_query(schemas.ListQuery, request.query)
        return Outcome(self.store.list_patients(request.path_params["hospital_id"], query))

    def _create_patient(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.PatientCreate, request.body)
        patient = self.store.create_patient(request.path_params["hospital_id"], payload)
        return Outcome(schemas.PatientCreated(id=patient.id, mrn=patient.mrn))

    def _update_patient(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.PatientUpdate, request.body)
        self.store.update_patient(
            request.path_params["hospital_id"], request.path_params["patient_id"], payload
        )
        return Outcome(schemas.Ok())

    def _list_clinicians(self, request: RouteRequest) -> Outcome:
        query = parse_query(schemas.ListQuery, request.query)
        return Outcome(self.store.list_clinicians(request.path_params["hospital_id"], query))

    def _create_clinician(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.ClinicianCreate, request.body)
        clinician = self.store.create_clinician(request.path_params["hospital_id"], payload)
        return Outcome(schemas.ClinicianCreated(id=clinician.id))

    def _update_clinician(self, request: RouteRequest) -> Outcome:
        payload = parse_body(schemas.ClinicianUpdate, request.body)
        self.store.update_clinician(
            request.path_params["hospital_id"], request.path_params["clinician_id"], payload
        )
        return Outcome(schemas.Ok())

    def _delete_clinician(self, request: RouteRequest) -> Outcome:
        self.store.delete_clinician(
            request.path_params["hospital_id"], request.path_params["clinician_id"]
        )
        return Outcome(schemas.Ok())

    def _metrics(self, request: RouteRequest) -> Outcome:
        hospital = self.store.get_hospital(request.path_params["hospital_id"])
        query = parse_query(schemas.MetricsQuery, request.query)
        return Outcome(monitoring.hospital_metrics(hospital.id, query.start, query.end))
