from __future__ import annotations

import asyncio

import pytest

from mockapi import build_console, schemas
from mockapi.errors import NotFoundError, PreconditionFailedError


def run(coroutine):
    return asyncio.run(coroutine)


def test_typed_endpoints_cover_hospital_lifecycle(console):
    created = run(
        console.super_api.create_hospital(
            name="City General", admin_email="a@x.com", admin_password="pw"
        )
    )

    hospitals = run(console.super_api.list_hospitals())
    users = run(console.super_api.list_users(search="a@x.com"))
    assert created.id in {hospital.id for hospital in hospitals}
    assert [(user.role, user.hospital_id, user.hospital) for user in users] == [
        ("Hospital Admin", created.id, "City General")
    ]
    assert run(console.super_api.hospital_admins(created.id)).admin_count == 1

    run(console.super_api.update_hospital(created.id, timezone="Africa/Lagos"))
    assert run(console.hospital_api.me(created.id)).timezone == "Africa/Lagos"

    run(console.super_api.delete_hospital(created.id))
    with pytest.raises(NotFoundError):
        run(console.hospital_api.me(created.id))
    assert console.notifications.unread_count() == 3


def test_typed_endpoints_for_roles(console):
    role = run(console.super_api.create_role("Support Lead", "Leads support", ["Reports"]))
    run(console.super_api.update_role(role.id, permissions=["Reports", "Audit"]))

    listed = {item.name: item for item in run(console.super_api.list_roles())}
    assert listed["Support Lead"].permissions == ["Reports", "Audit"]
    assert listed["Support Lead"].user_count == 0

    user = run(
        console.super_api.create_user(
            name="Lead", email="lead@example.com", role="Support Lead", hospital_id="2"
        )
    )
    with pytest.raises(PreconditionFailedError):
        run(console.super_api.delete_role(role.id))

    run(console.super_api.delete_user(user.id))
    run(console.super_api.delete_role(role.id))
    assert "Support Lead" not in {item.name for item in run(console.super_api.list_roles())}


def test_typed_endpoints_for_hospital_scope(console):
    patient = run(console.hospital_api.create_patient("1", first_name="Ada", last_name="Obi"))
    clinician = run(
        console.hospital_api.create_clinician(
            "1", name="Dr. Tunde Bakare", specialty=["Surgery", "Trauma"]
        )
    )

    assert patient.mrn == "MRN004"
    patients = run(console.hospital_api.list_patients("1", search="obi"))
    assert [item.id for item in patients] == [patient.id]
    clinicians = run(console.hospital_api.list_clinicians("1", search="trauma"))
    assert [item.id for item in clinicians] == [clinician.id]

    metrics = run(console.hospital_api.metrics("1"))
    assert metrics.hospital_id == "1"


def test_monitoring_feeds_anomaly_detector(console):
    overview = run(console.super_api.queue_overview())
    workflows = run(console.super_api.workflow_health())
    breakdown = run(console.super_api.notifications_breakdown())

    console.anomalies.inspect_queue(overview)
    console.anomalies.inspect_workflows(workflows)

    assert overview.failed == 17
    assert len(breakdown) == 5
    titles = [item.title for item in console.notifications.notifications()]
    assert titles == ["Workflow Error Detected", "High Failure Rate Detected"]


def test_session_login_logout(console):
    state = run(console.session.login("admin@hospital.org", "secret"))
    assert state.status == schemas.SessionStatus.authenticated
    assert state.role == schemas.ConsoleRole.hospital_admin
    assert state.hospital_id == "1"

    console.two_factor.enable("google", secret="SEED")
    run(console.session.logout())

    assert console.session.authenticated is False
    assert console.session.get() == schemas.SessionState()
    assert console.two_factor.enabled is True


def test_super_admin_impersonation(console):
    run(console.session.login("amelia.harper@example.com", "secret"))

    state = run(console.session.impersonate("3"))

    assert state.role == schemas.ConsoleRole.super_admin
    assert state.impersonating == "3"
    with pytest.raises(NotFoundError):
        run(console.session.impersonate("99"))


def test_console_state_survives_rebuild(settings, storage):
    first = build_console(settings, storage=storage)
    first.theme.toggle()
    first.profile.update(name="Dr. Amelia Harper")
    run(first.session.login("amelia.harper@example.com", "pw"))

    second = build_console(settings, storage=storage)

    assert second.theme.theme == schemas.ThemeMode.dark
    assert second.theme.document.theme == schemas.ThemeMode.dark
    assert second.profile.get().name == "Dr. Amelia Harper"
    assert second.session.authenticated is True


def test_default_console_writes_state_files(settings):
    console = build_console(settings)
    console.two_factor.enable("authenticator", secret="SEED")
    console.theme.toggle()

    assert (settings.state_dir / "2fa-storage.json.enc").exists()
    assert (settings.state_dir / "ui-storage.json").exists()
    assert settings.state_key_path.exists()
    assert build_console(settings).two_factor.get().secret == "SEED"


def test_empty_console(settings, storage):
    empty = build_console(settings.model_copy(update={"seed_demo_data": False}), storage=storage)

    assert run(empty.super_api.list_hospitals()) == []
    with pytest.raises(NotFoundError):
        run(empty.hospital_api.me())


def test_typed_endpoints_update_hospital_staff(console):
    run(console.hospital_api.update_patient("1", 3, email="m.johnson@example.com"))
    run(console.hospital_api.update_clinician("1", 1, phone="+2348000000001"))
    run(console.hospital_api.delete_clinician("1", 3))

    patients = run(console.hospital_api.list_patients("1", search="m.johnson"))
    clinicians = run(console.hospital_api.list_clinicians("1"))
    assert [(item.id, item.mrn) for item in patients] == [(3, "MRN003")]
    assert [(item.id, item.phone) for item in clinicians] == [
        (1, "+2348000000001"),
        (2, "+2348045678901"),
    ]
