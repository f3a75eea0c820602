"""Authorization checks on the portal operation surface."""

from __future__ import annotations

import pytest

from payportal.errors import InvalidInputError, NotFoundError, PermissionDeniedError
from payportal.models import ANONYMOUS, AuthenticatedAdmin, AuthenticatedUser, PaymentStatus
from payportal.portal import PaymentPortal

ADMIN = AuthenticatedAdmin(email="admin@local")


@pytest.fixture()
def ana(portal: PaymentPortal):
    return portal.create_user(ADMIN, name="Ana", email="ana@x.com", code="1234", project="Alpha")


def test_admin_can_manage_users(portal: PaymentPortal, ana) -> None:
    assert portal.list_users(ADMIN) == [ana]
    assert portal.get_user(ADMIN, email="ANA@x.com") == ana

    updated = portal.update_user(ADMIN, ana.id, project="Beta")
    assert updated.project == "Beta"

    portal.delete_user(ADMIN, ana.id)
    with pytest.raises(NotFoundError):
        portal.get_user(ADMIN, user_id=ana.id)


@pytest.mark.parametrize("principal", [ANONYMOUS, AuthenticatedUser(user_id="someone")])
def test_non_admins_cannot_mutate(portal: PaymentPortal, ana, principal) -> None:
    with pytest.raises(PermissionDeniedError):
        portal.create_user(principal, name="Eve", email="eve@x.com", code="1")
    with pytest.raises(PermissionDeniedError):
        portal.update_user(principal, ana.id, name="Eve")
    with pytest.raises(PermissionDeniedError):
        portal.delete_user(principal, ana.id)
    with pytest.raises(PermissionDeniedError):
        portal.set_user_status(principal, ana.id, PaymentStatus.TRANSFER_COMPLETED)
    with pytest.raises(PermissionDeniedError):
        portal.list_users(principal)
    with pytest.raises(PermissionDeniedError):
        portal.list_recent_audit(principal)
    with pytest.raises(PermissionDeniedError):
        portal.change_admin_password(principal, "Admin123!", "whatever")

    assert portal.get_user(ADMIN, user_id=ana.id).status is PaymentStatus.NOT_STARTED


def test_user_may_only_read_own_record(portal: PaymentPortal, ana) -> None:
    bruno = portal.create_user(ADMIN, name="Bruno", email="bruno@x.com", code="5678")
    me = portal.login_user("ana@x.com", "1234")

    assert portal.get_user(me, user_id=ana.id) == ana
    assert portal.user_history(me, ana.id) == []
    with pytest.raises(PermissionDeniedError):
        portal.get_user(me, user_id=bruno.id)
    with pytest.raises(PermissionDeniedError):
        portal.user_history(me, bruno.id)
    with pytest.raises(PermissionDeniedError):
        portal.get_user(me, email="ana@x.com")


def test_status_change_records_acting_admin(portal: PaymentPortal, ana) -> None:
    entry = portal.set_user_status(ADMIN, ana.id, "RECEIPT_ISSUED")

    assert entry is not None
    assert entry.admin_email == "admin@local"
    views = portal.list_recent_audit(ADMIN)
    assert [view.entry for view in views] == [entry]
    assert views[0].user_name == "Ana"


def test_recent_audit_uses_configured_default_limit(portal: PaymentPortal, ana) -> None:
    portal.audit_limit = 2
    for status in PaymentStatus.ordered()[1:]:
        portal.set_user_status(ADMIN, ana.id, status)

    assert len(portal.list_recent_audit(ADMIN)) == 2
    assert len(portal.list_recent_audit(ADMIN, limit=10)) == 4


def test_get_user_requires_exactly_one_key(portal: PaymentPortal, ana) -> None:
    with pytest.raises(InvalidInputError):
        portal.get_user(ADMIN)
    with pytest.raises(InvalidInputError):
        portal.get_user(ADMIN, user_id=ana.id, email=ana.email)
