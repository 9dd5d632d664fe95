import pytest

from staffaccess.config.permissions_config import ALL_PERMISSION_CODES, PERMISSION_CATALOG, StaffRole
from staffaccess.modules.access.evaluator import (
    apply_overrides,
    baseline_role_permissions,
    derive_permissions_for_user,
    is_legacy_admin,
    is_super_admin,
    resolve_effective_permission_set,
    sorted_permissions,
)
from staffaccess.modules.access.schemas import AccessUser, StaffAccessProfile, UserRole
from tests.factories import make_admin, make_override

PROVIDER_BUNDLE = {"dashboard.overview.read", "cms.posts.read", "cms.posts.write", "cms.posts.submit"}


def test_baseline_per_coarse_role() -> None:
    assert baseline_role_permissions(UserRole.ADMIN) == {"dashboard.overview.read"}
    assert baseline_role_permissions("PROVIDER") == PROVIDER_BUNDLE
    assert baseline_role_permissions(UserRole.CLIENT) == frozenset()
    assert baseline_role_permissions(None) == frozenset()
    assert baseline_role_permissions("SUPERUSER") == frozenset()


def test_null_identity_gets_nothing() -> None:
    assert derive_permissions_for_user(None) == frozenset()
    assert resolve_effective_permission_set(None) == frozenset()


def test_legacy_admin_without_staff_metadata_gets_full_catalog() -> None:
    user = AccessUser(id="admin-legacy-1", role="ADMIN")

    permissions = derive_permissions_for_user(user)

    assert len(permissions) == len(ALL_PERMISSION_CODES) == 26
    assert permissions == PERMISSION_CATALOG
    assert "platform.config.write" in permissions
    assert "people.providers.moderate" in permissions


def test_legacy_admin_with_empty_profile_is_still_legacy() -> None:
    user = make_admin()
    assert is_legacy_admin(user)
    assert derive_permissions_for_user(user) == PERMISSION_CATALOG


def test_single_deny_override_disables_legacy_default() -> None:
    user = make_admin(overrides=[make_override("people.users.delete", False)])

    permissions = derive_permissions_for_user(user)

    assert not is_legacy_admin(user)
    assert permissions != PERMISSION_CATALOG
    assert "people.users.delete" not in permissions
    assert permissions == {"dashboard.overview.read"}


def test_single_grant_disables_legacy_default() -> None:
    user = make_admin(permissions=["cms.posts.publish"])
    assert derive_permissions_for_user(user) == {"dashboard.overview.read", "cms.posts.publish"}


def test_unknown_staff_role_fails_closed_to_baseline() -> None:
    user = make_admin(staff_role="CHIEF_WIZARD")
    assert not is_legacy_admin(user)
    assert derive_permissions_for_user(user) == {"dashboard.overview.read"}


def test_support_lead_template_is_baseline_plus_template() -> None:
    user = make_admin(staff_role="SUPPORT_LEAD")

    permissions = derive_permissions_for_user(user)

    assert permissions == {
        "dashboard.overview.read",
        "support.messages.read",
        "support.messages.reply",
        "support.tickets.read",
        "support.tickets.manage",
        "people.users.read",
        "people.providers.read",
        "people.clients.read",
    }
    assert "platform.config.write" not in permissions


def test_deny_override_removes_template_permission() -> None:
    user = make_admin(
        staff_role="SUPPORT_LEAD",
        overrides=[make_override("support.messages.reply", False)],
    )

    permissions = derive_permissions_for_user(user)

    assert "support.messages.read" in permissions
    assert "support.messages.reply" not in permissions


def test_allow_override_adds_permission_outside_template() -> None:
    user = make_admin(
        staff_role="CONTENT_LEAD",
        overrides=[make_override("compliance.audit.read", True)],
    )
    assert "compliance.audit.read" in derive_permissions_for_user(user)


def test_unknown_codes_never_expand_access() -> None:
    user = make_admin(
        staff_role="PEOPLE_OPS",
        permissions=["people.users.impersonate"],
        overrides=[make_override("platform.everything", True)],
    )

    permissions = derive_permissions_for_user(user)

    assert permissions <= PERMISSION_CATALOG
    assert "people.users.impersonate" not in permissions
    assert "platform.everything" not in permissions


def test_super_admin_is_override_proof() -> None:
    user = make_admin(
        staff_role=StaffRole.SUPER_ADMIN.value,
        overrides=[
            make_override("platform.config.write", False),
            make_override("people.users.delete", False),
        ],
    )

    assert is_super_admin(user)
    assert derive_permissions_for_user(user) == PERMISSION_CATALOG
    assert resolve_effective_permission_set(user) == PERMISSION_CATALOG


def test_super_admin_requires_admin_coarse_role() -> None:
    user = AccessUser(
        id="provider-1",
        role="PROVIDER",
        staff_access=StaffAccessProfile(staff_role="SUPER_ADMIN"),
    )
    assert not is_super_admin(user)
    assert derive_permissions_for_user(user) == PROVIDER_BUNDLE


@pytest.mark.parametrize("role", ["PROVIDER", "CLIENT", None, "GUEST"])
def test_non_admin_never_exceeds_baseline(role) -> None:
    user = AccessUser(
        id="user-1",
        role=role,
        staff_access=StaffAccessProfile(
            staff_role="OPS_ADMIN",
            permissions=["platform.config.write"],
            overrides=[make_override("people.users.delete", True), make_override("cms.posts.read", False)],
        ),
    )
    assert derive_permissions_for_user(user) == baseline_role_permissions(role)


def test_provider_gets_exactly_the_content_bundle() -> None:
    assert derive_permissions_for_user(AccessUser(id="p-1", role="PROVIDER")) == PROVIDER_BUNDLE


def test_apply_overrides_toggles_regardless_of_membership() -> None:
    base = {"support.messages.read"}
    result = apply_overrides(base, [
        make_override("support.messages.read", False),
        make_override("support.messages.read", False),
        make_override("support.tickets.read", True),
    ])
    assert result == {"support.tickets.read"}


def test_apply_overrides_last_duplicate_wins() -> None:
    result = apply_overrides(set(), [
        make_override("cms.posts.publish", True),
        make_override("cms.posts.publish", False),
    ])
    assert "cms.posts.publish" not in result

    result = apply_overrides(set(), [
        make_override("cms.posts.publish", False),
        make_override("cms.posts.publish", True),
    ])
    assert "cms.posts.publish" in result


def test_apply_overrides_is_idempotent_and_pure() -> None:
    base = frozenset({"dashboard.overview.read", "support.messages.reply"})
    overrides = [
        make_override("support.messages.reply", False),
        make_override("cms.media.manage", True),
        make_override("not.a.code", True),
    ]

    once = apply_overrides(base, overrides)
    twice = apply_overrides(once, overrides)

    assert once == twice == {"dashboard.overview.read", "cms.media.manage"}
    assert base == {"dashboard.overview.read", "support.messages.reply"}


def test_scenario_b_support_lead_with_reply_denied() -> None:
    user = AccessUser(
        id="support-1",
        role="ADMIN",
        staff_access=StaffAccessProfile(
            staff_role="SUPPORT_LEAD",
            permissions=[],
            overrides=[{"user_id": "support-1", "permission_code": "support.messages.reply", "allowed": False}],
        ),
    )
    permissions = resolve_effective_permission_set(user)
    assert "support.messages.read" in permissions
    assert "support.messages.reply" not in permissions


def test_sorted_permissions_uses_catalog_order() -> None:
    assert sorted_permissions({"platform.roles.assign", "dashboard.overview.read", "bogus"}) == [
        "dashboard.overview.read",
        "platform.roles.assign",
    ]
