import pytest

from staffaccess.config.permissions_config import (
    ALL_PERMISSION_CODES,
    PERMISSION_CATALOG,
    STAFF_ROLE_TEMPLATES,
    StaffRole,
    describe_permission,
    get_permission_matrix,
    is_known_permission,
    list_role_templates,
    lookup_role_template,
)


def test_catalog_has_26_unique_codes() -> None:
    assert len(ALL_PERMISSION_CODES) == 26
    assert len(PERMISSION_CATALOG) == 26


def test_is_known_permission_rejects_unknown_and_non_strings() -> None:
    assert is_known_permission("support.messages.read")
    assert not is_known_permission("support.messages.delete")
    assert not is_known_permission(None)
    assert not is_known_permission(42)


def test_every_template_is_a_subset_of_the_catalog() -> None:
    for template in list_role_templates():
        assert template.permissions <= PERMISSION_CATALOG


def test_super_admin_template_is_the_full_catalog() -> None:
    assert STAFF_ROLE_TEMPLATES[StaffRole.SUPER_ADMIN].permissions == PERMISSION_CATALOG


def test_registry_cannot_be_mutated() -> None:
    with pytest.raises(TypeError):
        STAFF_ROLE_TEMPLATES[StaffRole.OPS_ADMIN] = STAFF_ROLE_TEMPLATES[StaffRole.SUPER_ADMIN]


@pytest.mark.parametrize("role", ["SUPPORT_LEAD", StaffRole.SUPPORT_LEAD])
def test_lookup_accepts_enum_or_string(role) -> None:
    template = lookup_role_template(role)
    assert template is not None
    assert template.role is StaffRole.SUPPORT_LEAD
    assert "support.messages.reply" in template.permissions
    assert "platform.config.write" not in template.permissions


@pytest.mark.parametrize("role", [None, "", "ROOT", "support_lead"])
def test_lookup_unknown_role_returns_none(role) -> None:
    assert lookup_role_template(role) is None


def test_describe_permission_splits_code() -> None:
    row = describe_permission("people.users.delete")
    assert row["name"] == "people.users.delete"
    assert row["resource"] == "people.users"
    assert row["action"] == "delete"
    assert row["description"]


def test_permission_matrix_lists_catalog_and_roles() -> None:
    matrix = get_permission_matrix()
    assert [p["name"] for p in matrix["permissions"]] == list(ALL_PERMISSION_CODES)
    roles = {role["name"]: role for role in matrix["roles"]}
    assert set(roles) == {role.value for role in StaffRole}
    assert roles["FINANCE_COMPLIANCE"]["permissions"] == sorted(roles["FINANCE_COMPLIANCE"]["permissions"])
