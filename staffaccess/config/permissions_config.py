"""
Permissions and Staff Roles Configuration
This config defines the permission catalog and the staff role templates built on it.
Used by the access evaluator at runtime and by the seed script to mirror the
catalog into the database.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Union


# Permission codes are "<area>.<resource>.<action>"
ALL_PERMISSION_CODES = (
    "dashboard.overview.read",
    "people.users.read",
    "people.users.write",
    "people.users.delete",
    "people.providers.read",
    "people.providers.moderate",
    "people.clients.read",
    "cms.posts.read",
    "cms.posts.write",
    "cms.posts.submit",
    "cms.posts.approve",
    "cms.posts.publish",
    "cms.media.manage",
    "exchange.resources.read",
    "exchange.resources.write",
    "exchange.resources.moderate",
    "support.messages.read",
    "support.messages.reply",
    "support.tickets.read",
    "support.tickets.manage",
    "compliance.audit.read",
    "compliance.reports.read",
    "platform.config.read",
    "platform.config.write",
    "platform.roles.assign",
    "platform.permissions.override",
)

PERMISSION_CATALOG: FrozenSet[str] = frozenset(ALL_PERMISSION_CODES)

# Descriptions for codes whose action name alone is not self-explanatory
PERMISSION_DESCRIPTIONS = {
    "dashboard.overview.read": "View the staff dashboard overview",
    "people.providers.moderate": "Approve, suspend and verify providers",
    "cms.posts.submit": "Submit posts for editorial review",
    "cms.posts.approve": "Approve posts submitted for review",
    "cms.posts.publish": "Publish approved posts",
    "cms.media.manage": "Upload and remove media library assets",
    "exchange.resources.moderate": "Moderate exchange resources",
    "support.messages.reply": "Reply to support conversations",
    "support.tickets.manage": "Assign, escalate and close support tickets",
    "platform.roles.assign": "Assign staff roles to administrators",
    "platform.permissions.override": "Grant or deny individual permissions",
}


class StaffRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    OPS_ADMIN = "OPS_ADMIN"
    PEOPLE_OPS = "PEOPLE_OPS"
    PROVIDER_OPS = "PROVIDER_OPS"
    CONTENT_LEAD = "CONTENT_LEAD"
    SUPPORT_LEAD = "SUPPORT_LEAD"
    FINANCE_COMPLIANCE = "FINANCE_COMPLIANCE"


@dataclass(frozen=True)
class RoleTemplate:
    role: StaffRole
    description: str
    permissions: FrozenSet[str]


_TEMPLATE_DEFINITIONS = {
    StaffRole.SUPER_ADMIN: {
        "description": "Full platform control and governance.",
        "permissions": ALL_PERMISSION_CODES,
    },
    StaffRole.OPS_ADMIN: {
        "description": "Cross-functional operations management.",
        "permissions": [
            "dashboard.overview.read",
            "people.users.read",
            "people.users.write",
            "people.providers.read",
            "people.providers.moderate",
            "people.clients.read",
            "support.messages.read",
            "support.messages.reply",
            "support.tickets.read",
            "support.tickets.manage",
            "platform.config.read",
        ],
    },
    StaffRole.PEOPLE_OPS: {
        "description": "Manages user and client lifecycle operations.",
        "permissions": [
            "dashboard.overview.read",
            "people.users.read",
            "people.users.write",
            "people.clients.read",
            "support.messages.read",
            "support.messages.reply",
        ],
    },
    StaffRole.PROVIDER_OPS: {
        "description": "Manages provider onboarding and moderation.",
        "permissions": [
            "dashboard.overview.read",
            "people.providers.read",
            "people.providers.moderate",
            "support.messages.read",
            "support.messages.reply",
            "support.tickets.read",
        ],
    },
    StaffRole.CONTENT_LEAD: {
        "description": "Owns editorial quality, approvals, and publishing workflows.",
        "permissions": [
            "dashboard.overview.read",
            "cms.posts.read",
            "cms.posts.write",
            "cms.posts.approve",
            "cms.posts.publish",
            "cms.media.manage",
            "exchange.resources.read",
            "exchange.resources.moderate",
        ],
    },
    StaffRole.SUPPORT_LEAD: {
        "description": "Manages inbound support and escalation workflows.",
        "permissions": [
            "dashboard.overview.read",
            "support.messages.read",
            "support.messages.reply",
            "support.tickets.read",
            "support.tickets.manage",
            "people.users.read",
            "people.providers.read",
            "people.clients.read",
        ],
    },
    StaffRole.FINANCE_COMPLIANCE: {
        "description": "Reviews audits, reporting, and compliance operations.",
        "permissions": [
            "dashboard.overview.read",
            "compliance.audit.read",
            "compliance.reports.read",
            "platform.config.read",
            "exchange.resources.read",
            "support.tickets.read",
        ],
    },
}


def _build_role_templates() -> Mapping[StaffRole, RoleTemplate]:
    templates = {}
    for role, definition in _TEMPLATE_DEFINITIONS.items():
        unknown = set(definition["permissions"]) - PERMISSION_CATALOG
        if unknown:
            raise ValueError(f"Role template {role.value} references unknown permissions: {sorted(unknown)}")
        templates[role] = RoleTemplate(
            role=role,
            description=definition["description"],
            permissions=frozenset(definition["permissions"]),
        )
    return MappingProxyType(templates)


# Built once at import; read-only for the lifetime of the process
STAFF_ROLE_TEMPLATES: Mapping[StaffRole, RoleTemplate] = _build_role_templates()


def is_known_permission(code: Optional[str]) -> bool:
    return isinstance(code, str) and code in PERMISSION_CATALOG


def parse_staff_role(role: Union[StaffRole, str, None]) -> Optional[StaffRole]:
    """Return the StaffRole for a raw value, or None when it is empty or not a registered role"""
    if not role:
        return None
    if isinstance(role, StaffRole):
        return role
    try:
        return StaffRole(role)
    except ValueError:
        return None


def lookup_role_template(role: Union[StaffRole, str, None]) -> Optional[RoleTemplate]:
    staff_role = parse_staff_role(role)
    if staff_role is None:
        return None
    return STAFF_ROLE_TEMPLATES.get(staff_role)


def list_role_templates() -> List[RoleTemplate]:
    return list(STAFF_ROLE_TEMPLATES.values())


def describe_permission(code: str) -> Dict[str, str]:
    """Split a catalog code into the row stored in the permissions table"""
    area, resource, action = code.split(".")
    description = PERMISSION_DESCRIPTIONS.get(code, f"{action.capitalize()} {area} {resource}")
    return {
        "name": code,
        "resource": f"{area}.{resource}",
        "action": action,
        "description": description,
    }


def get_permission_matrix():
    """
    Returns a dictionary with all permissions and the staff role templates
    Format: {
        "permissions": [
            {"name": "people.users.read", "resource": "people.users", "action": "read", "description": "..."},
            ...
        ],
        "roles": [
            {
                "name": "SUPPORT_LEAD",
                "description": "...",
                "permissions": ["dashboard.overview.read", ...]
            },
            ...
        ]
    }
    """
    permissions = [describe_permission(code) for code in ALL_PERMISSION_CODES]
    roles = [
        {
            "name": template.role.value,
            "description": template.description,
            "permissions": sorted(template.permissions),
        }
        for template in list_role_templates()
    ]
    return {
        "permissions": permissions,
        "roles": roles
    }


# Export the matrix for use in seed scripts
PERMISSION_MATRIX = get_permission_matrix()
