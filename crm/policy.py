"""Access policy - the single role/ownership decision point.

Every blueprint and report asks this module before touching a record:

    policy.authorize(user.role, user.id, "lead:update", owner_id=lead.assigned_to_id)

Rules (admin > manager > employee):
  - employee: only leads assigned to them and quotations they created;
    never deletes leads, quotations or users; never lists users; never
    writes company settings or custom fields.
  - manager: everything on leads/quotations regardless of owner, company
    settings; no user deletion, no role changes.
  - admin: unrestricted.
  - settings/security sub-documents are self-only for every role; login
    history is self-or-admin.

Nothing here touches the database. A denial raises AuthorizationError and
the caller rejects the whole request.
"""

from crm.errors import AuthorizationError

ADMIN = "admin"
MANAGER = "manager"
EMPLOYEE = "employee"
ROLES = (ADMIN, MANAGER, EMPLOYEE)

ALLOW = "allow"
OWNER = "owner"  # allowed only when owner_id == actor_id

_STAFF = {ADMIN: ALLOW, MANAGER: ALLOW}
_EVERYONE = {ADMIN: ALLOW, MANAGER: ALLOW, EMPLOYEE: ALLOW}
_OWNED_BY_EMPLOYEE = {ADMIN: ALLOW, MANAGER: ALLOW, EMPLOYEE: OWNER}
_SELF_ONLY = {ADMIN: OWNER, MANAGER: OWNER, EMPLOYEE: OWNER}

RULES = {
    "lead:create": _EVERYONE,
    "lead:read": _OWNED_BY_EMPLOYEE,
    "lead:update": _OWNED_BY_EMPLOYEE,
    "lead:add_activity": _OWNED_BY_EMPLOYEE,
    "lead:delete": _STAFF,
    # owner of quotation:create is the lead's assignee
    "quotation:create": _OWNED_BY_EMPLOYEE,
    "quotation:read": _OWNED_BY_EMPLOYEE,
    "quotation:update": _OWNED_BY_EMPLOYEE,
    "quotation:send": _OWNED_BY_EMPLOYEE,
    "quotation:delete": _STAFF,
    "user:list": _STAFF,
    "user:read": _OWNED_BY_EMPLOYEE,
    "user:update": {ADMIN: ALLOW, MANAGER: OWNER, EMPLOYEE: OWNER},
    "user:change_role": {ADMIN: ALLOW},
    "user:delete": {ADMIN: ALLOW},
    "user:settings": _SELF_ONLY,
    "user:security": _SELF_ONLY,
    "user:login_history": {ADMIN: ALLOW, MANAGER: OWNER, EMPLOYEE: OWNER},
    "company:read": _EVERYONE,
    "company:write": _STAFF,
    "custom_field:write": _STAFF,
    "upload:avatar": _EVERYONE,
    "upload:document": _EVERYONE,
    "upload:logo": _STAFF,
    "report:read": _EVERYONE,
}

# Column holding the owner id when an employee's visibility is restricted.
OWNER_COLUMNS = {
    "lead": "assigned_to_id",
    "quotation": "created_by_id",
}

_MESSAGES = {
    "lead:read": "Not authorized to access this lead",
    "lead:update": "Not authorized to update this lead",
    "lead:add_activity": "Not authorized to update this lead",
    "lead:delete": "Not authorized to delete leads",
    "quotation:create": "Not authorized to create quotation for this lead",
    "quotation:read": "Not authorized to access this quotation",
    "quotation:update": "Not authorized to update this quotation",
    "quotation:send": "Not authorized to send this quotation",
    "quotation:delete": "Not authorized to delete quotations",
    "user:list": "Not authorized to access this resource",
    "user:read": "Not authorized to access this resource",
    "user:update": "Not authorized to update this user",
    "user:change_role": "Only admins can change user roles",
    "user:delete": "Not authorized to delete users",
    "user:settings": "Not authorized to update these settings",
    "user:security": "Not authorized to update these settings",
    "user:login_history": "Not authorized to access this resource",
    "company:write": "Not authorized to update company settings",
    "custom_field:write": "Not authorized to manage custom fields",
    "upload:logo": "Not authorized to update company logo",
}


def _rule(operation):
    try:
        return RULES[operation]
    except KeyError:
        raise ValueError(f"Unknown operation '{operation}'") from None


def required_roles(operation):
    """Roles that can perform `operation` on a record they do not own."""
    return tuple(r for r in ROLES if _rule(operation).get(r) == ALLOW)


def is_allowed(role, actor_id, operation, owner_id=None):
    """Pure allow/deny decision for (role, actor, operation, owner)."""
    decision = _rule(operation).get(role)
    if decision == ALLOW:
        return True
    if decision == OWNER:
        return owner_id is not None and actor_id is not None and owner_id == actor_id
    return False


def authorize(role, actor_id, operation, owner_id=None):
    """Raise AuthorizationError unless the actor may perform `operation`."""
    if is_allowed(role, actor_id, operation, owner_id):
        return
    raise AuthorizationError(
        _MESSAGES.get(operation, f"User role {role} is not authorized to access this route"),
        operation=operation,
        required_roles=required_roles(operation),
        actual_role=role,
        owner_id=owner_id,
        actor_id=actor_id,
    )


def is_restricted(role, resource):
    """True when `role` only sees the `resource` records it owns."""
    return _rule(f"{resource}:read").get(role) != ALLOW


def visibility_filter(role, actor_id, model, resource):
    """Mandatory ownership criterion for listing/aggregating `resource`.

    Returns a SQLAlchemy expression on `model` to AND into the query, or
    None when the role sees every record. Unknown roles see nothing.
    """
    if not is_restricted(role, resource):
        return None
    if _rule(f"{resource}:read").get(role) != OWNER:
        return model.id.is_(None)
    return getattr(model, OWNER_COLUMNS[resource]) == actor_id
