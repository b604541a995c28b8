ROLE_SCOPES = {
    "admin": ["*"],
    "household": ["collections:create", "collections:view", "impact:view"],
    "organization": ["collections:create", "collections:view", "impact:view"],
    "collector": ["collections:view", "collections:claim", "collections:update_status", "interests:manage"],
    "recycler": ["collections:view", "interests:create", "impact:view"],
}

REQUESTER_ROLES = ("household", "organization")


def roles_to_scopes(roles):
    scopes = set()
    for r in roles:
        scopes.update(ROLE_SCOPES.get(r, []))
    return list(scopes)


def has_scopes(role: str, required: list[str]) -> bool:
    scopes = set(roles_to_scopes([role]))
    return "*" in scopes or set(required).issubset(scopes)
