from __future__ import annotations

import enum
import re
from typing import Iterable


class Role(str, enum.Enum):
    mother = "mother"
    doctor = "doctor"
    pharmacist = "pharmacist"
    nutritionist = "nutritionist"
    merchandiser = "merchandiser"
    medical_admin = "medical_admin"
    ops_admin = "ops_admin"
    system_admin = "system_admin"


CANONICAL_ROLES: frozenset[str] = frozenset(role.value for role in Role)

# Spellings that have been written to users.role over time.
ROLE_ALIASES: dict[str, str] = {
    "ops_admin": "ops_admin",
    "operations_admin": "ops_admin",
    "operation_admin": "ops_admin",
    "operations": "ops_admin",
    "op_admin": "ops_admin",
    "opsadmin": "ops_admin",
    "ops": "ops_admin",
    "system_admin": "system_admin",
    "systemadmin": "system_admin",
    "sys_admin": "system_admin",
    "sysadmin": "system_admin",
    "admin": "system_admin",
    "medical_admin": "medical_admin",
    "medicaladmin": "medical_admin",
    "med_admin": "medical_admin",
    "medadmin": "medical_admin",
    "mother": "mother",
    "mom": "mother",
    "patient": "mother",
    "user": "mother",
    "doctor": "doctor",
    "pharmacist": "pharmacist",
    "nutritionist": "nutritionist",
    "merchandiser": "merchandiser",
}

_SEPARATORS = re.compile(r"[\s-]+")


class UnknownRoleError(ValueError):
    def __init__(self, raw: object) -> None:
        super().__init__(f"Unknown role: {raw!r}")
        self.raw = raw


def normalize_role(value: object | None) -> str | None:
    """Map a stored or submitted role spelling onto its canonical name.

    Unrecognized values are returned cleaned but otherwise unchanged so that
    callers comparing against canonical names simply fail to match.
    """
    if value is None:
        return None
    raw = str(value).strip().lower()
    if not raw:
        return None
    cleaned = _SEPARATORS.sub("_", raw)
    return ROLE_ALIASES.get(cleaned, cleaned)


def parse_role(value: object | None) -> Role:
    normalized = normalize_role(value)
    if normalized is None or normalized not in CANONICAL_ROLES:
        raise UnknownRoleError(value)
    return Role(normalized)


def is_known_role(value: object | None) -> bool:
    normalized = normalize_role(value)
    return normalized is not None and normalized in CANONICAL_ROLES


def _add_role_option(options: list[str], role: str) -> None:
    if role not in options:
        options.append(role)
    if "_" in role:
        hyphenated = role.replace("_", "-")
        if hyphenated not in options:
            options.append(hyphenated)


def expand_for_query(value: object | None) -> list[str]:
    """Every spelling of a role that may be persisted, for ``role IN (...)``."""
    normalized = normalize_role(value)
    if not normalized:
        return []
    if normalized not in CANONICAL_ROLES:
        return [normalized]
    options: list[str] = []
    _add_role_option(options, normalized)
    for alias, canonical in ROLE_ALIASES.items():
        if canonical == normalized:
            _add_role_option(options, alias)
    return options


def expand_for_query_from_input(value: str | Iterable[str] | None) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        raw_values = [item.strip() for item in value.split(",") if item.strip()]
    else:
        raw_values = list(value)
    options: list[str] = []
    for raw in raw_values:
        for option in expand_for_query(raw):
            if option not in options:
                options.append(option)
    return options
