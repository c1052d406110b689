"""Idempotent creation of the demo roles and accounts."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from .config import DEFAULT_SEED, SeedData
from .database import Database

logger = logging.getLogger("accessdemo.seed")


@dataclass
class SeedReport:
    roles_created: List[str] = field(default_factory=list)
    users_created: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.roles_created or self.users_created)


def seed_roles(database: Database, seed: SeedData = DEFAULT_SEED) -> List[str]:
    """Create the seed roles if the role table is empty; return the names created."""

    if database.count_roles() != 0:
        return []

    created: List[str] = []
    for role in seed.roles:
        database.create_role(role.name, role.description)
        created.append(role.name)
    logger.info("Created roles: %s", ", ".join(created))
    return created


def seed_database(database: Database, seed: SeedData = DEFAULT_SEED) -> SeedReport:
    """Create the seed roles and users unless data already exists.

    Roles are only inserted into an empty role table and users only into an
    empty user table, so running this on every start-up is safe.
    """

    report = SeedReport(roles_created=seed_roles(database, seed))

    if database.count_users() == 0:
        for account in seed.users:
            user = database.create_user(
                account.email,
                account.password,
                first_name=account.first_name,
                last_name=account.last_name,
                phone_number=account.phone_number,
                account_balance=account.account_balance,
                passport_number=account.passport_number,
                social_security_number=account.social_security_number,
                roles=account.roles,
            )
            report.users_created.append(user.email)
            logger.info(
                "Created demo user #%s %s (%s)",
                user.id,
                user.email,
                ", ".join(account.roles),
            )

    if not report.changed:
        logger.debug("Seed data already present; nothing to do")

    return report


__all__ = ["SeedReport", "seed_database", "seed_roles"]
