from __future__ import annotations

import argparse
import asyncio

from sqlalchemy import select

from resource_portal.constants import ENTITY_EMPLOYEE
from resource_portal.core.roles import parse_role
from resource_portal.db.session import SessionLocal, create_schema
from resource_portal.models.employee import Employee
from resource_portal.request_context import RequestContext
from resource_portal.services.audit_service import write_audit_log
from resource_portal.services.catalog_service import seed_system_catalog


async def _run(create: bool, admin_email: str | None, admin_name: str | None, admin_role: str) -> None:
    role = parse_role(admin_role)
    if role is None:
        raise SystemExit(f"Unknown role: {admin_role}")

    if create:
        await create_schema()

    async with SessionLocal() as session:
        created = await seed_system_catalog(session)
        print(
            "Catalog seeded: "
            f"{created['types']} types, {created['categories']} categories, {created['properties']} properties."
        )

        if admin_email:
            stmt = select(Employee).where(Employee.email == admin_email).limit(1)
            employee = (await session.execute(stmt)).scalars().one_or_none()
            if employee:
                employee.role = role.value
                print(f"Role {role.value} ensured for {admin_email}.")
            else:
                employee = Employee(
                    name=admin_name or admin_email.split("@", 1)[0],
                    email=admin_email,
                    role=role.value,
                )
                print(f"Employee {admin_email} created with role {role.value}.")
            session.add(employee)
            await session.flush()
            await write_audit_log(
                session,
                actor=None,
                action="EMPLOYEE_SEED",
                entity_type=ENTITY_EMPLOYEE,
                entity_id=str(employee.employee_id),
                before=None,
                after={"email": employee.email, "role": employee.role},
                context=RequestContext.for_script("seed_portal"),
            )

        await session.commit()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the resource portal catalog and an admin employee.")
    parser.add_argument("--create-schema", action="store_true")
    parser.add_argument("--admin-email", default=None)
    parser.add_argument("--admin-name", default=None)
    parser.add_argument("--admin-role", default="CTO")
    args = parser.parse_args()
    email = args.admin_email.strip().lower() if args.admin_email else None
    asyncio.run(_run(args.create_schema, email, args.admin_name, args.admin_role))


if __name__ == "__main__":
    main()
