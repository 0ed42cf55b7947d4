#!/usr/bin/env python3
"""
Demo Data Seeder - populates the database with sample institutions and members

This script creates (skipping anything that already exists):
- The default system configuration row
- Three institutions identified by CUIT
- A handful of members affiliated with them, identified by DNI

Run it again at any time; existing rows are left untouched.
"""

import asyncio
from datetime import date

from sqlalchemy import select

from docuflow.config.logging import get_logger, setup_logging
from docuflow.config.settings import settings
from docuflow.infra.database import close_database, session_scope
from docuflow.v1.institutions.models import Institution
from docuflow.v1.members.models import Member, MemberStatus
from docuflow.v1.system_config.models import DEFAULT_SYSTEM_CONFIG, SystemConfig

logger = get_logger(__name__)

INSTITUTIONS = [
    {
        "name": "Escuela Técnica N° 5",
        "cuit": "30-71234567-1",
        "address": "Av. Belgrano 1450, CABA",
        "email": "administracion@et5.edu.ar",
    },
    {
        "name": "Hospital Municipal San Roque",
        "cuit": "30-50001234-6",
        "address": "Calle 12 N° 830, La Plata",
        "phone": "+54 221 421-0000",
    },
    {
        "name": "Cooperativa Eléctrica del Sur",
        "cuit": "33-60005678-1",
        "website": "https://coopsur.example.org",
    },
]

MEMBERS = [
    ("30111222", "María", "González", "maria.gonzalez@example.org", MemberStatus.ACTIVE, 0),
    ("28444555", "Juan", "Pérez", None, MemberStatus.ACTIVE, 0),
    ("33666777", "Lucía", "Fernández", "lucia.f@example.org", MemberStatus.PENDING_VERIFICATION, 1),
    ("25888999", "Carlos", "Rodríguez", None, MemberStatus.SUSPENDED, 1),
    ("40123456", "Sofía", "Martínez", "sofia.martinez@example.org", MemberStatus.ACTIVE, 2),
    ("22333444", "Roberto", "Sánchez", None, MemberStatus.INACTIVE, None),
]


async def seed_demo_data():
    """Seed system config, institutions and members"""
    created = {"system_config": 0, "institutions": 0, "members": 0}

    async with session_scope(settings) as db:
        existing_config = await db.execute(select(SystemConfig).limit(1))
        if existing_config.scalar_one_or_none() is None:
            db.add(SystemConfig(**DEFAULT_SYSTEM_CONFIG))
            created["system_config"] = 1
            print("✅ Created default system configuration")
        else:
            print("ℹ️ System configuration already exists")

        institutions: list[Institution] = []
        for data in INSTITUTIONS:
            result = await db.execute(select(Institution).where(Institution.cuit == data["cuit"]))
            institution = result.scalar_one_or_none()
            if institution is None:
                institution = Institution(**data)
                db.add(institution)
                created["institutions"] += 1
                print(f"✅ Created institution {data['name']}")
            institutions.append(institution)

        await db.flush()

        for dni, first_name, last_name, email, status, institution_index in MEMBERS:
            result = await db.execute(select(Member.id).where(Member.dni == dni))
            if result.scalar_one_or_none() is not None:
                continue
            db.add(
                Member(
                    dni=dni,
                    first_name=first_name,
                    last_name=last_name,
                    email=email,
                    status=status.value,
                    nationality="Argentina",
                    birth_date=date(1980 + int(dni[-2:]) % 20, 1 + int(dni[-1]), 15),
                    institution_id=(
                        institutions[institution_index].id
                        if institution_index is not None
                        else None
                    ),
                )
            )
            created["members"] += 1

        await db.commit()

    logger.info("Demo data seeded", **created)
    print("🎉 Demo data seeded successfully!")
    print("\n📋 Created:")
    for name, count in created.items():
        print(f"   • {name}: {count}")
    print("\n🚀 Try: docuflow members list")


async def main():
    setup_logging()
    try:
        await seed_demo_data()
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
