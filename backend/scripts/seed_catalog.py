"""Seed the deliverable catalog, starter sprint packages and an admin account."""
import asyncio
import os
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select

from app.database import async_session_maker, init_db
from app.models.account import Account
from app.models.catalog import Deliverable, SprintPackage, SprintPackageDeliverable


# (name, category, points, description)
DELIVERABLES = [
    ("Typography Scale + Wordmark Logo", "Branding", 5, "Custom wordmark paired with a type scale for headings and body copy."),
    ("Brand Style Guide", "Branding", 8, "Colour, type, logo usage and tone of voice in one reference document."),
    ("Pitch Deck Template (Branded)", "Branding", 3, "Investor deck template with master slides in the new brand."),
    ("Business Card Design", "Branding", 2, "Print-ready business card front and back."),
    ("Social Media Template Kit", "Branding", 5, "Post and story templates for the main social channels."),
    ("Prototype - Level 1 (Basic)", "Product", 8, "Clickable prototype of the core flow."),
    ("Prototype - Level 2 (Interactive)", "Product", 13, "Interactive prototype with realistic states and data."),
    ("Prototype - Level 3 (Production-Ready)", "Product", 21, "Production-grade front end ready for engineering handoff."),
    ("Landing Page (Marketing)", "Product", 5, "Single conversion-focused marketing page."),
    ("UX Audit + Recommendations", "Product", 8, "Heuristic review of an existing product with a prioritised fix list."),
]

# (name, slug, category, tagline, sort_order, deliverable names)
PACKAGES = [
    (
        "Brand Identity Sprint",
        "brand-identity-sprint",
        "Branding",
        "Complete brand foundation in 2 weeks",
        1,
        ["Typography Scale + Wordmark Logo", "Brand Style Guide"],
    ),
    (
        "MVP Launch Sprint",
        "mvp-launch-sprint",
        "Product",
        "Ship your MVP in 2 weeks",
        2,
        ["Landing Page (Marketing)", "Prototype - Level 1 (Basic)"],
    ),
    (
        "Startup Branding Sprint",
        "startup-branding-sprint",
        "Branding",
        "Launch-ready brand + pitch deck",
        3,
        ["Typography Scale + Wordmark Logo", "Social Media Template Kit", "Pitch Deck Template (Branded)"],
    ),
]


async def seed():
    await init_db()
    async with async_session_maker() as db:
        by_name: dict[str, Deliverable] = {}
        for name, category, points, description in DELIVERABLES:
            r = await db.execute(select(Deliverable).where(Deliverable.name == name))
            deliverable = r.scalar_one_or_none()
            if not deliverable:
                deliverable = Deliverable(
                    name=name,
                    category=category,
                    description=description,
                    default_estimate_points=Decimal(points),
                )
                db.add(deliverable)
            by_name[name] = deliverable
        await db.flush()

        for name, slug, category, tagline, sort_order, names in PACKAGES:
            r = await db.execute(select(SprintPackage).where(SprintPackage.slug == slug))
            if r.scalar_one_or_none():
                continue
            package = SprintPackage(
                name=name,
                slug=slug,
                category=category,
                tagline=tagline,
                featured=True,
                sort_order=sort_order,
            )
            package.items = [
                SprintPackageDeliverable(deliverable_id=by_name[n].id, quantity=1, sort_order=i)
                for i, n in enumerate(names)
            ]
            db.add(package)
        await db.commit()

        admin_email = os.environ.get("SEED_ADMIN_EMAIL", "admin@meisner.local").lower()
        r = await db.execute(select(Account).where(Account.email == admin_email))
        if not r.scalar_one_or_none():
            db.add(Account(email=admin_email, name="Studio Admin", is_admin=True))
        await db.commit()
    print(f"Seeded {len(DELIVERABLES)} deliverables, {len(PACKAGES)} packages and admin {admin_email}")


if __name__ == "__main__":
    asyncio.run(seed())
