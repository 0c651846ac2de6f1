"""Database seeding for coursehub.

Creates approver roles, course categories and their approval chains from
the YAML approval catalog.
"""

import uuid
from typing import Dict, Optional

from sqlalchemy.orm import Session

from coursehub.common.config import CatalogConfig, CategoryConfig, load_typed_config
from coursehub.core.approval.chain import ChainStep, validate_chain
from coursehub.db.models import ApprovalChainStep, CourseCategory, Role


def _as_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    return uuid.UUID(str(value)) if value else None


def seed_roles(db: Session, catalog: CatalogConfig) -> Dict[str, Role]:
    """
    Create the roles of the catalog.

    Roles are idempotent - if they already exist, returns existing roles.

    Args:
        db: Database session
        catalog: Parsed approval catalog

    Returns:
        Dict mapping role name to Role object
    """
    roles = {}

    for role_config in catalog.roles:
        existing = db.query(Role).filter(Role.name == role_config.name).first()
        if existing:
            roles[role_config.name] = existing
            continue

        role = Role(
            id=uuid.uuid4(),
            name=role_config.name,
            organization_id=_as_uuid(role_config.organization_id),
            applies_to_all_organizations=role_config.applies_to_all_organizations,
        )
        db.add(role)
        roles[role_config.name] = role

    db.flush()
    return roles


def seed_category(db: Session, category_config: CategoryConfig, roles: Dict[str, Role]) -> CourseCategory:
    """
    Create a category with its approval chain.

    An existing category is returned unchanged, chain included.

    Raises:
        ChainMisconfigured: If the configured chain is invalid
    """
    existing = db.query(CourseCategory).filter(CourseCategory.name == category_config.name).first()
    if existing:
        return existing

    category = CourseCategory(
        id=uuid.uuid4(),
        name=category_config.name,
        organization_id=_as_uuid(category_config.organization_id),
        excuse_window_hours=category_config.excuse_window_hours,
    )

    steps = [
        ChainStep(
            id=uuid.uuid4(),
            category_id=category.id,
            order=step.order,
            is_head_approval=step.head,
            is_final=step.final,
            role_id=roles[step.role].id if step.role else None,
        )
        for step in category_config.approvals
    ]
    # Categories without steps auto-approve
    if steps:
        validate_chain(steps, category_id=category.id)

    db.add(category)
    db.flush()

    for step in steps:
        db.add(
            ApprovalChainStep(
                id=step.id,
                category_id=category.id,
                approval_order=step.order,
                is_head_approval=step.is_head_approval,
                is_final=step.is_final,
                role_id=step.role_id,
            )
        )
    db.flush()
    return category


def seed_catalog(db: Session, catalog: CatalogConfig) -> Dict[str, CourseCategory]:
    """Create every role and category of the catalog."""
    roles = seed_roles(db, catalog)
    return {
        category_config.name: seed_category(db, category_config, roles)
        for category_config in catalog.categories
    }


# CLI script for seeding
if __name__ == "__main__":
    import sys
    from coursehub.common.logger import configure_logging
    from coursehub.core.config import get_settings
    from coursehub.db.session import get_session

    configure_logging(get_settings())

    path = sys.argv[1] if len(sys.argv) > 1 else get_settings().approval_catalog_path
    if not path:
        print("Usage: python -m coursehub.db.seed <catalog.yaml>")
        sys.exit(2)

    db = get_session()
    try:
        categories = seed_catalog(db, load_typed_config(path))
        db.commit()

        print(f"Seeded {len(categories)} categories:")
        for name, category in categories.items():
            count = db.query(ApprovalChainStep).filter(ApprovalChainStep.category_id == category.id).count()
            print(f"  - {name}: {f'{count} approval steps' if count else 'auto-approve'}")

        print("\nSeeding complete!")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()
