from sqlalchemy.orm import Session
from slugify import slugify
import structlog

from storefront.core.config import settings
from storefront.core.security import hash_password
from storefront.models.category import Category
from storefront.models.user import User, UserRole

logger = structlog.get_logger()

DEFAULT_CATEGORIES = [
    {"name": "Electronics", "description": "Phones, laptops and accessories"},
    {"name": "Books", "description": "Printed and digital books"},
    {"name": "Home & Kitchen", "description": "Furniture, cookware and decor"},
]


def init_db(db: Session) -> None:
    """Initialize database with default data"""

    # Create admin user
    admin_email = settings.DEFAULT_ADMIN_EMAIL.lower()
    admin = db.query(User).filter(User.email == admin_email).first()
    if not admin:
        seed_password = (settings.DEFAULT_ADMIN_PASSWORD or "").strip()
        if not seed_password:
            message = (
                "Missing admin bootstrap credentials: set DEFAULT_ADMIN_PASSWORD "
                "or create an admin user manually before launch."
            )
            if settings.ENVIRONMENT == "production":
                logger.error("admin_bootstrap_missing", env=settings.ENVIRONMENT)
                raise RuntimeError(message)
            logger.warning("admin_bootstrap_missing", env=settings.ENVIRONMENT)
        else:
            admin = User(
                email=admin_email,
                password_hash=hash_password(seed_password),
                full_name="Storefront Admin",
                role=UserRole.ADMIN,
                is_active=True,
            )
            db.add(admin)
            logger.info("admin_user_created", email=admin_email)

    # Create categories
    for cat_data in DEFAULT_CATEGORIES:
        existing = db.query(Category).filter(Category.name == cat_data["name"]).first()
        if not existing:
            category = Category(
                name=cat_data["name"],
                slug=slugify(cat_data["name"]),
                description=cat_data["description"]
            )
            db.add(category)
            logger.info("category_created", name=cat_data["name"])

    db.commit()
    logger.info("database_initialized")


if __name__ == "__main__":
    from storefront.core.logging_config import configure_logging
    from storefront.db.session import SessionLocal

    configure_logging()
    db = SessionLocal()
    try:
        init_db(db)
    finally:
        db.close()
