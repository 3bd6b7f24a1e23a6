import os
import sys
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from dotenv import load_dotenv

load_dotenv()

# Database models and setup
from database import SessionLocal, init_db
from models.category import Category
from models.product import Product
from models.stock import StockMovement
from models.supplier import Supplier
from models.users import User
from utils.hashing import get_password_hash
from utils.stock_ledger import MOVEMENT_IN

# Configuration
ADMIN_EMAIL = "admin@inventory.com"
ADMIN_PASSWORD = "admin123"

CATEGORIES = [
    ("Electronics", "Electronic devices and components"),
    ("Office Supplies", "Paper, pens and desk accessories"),
    ("Furniture", "Desks, chairs and storage"),
    ("Tools", "Hand and power tools"),
]

SUPPLIERS = [
    {
        "name": "TechSource Ltd",
        "email": "orders@techsource-supply.com",
        "phone": "+1-555-0100",
        "address": "12 Circuit Way, San Jose, CA",
        "contact_person": "Dana Reyes",
    },
    {
        "name": "Paper & Co",
        "email": "sales@paperco-wholesale.com",
        "phone": "+1-555-0200",
        "address": "48 Mill Street, Portland, OR",
        "contact_person": "Sam Patel",
    },
    {
        "name": "BuildRight Supply",
        "email": "contact@buildright-supply.com",
        "phone": "+1-555-0300",
        "address": "7 Foundry Road, Pittsburgh, PA",
        "contact_person": "Alex Kim",
    },
]

# (sku, name, category, supplier email, price, quantity, low stock threshold)
PRODUCTS = [
    ("ELEC-LAP-001", "Laptop 14\"", "Electronics", "orders@techsource-supply.com", "899.00", 25, 5),
    ("ELEC-MON-002", "27\" Monitor", "Electronics", "orders@techsource-supply.com", "249.99", 8, 10),
    ("ELEC-KEY-003", "Wireless Keyboard", "Electronics", "orders@techsource-supply.com", "39.90", 0, 10),
    ("OFF-PAP-001", "A4 Paper (500 sheets)", "Office Supplies", "sales@paperco-wholesale.com", "5.49", 400, 50),
    ("OFF-PEN-002", "Ballpoint Pens (box of 50)", "Office Supplies", "sales@paperco-wholesale.com", "12.00", 60, 20),
    ("FUR-CHR-001", "Ergonomic Chair", "Furniture", "contact@buildright-supply.com", "189.00", 12, 5),
    ("TOO-DRL-001", "Cordless Drill", "Tools", "contact@buildright-supply.com", "129.50", 3, 5),
]
# End Configuration


def seed_admin(session) -> User:
    """Create the default admin account unless one with that email exists."""
    admin = session.query(User).filter(User.email == ADMIN_EMAIL).first()
    if admin:
        print(f"Admin {ADMIN_EMAIL} already exists, skipping.")
        return admin

    admin = User(
        name="System Administrator",
        email=ADMIN_EMAIL,
        password_hash=get_password_hash(ADMIN_PASSWORD),
        role="admin",
        status="active",
    )
    session.add(admin)
    session.flush()
    print(f"Created admin {ADMIN_EMAIL} (password: {ADMIN_PASSWORD})")
    return admin


def seed_categories(session) -> dict:
    by_name = {}
    for name, description in CATEGORIES:
        category = session.query(Category).filter(Category.name == name).first()
        if not category:
            category = Category(name=name, description=description)
            session.add(category)
            session.flush()
        by_name[name] = category
    return by_name


def seed_suppliers(session) -> dict:
    by_email = {}
    for data in SUPPLIERS:
        supplier = session.query(Supplier).filter(Supplier.email == data["email"]).first()
        if not supplier:
            supplier = Supplier(**data)
            session.add(supplier)
            session.flush()
        by_email[data["email"]] = supplier
    return by_email


def seed_products(session, admin: User, categories: dict, suppliers: dict) -> int:
    """Insert missing products; opening stock is booked as an inbound movement."""
    created = 0
    for sku, name, category, supplier_email, price, quantity, threshold in PRODUCTS:
        if session.query(Product.id).filter(Product.sku == sku).first():
            continue

        product = Product(
            sku=sku,
            name=name,
            category_id=categories[category].id,
            supplier_id=suppliers[supplier_email].id,
            price=Decimal(price),
            quantity=quantity,
            low_stock_threshold=threshold,
        )
        session.add(product)
        session.flush()

        if quantity > 0:
            session.add(StockMovement(
                product_id=product.id,
                user_id=admin.id,
                quantity=quantity,
                type=MOVEMENT_IN,
                reason="Initial stock",
            ))
        created += 1
    return created


def seed_database():
    """Main execution function. Safe to run repeatedly."""
    init_db()
    session = SessionLocal()
    try:
        admin = seed_admin(session)
        categories = seed_categories(session)
        suppliers = seed_suppliers(session)
        created = seed_products(session, admin, categories, suppliers)
        session.commit()
        print(f"Seeding finished: {len(categories)} categories, {len(suppliers)} suppliers, {created} new products.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    seed_database()
