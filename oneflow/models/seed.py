"""
Sample Data

FLOW OVERVIEW
- seed_database(): insert default company settings, customers, vendors and
  products. Each table is only filled when it is empty, so the call is safe on
  every startup.
"""

import logging
from decimal import Decimal
from .database import db
from .catalog import Customer, Vendor, Product, CompanySetting

logger = logging.getLogger(__name__)

SAMPLE_CUSTOMERS = [
    ('Acme Corporation', 'billing@acme.com', '+1-555-0101', '123 Business St, City, State 12345'),
    ('Tech Solutions Inc', 'accounts@techsolutions.com', '+1-555-0102',
     '456 Innovation Ave, Tech City, TC 67890'),
    ('Global Enterprises', 'finance@globalent.com', '+1-555-0103', '789 Corporate Blvd, Metro, MT 54321'),
]

SAMPLE_VENDORS = [
    ('Office Supplies Co', 'orders@officesupplies.com', '+1-555-0201', '100 Supply St, City, State'),
    ('Tech Hardware Ltd', 'sales@techhardware.com', '+1-555-0202', '200 Hardware Ave, City, State'),
    ('Software Solutions Inc', 'billing@softwaresol.com', '+1-555-0203', '300 Software Blvd, City, State'),
]

# name, sales, purchase, expenses, sales_price, sales_tax_percent, cost_price
SAMPLE_PRODUCTS = [
    ('Consulting Hours', True, False, False, '150.00', '18.00', None),
    ('Software License', True, True, False, '499.00', '18.00', '300.00'),
    ('Cloud Hosting', True, True, False, '120.00', '18.00', '80.00'),
    ('Office Supplies', False, True, True, None, None, '25.00'),
    ('Hardware Equipment', False, True, False, None, None, '500.00'),
    ('Software Subscription', False, True, True, None, None, '99.00'),
    ('Marketing Materials', False, True, True, None, None, '150.00'),
    ('Training Services', False, True, False, None, None, '200.00'),
]


def _decimal(value):
    return Decimal(value) if value is not None else None


def seed_database():
    """Insert sample rows into empty tables; returns inserted counts per table"""
    inserted = {}

    if CompanySetting.query.count() == 0:
        for key, value in CompanySetting.DEFAULTS.items():
            db.session.add(CompanySetting(setting_key=key, setting_value=value))
        inserted['company_settings'] = len(CompanySetting.DEFAULTS)

    if Customer.query.count() == 0:
        for name, email, phone, address in SAMPLE_CUSTOMERS:
            db.session.add(Customer(name=name, email=email, phone=phone, address=address))
        inserted['customers'] = len(SAMPLE_CUSTOMERS)

    if Vendor.query.count() == 0:
        for name, email, phone, address in SAMPLE_VENDORS:
            db.session.add(Vendor(name=name, email=email, phone=phone, address=address))
        inserted['vendors'] = len(SAMPLE_VENDORS)

    if Product.query.count() == 0:
        for name, sales, purchase, expenses, price, tax, cost in SAMPLE_PRODUCTS:
            db.session.add(Product(
                name=name,
                type_sales=sales,
                type_purchase=purchase,
                type_expenses=expenses,
                sales_price=_decimal(price),
                sales_tax_percent=_decimal(tax),
                cost_price=_decimal(cost),
            ))
        inserted['products'] = len(SAMPLE_PRODUCTS)

    db.session.commit()
    if inserted:
        logger.info('Seeded sample data: %s', inserted)
    return inserted
