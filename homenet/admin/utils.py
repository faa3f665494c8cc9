# homenet/admin/utils.py

"""Back-office rules that sit between the admin routes and the models."""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from homenet import db
from homenet.errors import ValidationError
from homenet.models import (
    BomEntry,
    CostItem,
    Invoice,
    COST_CATEGORIES,
    UNIT_TYPES,
)
from homenet.pricing.calculator import round_currency

logger = logging.getLogger(__name__)

CODE_RE = re.compile(r'^[A-Z0-9][A-Z0-9\-_]*$')

# Quote lifecycle; rejected and completed are terminal
QUOTE_TRANSITIONS = {
    'pending':   {'reviewed', 'rejected'},
    'reviewed':  {'approved', 'rejected'},
    'approved':  {'completed', 'rejected'},
    'rejected':  set(),
    'completed': set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in QUOTE_TRANSITIONS.get(current, set())


def parse_money(value, label, errors, required=False):
    if value is None or value == '':
        if required:
            errors.append(f'{label} is required')
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        errors.append(f'{label} must be a number')
        return None
    if not amount.is_finite() or amount < 0:
        errors.append(f'{label} cannot be negative')
        return None
    return amount


def validate_bill_of_materials(entries, item_id=None):
    """Check a BOM payload and return ``[(CostItem, quantity), …]``.

    Rejects self references, the same component listed twice, unknown
    components and quantities below one.
    """
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ValidationError('Bill of materials must be a list')

    errors = []
    seen = set()
    resolved = []
    for entry in entries:
        ref = entry.get('item') if isinstance(entry, dict) else None
        try:
            ref = int(ref)
        except (TypeError, ValueError):
            errors.append(f'Invalid BOM item ID: {ref}')
            continue
        if item_id is not None and ref == item_id:
            errors.append('A cost item cannot include itself in its bill of materials')
            continue
        if ref in seen:
            errors.append(f'Duplicate BOM item: {ref}')
            continue
        seen.add(ref)
        component = db.session.get(CostItem, ref)
        if component is None:
            errors.append(f'BOM item not found: {ref}')
            continue
        try:
            quantity = int(entry.get('quantity', 1))
        except (TypeError, ValueError):
            quantity = 0
        if quantity < 1:
            errors.append(f'BOM quantity for {component.code} must be at least 1')
            continue
        resolved.append((component, quantity))
    if errors:
        raise ValidationError(errors)
    return resolved


def apply_cost_item_fields(item, data, creating=False):
    """Validate and copy request fields onto ``item``. Unsent fields are left alone."""
    errors = []
    if creating:
        for key in ('code', 'name', 'category', 'unitType'):
            if not data.get(key):
                errors.append(f'{key} is required')
        if data.get('price') in (None, ''):
            errors.append('price is required')
        if errors:
            raise ValidationError(errors)

    if 'code' in data:
        code = str(data['code'] or '').strip().upper()
        if not CODE_RE.match(code):
            errors.append('Code must be uppercase alphanumeric with hyphens/underscores')
        item.code = code
    if 'name' in data:
        name = str(data['name'] or '').strip()
        if not name or len(name) > 100:
            errors.append('Name must be between 1 and 100 characters')
        item.name = name
    if 'description' in data:
        description = (data['description'] or '').strip()
        if len(description) > 500:
            errors.append('Description cannot exceed 500 characters')
        item.description = description
    if 'category' in data:
        if data['category'] not in COST_CATEGORIES:
            errors.append(f"{data['category']} is not a valid category")
        item.category = data['category']
    if 'unitType' in data:
        if data['unitType'] not in UNIT_TYPES:
            errors.append(f"{data['unitType']} is not a valid unit type")
        item.unit_type = data['unitType']
    if 'unitLabel' in data:
        item.unit_label = (data['unitLabel'] or '').strip()[:50]
    if 'price' in data:
        item.price = parse_money(data['price'], 'Price', errors, required=True)
    if 'materialCost' in data:
        item.material_cost = parse_money(data['materialCost'], 'Material cost', errors) or 0
    if 'laborHours' in data:
        item.labor_hours = parse_money(data['laborHours'], 'Labor hours', errors) or 0
    if 'thresholdAmount' in data:
        item.threshold_amount = parse_money(data['thresholdAmount'], 'Threshold amount', errors)
    if 'sortOrder' in data:
        try:
            item.sort_order = int(data['sortOrder'] or 0)
        except (TypeError, ValueError):
            errors.append('Sort order must be a whole number')
    if errors:
        raise ValidationError(errors)

    if 'billOfMaterials' in data:
        components = validate_bill_of_materials(data['billOfMaterials'], item.id)
        if item.id is not None and item.bill_of_materials:
            # old rows must be gone before re-adding the same component
            item.bill_of_materials.clear()
            db.session.flush()
        for component, qty in components:
            item.bill_of_materials.append(BomEntry(item=component, quantity=qty))


def bom_references(item):
    """Codes of other items whose bill of materials lists ``item``."""
    rows = BomEntry.query.filter_by(item_id=item.id).all()
    return sorted({row.parent.code for row in rows})


def next_invoice_number(year=None):
    year = year or date.today().year
    prefix = f'INV-{year}-'
    last = (Invoice.query
            .filter(Invoice.invoice_number.like(f'{prefix}%'))
            .order_by(Invoice.invoice_number.desc())
            .first())
    counter = int(last.invoice_number.rsplit('-', 1)[1]) + 1 if last else 1
    return f'{prefix}{counter:04d}'


def final_amount(amount, discount) -> Decimal:
    return round_currency(Decimal(str(amount)) * (Decimal(100) - discount) / Decimal(100))


def invoice_from_quote(quote, data):
    """Build (unsaved) invoice for an approved quote, taking overrides from ``data``."""
    errors = []
    base = quote.total_cost if quote.total_cost is not None else quote.deposit_amount
    amount = parse_money(data.get('amount'), 'Amount', errors)
    if amount is None:
        amount = Decimal(str(base or 0))
    try:
        discount = int(data.get('discount', quote.discount or 0) or 0)
    except (TypeError, ValueError):
        discount = -1
    if not 0 <= discount <= 100:
        errors.append('Discount must be between 0 and 100')
    due_date = None
    if data.get('dueDate'):
        try:
            due_date = date.fromisoformat(data['dueDate'])
        except ValueError:
            errors.append('Due date must be in YYYY-MM-DD format')
    if errors:
        raise ValidationError(errors)

    return Invoice(
        invoice_number      = next_invoice_number(),
        quote               = quote,
        customer_name       = quote.customer_name,
        customer_email      = quote.customer_email,
        service_description = (data.get('serviceDescription')
                               or f'{quote.service_type} Installation'),
        amount              = amount,
        discount            = discount,
        final_amount        = final_amount(amount, discount),
        status              = 'Draft',
        issue_date          = date.today(),
        due_date            = due_date,
    )


DEFAULT_COST_ITEMS = [
    {'code': 'CAT6-RUN', 'name': 'Cat6 Cable Run', 'category': 'Cable Runs', 'unitType': 'per-run', 'unitLabel': 'per run', 'price': 100, 'materialCost': 25, 'laborHours': 0.8, 'sortOrder': 0},
    {'code': 'COAX-RUN', 'name': 'Coax Cable Run', 'category': 'Cable Runs', 'unitType': 'per-run', 'unitLabel': 'per run', 'price': 150, 'materialCost': 35, 'laborHours': 1.0, 'sortOrder': 1},
    {'code': 'FIBER-RUN', 'name': 'Fiber Cable Run', 'category': 'Cable Runs', 'unitType': 'per-run', 'unitLabel': 'per run', 'price': 200, 'materialCost': 60, 'laborHours': 1.4, 'sortOrder': 2},
    {'code': 'AP-MOUNT', 'name': 'Access Point Mount', 'category': 'Services', 'unitType': 'per-unit', 'unitLabel': 'per mount', 'price': 25, 'materialCost': 5, 'laborHours': 0.2, 'sortOrder': 0},
    {'code': 'ETH-RELOCATION', 'name': 'Ethernet Relocation', 'category': 'Services', 'unitType': 'per-unit', 'unitLabel': 'per relocation', 'price': 20, 'materialCost': 2, 'laborHours': 0.3, 'sortOrder': 1},
    {'code': 'MEDIA-PANEL', 'name': 'Media Panel Install', 'category': 'Centralization', 'unitType': 'flat-fee', 'unitLabel': 'flat fee', 'price': 100, 'materialCost': 30, 'laborHours': 0.8, 'sortOrder': 0},
    {'code': 'PATCH-PANEL', 'name': 'Patch Panel', 'category': 'Centralization', 'unitType': 'flat-fee', 'unitLabel': 'flat fee', 'price': 50, 'materialCost': 20, 'laborHours': 0.3, 'sortOrder': 1},
    {'code': 'LOOSE-TERM', 'name': 'Loose Termination', 'category': 'Centralization', 'unitType': 'flat-fee', 'unitLabel': 'flat fee', 'price': 0, 'sortOrder': 2},
    {'code': 'DEPOSIT-DROPS', 'name': 'Drops Only Deposit', 'category': 'Deposits', 'unitType': 'threshold', 'unitLabel': 'deposit', 'price': 20, 'thresholdAmount': 100, 'sortOrder': 0},
    {'code': 'DEPOSIT-WHOLE', 'name': 'Whole-Home Deposit', 'category': 'Deposits', 'unitType': 'flat-fee', 'unitLabel': 'flat fee', 'price': 200, 'sortOrder': 1},
    {'code': 'RJ45-CONNECTOR', 'name': 'RJ45 Connector', 'category': 'Equipment', 'unitType': 'per-unit', 'unitLabel': 'each', 'price': 2, 'materialCost': 0.5, 'sortOrder': 0},
    {'code': 'KEYSTONE-JACK', 'name': 'Keystone Jack', 'category': 'Equipment', 'unitType': 'per-unit', 'unitLabel': 'each', 'price': 5, 'materialCost': 2, 'sortOrder': 1},
    {'code': 'WALL-PLATE', 'name': 'Wall Plate', 'category': 'Equipment', 'unitType': 'per-unit', 'unitLabel': 'each', 'price': 4, 'materialCost': 1.5, 'sortOrder': 2},
]

DEFAULT_BOMS = {
    'CAT6-RUN': [('RJ45-CONNECTOR', 2), ('KEYSTONE-JACK', 1), ('WALL-PLATE', 1)],
}


def seed_cost_items(username='system'):
    """Insert any missing default items, then wire the default BOMs. Returns ``(created, skipped)``."""
    created = skipped = 0
    for defaults in DEFAULT_COST_ITEMS:
        if CostItem.query.filter_by(code=defaults['code']).first():
            skipped += 1
            continue
        item = CostItem(created_by=username, updated_by=username)
        apply_cost_item_fields(item, defaults, creating=True)
        db.session.add(item)
        created += 1
    db.session.flush()

    for parent_code, components in DEFAULT_BOMS.items():
        parent = CostItem.query.filter_by(code=parent_code).first()
        if parent is None or parent.bill_of_materials:
            continue
        for code, qty in components:
            component = CostItem.query.filter_by(code=code).first()
            if component is not None:
                parent.bill_of_materials.append(BomEntry(item=component, quantity=qty))
        parent.updated_by = username

    db.session.commit()
    logger.info('Cost items seeded by %s: %s created, %s skipped', username, created, skipped)
    return created, skipped
