# homenet/pricing/table.py
"""Rate table used by every pricing computation.

The table is a plain value object.  Request handlers build one per request
from the active cost items and the labor-rate setting and pass it into the
pricing functions explicitly, so the functions themselves never touch the
database.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, Iterable, Optional

RUN_KINDS = ('cat6', 'coax', 'fiber')
SERVICE_KINDS = ('apMount', 'ethRelocation')

# Cost-item code -> key in the table
RUN_CODES = {'CAT6-RUN': 'cat6', 'COAX-RUN': 'coax', 'FIBER-RUN': 'fiber'}
SERVICE_CODES = {'AP-MOUNT': 'apMount', 'ETH-RELOCATION': 'ethRelocation'}
CENTRALIZATION_CODES = {
    'MEDIA-PANEL': 'Media Panel',
    'PATCH-PANEL': 'Patch Panel',
    'LOOSE-TERM': 'Loose Termination',
}
DEPOSIT_DROPS_CODE = 'DEPOSIT-DROPS'
DEPOSIT_WHOLE_CODE = 'DEPOSIT-WHOLE'


def _d(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class PricingTable:
    run_rates: Dict[str, Decimal] = field(default_factory=lambda: {
        'cat6': Decimal('100'), 'coax': Decimal('150'), 'fiber': Decimal('200'),
    })
    service_rates: Dict[str, Decimal] = field(default_factory=lambda: {
        'apMount': Decimal('25'), 'ethRelocation': Decimal('20'),
    })
    centralization_rates: Dict[str, Decimal] = field(default_factory=lambda: {
        'Media Panel': Decimal('100'),
        'Patch Panel': Decimal('50'),
        'Loose Termination': Decimal('0'),
    })
    labor_hours: Dict[str, Decimal] = field(default_factory=lambda: {
        'cat6': Decimal('0.8'), 'coax': Decimal('1.0'), 'fiber': Decimal('1.4'),
        'apMount': Decimal('0.2'), 'ethRelocation': Decimal('0.3'),
    })
    deposit_amount: Decimal = Decimal('20')
    deposit_threshold: Decimal = Decimal('100')
    whole_home_deposit: Decimal = Decimal('200')
    labor_rate: Decimal = Decimal('50')

    @classmethod
    def from_cost_items(cls, items: Iterable, labor_rate=None) -> 'PricingTable':
        """Overlay active cost items (matched by code) on the defaults.

        Inactive items and unknown codes are ignored, so a missing row in
        the catalogue falls back to the default rate rather than to zero.
        """
        table = cls()
        run_rates = dict(table.run_rates)
        service_rates = dict(table.service_rates)
        centralization_rates = dict(table.centralization_rates)
        labor_hours = dict(table.labor_hours)
        overrides = {}

        for item in items:
            if not item.is_active:
                continue
            code = item.code
            if code in RUN_CODES:
                key = RUN_CODES[code]
                run_rates[key] = _d(item.price)
                if item.labor_hours is not None:
                    labor_hours[key] = _d(item.labor_hours)
            elif code in SERVICE_CODES:
                key = SERVICE_CODES[code]
                service_rates[key] = _d(item.price)
                if item.labor_hours is not None:
                    labor_hours[key] = _d(item.labor_hours)
            elif code in CENTRALIZATION_CODES:
                centralization_rates[CENTRALIZATION_CODES[code]] = _d(item.price)
            elif code == DEPOSIT_DROPS_CODE:
                overrides['deposit_amount'] = _d(item.price)
                if item.threshold_amount is not None:
                    overrides['deposit_threshold'] = _d(item.threshold_amount)
            elif code == DEPOSIT_WHOLE_CODE:
                overrides['whole_home_deposit'] = _d(item.price)

        if labor_rate is not None:
            overrides['labor_rate'] = _d(labor_rate)

        return replace(
            table,
            run_rates=run_rates,
            service_rates=service_rates,
            centralization_rates=centralization_rates,
            labor_hours=labor_hours,
            **overrides,
        )


def load_pricing_table() -> PricingTable:
    """Fetch the table for the current request, once."""
    from flask import g
    from homenet.models import CostItem, Setting

    table: Optional[PricingTable] = g.get('pricing_table')
    if table is None:
        items = CostItem.query.filter_by(is_active=True).all()
        settings = Setting.get_settings()
        table = PricingTable.from_cost_items(items, settings.labor_rate)
        g.pricing_table = table
    return table


def cost_breakdown(item, labor_rate) -> dict:
    """Material, labor and margin figures for one cost item.

    Material cost is the item's own material cost plus the customer price of
    each bill-of-materials component times its quantity.
    """
    labor_rate = _d(labor_rate)
    material = _d(item.material_cost or 0)
    for entry in item.bill_of_materials:
        material += _d(entry.item.price or 0) * entry.quantity
    labor = _d(item.labor_hours or 0) * labor_rate
    total = material + labor
    price = _d(item.price or 0)
    cent = Decimal('0.01')
    return {
        'materialCost': float(material.quantize(cent)),
        'laborCost': float(labor.quantize(cent)),
        'totalCost': float(total.quantize(cent)),
        'margin': float((price - total).quantize(cent)),
    }
