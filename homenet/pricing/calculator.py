# homenet/pricing/calculator.py

"""Price previews for the two service tiers."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from homenet.errors import ValidationError
from homenet.pricing.table import PricingTable, RUN_KINDS, SERVICE_KINDS

DROPS_ONLY = 'Drops Only'
WHOLE_HOME = 'Whole-Home'
SERVICE_TYPES = (DROPS_ONLY, WHOLE_HOME)

CENTRALIZATION_TYPES = ('Media Panel', 'Patch Panel', 'Loose Termination')

MAX_RUNS = 50
MAX_SERVICES = 20

RUN_LABELS = {'coax': 'Coax runs', 'cat6': 'Cat6 runs', 'fiber': 'Fiber runs'}
SERVICE_LABELS = {'apMount': 'AP mounts', 'ethRelocation': 'Ethernet relocations'}

CENT = Decimal('0.01')


def round_currency(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Centralization:
    type: str
    has_existing_panel: bool = False


@dataclass(frozen=True)
class DropsOnlyInput:
    runs: dict = field(default_factory=dict)
    services: dict = field(default_factory=dict)
    discount: int = 0
    centralization: Optional[Centralization] = None

    def count(self, kind: str) -> int:
        if kind in RUN_KINDS:
            return self.runs.get(kind, 0)
        return self.services.get(kind, 0)

    @property
    def is_empty(self) -> bool:
        return not any(self.runs.values()) and not any(self.services.values())

    @classmethod
    def parse(cls, runs=None, services=None, discount=0, centralization=None,
              require_centralization=False, lenient=False) -> 'DropsOnlyInput':
        """Validate a loosely shaped request body into a ``DropsOnlyInput``.

        ``lenient`` coerces unparseable counts to zero, which is what the
        live price preview wants while the customer is still typing.
        Range errors are reported either way.
        """
        errors = []
        runs = runs or {}
        services = services or {}
        if not isinstance(runs, dict) or not isinstance(services, dict):
            raise ValidationError('Runs and services must be objects')

        parsed_runs = {}
        for kind in RUN_KINDS:
            value = _parse_count(runs.get(kind), lenient)
            if value is None or not 0 <= value <= MAX_RUNS:
                errors.append(f'{RUN_LABELS[kind]} must be between 0 and {MAX_RUNS}')
                continue
            parsed_runs[kind] = value

        parsed_services = {}
        for kind in SERVICE_KINDS:
            value = _parse_count(services.get(kind), lenient)
            if value is None or not 0 <= value <= MAX_SERVICES:
                errors.append(f'{SERVICE_LABELS[kind]} must be between 0 and {MAX_SERVICES}')
                continue
            parsed_services[kind] = value

        parsed_discount = _parse_count(discount, lenient)
        if parsed_discount is None or not 0 <= parsed_discount <= 100:
            errors.append('Discount must be between 0 and 100')

        central = None
        if isinstance(centralization, str):
            centralization = {'type': centralization}
        if centralization is not None and not isinstance(centralization, dict):
            errors.append('Invalid centralization selection')
        elif centralization:
            ctype = centralization.get('type')
            if ctype not in CENTRALIZATION_TYPES:
                errors.append('Invalid centralization selection')
            else:
                central = Centralization(
                    type=ctype,
                    has_existing_panel=_parse_bool(centralization.get('hasExistingPanel')),
                )
        elif require_centralization:
            errors.append('Invalid centralization selection')

        if errors:
            raise ValidationError(errors)
        return cls(runs=parsed_runs, services=parsed_services,
                   discount=parsed_discount, centralization=central)


def _parse_count(value, lenient):
    if value is None or value == '':
        return 0
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        if lenient:
            return 0
        return None


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return bool(value)


@dataclass(frozen=True)
class DropsOnlyPrice:
    total_cost: Decimal
    deposit_required: Decimal

    def to_dict(self):
        return {
            'totalCost': float(self.total_cost),
            'depositRequired': float(self.deposit_required),
        }


@dataclass(frozen=True)
class WholeHomePrice:
    deposit_amount: Decimal

    def to_dict(self):
        return {'depositAmount': float(self.deposit_amount)}


def centralization_cost(centralization: Optional[Centralization],
                        table: PricingTable) -> Decimal:
    if centralization is None:
        return Decimal('0')
    if centralization.type == 'Media Panel' and centralization.has_existing_panel:
        return Decimal('0')
    return table.centralization_rates.get(centralization.type, Decimal('0'))


def price_drops_only(selection: DropsOnlyInput, table: PricingTable) -> DropsOnlyPrice:
    runs_cost = sum(
        (selection.runs.get(kind, 0) * table.run_rates[kind] for kind in RUN_KINDS),
        Decimal('0'),
    )
    services_cost = sum(
        (selection.services.get(kind, 0) * table.service_rates[kind] for kind in SERVICE_KINDS),
        Decimal('0'),
    )
    subtotal = runs_cost + services_cost + centralization_cost(selection.centralization, table)
    factor = Decimal(100 - selection.discount) / Decimal(100)
    total = round_currency(subtotal * factor)
    deposit = table.deposit_amount if total > table.deposit_threshold else Decimal('0')
    return DropsOnlyPrice(total_cost=total, deposit_required=deposit)


def price_whole_home(table: PricingTable) -> WholeHomePrice:
    """Flat deposit; the final price is set after the site survey."""
    return WholeHomePrice(deposit_amount=table.whole_home_deposit)


def calculate_pricing(service_type: str, selection: Optional[DropsOnlyInput],
                      table: PricingTable):
    if service_type == DROPS_ONLY:
        return price_drops_only(selection or DropsOnlyInput(), table)
    if service_type == WHOLE_HOME:
        return price_whole_home(table)
    raise ValidationError('Invalid service type')
