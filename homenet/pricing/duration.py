"""Installation duration estimates."""

from decimal import Decimal, ROUND_CEILING

from homenet.pricing.table import PricingTable, RUN_KINDS, SERVICE_KINDS

BUFFER_HOURS = Decimal('1')
MINIMUM_MINUTES = 120
WHOLE_HOME_MINUTES = 720


def estimate_duration(selection, table: PricingTable) -> int:
    """Labor hours for the selected items, plus a buffer, in whole-hour minutes.

    Never returns less than ``MINIMUM_MINUTES``.
    """
    hours = sum(
        (selection.count(kind) * table.labor_hours.get(kind, Decimal('0'))
         for kind in RUN_KINDS + SERVICE_KINDS),
        Decimal('0'),
    )
    hours += BUFFER_HOURS
    whole_hours = int(hours.to_integral_value(rounding=ROUND_CEILING))
    return max(whole_hours * 60, MINIMUM_MINUTES)


def duration_for_service(service_type, selection, table: PricingTable) -> int:
    """Whole-Home work always takes the full day."""
    if service_type == 'Whole-Home':
        return WHOLE_HOME_MINUTES
    return estimate_duration(selection, table)
