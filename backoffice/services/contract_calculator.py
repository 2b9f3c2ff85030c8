"""Contract value calculator.

Turns per-unit monthly consumption history and pricing inputs into the
financial figures printed on a rental contract:

- CM_unidade = sum(positive readings) / number of positive readings
- CM_total = sum of CM_unidade over all units
- preco_kwh_final = preco_kwh * (1 - desconto)
- valor_locacao_total = floor(CM_total * preco_kwh_final)
- placas_total = floor(CM_total / 66)

Rental value and panel count are truncated, never rounded (455.58 -> 455).
Input validation (positive price, discount range, value caps, at least one
unit) happens in the schema layer. This module never raises for empty
readings, only for totals too large to represent.
"""

import math
from typing import Iterable, Mapping, Union

from backoffice.exceptions import CalculationError
from backoffice.schemas.contract import ContractCalculationData, UnitCalculation, UnitInput

# Monthly kWh generated by one panel
PANEL_NOMINAL_KWH = 120
PANEL_DERATING_FACTOR = 0.55
KWH_PER_PANEL = round(PANEL_NOMINAL_KWH * PANEL_DERATING_FACTOR)  # 66

UnitLike = Union[UnitInput, Mapping]


def _unit_fields(unit: UnitLike) -> tuple[str, list[float]]:
    if isinstance(unit, UnitInput):
        return unit.name, list(unit.consumptions)
    return str(unit.get("name", "")), [float(c) for c in unit.get("consumptions") or []]


def calculate_unit(name: str, consumptions: Iterable[float]) -> UnitCalculation:
    """Average one unit over the months that have a positive reading.

    Zero and negative readings mean "month not billed yet" and are skipped.
    The divisor floors at 1, so a unit with no valid month averages 0 and is
    flagged with ``has_valid_readings=False``.
    """
    readings = [float(c) for c in consumptions]
    valid = [c for c in readings if c > 0]
    avg = sum(valid) / max(len(valid), 1)
    return UnitCalculation(
        unit_name=name,
        consumptions_kwh=readings,
        consumption_avg_unit=avg,
        valid_months=len(valid),
        has_valid_readings=bool(valid),
    )


def calculate_price_final(price_kwh: float, discount_percent: float) -> float:
    """Discounted kWh price; ``discount_percent`` is a fraction (0.20 = 20%)."""
    return price_kwh * (1 - discount_percent)


def calculate_rental_value(consumption_avg_total: float, price_kwh_final: float) -> int:
    return math.floor(consumption_avg_total * price_kwh_final)


def calculate_panels(consumption_avg_total: float) -> int:
    return math.floor(consumption_avg_total / KWH_PER_PANEL)


def calculate_contract_values(
    units: Iterable[UnitLike],
    price_kwh: float,
    discount_percent: float,
) -> ContractCalculationData:
    """Compute the frozen calculation snapshot for a contract.

    Args:
        units: ``UnitInput`` models or ``{"name", "consumptions"}`` mappings
        price_kwh: Price per kWh before discount
        discount_percent: Discount as a fraction in [0, 1]

    Returns:
        ContractCalculationData with per-unit averages and totals

    Raises:
        CalculationError: when the rental value overflows to infinity
    """
    calculated = [calculate_unit(*_unit_fields(u)) for u in units]
    consumption_avg_total = sum(u.consumption_avg_unit for u in calculated)
    price_kwh_final = calculate_price_final(price_kwh, discount_percent)
    if not math.isfinite(consumption_avg_total * price_kwh_final):
        raise CalculationError("Consumo ou preço fora do intervalo calculável.")

    return ContractCalculationData(
        units=calculated,
        consumption_avg_total=consumption_avg_total,
        price_kwh=price_kwh,
        discount_percent=discount_percent,
        price_kwh_final=price_kwh_final,
        rental_value_total=calculate_rental_value(consumption_avg_total, price_kwh_final),
        panels_total=calculate_panels(consumption_avg_total),
    )
