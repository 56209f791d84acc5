from .precision import (
    ENERGY_PLACES,
    SUB_UNIT_PLACES,
    ELECTRICAL_PLACES,
    to_decimal,
    quantize,
    round_to,
    round_energy,
    round_sub_unit,
    round_electrical,
    exact_sum,
)

__all__ = [
    "ENERGY_PLACES",
    "SUB_UNIT_PLACES",
    "ELECTRICAL_PLACES",
    "to_decimal",
    "quantize",
    "round_to",
    "round_energy",
    "round_sub_unit",
    "round_electrical",
    "exact_sum",
]
