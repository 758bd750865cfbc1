"""This module handles initialization of pint functionality"""

from typing import Annotated, Any

from pint import DimensionalityError
from pydantic.functional_validators import AfterValidator
from typing_extensions import TypeAlias

from ..data import Q_, ureg

Quantity: TypeAlias = ureg.Quantity

ureg.define("CO2e = CO2 = CO2eq = CO2_eq")
# openscm_units does this for all gas species...we just have to keep up.
ureg.define("tCO2e = t CO2e")
ureg.define("kgCO2e = kg CO2e")

# Record quantities are summed in kilograms; reports show metric tons
EMISSIONS_UNIT = "kg CO2e"
REPORTING_UNIT = "t CO2e"


def check_EmissionsMetric(units: str) -> str:
    qty = ureg(units)
    if qty.is_compatible_with("t CO2"):
        return units
    raise ValueError(f"{units} not relateable to 't CO2'")


EmissionsMetric = Annotated[str, AfterValidator(check_EmissionsMetric)]


def check_EmissionsQuantity(quantity: Quantity) -> Quantity:
    if quantity.is_compatible_with("t CO2"):
        return quantity
    raise DimensionalityError(
        quantity,
        "t CO2",
        dim1="",
        dim2="",
        extra_msg="Dimensionality must be compatible with 't CO2'",
    )


def emissions_quantity(magnitude: Any, units: str = EMISSIONS_UNIT) -> Quantity:
    """Wrap MAGNITUDE as a checked emissions Quantity in UNITS (kg CO2e by default)."""
    return check_EmissionsQuantity(Q_(magnitude, units))


def Q_m_as(value, units, inplace=False):
    """Convert VALUE from a string to a Quantity.
    If the Quanity is not already in UNITS, then convert in place.
    Returns the MAGNITUDE of the (possibly) converted value.
    """
    x = value
    if isinstance(value, str):
        x = ureg(value)
    if x.u == units:
        return x.m
    if inplace:
        x.ito(units)
        return x.m
    return x.to(units).m


def kg_to_t(kilograms: float) -> float:
    """Magnitude of KILOGRAMS of CO2e expressed in metric tons of CO2e."""
    return Q_m_as(emissions_quantity(kilograms), ureg(REPORTING_UNIT).u)
