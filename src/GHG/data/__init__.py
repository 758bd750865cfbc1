"""This module contains classes that create connections to data providers and initializes our system of units"""

import re

import pint
from openscm_units import unit_registry
from pint import set_application_registry

# openscm_units doesn't make it easy to set preprocessors.  This is one way to do it.
unit_registry.preprocessors = [
    lambda s1: re.sub(r"CO[₂2]\s*e\b", "CO2e", s1),
]

ureg = unit_registry
set_application_registry(ureg)

# Overwrite what pint/pint/__init__.py initalizes
pint.Quantity = ureg.Quantity
pint.Unit = ureg.Unit
pint.Context = ureg.Context

Q_ = ureg.Quantity
