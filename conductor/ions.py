"""
Ionic quantities: membrane potential, currents, concentrations and
equilibrium (reversal) potentials.

Currents and concentrations are states whose function class carries a
role (CurrentRole / ConcentrationRole), so compartment assembly can tell
an aggregator current or a concentration apart from an ordinary state.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import sympy as sp

from .base import VOLTAGE, MOLARITY, ConductorError, EquilibriumError, Ion, Location, ustrip
from .symbolic import parameter, variable


# ============================================================================
# ROLES
# ============================================================================

@dataclass(frozen=True)
class CurrentRole:
    ion: Ion
    aggregate: bool = False


@dataclass(frozen=True)
class ConcentrationRole:
    ion: Ion
    location: Location


# ============================================================================
# STATE CONSTRUCTORS
# ============================================================================

def MembranePotential() -> sp.Expr:
    return variable("Vm")


def MembraneCurrent(ion: Ion, name: str = None, aggregate: bool = False) -> sp.Expr:
    """
    Current carried by `ion`.

    With ``aggregate=True`` the current is virtual: a compartment that
    needs it defines it as the sum of its concrete currents of that ion.
    """
    return variable(f"I{name or ion.symbol}", CurrentRole(ion, aggregate))


def Concentration(ion: Ion, location: Location = Location.Inside, name: str = None) -> sp.Expr:
    """
    Ion concentration state, e.g. ``Cai`` (inside) or ``Cao`` (outside).

    Identity depends only on ion, location and name, so every call for the
    same concentration yields the same state.
    """
    return variable(f"{name or ion.symbol}{location.value}", ConcentrationRole(ion, location))


@dataclass(frozen=True, eq=False)
class IonConcentration:
    """A concentration state together with its resting value (a molarity)."""
    ion: Ion
    value: object = None
    location: Location = Location.Inside
    name: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.ion, Ion):
            raise ConductorError("Concentration must be associated with an ion type.")
        if self.value is not None:
            ustrip(self.value, MOLARITY)

    @property
    def sym(self) -> sp.Expr:
        return Concentration(self.ion, self.location, self.name)

    def default(self) -> Optional[float]:
        if self.value is None:
            return None
        return ustrip(self.value, MOLARITY)


# ============================================================================
# EQUILIBRIUM POTENTIALS
# ============================================================================

@dataclass(frozen=True, eq=False)
class EquilibriumPotential:
    """
    Reversal potential of `ion`.

    A voltage quantity makes it a constant parameter; a sympy expression
    makes it a dynamic state defined by that expression.
    """
    ion: Ion
    value: object
    name: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.ion, Ion):
            raise EquilibriumError("Equilibrium potential must be associated with an ion type.")
        if self.name is None:
            object.__setattr__(self, "name", self.ion.symbol)
        if self.is_constant:
            ustrip(self.value, VOLTAGE)

    @property
    def is_constant(self) -> bool:
        return not isinstance(self.value, sp.Basic)

    @property
    def sym(self):
        if self.is_constant:
            return parameter(f"E{self.name}")
        return variable(f"E{self.name}")

    def default(self) -> float:
        return ustrip(self.value, VOLTAGE)


Equilibrium = EquilibriumPotential


def equilibria(entries: Iterable) -> List[EquilibriumPotential]:
    """
    Build equilibrium potentials from ``(ion, value)`` or
    ``(ion, (value, name))`` pairs. A dict works too.
    """
    if isinstance(entries, dict):
        entries = entries.items()
    out = []
    for ion, entry in entries:
        if not isinstance(ion, Ion):
            raise EquilibriumError("Equilibrium potential must be associated with an ion type.")
        if isinstance(entry, tuple):
            value, name = _split(ion, entry)
            out.append(EquilibriumPotential(ion, value, name))
        else:
            out.append(EquilibriumPotential(ion, entry))
    return out


def _split(ion: Ion, entry: Tuple):
    value, name = entry
    if not isinstance(name, str):
        raise EquilibriumError(f"Second tuple argument for {ion.name} must be a symbol.")
    return value, name
