"""
Shared data structures, parameters, and utility functions.

Ion species, unit conversion helpers, configuration dataclasses and the
error hierarchy used across the model builders.

Stripped units are chosen so generated equations stay dimensionally
consistent without carrying unit objects around:
  - voltage: mV            - current: uA
  - specific conductance: mS/cm^2   - synaptic conductance: mS
  - specific capacitance: uF/cm^2   - area: cm^2
  - concentration: uM      - time: ms
(uA / uF = mV / ms)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from brian2.units import cmetre, msecond, msiemens, mvolt, namp, uamp, ufarad, umolar
from brian2.units.constants import faraday_constant
from brian2.units.fundamentalunits import DimensionMismatchError, have_same_dimensions


# ============================================================================
# ERRORS
# ============================================================================

class ConductorError(Exception):
    """Base class for model construction and simulation errors."""


class GateError(ConductorError, ValueError):
    """Gating kinetics specified with the wrong rate/steady-state arguments."""


class EquilibriumError(ConductorError):
    """Equilibrium potential missing or specified incorrectly."""


class UnresolvedStateError(ConductorError):
    """A state is referenced but no equation produces it."""


class StructuralError(ConductorError):
    """The assembled equation system is not well-posed."""


class SimulationError(ConductorError):
    """The numerical integrator failed."""


# ============================================================================
# IONS
# ============================================================================

class Ion(Enum):
    """Ion species; the value is the periodic-table style display symbol."""
    Calcium = "Ca"
    Sodium = "Na"
    Potassium = "K"
    Chloride = "Cl"
    Leak = "l"
    Mixed = "l"  # non-specific ion

    @property
    def symbol(self) -> str:
        return self.value


class Location(Enum):
    Inside = "i"
    Outside = "o"


# ============================================================================
# UNITS
# ============================================================================

VOLTAGE = mvolt
CURRENT = uamp
SPECIFIC_CONDUCTANCE = msiemens / cmetre ** 2
CONDUCTANCE = msiemens
SPECIFIC_CAPACITANCE = ufarad / cmetre ** 2
MOLARITY = umolar
TIME = msecond

FARADAY = faraday_constant


STRIP_DIGITS = 12  # significant digits kept after SI rescaling


def ustrip(quantity, unit) -> float:
    """
    Convert a brian2 quantity to a plain float expressed in `unit`.

    brian2 stores values in SI, so ``1 uF/cm^2`` comes back as
    0.9999999999999998; the result is rounded to STRIP_DIGITS significant
    digits to drop that rescaling noise.
    """
    if not have_same_dimensions(quantity, unit):
        raise DimensionMismatchError(
            f"Expected a quantity compatible with {unit!r}, got {quantity!r}"
        )
    return float(f"{float(quantity / unit):.{STRIP_DIGITS}g}")


# ============================================================================
# PARAMETER DATACLASSES
# ============================================================================

@dataclass
class SomaParams:
    """
    Geometry and electrical parameters of a spherical compartment.

    Default capacitance is the standard 1 uF/cm^2 (Hodgkin & Huxley 1952).
    """
    area: float = 0.628e-3  # Membrane area (cm^2)
    capacitance: object = field(default_factory=lambda: 1 * ufarad / cmetre ** 2)
    V0: object = field(default_factory=lambda: -65 * mvolt)
    holding: object = field(default_factory=lambda: 0 * namp)
    # Applied current as a function of (t, Iapp); None keeps Iapp constant
    stimulus: Optional[Callable] = None


@dataclass
class SimulationParams:
    """Numerical integration settings passed to scipy's solve_ivp."""
    method: str = "LSODA"
    rtol: float = 1e-6
    atol: float = 1e-8
    dt: Optional[float] = None        # Output sampling interval (ms); None keeps solver steps
    max_step: float = float("inf")    # Upper bound on the solver step (ms)
