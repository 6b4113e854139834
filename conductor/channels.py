"""
Conductances: ion channels and synaptic channels.

Each conductance composes its gating variables into one subsystem whose
state ``g`` (or parameter, for a passive channel) is the total conductance:

    g = gbar * prod(gate_i ** exponent_i)

  - IonChannel: conductance per unit area (mS/cm^2)
  - passive_channel: IonChannel without gates; g is a bare parameter
  - SynapticChannel: absolute conductance (mS) with a reversal potential
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

import sympy as sp
from brian2.units import cmetre, msiemens

from .base import CONDUCTANCE, SPECIFIC_CONDUCTANCE, EquilibriumError, Ion, ustrip
from .gates import Gate
from .ions import EquilibriumPotential
from .symbolic import (
    Equation, System, get_variables, is_parameter, parameter, unique, variable,
)

logger = logging.getLogger(__name__)


def classify_inputs(gates: Sequence[Gate]) -> Tuple[list, list]:
    """
    Split the free symbols of the gate kinetics into external inputs and
    parameters. A gate's own state is never an input.
    """
    own = {gate.sym for gate in gates}
    inputs, params = [], []
    for gate in gates:
        for x in get_variables(gate.equation.rhs):
            if is_parameter(x):
                params.append(x)
            elif x not in own:
                inputs.append(x)
    return unique(inputs), unique(params)


def conductance_equations(gates: Sequence[Gate], g, gbar) -> List[Equation]:
    product = sp.Mul(*[gate.power() for gate in gates])
    return [gate.equation for gate in gates] + [Equation(g, gbar * product)]


def kinetic_system(gates: Sequence[Gate], gbar_val: float, name: str) -> Tuple[list, list, System]:
    """Subsystem for a gated conductance; gates start at their steady state (else 0)."""
    g, gbar = variable("g"), parameter("gbar")
    inputs, extra = classify_inputs(gates)
    params = unique([gbar] + extra)
    states = [g] + [gate.sym for gate in gates] + inputs
    defaults = {gbar: gbar_val}
    for gate in gates:
        defaults[gate.sym] = gate.steady_state if gate.has_steady_state else 0.0
    system = System(conductance_equations(gates, g, gbar), states, params, name,
                    defaults=defaults)
    return inputs, params, system


# ============================================================================
# ION CHANNELS
# ============================================================================

@dataclass(frozen=True, eq=False)
class IonChannel:
    """
    Voltage/ligand-gated (or passive) ionic conductance.

    Calling the channel with a new maximal conductance returns a new
    channel; the original is left untouched.
    """
    gbar: object  # specific conductance quantity
    conducts: Ion
    inputs: Tuple
    params: Tuple
    kinetics: Tuple[Gate, ...]
    sys: System

    UNIT = SPECIFIC_CONDUCTANCE

    @classmethod
    def build(cls, conducts: Ion, gates: Sequence[Gate],
              max_g=0 * msiemens / cmetre ** 2, name: str = None) -> "IonChannel":
        if name is None:
            raise TypeError("IonChannel.build() requires a name")
        gbar_val = ustrip(max_g, cls.UNIT)
        gates = tuple(gates)

        if not gates:
            g = parameter("g")
            inputs, params = [], [g]
            system = System([], [], params, name, defaults={g: gbar_val})
        else:
            inputs, params, system = kinetic_system(gates, gbar_val, name)

        logger.debug("Built %s channel %s with %d gates, inputs %s",
                     conducts.name, name, len(gates), inputs)
        return cls(max_g, conducts, tuple(inputs), tuple(params), gates, system)

    @property
    def name(self) -> str:
        return self.sys.name

    @property
    def passive(self) -> bool:
        return not self.kinetics

    @property
    def g(self):
        """Total conductance, namespaced for use in a parent system."""
        return self.sys.sym("g")

    def scale(self) -> sp.Symbol:
        """The parameter holding the maximal conductance."""
        return self.sys.local("g" if self.passive else "gbar")

    def __call__(self, new_gbar) -> "IonChannel":
        value = ustrip(new_gbar, self.UNIT)
        return replace(self, gbar=new_gbar, sys=self.sys.with_defaults({self.scale(): value}))

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, {self.conducts.name}, gbar={self.gbar})"


def passive_channel(conducts: Ion, max_g=0 * msiemens / cmetre ** 2,
                    name: str = None) -> IonChannel:
    """Ion channel with static conductance (e.g. leak)."""
    return IonChannel.build(conducts, [], max_g, name=name or f"{conducts.name}Leak")


# ============================================================================
# SYNAPTIC CHANNELS
# ============================================================================

@dataclass(frozen=True, eq=False)
class SynapticChannel(IonChannel):
    """
    Synaptic conductance driven by presynaptic kinetics.

    Always built with the full kinetics path; with no gates the
    conductance is the constant ``gbar``.
    """
    reversal: EquilibriumPotential = None

    UNIT = CONDUCTANCE

    @classmethod
    def build(cls, conducts: Ion, gates: Sequence[Gate], reversal: EquilibriumPotential,
              max_g=0 * msiemens, name: str = None) -> "SynapticChannel":
        if name is None:
            raise TypeError("SynapticChannel.build() requires a name")
        if not isinstance(reversal, EquilibriumPotential) or not reversal.is_constant:
            raise EquilibriumError("Synaptic reversal must be a constant equilibrium potential.")
        gates = tuple(gates)
        inputs, params, system = kinetic_system(gates, ustrip(max_g, cls.UNIT), name)

        logger.debug("Built synapse %s with %d gates, reversal %s", name, len(gates), reversal.sym)
        return cls(max_g, conducts, tuple(inputs), tuple(params), gates, system, reversal)

    @property
    def passive(self) -> bool:
        return False
