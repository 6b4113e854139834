"""
Ready-made building blocks.

  - Hodgkin & Huxley (1952) squid axon channels: NaV (m^3 h), Kdr (n^4), leak
  - First-order excitatory synapse
  - Low-threshold calcium channel, submembrane calcium buffer and
    Nernst calcium reversal

Rate constants use the modern sign convention (rest at -65 mV).
"""

import sympy as sp
from brian2.units import cmetre, msecond, msiemens, mvolt, uamp, umetre, umolar

from .base import FARADAY, Ion, Location, SomaParams, ustrip
from .channels import IonChannel, SynapticChannel, passive_channel
from .compartments import AuxConversion, Compartment, soma
from .gates import AlphaBeta, Gate, SteadyStateTau
from .ions import (
    EquilibriumPotential, IonConcentration, MembraneCurrent, MembranePotential, equilibria,
)
from .symbolic import D, Equation, parameter

Vm = MembranePotential()


# ============================================================================
# HODGKIN-HUXLEY
# ============================================================================

def hh_sodium(max_g=120 * msiemens / cmetre ** 2, name: str = "NaV") -> IonChannel:
    m = Gate.build(AlphaBeta,
                   alpha_m=0.1 * (Vm + 40) / (1 - sp.exp(-(Vm + 40) / 10)),
                   beta_m=4 * sp.exp(-(Vm + 65) / 18),
                   exponent=3)
    h = Gate.build(AlphaBeta,
                   alpha_h=0.07 * sp.exp(-(Vm + 65) / 20),
                   beta_h=1 / (1 + sp.exp(-(Vm + 35) / 10)))
    return IonChannel.build(Ion.Sodium, [m, h], max_g, name=name)


def hh_potassium(max_g=36 * msiemens / cmetre ** 2, name: str = "Kdr") -> IonChannel:
    n = Gate.build(AlphaBeta,
                   alpha_n=0.01 * (Vm + 55) / (1 - sp.exp(-(Vm + 55) / 10)),
                   beta_n=0.125 * sp.exp(-(Vm + 65) / 80),
                   exponent=4)
    return IonChannel.build(Ion.Potassium, [n], max_g, name=name)


def hh_leak(max_g=0.3 * msiemens / cmetre ** 2, name: str = "leak") -> IonChannel:
    return passive_channel(Ion.Leak, max_g, name=name)


def hh_equilibria():
    return equilibria([
        (Ion.Sodium, 50 * mvolt),
        (Ion.Potassium, -77 * mvolt),
        (Ion.Leak, -54.387 * mvolt),
    ])


def hodgkin_huxley(name: str = "soma", params: SomaParams = None) -> Compartment:
    """Classic three-channel HH soma."""
    return soma([hh_sodium(), hh_potassium(), hh_leak()], hh_equilibria(), name=name, params=params)


# ============================================================================
# SYNAPSES
# ============================================================================

def excitatory_synapse(max_g=0.005 * msiemens, name: str = "AMPA",
                       reversal=0 * mvolt) -> SynapticChannel:
    """Opens while the presynaptic membrane is depolarized past -35 mV."""
    m = Gate.build(SteadyStateTau,
                   m_inf=1 / (1 + sp.exp(-(Vm + 35) / 2)),
                   tau_m=2.0)
    erev = EquilibriumPotential(Ion.Mixed, reversal, name=name)
    return SynapticChannel.build(Ion.Mixed, [m], erev, max_g, name=name)


# ============================================================================
# CALCIUM
# ============================================================================

CA_REST = 0.05 * umolar  # Resting intracellular calcium
CA_INSIDE = IonConcentration(Ion.Calcium, CA_REST, Location.Inside)
Cai = CA_INSIDE.sym


def calcium_channel(max_g=1 * msiemens / cmetre ** 2, name: str = "CaT",
                    vhalf: float = -30.0) -> IonChannel:
    m = Gate.build(SteadyStateTau,
                   m_inf=1 / (1 + sp.exp(-(Vm - vhalf) / 6)),
                   tau_m=1.5,
                   exponent=2)
    return IonChannel.build(Ion.Calcium, [m], max_g, name=name)


def calcium_conversion_factor(depth=0.1 * umetre) -> float:
    """
    uM/ms of intracellular calcium per uA/cm^2 of calcium current density
    entering a submembrane shell of thickness `depth`.
    """
    return ustrip(1 * uamp / cmetre ** 2 / (2 * FARADAY * depth), umolar / msecond)


def calcium_buffer(tau: float = 200.0, depth=0.1 * umetre) -> AuxConversion:
    """
    Intracellular calcium driven by the net calcium current:

        dCai/dt = -f * ICa / area - (Cai - Ca0) / tau_Ca

    `area` is the host compartment's membrane area, so the current
    density (and with it the influx) follows the compartment geometry.
    """
    ICa = MembraneCurrent(Ion.Calcium, aggregate=True)
    f, tau_ca, ca0 = parameter("fCa"), parameter("tauCa"), parameter("Ca0")
    area = parameter("area")
    return AuxConversion(
        params=[f, tau_ca, ca0],
        eqs=[Equation(D(Cai), -f * ICa / area - (Cai - ca0) / tau_ca)],
        defaults={
            f: calcium_conversion_factor(depth),
            tau_ca: tau,
            ca0: ustrip(CA_REST, umolar),
        },
        concentrations=[CA_INSIDE],
    )


def calcium_nernst(outside: float = 3000.0) -> EquilibriumPotential:
    """Dynamic calcium reversal, 12.2 mV * ln(Cao / Cai) with Cao in uM."""
    return EquilibriumPotential(Ion.Calcium, 12.2 * sp.log(outside / Cai))
