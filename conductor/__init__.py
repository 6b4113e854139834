"""
Conductor: declarative Hodgkin-Huxley style neuron models

Compose gating kinetics, conductances, compartments and synaptic networks
into symbolic equation systems, then hand them to a numerical solver.
"""

# Base types and utilities
from .base import (
    Ion,
    Location,
    SomaParams,
    SimulationParams,
    FARADAY,
    ustrip,
    ConductorError,
    GateError,
    EquilibriumError,
    UnresolvedStateError,
    StructuralError,
    SimulationError,
)

# Symbolic substrate
from .symbolic import (
    t,
    D,
    Equation,
    System,
    variable,
    parameter,
    get_variables,
)

# Ionic quantities
from .ions import (
    MembranePotential,
    MembraneCurrent,
    Concentration,
    IonConcentration,
    EquilibriumPotential,
    Equilibrium,
    equilibria,
)

# Gating kinetics
from .gates import AlphaBeta, SteadyStateTau, Gate

# Conductances
from .channels import IonChannel, SynapticChannel, passive_channel

# Compartments and networks
from .compartments import AuxConversion, Compartment, Geometry, soma
from .networks import Edge, Network

# Solver handoff
from .simulation import ODEProblem, Solution, structural_simplify, simulation

__version__ = "0.1.0"
__all__ = [
    # Base
    "Ion", "Location", "SomaParams", "SimulationParams", "FARADAY", "ustrip",
    "ConductorError", "GateError", "EquilibriumError", "UnresolvedStateError",
    "StructuralError", "SimulationError",
    # Symbolic
    "t", "D", "Equation", "System", "variable", "parameter", "get_variables",
    # Ions
    "MembranePotential", "MembraneCurrent", "Concentration", "IonConcentration",
    "EquilibriumPotential", "Equilibrium", "equilibria",
    # Gates
    "AlphaBeta", "SteadyStateTau", "Gate",
    # Conductances
    "IonChannel", "SynapticChannel", "passive_channel",
    # Compartments and networks
    "AuxConversion", "Compartment", "Geometry", "soma", "Edge", "Network",
    # Simulation
    "ODEProblem", "Solution", "structural_simplify", "simulation",
]
