"""
Compartments: one isopotential membrane patch with its voltage equation.

Assembly folds conductance subsystems, equilibrium potentials and
auxiliary state conversions into a single system:

    dVm/dt = (Iapp - (sum(I_chan) + Isyn)) / (area * cm)
    I_chan = area * g_chan * (Vm - E_ion)

Virtual per-ion aggregator currents requested by auxiliary conversions
(e.g. net calcium current driving a calcium concentration) are defined
as the sum of the concrete channel currents of that ion.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import sympy as sp

from .base import (
    CURRENT, SPECIFIC_CAPACITANCE, VOLTAGE,
    EquilibriumError, Ion, SomaParams, StructuralError, UnresolvedStateError, ustrip,
)
from .channels import IonChannel
from .ions import (
    ConcentrationRole, CurrentRole, EquilibriumPotential, IonConcentration, MembraneCurrent,
    MembranePotential,
)
from .symbolic import (
    D, Equation, System, get_variables, is_parameter, name_of, parameter, role_of, t,
    unique, variable,
)

logger = logging.getLogger(__name__)


class Geometry(Enum):
    Sphere = "sphere"


@dataclass
class AuxConversion:
    """
    Auxiliary state transformation, e.g. net calcium current to calcium
    concentration. Left-hand-side symbols become compartment states;
    non-parameter symbols on right-hand sides must be produced elsewhere,
    and parameters must be declared here or be compartment parameters.
    Output concentrations start at the resting value given in
    `concentrations` unless `defaults` says otherwise.
    """
    params: List[sp.Symbol]
    eqs: List[Equation]
    defaults: Dict = field(default_factory=dict)
    concentrations: List[IonConcentration] = field(default_factory=list)


def find_equilibrium(gradients: Sequence[EquilibriumPotential], ion: Ion) -> EquilibriumPotential:
    """First equilibrium potential in list order whose ion matches."""
    for erev in gradients:
        if erev.ion is ion:
            return erev
    raise EquilibriumError(f"No equilibrium potential given for {ion.name} channels.")


# ============================================================================
# COMPARTMENT
# ============================================================================

@dataclass(frozen=True, eq=False)
class Compartment:
    geometry: Geometry
    cap: object
    chans: Tuple[IonChannel, ...]
    states: Tuple
    params: Tuple
    sys: System

    @property
    def name(self) -> str:
        return self.sys.name

    @property
    def Vm(self):
        return self.sys.sym("Vm")

    @property
    def Isyn(self):
        return self.sys.sym("Isyn")

    def __repr__(self):
        return f"Compartment({self.name!r}, {self.geometry.name}, channels={[c.name for c in self.chans]})"

    @classmethod
    def build(cls, channels: Sequence[IonChannel], gradients: Sequence[EquilibriumPotential],
              name: str, params: SomaParams = None, aux: Optional[Sequence[AuxConversion]] = None,
              geometry: Geometry = Geometry.Sphere) -> "Compartment":
        p = params or SomaParams()
        for erev in gradients:
            if not isinstance(erev, EquilibriumPotential):
                raise EquilibriumError("Equilibrium potential must be associated with an ion type.")

        Vm = MembranePotential()
        Iapp, Isyn = variable("Iapp"), variable("Isyn")
        cm, area = parameter("cm"), parameter("area")

        params_ = [cm, area]
        states = [Vm, Iapp, Isyn]
        systems = []
        eqs: List[Equation] = []
        required = []  # states consumed but not produced here
        aux_params = []
        currents = []
        defaults = {
            Iapp: ustrip(p.holding, CURRENT),
            area: p.area,
            Vm: ustrip(p.V0, VOLTAGE),
            Isyn: 0.0,
            cm: ustrip(p.capacitance, SPECIFIC_CAPACITANCE),
        }

        if p.stimulus is None:
            eqs.append(Equation(D(Iapp), 0))
        else:
            eqs.append(Equation(Iapp, p.stimulus(t, Iapp)))

        for conversion in aux or []:
            params_.extend(conversion.params)
            outputs = unique(x for eq in conversion.eqs for x in get_variables(eq.lhs))
            resting = {c.sym: c.default() for c in conversion.concentrations
                       if c.value is not None}
            for x in outputs:
                if isinstance(role_of(x), ConcentrationRole) and x in resting:
                    defaults[x] = resting[x]
            defaults.update(conversion.defaults)
            for x in (x for eq in conversion.eqs for x in get_variables(eq.rhs)):
                (aux_params if is_parameter(x) else required).append(x)
            states.extend(outputs)
            eqs.extend(conversion.eqs)

        for chan in channels:
            sub = chan.sys
            systems.append(sub)

            # forward compartment states to the channel; defaults do not
            # cross subsystem boundaries on their own
            for inp in chan.inputs:
                required.append(inp)
                inner = sub.sym(name_of(inp))
                eqs.append(Equation(inp, inner))
                defaults[inner] = inp

            current = MembraneCurrent(chan.conducts, name=sub.name)
            states.append(current)
            currents.append(current)

            erev = find_equilibrium(gradients, chan.conducts)
            E = erev.sym
            eqs.append(Equation(current, area * chan.g * (Vm - E)))
            if E in states or E in params_:
                continue
            if erev.is_constant:
                params_.append(E)
                defaults[E] = erev.default()
            else:
                eqs.append(Equation(E, erev.value))
                states.append(E)
                for x in get_variables(erev.value):
                    if x == E:
                        continue
                    if is_parameter(x):
                        params_.append(x)
                    else:
                        required.append(x)

        undeclared = [x for x in unique(aux_params) if x not in params_]
        if undeclared:
            raise StructuralError(
                f"Compartment '{name}' has undeclared auxiliary parameters: "
                f"{', '.join(name_of(x) for x in undeclared)}"
            )

        states = unique(states)
        unresolved = [x for x in unique(required) if x not in states]
        for x in list(unresolved):
            role = role_of(x)
            if isinstance(role, CurrentRole) and role.aggregate:
                members = [I for I in currents if role_of(I).ion is role.ion]
                if not members:
                    logger.warning("Aggregator %s in %s has no %s channels to sum",
                                   x, name, role.ion.name)
                eqs.append(Equation(x, sp.Add(*members)))
                states.append(x)
                unresolved.remove(x)
        if unresolved:
            raise UnresolvedStateError(
                f"Compartment '{name}' requires states with no defining equation: "
                f"{', '.join(name_of(x) for x in unresolved)}"
            )

        eqs.append(Equation(D(Vm), (Iapp - (sp.Add(*currents) + Isyn)) / (area * cm)))

        system = System(eqs, states, params_, name, defaults=defaults, systems=systems)
        logger.debug("Built compartment %s: %d equations, %d states, %d channels",
                     name, len(eqs), len(system.states), len(systems))
        return cls(geometry, p.capacitance, tuple(channels), system.states, system.params, system)


def soma(channels: Sequence[IonChannel], gradients: Sequence[EquilibriumPotential],
         name: str, params: SomaParams = None,
         aux: Optional[Sequence[AuxConversion]] = None) -> Compartment:
    """Single spherical compartment."""
    return Compartment.build(channels, gradients, name, params=params, aux=aux,
                             geometry=Geometry.Sphere)
