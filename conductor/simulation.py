"""
Simulation handoff: structural simplification and initial-value problems.

  - structural_simplify: flatten a system and eliminate algebraic states,
    leaving explicit ODEs plus observed expressions
  - ODEProblem: numpy right-hand side compiled with sympy.lambdify,
    integrated with scipy's solve_ivp
  - simulation: compartment/network -> solver-ready problem over [0, time]
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import sympy as sp
from scipy.integrate import solve_ivp

from .base import (
    TIME, SimulationError, SimulationParams, StructuralError, UnresolvedStateError, ustrip,
)
from .compartments import Compartment
from .networks import Network
from .symbolic import (
    D, Equation, System, get_variables, is_parameter, is_state, name_of, t, unique,
)

logger = logging.getLogger(__name__)

MAX_DEFAULT_DEPTH = 50


# ============================================================================
# STRUCTURAL SIMPLIFICATION
# ============================================================================

@dataclass(frozen=True, eq=False)
class SimplifiedSystem:
    name: str
    states: Tuple          # differential states, in equation order
    rhs: Tuple             # dx/dt for each state
    observed: Dict         # eliminated algebraic state -> expression
    params: Tuple
    defaults: Dict

    def lookup(self, key):
        """Resolve a symbol or dotted name to a known variable."""
        candidates = list(self.states) + list(self.observed) + list(self.params)
        if isinstance(key, str):
            for x in candidates:
                if name_of(x) == key:
                    return x
        else:
            key = sp.sympify(key)
            if key in candidates:
                return key
        raise KeyError(f"Unknown variable {key} in system '{self.name}'")


def _solve_for(eq: Equation, x):
    if eq.lhs == x and x not in get_variables(eq.rhs):
        return eq.rhs
    if eq.rhs == x and x not in get_variables(eq.lhs):
        return eq.lhs
    solutions = sp.solve(eq.lhs - eq.rhs, x)
    if len(solutions) != 1:
        raise StructuralError(f"Cannot solve {eq} uniquely for {x}")
    return solutions[0]


def _eliminate(algebraic: Sequence[Equation], differential: Mapping) -> Dict:
    """Solve algebraic equations one unknown at a time."""
    observed = {}
    pending = list(algebraic)
    while pending:
        deferred = []
        for eq in pending:
            unknowns = [x for x in unique(get_variables(eq.lhs) + get_variables(eq.rhs))
                        if is_state(x) and x not in differential and x not in observed]
            if not unknowns:
                raise StructuralError(f"Redundant equation, all its states are determined: {eq}")
            if len(unknowns) > 1:
                deferred.append(eq)
                continue
            x = unknowns[0]
            observed[x] = sp.sympify(_solve_for(eq, x)).xreplace(observed)
        if len(deferred) == len(pending):
            raise StructuralError(
                "Algebraic loop or underdetermined system: "
                + "; ".join(str(eq) for eq in deferred)
            )
        pending = deferred
    return observed


def structural_simplify(system: System) -> SimplifiedSystem:
    flat = system.flatten()
    differential = {}
    algebraic = []
    for eq in flat.eqs:
        if eq.is_differential:
            x = eq.lhs.expr
            if x in differential:
                raise StructuralError(f"More than one differential equation for {x}")
            differential[x] = eq.rhs
        else:
            algebraic.append(eq)

    observed = _eliminate(algebraic, differential)
    rhs = [differential[x].xreplace(observed) for x in differential]

    undefined = unique(x for expr in rhs for x in get_variables(expr)
                       if is_state(x) and x not in differential)
    if undefined:
        raise UnresolvedStateError(
            f"States without equations in '{flat.name}': {', '.join(name_of(x) for x in undefined)}"
        )

    params = unique(x for expr in rhs + list(observed.values()) for x in get_variables(expr)
                    if is_parameter(x))
    logger.debug("Simplified %s: %d equations -> %d states, %d observed",
                 flat.name, len(flat.eqs), len(differential), len(observed))
    return SimplifiedSystem(flat.name, tuple(differential), tuple(rhs), observed,
                            tuple(params), flat.defaults)


# ============================================================================
# PROBLEMS AND SOLUTIONS
# ============================================================================

class ODEProblem:
    """
    Explicit ODE problem with every parameter bound to a number.

    `u0` and `p` override defaults; keys may be symbols or dotted names.
    """

    def __init__(self, system: SimplifiedSystem, tspan, u0: Mapping = None, p: Mapping = None):
        self.system = system
        self.tspan = (float(tspan[0]), float(tspan[1]))

        defaults = dict(system.defaults)
        for overrides in (u0 or {}, p or {}):
            for key, value in overrides.items():
                defaults[system.lookup(key)] = sp.sympify(value)
        self._defaults = defaults

        self.p = {x: self._resolve(x) for x in system.params}
        self.u0 = np.array([self._resolve(x) for x in system.states], dtype=float)

        self._y = [sp.Dummy(f"y{i}") for i in range(len(system.states))]
        self._subs = dict(zip(system.states, self._y))
        self._subs.update({x: sp.Float(v) for x, v in self.p.items()})
        self._f = self.compile(system.rhs)

    def _resolve(self, x) -> float:
        value = sp.sympify(x)
        for _ in range(MAX_DEFAULT_DEPTH):
            # states are x(t); substituting t first would freeze them as x(t0)
            free = get_variables(value)
            if not free:
                return float(value.subs(t, self.tspan[0]))
            mapping = {}
            for y in free:
                if y in self.system.observed:
                    mapping[y] = self.system.observed[y]
                elif y in self._defaults:
                    mapping[y] = self._defaults[y]
                else:
                    raise StructuralError(f"No default value for {name_of(y)} (needed by {name_of(x)})")
            value = value.xreplace(mapping)
        raise StructuralError(f"Circular default values while resolving {name_of(x)}")

    def compile(self, exprs):
        """numpy callable ``f(t, y)`` for expressions over states and parameters."""
        exprs = [sp.sympify(e).xreplace(self._subs) for e in exprs]
        return sp.lambdify((t, self._y), exprs, modules="numpy")

    def rhs(self, time, y) -> np.ndarray:
        return np.asarray(self._f(time, y), dtype=float)

    def solve(self, params: SimulationParams = None) -> "Solution":
        params = params or SimulationParams()
        t_eval = None
        if params.dt is not None:
            n = int(round((self.tspan[1] - self.tspan[0]) / params.dt)) + 1
            t_eval = np.linspace(self.tspan[0], self.tspan[1], n)

        logger.info("Solving %s over %s ms (%d states, method %s)",
                    self.system.name, self.tspan, len(self.u0), params.method)
        result = solve_ivp(self.rhs, self.tspan, self.u0, method=params.method, t_eval=t_eval,
                           rtol=params.rtol, atol=params.atol, max_step=params.max_step)
        if not result.success:
            raise SimulationError(f"Integration of {self.system.name} failed: {result.message}")
        logger.info("Solved %s: %d time points", self.system.name, len(result.t))
        return Solution(self, result.t, result.y)


class Solution:
    """Integrated trajectories; index with a state, observed variable or parameter."""

    def __init__(self, problem: ODEProblem, t: np.ndarray, y: np.ndarray):
        self.problem = problem
        self.t = t
        self.y = y

    def __getitem__(self, key) -> np.ndarray:
        system = self.problem.system
        x = system.lookup(key)
        if x in system.states:
            return self.y[list(system.states).index(x)]
        expr = system.observed.get(x, x)
        f = self.problem.compile([expr])
        values = np.asarray(f(self.t, self.y)[0], dtype=float)
        return np.broadcast_to(values, self.t.shape).copy()


# ============================================================================
# DRIVER
# ============================================================================

def simulation(model, time, u0: Optional[Mapping] = None, p: Optional[Mapping] = None) -> ODEProblem:
    """
    Solver-ready problem over ``[0, time]`` using declared defaults.

    A lone compartment has no synaptic input, so its Isyn is pinned.
    """
    duration = ustrip(time, TIME)
    if isinstance(model, Compartment):
        system = System([Equation(D(model.Isyn), 0)], [], [], "simulation", systems=[model.sys])
    elif isinstance(model, Network):
        system = model.sys
    else:
        system = model
    return ODEProblem(structural_simplify(system), (0.0, duration), u0=u0, p=p)
