"""
Symbolic substrate built on sympy.

States are applied undefined functions of time (``Vm(t)``) and parameters
are plain symbols. Role metadata (current, concentration) lives in an
explicit ``role`` attribute of the state's function class.

  - Equation: ``lhs ~ rhs`` value type
  - System: equations, states, parameters and defaults, with nested
    subsystems that are namespaced (``"NaV.g"``) when flattened
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

import sympy as sp
from sympy.core.function import AppliedUndef

from .base import StructuralError

logger = logging.getLogger(__name__)


# ============================================================================
# SYMBOLS
# ============================================================================

t = sp.Symbol("t")


def D(expr) -> sp.Derivative:
    """First-order time derivative."""
    return sp.Derivative(expr, t)


def variable(name: str, role=None) -> sp.Expr:
    """Time-varying state ``name(t)``, optionally tagged with a hashable role."""
    if role is None:
        return sp.Function(name)(t)
    return sp.Function(name, role=role)(t)


def parameter(name: str) -> sp.Symbol:
    """Time-invariant parameter."""
    return sp.Symbol(name)


def is_state(x) -> bool:
    return isinstance(x, AppliedUndef) and x.args == (t,)


def is_parameter(x) -> bool:
    return isinstance(x, sp.Symbol) and x != t


def role_of(x):
    if isinstance(x, AppliedUndef):
        return getattr(x.func, "role", None)
    return None


def name_of(x) -> str:
    if isinstance(x, AppliedUndef):
        return x.func.__name__
    return x.name


def sort_key(x):
    return (name_of(x), sp.default_sort_key(x))


def get_variables(expr) -> List[sp.Expr]:
    """Free states and parameters of `expr`, sorted by name."""
    expr = sp.sympify(expr)
    found = {a for a in expr.atoms(AppliedUndef) if is_state(a)}
    found |= {s for s in expr.free_symbols if is_parameter(s)}
    return sorted(found, key=sort_key)


def unique(items: Iterable) -> list:
    """Drop structural duplicates, keeping first occurrence order."""
    return list(dict.fromkeys(items))


# ============================================================================
# NAMESPACING
# ============================================================================

def rename(x, prefix: str):
    new_name = f"{prefix}.{name_of(x)}"
    if is_state(x):
        return variable(new_name, role_of(x))
    return sp.Symbol(new_name, **x.assumptions0)


def namespace(expr, prefix: str):
    """Prefix every state and parameter in `expr` with ``prefix.``."""
    expr = sp.sympify(expr)
    mapping = {x: rename(x, prefix) for x in get_variables(expr)}
    return expr.xreplace(mapping)


# ============================================================================
# EQUATIONS
# ============================================================================

@dataclass(frozen=True)
class Equation:
    """``lhs ~ rhs``. Differential when the left-hand side is ``D(x)``."""
    lhs: sp.Expr
    rhs: sp.Expr

    def __post_init__(self):
        object.__setattr__(self, "lhs", sp.sympify(self.lhs))
        object.__setattr__(self, "rhs", sp.sympify(self.rhs))

    @property
    def is_differential(self) -> bool:
        return isinstance(self.lhs, sp.Derivative)

    def xreplace(self, mapping) -> "Equation":
        return Equation(self.lhs.xreplace(mapping), self.rhs.xreplace(mapping))

    def namespaced(self, prefix: str) -> "Equation":
        return Equation(namespace(self.lhs, prefix), namespace(self.rhs, prefix))

    def __str__(self):
        return f"{self.lhs} ~ {self.rhs}"


# ============================================================================
# SYSTEMS
# ============================================================================

class FlatSystem(NamedTuple):
    name: str
    eqs: List[Equation]
    states: List[sp.Expr]
    params: List[sp.Symbol]
    defaults: Dict[sp.Expr, sp.Expr]


class System:
    """
    A composable set of equations over time `t`.

    Own states and parameters are referenced unprefixed; subsystem
    variables are reached through ``sym("child.x")`` which returns them
    namespaced by this system's name.
    """

    def __init__(self, eqs: Sequence[Equation], states: Sequence, params: Sequence,
                 name: str, defaults: Optional[Dict] = None,
                 systems: Optional[Sequence["System"]] = None):
        self.name = name
        self.eqs = tuple(eqs)
        self.states = tuple(unique(states))
        self.params = tuple(unique(params))
        self.defaults = {sp.sympify(k): sp.sympify(v) for k, v in (defaults or {}).items()}
        self.systems = tuple(systems or ())
        self._check_names()

    def _check_names(self):
        seen = set()
        for x in self.states + self.params:
            name = name_of(x)
            if name in seen:
                raise StructuralError(f"Duplicate variable name '{name}' in system '{self.name}'")
            seen.add(name)
        children = set()
        for sub in self.systems:
            if sub.name in children:
                raise StructuralError(f"Duplicate subsystem name '{sub.name}' in system '{self.name}'")
            children.add(sub.name)

    def __repr__(self):
        return (f"System({self.name!r}: {len(self.eqs)} equations, "
                f"{len(self.states)} states, {len(self.params)} parameters, "
                f"{len(self.systems)} subsystems)")

    def has(self, name: str) -> bool:
        return self.local(name) is not None

    def local(self, name: str):
        """Own (or nested, dotted) variable without this system's prefix."""
        head, _, rest = name.partition(".")
        if rest:
            for sub in self.systems:
                if sub.name == head:
                    inner = sub.local(rest)
                    return None if inner is None else namespace(inner, head)
            return None
        for x in self.states + self.params:
            if name_of(x) == name:
                return x
        return None

    def sym(self, name: str):
        """Variable `name` as seen from a parent system."""
        x = self.local(name)
        if x is None:
            raise KeyError(f"System '{self.name}' has no variable '{name}'")
        return namespace(x, self.name)

    def renamed(self, name: str) -> "System":
        return System(self.eqs, self.states, self.params, name,
                      defaults=self.defaults, systems=self.systems)

    def with_defaults(self, updates: Dict) -> "System":
        defaults = dict(self.defaults)
        defaults.update({sp.sympify(k): sp.sympify(v) for k, v in updates.items()})
        return System(self.eqs, self.states, self.params, self.name,
                      defaults=defaults, systems=self.systems)

    def flatten(self) -> FlatSystem:
        """Inline subsystems; their variables are prefixed with their names."""
        eqs = list(self.eqs)
        states = list(self.states)
        params = list(self.params)
        defaults = {}
        for sub in self.systems:
            flat = sub.flatten()
            prefix = sub.name
            eqs.extend(eq.namespaced(prefix) for eq in flat.eqs)
            states.extend(namespace(x, prefix) for x in flat.states)
            params.extend(namespace(x, prefix) for x in flat.params)
            defaults.update({namespace(k, prefix): namespace(v, prefix)
                             for k, v in flat.defaults.items()})
        defaults.update(self.defaults)
        return FlatSystem(self.name, eqs, unique(states), unique(params), defaults)
