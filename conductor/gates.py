"""
Gating variables: first-order kinetics of channel open probability.

Two rate-law families are supported:
  - AlphaBeta:      dx/dt = alpha*(1 - x) - beta*x,  x_inf = alpha/(alpha + beta)
  - SteadyStateTau: dx/dt = (x_inf - x)/tau_x
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, FrozenSet, Optional, Union

import sympy as sp

from .base import GateError
from .symbolic import D, Equation, variable


# ============================================================================
# KINETICS
# ============================================================================

@dataclass(frozen=True)
class AlphaBeta:
    """Forward/backward rate form for state `name`."""
    name: str
    alpha: sp.Expr
    beta: sp.Expr
    exponent: float = 1.0

    KEYWORDS: ClassVar[Dict[FrozenSet[str], str]] = {
        frozenset({"alpha_m", "beta_m"}): "m",
        frozenset({"alpha_h", "beta_h"}): "h",
        frozenset({"alpha_n", "beta_n"}): "n",
    }

    def __post_init__(self):
        object.__setattr__(self, "alpha", sp.sympify(self.alpha))
        object.__setattr__(self, "beta", sp.sympify(self.beta))

    @classmethod
    def from_keywords(cls, name: str, exponent: float, rates: Dict) -> "AlphaBeta":
        return cls(name, rates[f"alpha_{name}"], rates[f"beta_{name}"], exponent)

    def equation(self, x) -> Equation:
        return Equation(D(x), self.alpha * (1 - x) - self.beta * x)

    def steady_state(self) -> sp.Expr:
        return self.alpha / (self.alpha + self.beta)


@dataclass(frozen=True)
class SteadyStateTau:
    """Steady-state/time-constant form for state `name`."""
    name: str
    steady: sp.Expr
    tau: sp.Expr
    exponent: float = 1.0

    KEYWORDS: ClassVar[Dict[FrozenSet[str], str]] = {
        frozenset({"m_inf", "tau_m"}): "m",
        frozenset({"h_inf", "tau_h"}): "h",
    }

    def __post_init__(self):
        object.__setattr__(self, "steady", sp.sympify(self.steady))
        object.__setattr__(self, "tau", sp.sympify(self.tau))

    @classmethod
    def from_keywords(cls, name: str, exponent: float, rates: Dict) -> "SteadyStateTau":
        return cls(name, rates[f"{name}_inf"], rates[f"tau_{name}"], exponent)

    def equation(self, x) -> Equation:
        return Equation(D(x), (self.steady - x) / self.tau)

    def steady_state(self) -> sp.Expr:
        return self.steady


Kinetics = Union[AlphaBeta, SteadyStateTau]


# ============================================================================
# GATE
# ============================================================================

@dataclass(frozen=True)
class Gate:
    """
    One gating variable and its ODE.

    The exponent is the power applied when the gate contributes to a
    conductance product; it is only written out when it differs from 1.
    """
    kinetics: Kinetics

    @classmethod
    def build(cls, model, exponent: float = 1.0, **rates) -> "Gate":
        """
        Construct from named rates, e.g.
        ``Gate.build(AlphaBeta, alpha_m=..., beta_m=..., exponent=3)``.
        """
        if len(rates) != 2:
            raise GateError("Invalid number of input equations.")
        name = model.KEYWORDS.get(frozenset(rates))
        if name is None:
            raise GateError(f"Invalid keyword arguments for {model.__name__}: {sorted(rates)}")
        return cls(model.from_keywords(name, exponent, rates))

    @property
    def sym(self) -> sp.Expr:
        return variable(self.kinetics.name)

    @property
    def equation(self) -> Equation:
        return self.kinetics.equation(self.sym)

    @property
    def steady_state(self) -> Optional[sp.Expr]:
        return self.kinetics.steady_state()

    @property
    def exponent(self) -> float:
        return self.kinetics.exponent

    @property
    def has_exponent(self) -> bool:
        return self.exponent != 1

    @property
    def has_steady_state(self) -> bool:
        return self.steady_state is not None

    def power(self) -> sp.Expr:
        """Contribution to the conductance product."""
        if not self.has_exponent:
            return self.sym
        p = self.exponent
        return self.sym ** (sp.Integer(int(p)) if float(p).is_integer() else sp.Float(p))
