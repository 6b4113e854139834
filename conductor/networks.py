"""
Networks: compartments coupled through synaptic channels.

The topology is a sequence of directed edges (pre, post, synapse). Every
edge gets its own uniquely named copy of the synapse subsystem. Per
synapse type, ordinals count down from the number of edges of that type,
so the first edge seen gets the highest ordinal.

The postsynaptic current of each target is

    Isyn_post = sum(g_syn * (Vm_post - E_syn))

and compartments without incoming edges keep ``D(Isyn) ~ 0``.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Sequence, Tuple

from .base import ConductorError, StructuralError
from .channels import SynapticChannel
from .compartments import Compartment
from .symbolic import D, Equation, System

logger = logging.getLogger(__name__)


class Edge(NamedTuple):
    pre: Compartment
    post: Compartment
    synapse: SynapticChannel


def _collect_compartments(neurons: Iterable[Compartment], edges: Sequence[Edge]):
    found = {}
    for n in list(neurons) + [c for e in edges for c in (e.pre, e.post)]:
        found.setdefault(id(n), n)
    compartments = list(found.values())
    names = [c.name for c in compartments]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise StructuralError(f"Compartment names must be unique in a network: {duplicates}")
    return compartments


@dataclass(frozen=True, eq=False)
class Network:
    compartments: Tuple[Compartment, ...]
    topology: Tuple[Edge, ...]
    instances: Tuple[str, ...]  # synapse instance names, in edge order
    sys: System

    @property
    def name(self) -> str:
        return self.sys.name

    def __repr__(self):
        return (f"Network({self.name!r}, {len(self.compartments)} compartments, "
                f"{len(self.topology)} synapses)")

    @classmethod
    def build(cls, neurons: Iterable[Compartment], topology: Iterable,
              name: str = "network") -> "Network":
        edges = [Edge(*edge) for edge in topology]
        for edge in edges:
            if not isinstance(edge.synapse, SynapticChannel):
                raise ConductorError(f"Edge {edge.pre.name} -> {edge.post.name} needs a SynapticChannel")
        compartments = _collect_compartments(neurons, edges)

        systems = [c.sys for c in compartments]
        eqs = []
        params = []
        defaults = {}

        remaining = Counter(edge.synapse.name for edge in edges)

        for edge in edges:
            erev = edge.synapse.reversal
            if erev.sym not in params:
                params.append(erev.sym)
                defaults[erev.sym] = erev.default()
            elif defaults[erev.sym] != erev.default():
                raise StructuralError(f"Conflicting values for reversal potential {erev.sym}")

        synaptic = {}  # postsynaptic Isyn -> accumulated rhs
        instances = []
        for edge in edges:
            kind = edge.synapse.name
            instance = edge.synapse.sys.renamed(f"{kind}{remaining[kind]}")
            remaining[kind] -= 1
            systems.append(instance)
            instances.append(instance.name)

            if instance.has("Vm"):
                inner = instance.sym("Vm")
                eqs.append(Equation(inner, edge.pre.Vm))
                defaults[inner] = edge.pre.Vm

            term = instance.sym("g") * (edge.post.Vm - edge.synapse.reversal.sym)
            target = edge.post.Isyn
            synaptic[target] = synaptic[target] + term if target in synaptic else term

        for c in compartments:
            if c.Isyn not in synaptic:
                eqs.append(Equation(D(c.Isyn), 0))
        eqs.extend(Equation(isyn, rhs) for isyn, rhs in synaptic.items())

        system = System(eqs, [], params, name, defaults=defaults, systems=systems)
        logger.debug("Built network %s: %d compartments, synapses %s",
                     name, len(compartments), instances)
        return cls(tuple(compartments), tuple(edges), tuple(instances), system)
