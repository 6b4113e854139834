"""
Example 02: Synaptic Pair

Two Hodgkin-Huxley somata coupled by an excitatory synapse. The
presynaptic cell fires under a holding current; each of its spikes opens
the synapse and depolarizes the postsynaptic cell.

Level: Beginner
Runtime: ~10 seconds
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import matplotlib.pyplot as plt
from brian2.units import msecond, msiemens, namp

from conductor import Network, SimulationParams, SomaParams, simulation
from conductor.models import excitatory_synapse, hodgkin_huxley


def main():
    print("=== Example 02: Synaptic Pair ===\n")

    pre = hodgkin_huxley("pre", params=SomaParams(holding=10 * namp))
    post = hodgkin_huxley("post")
    synapse = excitatory_synapse(max_g=0.01 * msiemens)

    network = Network.build([pre, post], [(pre, post, synapse)])
    print(network)
    print(f"Synapse instances: {network.instances}")

    sol = simulation(network, 100 * msecond).solve(SimulationParams(dt=0.05, max_step=0.1))
    instance = network.instances[0]

    print(f"Presynaptic peak:  {sol[pre.Vm].max():.1f} mV")
    print(f"Postsynaptic peak: {sol[post.Vm].max():.1f} mV")

    fig, axes = plt.subplots(2, 1, figsize=(12, 7), sharex=True)

    ax = axes[0]
    ax.plot(sol.t, sol[pre.Vm], 'b-', linewidth=1.2, label='pre')
    ax.plot(sol.t, sol[post.Vm], 'r-', linewidth=1.2, label='post')
    ax.set_ylabel('Membrane Potential (mV)')
    ax.set_title('Excitatory Coupling')
    ax.legend()
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    ax.plot(sol.t, sol[f"{instance}.g"], 'k-', linewidth=1.2)
    ax.set_xlabel('Time (ms)')
    ax.set_ylabel('Conductance (mS)')
    ax.set_title(f'Synaptic Conductance ({instance})')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig('02_synaptic_pair_results.png', dpi=150)
    print("\nResults saved to: 02_synaptic_pair_results.png")
    plt.show()


if __name__ == "__main__":
    main()
