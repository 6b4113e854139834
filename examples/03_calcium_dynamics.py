"""
Example 03: Calcium Dynamics

Adds two calcium channels, a submembrane calcium buffer and a Nernst
calcium reversal to a Hodgkin-Huxley soma. The buffer is driven by the
net calcium current, which the compartment defines as the sum of its
calcium channel currents.

Level: Intermediate
Runtime: ~15 seconds
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import matplotlib.pyplot as plt
from brian2.units import cmetre, msecond, msiemens, namp

from conductor import SimulationParams, SomaParams, simulation, soma
from conductor.models import (
    calcium_buffer, calcium_channel, calcium_nernst, hh_equilibria, hh_leak, hh_potassium,
    hh_sodium,
)


def main():
    print("=== Example 03: Calcium Dynamics ===\n")

    channels = [
        hh_sodium(),
        hh_potassium(),
        hh_leak(),
        calcium_channel(0.5 * msiemens / cmetre ** 2, name="CaT", vhalf=-30.0),
        calcium_channel(0.2 * msiemens / cmetre ** 2, name="CaS", vhalf=-20.0),
    ]
    gradients = [calcium_nernst()] + hh_equilibria()
    neuron = soma(channels, gradients, name="soma",
                  params=SomaParams(holding=8 * namp), aux=[calcium_buffer(tau=100.0)])

    sol = simulation(neuron, 200 * msecond).solve(SimulationParams(dt=0.05, max_step=0.1))
    Cai = sol["soma.Cai"]
    print(f"Peak Vm:  {sol[neuron.Vm].max():.1f} mV")
    print(f"Cai: {Cai[0]:.3f} -> {Cai.max():.3f} uM")

    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=True)

    ax = axes[0]
    ax.plot(sol.t, sol[neuron.Vm], 'k-', linewidth=1.2)
    ax.set_ylabel('Membrane Potential (mV)')
    ax.set_title('Spiking with Calcium Channels')
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    ax.plot(sol.t, sol["soma.ICaT"], 'r-', label='CaT', linewidth=1, alpha=0.8)
    ax.plot(sol.t, sol["soma.ICaS"], 'b-', label='CaS', linewidth=1, alpha=0.8)
    ax.plot(sol.t, sol["soma.ICa"], 'k--', label='net', linewidth=1)
    ax.set_ylabel('Current (uA)')
    ax.set_title('Calcium Currents')
    ax.legend()
    ax.grid(True, alpha=0.3)

    ax = axes[2]
    ax.plot(sol.t, Cai, 'g-', linewidth=1.2)
    ax.set_xlabel('Time (ms)')
    ax.set_ylabel('[Ca]i (uM)')
    ax.set_title('Intracellular Calcium')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig('03_calcium_dynamics_results.png', dpi=150)
    print("\nResults saved to: 03_calcium_dynamics_results.png")
    plt.show()


if __name__ == "__main__":
    main()
