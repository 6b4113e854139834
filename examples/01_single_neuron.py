"""
Example 01: Single Neuron Action Potential

Assembles the classic Hodgkin-Huxley soma from its NaV, Kdr and leak
channels, switches on a step current and plots the voltage trace, the
gating variables and the ionic currents.

Level: Beginner
Runtime: ~5 seconds
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import matplotlib.pyplot as plt
import sympy as sp
from brian2.units import msecond

from conductor import SimulationParams, SomaParams, simulation
from conductor.models import hodgkin_huxley


def main():
    print("=== Example 01: Single Neuron Action Potential ===\n")

    step_onset = 5.0    # ms
    amplitude = 0.01    # uA (10 nA)
    step = lambda t, Iapp: sp.Piecewise((amplitude, t >= step_onset), (0.0, True))

    neuron = hodgkin_huxley("soma", params=SomaParams(stimulus=step))
    print(neuron)
    for eq in neuron.sys.eqs:
        print(f"  {eq}")

    problem = simulation(neuron, 50 * msecond)
    sol = problem.solve(SimulationParams(dt=0.01, max_step=0.05))

    V = sol[neuron.Vm]
    print(f"\nSimulation complete: {len(sol.t)} samples, peak Vm = {V.max():.1f} mV")

    # Plot results
    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=True)

    ax = axes[0]
    ax.plot(sol.t, V, 'k-', linewidth=1.5)
    ax.axhline(y=0, color='r', linestyle='--', alpha=0.3, label='0 mV')
    ax.axvline(x=step_onset, color='blue', linestyle=':', alpha=0.5, label='Current onset')
    ax.set_ylabel('Membrane Potential (mV)')
    ax.set_title('Hodgkin-Huxley Neuron: Action Potential')
    ax.legend()
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    ax.plot(sol.t, sol["soma.NaV.m"], 'r-', label='m (Na activation)', linewidth=1.2)
    ax.plot(sol.t, sol["soma.NaV.h"], 'b-', label='h (Na inactivation)', linewidth=1.2)
    ax.plot(sol.t, sol["soma.Kdr.n"], 'g-', label='n (K activation)', linewidth=1.2)
    ax.set_ylabel('Gate Value (0-1)')
    ax.set_title('Ion Channel Gating Variables')
    ax.legend()
    ax.grid(True, alpha=0.3)

    ax = axes[2]
    ax.plot(sol.t, -sol["soma.INaV"], 'r-', label='I_Na (inward)', linewidth=1, alpha=0.8)
    ax.plot(sol.t, -sol["soma.IKdr"], 'g-', label='I_K (outward)', linewidth=1, alpha=0.8)
    ax.plot(sol.t, -sol["soma.Ileak"], 'b-', label='I_L (leak)', linewidth=1, alpha=0.8)
    ax.set_xlabel('Time (ms)')
    ax.set_ylabel('Current (uA)')
    ax.set_title('Ionic Currents')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig('01_single_neuron_results.png', dpi=150)
    print("\nResults saved to: 01_single_neuron_results.png")
    plt.show()


if __name__ == "__main__":
    main()
