"""
Tests for compartment assembly and ionic quantities.
"""

import pytest
import sys
from pathlib import Path

import sympy as sp
from brian2.units import cmetre, msiemens, mvolt, namp, umetre, umolar
from brian2.units.fundamentalunits import DimensionMismatchError

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conductor import (
    AuxConversion, Concentration, ConductorError, D, EquilibriumError, EquilibriumPotential,
    Equation, Gate, Geometry, Ion, IonChannel, IonConcentration, Location, MembraneCurrent,
    MembranePotential, SomaParams, SteadyStateTau, StructuralError, UnresolvedStateError,
    equilibria, parameter, soma, t, variable,
)
from conductor.models import (
    Cai, calcium_buffer, calcium_channel, calcium_conversion_factor, calcium_nernst,
    hh_equilibria, hh_leak, hh_potassium, hh_sodium, hodgkin_huxley,
)
from conductor.symbolic import role_of

Vm = MembranePotential()
Iapp, Isyn = variable("Iapp"), variable("Isyn")


def equation_for(system, lhs):
    matches = [eq for eq in system.eqs if eq.lhs == lhs]
    assert len(matches) == 1, f"expected one equation for {lhs}, got {len(matches)}"
    return matches[0]


def calcium_soma(name="soma"):
    channels = [
        calcium_channel(name="CaT", vhalf=-30.0),
        calcium_channel(2 * msiemens / cmetre ** 2, name="CaS", vhalf=-40.0),
        hh_leak(),
    ]
    gradients = [calcium_nernst()] + hh_equilibria()
    return soma(channels, gradients, name=name, aux=[calcium_buffer()])


class TestSeeding:
    """Test suite for the intrinsic compartment states."""

    def test_intrinsic_states(self):
        """Vm, Iapp and Isyn are always states."""
        cell = hodgkin_huxley()
        for x in (Vm, Iapp, Isyn):
            assert x in cell.states

    def test_geometry_defaults(self):
        params = SomaParams(area=1e-3, V0=-70 * mvolt, holding=5 * namp)
        cell = hodgkin_huxley(params=params)
        defaults = cell.sys.defaults

        assert float(defaults[parameter("area")]) == pytest.approx(1e-3)
        assert defaults[parameter("cm")] == 1.0
        assert defaults[Vm] == -70.0
        assert float(defaults[Iapp]) == pytest.approx(0.005)
        assert defaults[Isyn] == 0

    def test_geometry_tag(self):
        cell = hodgkin_huxley()
        assert cell.geometry is Geometry.Sphere
        assert cell.name == "soma"

    def test_constant_applied_current(self):
        """Without a stimulus the applied current has zero derivative."""
        cell = hodgkin_huxley()
        assert equation_for(cell.sys, D(Iapp)).rhs == 0

    def test_stimulus_defines_applied_current(self):
        """A stimulus makes Iapp an algebraic function of time."""
        stim = lambda time, current: sp.Piecewise((0.01, time > 5), (0.0, True))
        cell = hodgkin_huxley(params=SomaParams(stimulus=stim))

        eq = equation_for(cell.sys, Iapp)
        assert eq.rhs == stim(t, Iapp)
        assert all(eq.lhs != D(Iapp) for eq in cell.sys.eqs)

    def test_voltage_equation(self):
        cell = hodgkin_huxley()
        area, cm = parameter("area"), parameter("cm")
        currents = [MembraneCurrent(Ion.Sodium, "NaV"), MembraneCurrent(Ion.Potassium, "Kdr"),
                    MembraneCurrent(Ion.Leak, "leak")]

        eq = equation_for(cell.sys, D(Vm))
        expected = (Iapp - (sp.Add(*currents) + Isyn)) / (area * cm)
        assert sp.simplify(eq.rhs - expected) == 0


class TestChannelWiring:
    """Test suite for folding conductances into a compartment."""

    def test_channels_are_subsystems(self):
        cell = hodgkin_huxley()
        assert [s.name for s in cell.sys.systems] == ["NaV", "Kdr", "leak"]
        assert [c.name for c in cell.chans] == ["NaV", "Kdr", "leak"]

    def test_inputs_forwarded(self):
        """Each channel input is bound to the compartment's copy."""
        cell = hodgkin_huxley()
        inner = cell.sys.systems[0].sym("Vm")

        assert Equation(Vm, inner) in cell.sys.eqs
        assert cell.sys.defaults[inner] == Vm

    def test_passive_channel_has_no_forwarding(self):
        cell = hodgkin_huxley()
        leak = cell.sys.systems[2]
        assert not leak.has("Vm")

    def test_current_equation(self):
        cell = hodgkin_huxley()
        ENa, area = parameter("ENa"), parameter("area")
        nav = cell.sys.systems[0]

        eq = equation_for(cell.sys, MembraneCurrent(Ion.Sodium, "NaV"))
        assert eq.rhs == area * nav.sym("g") * (Vm - ENa)

    def test_constant_equilibria_are_parameters(self):
        cell = hodgkin_huxley()
        for name, value in (("ENa", 50.0), ("EK", -77.0), ("El", -54.387)):
            E = parameter(name)
            assert E in cell.params
            assert float(cell.sys.defaults[E]) == pytest.approx(value)

    def test_shared_equilibrium_declared_once(self):
        """Two potassium channels share one EK parameter."""
        chans = [hh_potassium(name="K1"), hh_potassium(name="K2")]
        cell = soma(chans, hh_equilibria(), name="cell")
        assert list(cell.params).count(parameter("EK")) == 1

    def test_first_matching_equilibrium_wins(self):
        gradients = [EquilibriumPotential(Ion.Leak, -60 * mvolt, name="first"),
                     EquilibriumPotential(Ion.Leak, -50 * mvolt, name="second")]
        cell = soma([hh_leak()], gradients, name="cell")

        eq = equation_for(cell.sys, MembraneCurrent(Ion.Leak, "leak"))
        assert parameter("Efirst") in eq.rhs.free_symbols
        assert parameter("Esecond") not in cell.params

    def test_missing_equilibrium(self):
        with pytest.raises(EquilibriumError):
            soma([hh_sodium()], [EquilibriumPotential(Ion.Potassium, -77 * mvolt)], name="cell")

    def test_gradients_must_be_equilibria(self):
        with pytest.raises(EquilibriumError, match="ion type"):
            soma([hh_leak()], [(-54 * mvolt)], name="cell")

    def test_deterministic(self):
        a, b = hodgkin_huxley(), hodgkin_huxley()
        assert a.sys.eqs == b.sys.eqs
        assert a.states == b.states
        assert a.sys.defaults == b.sys.defaults


class TestDynamicEquilibrium:
    """Test suite for state-dependent reversal potentials."""

    def test_becomes_state_with_equation(self):
        cell = calcium_soma()
        ECa = variable("ECa")

        assert ECa in cell.states
        assert equation_for(cell.sys, ECa).rhs == calcium_nernst().value

    def test_single_equation_for_shared_dynamic_equilibrium(self):
        cell = calcium_soma()
        equation_for(cell.sys, variable("ECa"))

    def test_dependencies_must_be_produced(self):
        """A Nernst potential on an unproduced concentration is an error."""
        gradients = [calcium_nernst()] + hh_equilibria()
        with pytest.raises(UnresolvedStateError, match="Cai"):
            soma([calcium_channel()], gradients, name="cell")


class TestAuxConversion:
    """Test suite for auxiliary state conversions and aggregator currents."""

    def test_outputs_are_states(self):
        cell = calcium_soma()
        assert Cai in cell.states

    def test_parameters_and_defaults_registered(self):
        cell = calcium_soma()
        for name in ("fCa", "tauCa", "Ca0"):
            assert parameter(name) in cell.params
        assert float(cell.sys.defaults[parameter("tauCa")]) == 200.0

    def test_concentration_default_seeded(self):
        cell = calcium_soma()
        assert float(cell.sys.defaults[Cai]) == pytest.approx(0.05)

    def test_aggregator_is_sum_of_channel_currents(self):
        """ICa is defined as the sum of every calcium channel current."""
        cell = calcium_soma()
        ICa = MembraneCurrent(Ion.Calcium, aggregate=True)

        eq = equation_for(cell.sys, ICa)
        assert eq.rhs == MembraneCurrent(Ion.Calcium, "CaT") + MembraneCurrent(Ion.Calcium, "CaS")
        assert ICa in cell.states

    def test_aggregator_excludes_other_ions(self):
        cell = calcium_soma()
        ICa = MembraneCurrent(Ion.Calcium, aggregate=True)
        terms = equation_for(cell.sys, ICa).rhs.args
        assert terms
        assert all(role_of(I).ion is Ion.Calcium for I in terms)

    def test_aggregator_without_channels_is_zero(self):
        cell = soma([hh_leak()], hh_equilibria(), name="cell", aux=[calcium_buffer()])
        ICa = MembraneCurrent(Ion.Calcium, aggregate=True)
        assert equation_for(cell.sys, ICa).rhs == 0

    def test_unresolved_requirement(self):
        """A conversion reading a state nobody produces fails loudly."""
        x = variable("x")
        conversion = AuxConversion(params=[], eqs=[Equation(D(x), -variable("mystery"))])
        with pytest.raises(UnresolvedStateError, match="mystery"):
            soma([hh_leak()], hh_equilibria(), name="cell", aux=[conversion])

    def test_undeclared_parameter(self):
        """Parameters read by a conversion must be listed in its params."""
        x, k = variable("x"), parameter("k")
        conversion = AuxConversion(params=[], eqs=[Equation(D(x), -k * x)], defaults={x: 1.0})
        with pytest.raises(StructuralError, match="undeclared auxiliary parameters: k"):
            soma([hh_leak()], hh_equilibria(), name="cell", aux=[conversion])

    def test_compartment_parameters_count_as_declared(self):
        x, k = variable("x"), parameter("k")
        conversion = AuxConversion(params=[k], eqs=[Equation(D(x), -k * x / parameter("cm"))],
                                   defaults={x: 1.0, k: 0.1})
        cell = soma([hh_leak()], hh_equilibria(), name="cell", aux=[conversion])

        assert k in cell.params
        assert x in cell.states

    def test_name_clash_with_aggregator(self):
        """A calcium channel named Ca would shadow the aggregator ICa."""
        channels = [calcium_channel(name="Ca")]
        gradients = [calcium_nernst()] + hh_equilibria()
        with pytest.raises(StructuralError):
            soma(channels, gradients, name="cell", aux=[calcium_buffer()])


def calcium_activated_potassium(name="KCa"):
    """Potassium channel gated on intracellular calcium."""
    ca = Concentration(Ion.Calcium)
    m = Gate.build(SteadyStateTau, m_inf=ca / (ca + 1), tau_m=10.0)
    return IonChannel.build(Ion.Potassium, [m], 5 * msiemens / cmetre ** 2, name=name)


class TestCalciumBuffer:
    """Test suite for the intracellular calcium shell."""

    def test_calcium_gated_channel_shares_buffer_state(self):
        """A channel reading a plain Concentration sees the buffered Cai."""
        channels = [calcium_channel(), calcium_activated_potassium(), hh_leak()]
        gradients = [calcium_nernst()] + hh_equilibria()
        cell = soma(channels, gradients, name="cell", aux=[calcium_buffer()])
        kca = cell.sys.systems[1]

        assert Equation(Cai, kca.sym("Cai")) in cell.sys.eqs
        assert list(cell.states).count(Cai) == 1
        assert float(cell.sys.defaults[Cai]) == pytest.approx(0.05)

    def test_influx_scales_with_area(self):
        ICa = MembraneCurrent(Ion.Calcium, aggregate=True)
        (eq,) = calcium_buffer().eqs
        area, f = parameter("area"), parameter("fCa")

        assert eq.lhs == D(Cai)
        assert sp.expand(eq.rhs.diff(ICa) + f / area) == 0

    def test_conversion_factor_independent_of_area(self):
        small = calcium_soma()
        large = soma([calcium_channel(), hh_leak()], [calcium_nernst()] + hh_equilibria(),
                     name="soma", params=SomaParams(area=4e-3), aux=[calcium_buffer()])
        fCa, area = parameter("fCa"), parameter("area")

        assert small.sys.defaults[fCa] == large.sys.defaults[fCa]
        assert float(small.sys.defaults[area]) != float(large.sys.defaults[area])

    def test_conversion_factor_value(self):
        """1 uA/cm^2 into a 0.1 um shell raises calcium by about 0.518 uM/ms."""
        assert calcium_conversion_factor() == pytest.approx(0.5182, rel=1e-3)
        assert calcium_conversion_factor(0.2 * umetre) == pytest.approx(0.2591, rel=1e-3)

    def test_tau_override(self):
        buffer = calcium_buffer(tau=100.0)
        assert buffer.defaults[parameter("tauCa")] == 100.0
        assert buffer.eqs[0].rhs.has(parameter("tauCa"))


class TestEquilibria:
    """Test suite for the equilibrium potential constructors."""

    def test_pairs(self):
        out = equilibria([(Ion.Sodium, 50 * mvolt), (Ion.Potassium, -77 * mvolt)])
        assert [e.sym for e in out] == [parameter("ENa"), parameter("EK")]

    def test_named_tuple_entry(self):
        (erev,) = equilibria({Ion.Leak: (-60 * mvolt, "pas")})
        assert erev.sym == parameter("Epas")
        assert erev.default() == pytest.approx(-60.0)

    def test_non_ion_key(self):
        with pytest.raises(EquilibriumError, match="ion type"):
            equilibria([("Na", 50 * mvolt)])

    def test_tuple_name_must_be_string(self):
        with pytest.raises(EquilibriumError, match="must be a symbol"):
            equilibria([(Ion.Sodium, (50 * mvolt, 3))])

    def test_dynamic_value_is_state(self):
        erev = EquilibriumPotential(Ion.Calcium, 12.2 * sp.log(3000 / Cai))
        assert not erev.is_constant
        assert erev.sym == variable("ECa")

    def test_mixed_is_leak(self):
        assert Ion.Mixed is Ion.Leak


class TestConcentration:
    """Test suite for concentration and current symbols."""

    def test_location_suffix(self):
        assert str(Concentration(Ion.Potassium, location=Location.Outside)) == "Ko(t)"
        assert str(Concentration(Ion.Sodium)) == "Nai(t)"

    def test_default_in_micromolar(self):
        conc = IonConcentration(Ion.Calcium, 2 * umolar, name="Cb")
        assert conc.default() == pytest.approx(2.0)
        assert conc.sym == Concentration(Ion.Calcium, name="Cb")

    def test_identity_ignores_resting_value(self):
        """Concentrations with different resting values are the same state."""
        low = IonConcentration(Ion.Calcium, 0.05 * umolar)
        high = IonConcentration(Ion.Calcium, 1 * umolar)
        assert low.sym == high.sym == Concentration(Ion.Calcium) == Cai

    def test_concentration_requires_ion(self):
        with pytest.raises(ConductorError, match="ion type"):
            IonConcentration("Ca", 1 * umolar)

    def test_resting_value_must_be_molarity(self):
        with pytest.raises(DimensionMismatchError):
            IonConcentration(Ion.Calcium, 1 * mvolt)

    def test_current_name(self):
        assert str(MembraneCurrent(Ion.Sodium)) == "INa(t)"
        assert str(MembraneCurrent(Ion.Sodium, name="NaV")) == "INaV(t)"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
