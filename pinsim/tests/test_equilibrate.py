# pinsim/tests/test_equilibrate.py
"""End-to-end checks of the equilibration ladder with the reference integrator."""
from __future__ import annotations

import math

import numpy as np
import pytest

from pinsim.adapters.integrator import RelaxationIntegrator
from pinsim.errors import StabilizationError
from pinsim.models.params import CARRIER_MOBILITIES, SR_LIFETIMES, DeviceParams, pin_params
from pinsim.models.solution import Solution
from pinsim.solver.continuation import ContinuationRunner
from pinsim.solver.stabilization import verify_stabilization
from pinsim.workflows.equilibrate import DELIVERABLES, Equilibria, LadderSettings, equilibrate


class RecordingIntegrator:
    """Wraps the reference integrator and remembers every configuration."""

    def __init__(self):
        self.inner = RelaxationIntegrator()
        self.calls: list[DeviceParams] = []

    def solve(self, prior, params):
        self.calls.append(params)
        return self.inner.solve(prior, params)


def _small(**kw) -> DeviceParams:
    return pin_params(xpoints=41, **kw)


def _quiet() -> LadderSettings:
    return LadderSettings(verbose=False)


def _run(params=None, **kw):
    settings = kw.pop("settings", _quiet())
    runner = ContinuationRunner(
        integrator=kw.pop("integrator", RecordingIntegrator()),
        verifier=kw.pop("verifier", verify_stabilization),
        tolerance=settings.tolerance,
        window_fraction=settings.window_fraction,
        verbose=False,
    )
    out = equilibrate(params, settings=settings, runner=runner, **kw)
    return out, runner


def test_returns_seven_deliverables_in_order():
    out, runner = _run(_small())
    assert isinstance(out, Equilibria)
    assert out._fields == DELIVERABLES
    assert all(isinstance(sol, Solution) for sol in out)
    assert [r.deliverable for r in runner.history if r.deliverable] == list(DELIVERABLES)
    assert len(runner.history) == 20
    # every deliverable was checked, and carries figures on
    assert all(r.verified for r in runner.history if r.deliverable)
    assert all(sol.params.figures for sol in out)


def test_boundary_modes_and_drive_of_deliverables():
    original = _small()
    out, _ = _run(original)
    sc = (out.sol_eq, out.sol_i_eq, out.sol_i_eq_SR, out.sol_i_1S_SR)
    oc = (out.ssol_i_eq, out.ssol_i_eq_SR, out.ssol_i_1S_SR)
    assert not any(s.params.open_circuit or s.mirrored for s in sc)
    assert all(s.params.open_circuit and s.mirrored for s in oc)

    assert out.sol_eq.params.mui == 0.0
    assert out.sol_i_eq.params.mui == original.mui
    assert out.ssol_i_eq.params.mui == original.mui
    for sol in (out.sol_i_eq_SR, out.ssol_i_eq_SR, out.sol_i_1S_SR, out.ssol_i_1S_SR):
        assert all(getattr(sol.params, k) == getattr(original, k) for k in SR_LIFETIMES)
    for sol in (out.sol_i_eq, out.ssol_i_eq):
        assert all(getattr(sol.params, k) == 1e6 for k in SR_LIFETIMES)
    assert out.sol_i_eq_SR.params.intensity == 0.0
    assert out.ssol_i_eq_SR.params.intensity == 0.0
    assert out.sol_i_1S_SR.params.intensity == original.intensity
    assert out.ssol_i_1S_SR.params.intensity == original.intensity


def test_original_parameters_are_not_modified():
    original = _small(mue_i=5.0, taun_htl=3e-9)
    snapshot = DeviceParams(**original.as_dict())
    _run(original)
    assert original == snapshot


def test_restores_copy_original_values_exactly():
    original = _small(mue_i=3.3, muh_p=0.07, mui=2.2e-10, taup_etl=4.4e-9, intensity=0.5)
    _, runner = _run(original)
    stages = {r.name: r.params for r in runner.history}

    mob_on = stages["carrier mobility on"]
    assert all(getattr(mob_on, k) == getattr(original, k) for k in CARRIER_MOBILITIES)
    assert stages["ions accelerated (SC)"].mui == 1e-6
    assert stages["ion equilibrium (SC)"].mui == original.mui
    assert stages["ions on (OC)"].mui == original.mui
    sr = stages["surface recombination (SC)"]
    assert all(getattr(sr, k) == getattr(original, k) for k in SR_LIFETIMES)
    assert stages["1 sun (SC)"].intensity == original.intensity


def test_each_stage_changes_only_its_overrides():
    _, runner = _run(_small())
    cfg = {r.name: r.params for r in runner.history}
    names = DeviceParams.field_names()

    def changed(a, b):
        return {k for k in names if getattr(cfg[a], k) != getattr(cfg[b], k)}

    assert changed("zero mobility", "carrier mobility on") == set(CARRIER_MOBILITIES) | {"t0"}
    assert changed("carrier mobility on", "dark equilibrium") == {
        "seed_from_previous", "calc_J", "tmax"}
    assert changed("dark equilibrium", "ions accelerated (SC)") == {"mui", "tmax", "t0"}
    assert changed("ions accelerated (SC)", "ion equilibrium (SC)") == {"mui", "tmax", "t0"}
    assert changed("ion equilibrium (SC)", "surface recombination (SC)") == set(SR_LIFETIMES) | {"tmax", "t0"}
    assert changed("surface recombination (SC)", "1 sun (SC)") == {"intensity"}
    assert changed("1 sun (OC) short", "1 sun (OC)") == {"tmax", "figures"}


def test_open_circuit_branch_lineage():
    original = _small()
    _, runner = _run(original)
    cfg = {r.name: r.params for r in runner.history}
    names = DeviceParams.field_names()

    def changed(a, b):
        return {k for k in names if getattr(cfg[a], k) != getattr(cfg[b], k)}

    # starts from the parked dark-equilibrium configuration, not the SC ion branch
    oc0 = cfg["zero mobility (OC)"]
    assert oc0.open_circuit and oc0.bc == 1
    assert all(getattr(oc0, k) == 0.0 for k in CARRIER_MOBILITIES + ("mui",))
    assert all(getattr(oc0, k) == 1e6 for k in SR_LIFETIMES)
    assert oc0.seed_from_previous and not oc0.calc_J
    assert oc0.intensity == 0.0
    assert oc0.tmax == 1e-9
    assert oc0.t0 == pytest.approx(1e-12)
    assert changed("dark equilibrium", "zero mobility (OC)") - {"t0"} == (
        {"open_circuit", "tmax"} | set(CARRIER_MOBILITIES))

    assert changed("zero mobility (OC)", "carrier mobility on (OC)") == set(CARRIER_MOBILITIES)
    assert changed("carrier mobility on (OC)", "ions on (OC)") == {"mui", "tmax", "t0"}
    assert cfg["ions on (OC)"].mui == original.mui
    assert changed("ions on (OC)", "ion equilibrium (OC)") == {"tmax", "t0"}

    assert changed("ion equilibrium (OC)", "surface recombination (OC) 1.1") == set(SR_LIFETIMES)
    assert changed("surface recombination (OC) 1.1", "surface recombination (OC) 1.2") == set()
    assert changed("surface recombination (OC) 1.2", "surface recombination (OC) 2.1") == {"tmax"}
    assert changed("surface recombination (OC) 2.3", "surface recombination (OC) 3.1") == {"tmax"}
    assert changed("surface recombination (OC) 3.2", "1 sun (OC) short") == {"intensity", "tmax"}
    assert cfg["1 sun (OC) short"].intensity == original.intensity


def test_runner_and_integrator_together_are_rejected():
    runner = ContinuationRunner(integrator=RecordingIntegrator(), verbose=False)
    with pytest.raises(TypeError):
        equilibrate(_small(), settings=_quiet(), runner=runner, integrator=RecordingIntegrator())
    with pytest.raises(TypeError):
        equilibrate(_small(), settings=_quiet(), runner=runner, verifier=verify_stabilization)
    assert runner.history == []


def test_runner_tolerance_mismatch_is_reported(capsys):
    runner = ContinuationRunner(integrator=RecordingIntegrator(), tolerance=0.3, verbose=False)
    equilibrate(_small(), settings=_quiet(), runner=runner)
    assert "used instead of ladder settings" in capsys.readouterr().err
    assert len(runner.history) == 20


def test_runs_are_deterministic():
    a, runner_a = _run(_small())
    b, runner_b = _run(_small())
    assert runner_a.configurations == runner_b.configurations
    for sa, sb in zip(a, b):
        assert sa.params == sb.params
        assert np.array_equal(sa.u, sb.u)
        assert np.array_equal(sa.t, sb.t)


def test_default_parameter_source_is_used():
    integ = RecordingIntegrator()
    equilibrate(settings=_quiet(), integrator=integ)
    assert integ.calls[1].mue_i == pin_params().mue_i
    assert len(integ.calls) == 20


def test_no_ions_and_dark_device():
    original = _small(mui=0.0, intensity=0.0)
    out, runner = _run(original)
    assert len(runner.history) == 20
    assert out.sol_i_1S_SR.params.intensity == 0.0
    assert out.ssol_i_1S_SR.params.intensity == 0.0
    assert np.allclose(out.sol_i_1S_SR.final, out.sol_i_eq_SR.final)
    assert np.allclose(out.ssol_i_1S_SR.final, out.ssol_i_eq_SR.final)


def test_failing_verifier_aborts_at_first_deliverable():
    integ = RecordingIntegrator()

    def always_fail(u, t, tolerance, *, window_fraction, stage):
        raise StabilizationError(stage, 1.0, tolerance)

    with pytest.raises(StabilizationError) as exc:
        _run(_small(), integrator=integ, verifier=always_fail)
    assert exc.value.stage == "sol_eq"
    assert len(integ.calls) == 3
    assert integ.calls[-1].tmax == pytest.approx(1e-2)


class SlowOpenCircuitSR(RecordingIntegrator):
    """Only settles the dark OC + SRH configuration at the final tmax."""

    def __init__(self, original, settle_at):
        super().__init__()
        self.original = original
        self.settle_at = settle_at

    def solve(self, prior, params):
        sol = super().solve(prior, params)
        dark_oc_sr = (params.open_circuit and params.intensity == 0.0
                      and params.taun_etl == self.original.taun_etl)
        if dark_oc_sr and not math.isclose(params.tmax, self.settle_at, rel_tol=1e-9):
            ramp = 1.0 + sol.t / sol.t[-1]
            return Solution(params=params, x=sol.x, t=sol.t,
                            u=sol.u * ramp[:, None, None], mirrored=sol.mirrored)
        return sol


def test_open_circuit_sr_escalates_time_window():
    original = _small()
    integ = SlowOpenCircuitSR(original, settle_at=1e4)
    out, runner = _run(original, integrator=integ)

    sr = [r for r in runner.history if r.name.startswith("surface recombination (OC)")]
    assert [r.params.tmax for r in sr] == pytest.approx([1e2, 1e2, 1e3, 1e3, 1e3, 1e4, 1e4])
    # only the last re-solve is checked
    assert [r.verified for r in sr] == [False] * 6 + [True]
    assert sr[-1].deliverable == "ssol_i_eq_SR"
    assert out.ssol_i_eq_SR.params.tmax == pytest.approx(1e4)
    # illuminated OC: tmax / 10, then * 100
    lit = [r.params.tmax for r in runner.history if r.name.startswith("1 sun (OC)")]
    assert lit == pytest.approx([1e3, 1e5])


def test_open_circuit_sr_fails_without_enough_growth():
    original = _small()
    integ = SlowOpenCircuitSR(original, settle_at=1e4)
    settings = LadderSettings(verbose=False, sr_resolves=(2, 3))
    with pytest.raises(StabilizationError) as exc:
        _run(original, integrator=integ, settings=settings)
    assert exc.value.stage == "ssol_i_eq_SR"
    # nothing after the failing stage ran
    assert not integ.calls[-1].intensity
