"""
Pytest configuration and shared fixtures for the test suite.
"""

import pytest
import pyomo.environ as pyo
from pathlib import Path
from pyomo.opt import SolverFactory, SolverResults, SolverStatus, TerminationCondition

from data_model import EngineeringModel
from network_data import parse_file
from pipeline_opf import OPFConfig, default_config


@pytest.fixture(scope="session")
def test_data_dir() -> Path:
    """Provide path to test data directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture(scope="session")
def test_case4_file(test_data_dir) -> Path:
    """Provide the four bus unbalanced feeder."""
    return test_data_dir / "case4_unbalanced.dss"


@pytest.fixture
def test_case4_network(test_case4_file) -> EngineeringModel:
    """Provide a freshly parsed four bus feeder, the initializer mutates its settings."""
    return parse_file(test_case4_file)


@pytest.fixture(scope="session")
def test_default_config() -> OPFConfig:
    return default_config()


@pytest.fixture(scope="session")
def test_inverted_bounds_config() -> OPFConfig:
    """Provide a configuration whose lower voltage bound is above the upper one."""
    return OPFConfig(voltage_upper_bound=0.9, voltage_lower_bound=1.1)


@pytest.fixture
def write_dss(tmp_path):
    """Write OpenDSS text into a temporary file and return its path."""

    def _write(text: str, name: str = "network.dss") -> Path:
        file_path = tmp_path / name
        file_path.write_text(text)
        return file_path

    return _write


@pytest.fixture(scope="session")
def ipopt_available() -> bool:
    return bool(pyo.SolverFactory("ipopt").available(exception_flag=False))


@pytest.fixture
def requires_ipopt(ipopt_available):
    if not ipopt_available:
        pytest.skip("ipopt is not available")


@SolverFactory.register("stub_nlp", doc="Solver returning a fixed outcome")
class StubSolver:
    """
    Stand-in for Ipopt: records how it was called and returns `termination_condition`
    without changing the model, or raises `error` when it is set.
    """

    termination_condition = TerminationCondition.optimal
    solver_status = SolverStatus.ok
    error: Exception | None = None
    calls: list[dict] = []

    def __init__(self, **kwds):
        self.options = {}

    def available(self, exception_flag=True):
        return True

    def solve(self, model, **kwds):
        self.calls.append({"options": dict(self.options), **kwds})
        if self.error is not None:
            raise self.error
        results = SolverResults()
        results.solver.status = self.solver_status
        results.solver.termination_condition = self.termination_condition
        results.solver.message = "stub solve"
        return results


@pytest.fixture
def stub_solver(monkeypatch):
    """Provide the stub solver class, reset to an optimal outcome."""
    monkeypatch.setattr(StubSolver, "termination_condition", TerminationCondition.optimal)
    monkeypatch.setattr(StubSolver, "solver_status", SolverStatus.ok)
    monkeypatch.setattr(StubSolver, "error", None)
    monkeypatch.setattr(StubSolver, "calls", [])
    return StubSolver
