import math
import pytest
from pyomo.common.errors import ApplicationError, InfeasibleConstraintException
from pyomo.opt import SolverStatus, TerminationCondition

from data_model import TerminationStatus
from data_model.exceptions import SolverUnavailableError
from network_data import transform_data_model
from pipeline_opf import (
    OPFConfig,
    SolverOptions,
    build_model,
    configure_solver,
    initialize_model,
    optimize_model,
)
from pipeline_opf.model_manager import build_raw_solution, map_termination_condition


class TestConfigureSolver:
    def test_default_options(self, test_default_config):
        options = configure_solver(test_default_config)
        assert options == SolverOptions(print_level=1, tol=1e-8, acceptable_tol=1e-8)
        assert options.as_dict() == {
            "print_level": 1,
            "tol": 1e-8,
            "acceptable_tol": 1e-8,
        }

    def test_options_follow_config(self):
        options = configure_solver(
            OPFConfig(solver_verbosity=0, tolerance=1e-6, acceptable_tolerance=1e-4)
        )
        assert options.print_level == 0
        assert options.tol == 1e-6
        assert options.acceptable_tol == 1e-4

    def test_configure_is_pure(self, test_default_config):
        assert configure_solver(test_default_config) == configure_solver(
            test_default_config
        )


class TestTerminationStatus:
    @pytest.mark.parametrize(
        ("condition", "status"),
        [
            (TerminationCondition.optimal, TerminationStatus.LOCALLY_SOLVED),
            (TerminationCondition.locallyOptimal, TerminationStatus.LOCALLY_SOLVED),
            (TerminationCondition.globallyOptimal, TerminationStatus.OPTIMAL),
            (TerminationCondition.infeasible, TerminationStatus.LOCALLY_INFEASIBLE),
            (TerminationCondition.maxIterations, TerminationStatus.ITERATION_LIMIT),
            (TerminationCondition.maxTimeLimit, TerminationStatus.TIME_LIMIT),
            (TerminationCondition.unbounded, TerminationStatus.DUAL_INFEASIBLE),
            (TerminationCondition.invalidProblem, TerminationStatus.INVALID_MODEL),
            (TerminationCondition.internalSolverError, TerminationStatus.NUMERICAL_ERROR),
            (TerminationCondition.minStepLength, TerminationStatus.NUMERICAL_ERROR),
            (TerminationCondition.other, TerminationStatus.OTHER_ERROR),
            (TerminationCondition.userInterrupt, TerminationStatus.OTHER_ERROR),
            (TerminationCondition.error, TerminationStatus.OTHER_ERROR),
        ],
    )
    def test_mapping(self, condition, status):
        assert map_termination_condition(condition) == status

    @pytest.mark.parametrize("condition", list(TerminationCondition))
    def test_every_condition_is_mapped(self, condition):
        assert isinstance(map_termination_condition(condition), TerminationStatus)


class OptimizeModelTestCase:
    """Base class for solve test cases."""

    @pytest.fixture(autouse=True)
    def setup_common_data(self, test_case4_network, test_default_config):
        self.config = test_default_config
        self.model_instance, self.math = initialize_model(
            test_case4_network, test_default_config
        )


class TestOptimizeModel(OptimizeModelTestCase):
    def test_unavailable_solver(self):
        with pytest.raises(SolverUnavailableError, match="not_a_solver"):
            optimize_model(
                self.model_instance,
                configure_solver(self.config),
                solver_name="not_a_solver",
            )

    def test_solve_without_bounds(self, requires_ipopt):
        raw_solution = optimize_model(
            self.model_instance, SolverOptions(print_level=0), solver_name="ipopt"
        )
        assert raw_solution.termination_status == TerminationStatus.LOCALLY_SOLVED
        assert raw_solution.converged
        assert raw_solution.solve_time > 0
        assert set(raw_solution.bus) == {"1", "2", "3", "4"}
        assert raw_solution.bus["1"]["vm"] == pytest.approx([1.0, 1.0, 1.0])
        # The source supplies the loads and the losses
        total_load = sum(sum(load["pd_bus"]) for load in raw_solution.load.values())
        assert total_load == pytest.approx(22.0)
        assert raw_solution.objective > total_load
        assert sum(raw_solution.gen["1"]["pg_bus"]) == pytest.approx(
            raw_solution.objective
        )


class TestBuildRawSolution:
    @pytest.fixture(autouse=True)
    def setup_common_data(self, test_case4_network):
        # 10 kVA power base so that per unit and engineering powers differ
        test_case4_network.settings.sbase_default = 10.0
        self.math = transform_data_model(test_case4_network)
        self.model_instance = build_model(self.math)

    def test_per_unit_values_are_converted(self):
        raw_solution = build_raw_solution(
            self.model_instance, TerminationStatus.LOCALLY_SOLVED, solve_time=0.5
        )
        vbase_kv = 0.4 / math.sqrt(3)
        assert raw_solution.bus["1"]["name"] == "sourcebus"
        assert raw_solution.bus["1"]["vm"] == pytest.approx([vbase_kv] * 3)
        assert raw_solution.bus["1"]["va"] == pytest.approx(
            [0.0, -2 * math.pi / 3, 2 * math.pi / 3]
        )
        assert raw_solution.load["1"]["pd_bus"] == pytest.approx([3.0] * 3)
        assert raw_solution.gen["1"]["pg_bus"] == [0.0] * 3
        assert raw_solution.objective == pytest.approx(0.0)
        assert raw_solution.solve_time == 0.5
        assert raw_solution.converged

    def test_values_are_reported_as_solved(self):
        self.model_instance.per_unit = False
        self.model_instance.model.vm[2, 1].value = 0.97  # type: ignore
        self.model_instance.model.pg["1", 3].value = 0.25  # type: ignore
        raw_solution = build_raw_solution(
            self.model_instance, TerminationStatus.ITERATION_LIMIT, solve_time=0.0
        )
        assert raw_solution.bus["1"]["vm"] == [1.0, 1.0, 1.0]
        assert raw_solution.bus["2"]["vm"][0] == 0.97
        assert raw_solution.gen["1"]["pg_bus"] == [0.0, 0.0, 0.25]
        assert raw_solution.load["1"]["pd_bus"] == pytest.approx([0.3] * 3)
        assert not raw_solution.converged


class StubSolveTestCase:
    """Base class for solve test cases running on the stub solver."""

    @pytest.fixture(autouse=True)
    def setup_common_data(self, test_case4_network, test_default_config, stub_solver):
        self.stub_solver = stub_solver
        self.model_instance, _ = initialize_model(
            test_case4_network, test_default_config
        )


class TestOptimizeModelStatus(StubSolveTestCase):
    def test_options_and_call(self):
        raw_solution = optimize_model(
            self.model_instance,
            SolverOptions(print_level=0, tol=1e-6, acceptable_tol=1e-4),
            solver_name="stub_nlp",
        )
        assert raw_solution.termination_status == TerminationStatus.LOCALLY_SOLVED
        (call,) = self.stub_solver.calls
        assert call["options"] == {"print_level": 0, "tol": 1e-6, "acceptable_tol": 1e-4}
        assert call["tee"] is False
        assert call["load_solutions"] is False
        assert raw_solution.solver_message == "stub solve"

    def test_not_converged_status_is_returned(self):
        self.stub_solver.termination_condition = TerminationCondition.infeasible
        self.stub_solver.solver_status = SolverStatus.warning
        raw_solution = optimize_model(
            self.model_instance, SolverOptions(print_level=0), solver_name="stub_nlp"
        )
        assert raw_solution.termination_status == TerminationStatus.LOCALLY_INFEASIBLE
        assert not raw_solution.converged
        assert set(raw_solution.bus) == {"1", "2", "3", "4"}

    def test_solver_failure_is_a_status(self):
        self.stub_solver.error = ApplicationError("solver exited with code 1")
        raw_solution = optimize_model(
            self.model_instance, SolverOptions(print_level=0), solver_name="stub_nlp"
        )
        assert raw_solution.termination_status == TerminationStatus.OTHER_ERROR
        assert "exited" in raw_solution.solver_message

    def test_infeasible_constraint_is_a_status(self):
        self.stub_solver.error = InfeasibleConstraintException("lower bound above upper")
        raw_solution = optimize_model(
            self.model_instance, SolverOptions(print_level=0), solver_name="stub_nlp"
        )
        assert raw_solution.termination_status == TerminationStatus.LOCALLY_INFEASIBLE
        assert raw_solution.objective == pytest.approx(0.0)
