import math
import time
import pyomo.environ as pyo
from pyomo.common.errors import ApplicationError, InfeasibleConstraintException
from pyomo.opt import SolverStatus, TerminationCondition

from data_model import RawSolution, TerminationStatus
from data_model.exceptions import SolverUnavailableError
from helpers import generate_log, extract_optimization_results, pl_to_dict_with_tuple
from pipeline_opf.configs import OPFConfig, SolverOptions
from pipeline_opf.data_manager import OPFModelInstance

log = generate_log(name=__name__)

TERMINATION_STATUS_MAP: dict[TerminationCondition, TerminationStatus] = {
    TerminationCondition.optimal: TerminationStatus.LOCALLY_SOLVED,
    TerminationCondition.locallyOptimal: TerminationStatus.LOCALLY_SOLVED,
    TerminationCondition.globallyOptimal: TerminationStatus.OPTIMAL,
    TerminationCondition.feasible: TerminationStatus.ALMOST_LOCALLY_SOLVED,
    TerminationCondition.infeasible: TerminationStatus.LOCALLY_INFEASIBLE,
    TerminationCondition.infeasibleOrUnbounded: TerminationStatus.INFEASIBLE,
    TerminationCondition.unbounded: TerminationStatus.DUAL_INFEASIBLE,
    TerminationCondition.maxIterations: TerminationStatus.ITERATION_LIMIT,
    TerminationCondition.maxEvaluations: TerminationStatus.ITERATION_LIMIT,
    TerminationCondition.maxTimeLimit: TerminationStatus.TIME_LIMIT,
    TerminationCondition.invalidProblem: TerminationStatus.INVALID_MODEL,
    TerminationCondition.solverFailure: TerminationStatus.NUMERICAL_ERROR,
    TerminationCondition.internalSolverError: TerminationStatus.NUMERICAL_ERROR,
    TerminationCondition.minStepLength: TerminationStatus.NUMERICAL_ERROR,
    TerminationCondition.other: TerminationStatus.OTHER_ERROR,
}


def configure_solver(config: OPFConfig) -> SolverOptions:
    return SolverOptions(
        print_level=config.solver_verbosity,
        tol=config.tolerance,
        acceptable_tol=config.acceptable_tolerance,
    )


def map_termination_condition(condition: TerminationCondition) -> TerminationStatus:
    return TERMINATION_STATUS_MAP.get(condition, TerminationStatus.OTHER_ERROR)


def optimize_model(
    model_instance: OPFModelInstance,
    solver_options: SolverOptions,
    solver_name: str = "ipopt",
) -> RawSolution:
    """
    Solve the model instance and collect its solution.

    A solve that does not converge is reported through the termination status of the
    returned solution, whatever values the solver returned are still loaded.

    Args:
        model_instance (OPFModelInstance): The model with all its constraint extensions.
        solver_options (SolverOptions): The solver options.
        solver_name (str, optional): Name of the pyomo solver plugin. Defaults to "ipopt".

    Returns:
        RawSolution: The termination status, objective, solve time and per-element values.

    Raises:
        SolverUnavailableError: If the solver cannot be found.
    """
    solver = pyo.SolverFactory(solver_name)
    if solver is None or not solver.available(exception_flag=False):
        raise SolverUnavailableError(f"solver '{solver_name}' is not available")
    for option, value in solver_options.as_dict().items():
        solver.options[option] = value

    model = model_instance.model
    start = time.perf_counter()
    try:
        results = solver.solve(
            model, tee=solver_options.print_level > 0, load_solutions=False
        )
    except ApplicationError as e:
        log.error(f"Solver '{solver_name}' failed: {e}")
        return build_raw_solution(
            model_instance,
            termination_status=TerminationStatus.OTHER_ERROR,
            solve_time=time.perf_counter() - start,
            solver_message=str(e),
        )
    except InfeasibleConstraintException as e:
        log.warning(f"Model detected infeasible before the solve: {e}")
        return build_raw_solution(
            model_instance,
            termination_status=TerminationStatus.LOCALLY_INFEASIBLE,
            solve_time=time.perf_counter() - start,
            solver_message=str(e),
        )
    solve_time = time.perf_counter() - start

    condition = results.solver.termination_condition
    termination_status = map_termination_condition(condition)
    if len(results.solution) > 0 and results.solver.status in (
        SolverStatus.ok,
        SolverStatus.warning,
    ):
        model.solutions.load_from(results)
    log.info(
        f"Solver '{solver_name}' finished with {condition} ({termination_status.value}) in {round(solve_time, 3)} s"
    )
    return build_raw_solution(
        model_instance,
        termination_status=termination_status,
        solve_time=solve_time,
        solver_message=str(results.solver.message or ""),
    )


def build_raw_solution(
    model_instance: OPFModelInstance,
    termination_status: TerminationStatus,
    solve_time: float,
    solver_message: str = "",
) -> RawSolution:
    """Collect the current variable values of the model into a raw solution"""
    model = model_instance.model
    math_model = model_instance.math
    objective = pyo.value(model.objective, exception=False)  # type: ignore
    # Quantities are converted back to kV line-to-neutral and engineering power units
    if model_instance.per_unit:
        power_factor = math_model.sbase_va / math_model.power_scale_factor
    else:
        power_factor = 1.0

    vm, va, pg, qg = (
        pl_to_dict_with_tuple(extract_optimization_results(model, var_name, index_names))
        for var_name, index_names in [
            ("vm", ["bus_i", "phase"]),
            ("va", ["bus_i", "phase"]),
            ("pg", ["gen_id", "phase"]),
            ("qg", ["gen_id", "phase"]),
        ]
    )
    bus = {}
    for bus_i, name, terminals, vbase_kv in math_model.bus.select(
        "bus_i", "name", "terminals", "vbase_kv"
    ).rows():
        voltage_factor = vbase_kv if model_instance.per_unit else 1.0
        bus[str(bus_i)] = {
            "name": name,
            "terminals": terminals,
            "vm": [vm[bus_i, t] * voltage_factor for t in terminals],
            "va": [va[bus_i, t] for t in terminals],
        }
    gen = {
        gen_id: {
            "name": name,
            "gen_bus": gen_bus,
            "connections": connections,
            "pg_bus": [pg[gen_id, t] * power_factor for t in connections],
            "qg_bus": [qg[gen_id, t] * power_factor for t in connections],
        }
        for gen_id, name, gen_bus, connections in math_model.gen.select(
            "gen_id", "name", "gen_bus", "connections"
        ).rows()
    }
    load = {
        load_i: {
            "name": name,
            "load_bus": load_bus,
            "connections": connections,
            "pd_bus": [p * power_factor for p in pd],
            "qd_bus": [q * power_factor for q in qd],
        }
        for load_i, name, load_bus, connections, pd, qd in math_model.load.select(
            "load_i", "name", "load_bus", "connections", "pd", "qd"
        ).rows()
    }
    return RawSolution(
        termination_status=termination_status,
        objective=objective if objective is not None else math.nan,
        solve_time=solve_time,
        bus=bus,
        gen=gen,
        load=load,
        solver_message=solver_message,
    )
