import math
from enum import Enum
import patito as pt
import polars as pl

from data_model import RawSolution, BusVoltageResult, PHASE_LABELS
from helpers import generate_log, build_pt_table

log = generate_log(name=__name__)

DEFAULT_TERMINALS: tuple[int, ...] = (1, 2, 3)
NOT_CONVERGED_MESSAGE = "WARNING: OPF didn't converge!"


class ReportState(Enum):
    UNCHECKED = "unchecked"
    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"


def format_results(raw_solution: RawSolution) -> pt.DataFrame[BusVoltageResult]:
    """
    Build the bus voltage table of a solution.

    Voltage magnitudes are rounded to 3 decimals and angles are converted to degrees and
    rounded to 1 decimal. Rows are sorted by bus id then phase label.

    Args:
        raw_solution (RawSolution): The solution, voltages in per unit and radians.

    Returns:
        pt.DataFrame[BusVoltageResult]: One row per bus and phase.
    """
    rows = [
        {
            "bus_id": bus_id,
            "phase": PHASE_LABELS[terminal],
            "vm_pu": round(vm, 3),
            "va_deg": round(va * 180 / math.pi, 1),
        }
        for bus_id, bus in raw_solution.bus.items()
        for terminal, vm, va in zip(
            bus.get("terminals", DEFAULT_TERMINALS), bus["vm"], bus["va"]
        )
    ]
    rows = sorted(rows, key=lambda row: (row["bus_id"], row["phase"]))
    return build_pt_table(BusVoltageResult, rows)


def check_convergence(
    raw_solution: RawSolution, state: ReportState = ReportState.UNCHECKED
) -> ReportState:
    # Converged and not converged are terminal states
    if state != ReportState.UNCHECKED:
        return state
    if raw_solution.converged:
        return ReportState.CONVERGED
    return ReportState.NOT_CONVERGED


def report(raw_solution: RawSolution, result_table: pl.DataFrame) -> str:
    """
    Report a solution: a warning when the solve did not converge, the objective, the solve
    time and the full bus voltage table otherwise.

    Returns:
        str: The logged text.
    """
    state = check_convergence(raw_solution, ReportState.UNCHECKED)
    if state == ReportState.NOT_CONVERGED:
        log.warning(NOT_CONVERGED_MESSAGE)
        return NOT_CONVERGED_MESSAGE

    with pl.Config(tbl_rows=-1, tbl_cols=-1):
        table_text = str(result_table)
    text = "\n".join(
        [
            "=== OPF Results ===",
            f"Objective value: {round(raw_solution.objective, 3)}",
            f"Solve time: {round(raw_solution.solve_time, 6)} seconds",
            "Bus Results:",
            table_text,
        ]
    )
    log.info(text)
    return text


def network_structure_report(raw_solution: RawSolution) -> str:
    """Dump the buses, generators and loads of a solution"""
    lines = ["=== Network Structure ===", f"Buses ({len(raw_solution.bus)}):"]
    for bus_id, bus in raw_solution.bus.items():
        lines.append(
            f"  {bus_id}: {bus.get('name', '')} terminals={list(bus.get('terminals', DEFAULT_TERMINALS))}"
        )
    lines.append(f"Generators ({len(raw_solution.gen)}):")
    for gen_id, gen in raw_solution.gen.items():
        lines.append(
            f"  {gen_id}: pg_bus={[round(p, 4) for p in gen['pg_bus']]} "
            + f"qg_bus={[round(q, 4) for q in gen['qg_bus']]}"
        )
    lines.append(f"Loads ({len(raw_solution.load)}):")
    for load_id, load in raw_solution.load.items():
        lines.append(
            f"  {load_id}: pd_bus={[round(p, 4) for p in load['pd_bus']]} "
            + f"qd_bus={[round(q, 4) for q in load['qd_bus']]}"
        )
    text = "\n".join(lines)
    log.info(text)
    return text
