"""
Transformation of the engineering model into the per-unit mathematical model.

The network is Kron-reduced: only phase terminals 1, 2 and 3 are modelled, a single voltage
base is used for the whole network (no transformer) and loads are wye connected constant
power loads.
"""

import math
from collections import defaultdict
import numpy as np
import polars as pl
from polars import col as c

from data_model import (
    EngineeringModel,
    MathModel,
    MathBusData,
    MathBranchData,
    MathLoadData,
    MathGenData,
    YBusData,
    REFERENCE_BUS_TYPE,
)
from data_model.mathematical import PQ_BUS_TYPE
from data_model.exceptions import ModelBuildError
from helpers import (
    generate_log,
    build_pt_table,
    generate_nx_graph,
    get_unreachable_nodes,
    generate_bfs_tree_with_edge_data,
)

log = generate_log(name=__name__)

# Conversion factor to meters
LENGTH_FACTORS: dict[str, float] = {
    "mi": 1609.344,
    "kft": 304.8,
    "km": 1000.0,
    "m": 1.0,
    "ft": 0.3048,
    "in": 0.0254,
    "cm": 0.01,
    "mm": 0.001,
}
# Reference angle of each phase terminal in degrees
PHASE_SHIFT_DEG: dict[int, float] = {1: 0.0, 2: -120.0, 3: 120.0}
SUPPORTED_TERMINALS = set(PHASE_SHIFT_DEG)


def transform_data_model(eng: EngineeringModel) -> MathModel:
    """
    Transform an engineering model into a per-unit mathematical model.

    Args:
        eng (EngineeringModel): The engineering model, its settings give the power base.

    Returns:
        MathModel: The per-unit model with integer bus indices (reference bus first).

    Raises:
        ModelBuildError: If the network cannot be represented by the unbalanced AC model.
    """
    if eng.voltage_source.height == 0:
        raise ModelBuildError("the network has no voltage source")
    if eng.voltage_source.height > 1:
        raise ModelBuildError("only one voltage source is supported")

    settings = eng.settings
    sbase_va = settings.sbase_default * settings.power_scale_factor
    if sbase_va <= 0:
        raise ModelBuildError(f"invalid power base {sbase_va} VA")
    source = eng.voltage_source.row(0, named=True)
    _check_voltage_bases(source["basekv"], settings.voltage_bases)
    vbase_kv = source["basekv"] / math.sqrt(3)
    zbase = (vbase_kv * settings.voltage_scale_factor) ** 2 / sbase_va
    log.info(
        f"Per-unit bases: sbase={sbase_va} VA, vbase={round(vbase_kv, 6)} kV, zbase={round(zbase, 6)} ohm"
    )

    bus_index = _bus_indices(eng, source_bus=source["bus"])
    bus = _build_bus_table(eng, bus_index, source_bus=source["bus"], vbase_kv=vbase_kv)
    branch = _build_branch_table(
        eng, bus_index, zbase=zbase, base_frequency=settings.base_frequency
    )
    ybus = _build_ybus_table(branch)
    load = _build_load_table(
        eng, bus_index, power_factor=settings.power_scale_factor / sbase_va
    )
    gen = _build_gen_table(
        eng, bus_index, source, power_factor=settings.power_scale_factor / sbase_va
    )

    return MathModel(
        name=eng.name,
        sbase_va=sbase_va,
        power_scale_factor=settings.power_scale_factor,
        base_frequency=settings.base_frequency,
        per_unit=True,
        bus=bus,
        branch=branch,
        load=load,
        gen=gen,
        ybus=ybus,
    )


def _check_voltage_bases(basekv: float, voltage_bases: list[float]) -> None:
    # A single voltage base is modelled, it must be one of the declared ones
    if voltage_bases and not any(
        math.isclose(basekv, base, rel_tol=1e-6) for base in voltage_bases
    ):
        raise ModelBuildError(
            f"source base voltage {basekv} kV is not one of the voltage bases {voltage_bases}"
        )


def _bus_indices(eng: EngineeringModel, source_bus: str) -> dict[str, int]:
    """Number buses in breadth-first order from the source bus, starting at 1"""
    edge_data = eng.line.select(
        c("bus1").alias("u_of_edge"), c("bus2").alias("v_of_edge"), "name"
    )
    nx_graph = generate_nx_graph(edge_data, nodes=eng.bus["bus_id"].to_list())
    if source_bus not in nx_graph:
        raise ModelBuildError(f"source bus '{source_bus}' is not part of the network")
    unreachable = get_unreachable_nodes(nx_graph, source_bus)
    if unreachable:
        raise ModelBuildError(
            f"the network is disconnected, buses {unreachable} are not reachable from '{source_bus}'"
        )
    bfs_tree = generate_bfs_tree_with_edge_data(nx_graph, source_bus)
    return {bus_id: i for i, bus_id in enumerate(bfs_tree.nodes, start=1)}


def _check_terminals(terminals: list[int], element: str) -> None:
    unsupported = set(terminals).difference(SUPPORTED_TERMINALS)
    if unsupported:
        raise ModelBuildError(
            f"{element} uses terminals {sorted(unsupported)}, only phases 1, 2 and 3 are modelled"
        )


def _build_bus_table(
    eng: EngineeringModel, bus_index: dict[str, int], source_bus: str, vbase_kv: float
) -> pl.DataFrame:
    rows = []
    for bus_id, terminals in eng.bus.select("bus_id", "terminals").rows():
        _check_terminals(terminals, f"bus '{bus_id}'")
        rows.append(
            {
                "bus_i": bus_index[bus_id],
                "name": bus_id,
                "terminals": sorted(terminals),
                "vbase_kv": vbase_kv,
                "bus_type": (
                    REFERENCE_BUS_TYPE if bus_id == source_bus else PQ_BUS_TYPE
                ),
            }
        )
    return build_pt_table(MathBusData, sorted(rows, key=lambda row: row["bus_i"]))


def _line_scale(length: float, units: str, impedance_units: str) -> float:
    """Factor turning per unit length quantities into whole line quantities"""
    if units == "none" or impedance_units == "none":
        return length
    return length * LENGTH_FACTORS[units] / LENGTH_FACTORS[impedance_units]


def _reshape(values: list[float], size: int, element: str) -> np.ndarray:
    if len(values) != size * size:
        raise ModelBuildError(
            f"{element}: impedance matrix of {len(values)} entries does not match {size} conductors"
        )
    return np.reshape(np.array(values, dtype=float), (size, size))


def _build_branch_table(
    eng: EngineeringModel, bus_index: dict[str, int], zbase: float, base_frequency: float
) -> pl.DataFrame:
    branch_rows = []
    for branch_i, line in enumerate(eng.line.to_dicts(), start=1):
        element = f"line '{line['name']}'"
        f_connections, t_connections = line["f_connections"], line["t_connections"]
        _check_terminals(f_connections + t_connections, element)
        size = len(f_connections)
        if len(t_connections) != size:
            raise ModelBuildError(
                f"{element}: {size} from terminals but {len(t_connections)} to terminals"
            )
        scale = _line_scale(line["length"], line["units"], line["impedance_units"])
        z_pu = (
            _reshape(line["rmatrix"], size, element)
            + 1j * _reshape(line["xmatrix"], size, element)
        ) * scale / zbase
        try:
            y_series = np.linalg.inv(z_pu)
        except np.linalg.LinAlgError as e:
            raise ModelBuildError(f"{element}: singular impedance matrix") from e
        b_shunt = (
            2 * math.pi * base_frequency * 1e-9 * scale * zbase / 2
        ) * _reshape(line["cmatrix"], size, element)

        branch_rows.append(
            {
                "branch_i": branch_i,
                "name": line["name"],
                "f_bus": bus_index[line["bus1"]],
                "t_bus": bus_index[line["bus2"]],
                "f_connections": f_connections,
                "t_connections": t_connections,
                "g_series": y_series.real.flatten().tolist(),
                "b_series": y_series.imag.flatten().tolist(),
                "b_fr": b_shunt.flatten().tolist(),
                "b_to": b_shunt.flatten().tolist(),
            }
        )
    return build_pt_table(MathBranchData, branch_rows)


def _build_ybus_table(branch: pl.DataFrame) -> pl.DataFrame:
    """
    Accumulate the bus admittance matrix of the branches. Each branch adds its series
    admittance between its terminals and its shunt susceptance at each end.
    """
    admittance: dict[tuple[int, int, int, int], complex] = defaultdict(complex)
    for row in branch.to_dicts():
        f_bus, t_bus = row["f_bus"], row["t_bus"]
        f_connections, t_connections = row["f_connections"], row["t_connections"]
        size = len(f_connections)
        y_series = _reshape(row["g_series"], size, row["name"]) + 1j * _reshape(
            row["b_series"], size, row["name"]
        )
        b_fr = _reshape(row["b_fr"], size, row["name"])
        b_to = _reshape(row["b_to"], size, row["name"])
        for i in range(size):
            for j in range(size):
                fi, fj = f_connections[i], f_connections[j]
                ti, tj = t_connections[i], t_connections[j]
                y = complex(y_series[i, j])
                admittance[(f_bus, fi, f_bus, fj)] += y + 1j * float(b_fr[i, j])
                admittance[(t_bus, ti, t_bus, tj)] += y + 1j * float(b_to[i, j])
                admittance[(f_bus, fi, t_bus, tj)] -= y
                admittance[(t_bus, ti, f_bus, fj)] -= y

    ybus_rows = [
        {
            "f_bus": f_bus,
            "f_phase": f_phase,
            "t_bus": t_bus,
            "t_phase": t_phase,
            "g": value.real,
            "b": value.imag,
        }
        for (f_bus, f_phase, t_bus, t_phase), value in sorted(admittance.items())
        if value != 0
    ]
    return build_pt_table(YBusData, ybus_rows)


def _build_load_table(
    eng: EngineeringModel, bus_index: dict[str, int], power_factor: float
) -> pl.DataFrame:
    rows = []
    for load_i, load in enumerate(eng.load.to_dicts(), start=1):
        element = f"load '{load['name']}'"
        if load["conn"] != "wye":
            raise ModelBuildError(f"{element}: {load['conn']} connection is not supported")
        if load["load_model"] != 1:
            raise ModelBuildError(
                f"{element}: load model {load['load_model']} is not supported, only constant power (1)"
            )
        _check_terminals(load["connections"], element)
        nphases = len(load["connections"])
        if nphases == 0:
            raise ModelBuildError(f"{element}: no phase connected")
        rows.append(
            {
                "load_i": str(load_i),
                "name": load["name"],
                "load_bus": bus_index[load["bus"]],
                "connections": load["connections"],
                "pd": [load["kw"] * power_factor / nphases] * nphases,
                "qd": [load["kvar"] * power_factor / nphases] * nphases,
            }
        )
    return build_pt_table(MathLoadData, rows)


def _build_gen_table(
    eng: EngineeringModel, bus_index: dict[str, int], source: dict, power_factor: float
) -> pl.DataFrame:
    _check_terminals(source["connections"], f"voltage source '{source['name']}'")
    rows = [
        {
            "gen_id": "1",
            "name": source["name"],
            "source_id": f"vsource.{source['name']}",
            "gen_bus": bus_index[source["bus"]],
            "connections": source["connections"],
            "vg": [source["pu"]] * len(source["connections"]),
            "va_ref": [
                math.radians(source["angle"] + PHASE_SHIFT_DEG[terminal])
                for terminal in source["connections"]
            ],
            "cost": [0.0, 0.0],
        }
    ]
    for gen_id, generator in enumerate(eng.generator.to_dicts(), start=2):
        element = f"generator '{generator['name']}'"
        _check_terminals(generator["connections"], element)
        nphases = len(generator["connections"])
        if nphases == 0:
            raise ModelBuildError(f"{element}: no phase connected")
        rows.append(
            {
                "gen_id": str(gen_id),
                "name": generator["name"],
                "source_id": f"generator.{generator['name']}",
                "gen_bus": bus_index[generator["bus"]],
                "connections": generator["connections"],
                "pg_min": [0.0] * nphases,
                "pg_max": [generator["kw"] * power_factor / nphases] * nphases,
                "qg_min": [generator["minkvar"] * power_factor / nphases] * nphases,
                "qg_max": [generator["maxkvar"] * power_factor / nphases] * nphases,
                "cost": [0.0, 0.0],
            }
        )
    return build_pt_table(MathGenData, rows)
