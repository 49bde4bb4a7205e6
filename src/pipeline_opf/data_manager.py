from dataclasses import dataclass
import polars as pl
from polars import col as c
import pyomo.environ as pyo

from data_model import EngineeringModel, MathModel
from data_model.exceptions import ModelBuildError, MissingGeneratorError
from helpers import generate_log, pl_to_dict, pl_to_dict_with_tuple
from network_data import transform_data_model
from optimization_model import generate_unbalanced_opf_model
from pipeline_opf.configs import OPFConfig, FormulationKind, ProblemKind

log = generate_log(name=__name__)

Y_INDEX: list[str] = ["f_bus", "f_phase", "t_bus", "t_phase"]


@dataclass
class OPFModelInstance:
    """Instantiated optimization model with the data it was built from"""

    model: pyo.ConcreteModel
    math: MathModel
    formulation: FormulationKind
    problem: ProblemKind
    per_unit: bool = True


def _explode_phases(
    table: pl.DataFrame, id_cols: list[str], list_cols: list[str]
) -> pl.DataFrame:
    """One row per element and phase connection"""
    # Plain polars frame: the patito `cast` would restore the list dtypes of the model
    return (
        pl.DataFrame(table)
        .select(*id_cols, c("connections").alias("phase"), *list_cols)
        .explode(["phase", *list_cols])
        .with_columns(c("phase").cast(pl.Int64))
    )


def _split_cost(cost: list[float], gen_id: str) -> tuple[float, float, float]:
    if len(cost) > 3:
        raise ModelBuildError(
            f"generator '{gen_id}': cost polynomials above degree 2 are not supported"
        )
    c2, c1, c0 = [0.0] * (3 - len(cost)) + list(cost)
    return c2, c1, c0


def _terminal_index(
    terminals: list[tuple[int, int]],
    table: pl.DataFrame,
    bus_col: str,
    phase_col: str,
    value_cols: list[str],
) -> dict[tuple[int, int], list]:
    """
    Group the rows of a table by bus phase terminal. Every terminal gets an entry, empty
    when no row is connected to it.
    """
    index: dict[tuple[int, int], list] = {terminal: [] for terminal in terminals}
    for bus, phase, *values in table.select(bus_col, phase_col, *value_cols).rows():
        if (bus, phase) not in index:
            raise ModelBuildError(f"bus {bus} has no terminal {phase}")
        index[(bus, phase)].append(values[0] if len(values) == 1 else tuple(values))
    return index


def build_data_dict(math: MathModel) -> dict:
    """
    Build the pyomo data dictionary of the unbalanced OPF model from a mathematical model.

    Args:
        math (MathModel): The per-unit mathematical model.

    Returns:
        dict: Data dictionary for `create_instance`.
    """
    bus_phase = (
        pl.DataFrame(math.bus)
        .select(c("bus_i").cast(pl.Int64), c("terminals").alias("phase"))
        .explode("phase")
        .with_columns(c("phase").cast(pl.Int64))
    )
    terminals = bus_phase.rows()
    gen = pl.DataFrame(math.gen).with_columns(c("gen_bus").cast(pl.Int64))
    load = pl.DataFrame(math.load).with_columns(c("load_bus").cast(pl.Int64))
    ybus = pl.DataFrame(math.ybus).with_columns(c(Y_INDEX).cast(pl.Int64))

    reference = _explode_phases(
        gen.filter(c("vg").is_not_null()).rename({"gen_bus": "bus_i"}),
        id_cols=["bus_i"],
        list_cols=["vg", "va_ref"],
    )
    gen_phase = _explode_phases(gen, id_cols=["gen_id", "gen_bus"], list_cols=[])
    bounded_gen_phase = _explode_phases(
        gen.filter(c("pg_min").is_not_null()),
        id_cols=["gen_id"],
        list_cols=["pg_min", "pg_max", "qg_min", "qg_max"],
    )
    load_phase = _explode_phases(
        load, id_cols=["load_i", "load_bus"], list_cols=["pd", "qd"]
    )
    cost = pl.DataFrame(
        [
            (gen_id, *_split_cost(coefficients, gen_id))
            for gen_id, coefficients in gen.select("gen_id", "cost").rows()
        ],
        schema=["gen_id", "c2", "c1", "c0"],
        orient="row",
    )

    return {
        None: {
            "B": {None: pl.DataFrame(math.bus)["bus_i"].cast(pl.Int64).to_list()},
            "BΦ": {None: terminals},
            "ref_BΦ": {None: reference.select("bus_i", "phase").rows()},
            "G": {None: gen["gen_id"].to_list()},
            "GΦ": {None: gen_phase.select("gen_id", "phase").rows()},
            "GΦ_bounded": {None: bounded_gen_phase.select("gen_id", "phase").rows()},
            "L": {None: load["load_i"].to_list()},
            "LΦ": {None: load_phase.select("load_i", "phase").rows()},
            "Y": {None: ybus.select(Y_INDEX).rows()},
            "Y_neighbours": _terminal_index(
                terminals, ybus, "f_bus", "f_phase", ["t_bus", "t_phase"]
            ),
            "G_at": _terminal_index(terminals, gen_phase, "gen_bus", "phase", ["gen_id"]),
            "L_at": _terminal_index(
                terminals, load_phase, "load_bus", "phase", ["load_i"]
            ),
            "g": pl_to_dict_with_tuple(ybus.select(*Y_INDEX, "g")),
            "b": pl_to_dict_with_tuple(ybus.select(*Y_INDEX, "b")),
            "vm_ref": pl_to_dict_with_tuple(reference.select("bus_i", "phase", "vg")),
            "va_ref": pl_to_dict_with_tuple(
                reference.select("bus_i", "phase", "va_ref")
            ),
            "pd": pl_to_dict_with_tuple(load_phase.select("load_i", "phase", "pd")),
            "qd": pl_to_dict_with_tuple(load_phase.select("load_i", "phase", "qd")),
            "pg_min": pl_to_dict_with_tuple(
                bounded_gen_phase.select("gen_id", "phase", "pg_min")
            ),
            "pg_max": pl_to_dict_with_tuple(
                bounded_gen_phase.select("gen_id", "phase", "pg_max")
            ),
            "qg_min": pl_to_dict_with_tuple(
                bounded_gen_phase.select("gen_id", "phase", "qg_min")
            ),
            "qg_max": pl_to_dict_with_tuple(
                bounded_gen_phase.select("gen_id", "phase", "qg_max")
            ),
            "cost_c2": pl_to_dict(cost.select("gen_id", "c2")),
            "cost_c1": pl_to_dict(cost.select("gen_id", "c1")),
            "cost_c0": pl_to_dict(cost.select("gen_id", "c0")),
        }
    }


def build_model(
    math: MathModel,
    formulation: FormulationKind = FormulationKind.ACPU,
    problem: ProblemKind = ProblemKind.OPF,
) -> OPFModelInstance:
    """Instantiate the optimization model of the given formulation and problem"""
    if formulation != FormulationKind.ACPU or problem != ProblemKind.OPF:
        raise ModelBuildError(
            f"unsupported formulation {formulation.value} for problem {problem.value}"
        )
    abstract_model = generate_unbalanced_opf_model()
    model = abstract_model.create_instance(build_data_dict(math))  # type: ignore
    log.info(
        f"Model '{math.name}' instantiated: {len(model.BΦ)} bus phases, {len(model.GΦ)} generator phases"  # type: ignore
    )
    return OPFModelInstance(
        model=model,
        math=math,
        formulation=formulation,
        problem=problem,
        per_unit=math.per_unit,
    )


def set_generator_cost(math: MathModel, gen_id: str, cost: tuple[float, ...]) -> None:
    """
    Replace the cost polynomial of one generator.

    Raises:
        MissingGeneratorError: If the generator does not exist.
    """
    if gen_id not in math.gen["gen_id"].to_list():
        raise MissingGeneratorError(
            f"generator '{gen_id}' not found, available generators: {math.gen['gen_id'].to_list()}"
        )
    math.gen = math.gen.with_columns(
        pl.when(c("gen_id") == gen_id)
        .then(pl.lit(list(cost), dtype=pl.List(pl.Float64)))
        .otherwise(c("cost"))
        .alias("cost")
    )
    log.info(f"Cost of generator '{gen_id}' set to {list(cost)}")


def initialize_model(
    eng: EngineeringModel, config: OPFConfig
) -> tuple[OPFModelInstance, MathModel]:
    """
    Build the optimization model of an engineering network.

    The base power and power scale factor of the configuration are written into the
    engineering model settings before the per-unit transformation.

    Args:
        eng (EngineeringModel): The parsed network, its settings are modified.
        config (OPFConfig): The pipeline configuration.

    Returns:
        tuple[OPFModelInstance, MathModel]: The model instance and the mathematical model.
    """
    eng.settings.sbase_default = config.base_power
    eng.settings.power_scale_factor = config.power_scale_factor
    math = transform_data_model(eng)
    set_generator_cost(math, config.cost_generator_id, config.generator_cost)
    model_instance = build_model(math, FormulationKind.ACPU, ProblemKind.OPF)
    model_instance.per_unit = False
    return model_instance, math
