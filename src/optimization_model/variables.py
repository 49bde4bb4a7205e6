import math
import pyomo.environ as pyo

# Balanced voltage angles used as starting point (rad)
PHASE_ANGLE_INIT: dict[int, float] = {1: 0.0, 2: -2 * math.pi / 3, 3: 2 * math.pi / 3}


def model_variables(model: pyo.AbstractModel) -> pyo.AbstractModel:
    # Polar voltage variables
    model.vm = pyo.Var(model.BΦ, bounds=(0, None), initialize=1.0)
    model.va = pyo.Var(
        model.BΦ, domain=pyo.Reals, initialize=lambda m, b, φ: PHASE_ANGLE_INIT[φ]
    )
    # Generator injections
    model.pg = pyo.Var(model.GΦ, domain=pyo.Reals, initialize=0.0)
    model.qg = pyo.Var(model.GΦ, domain=pyo.Reals, initialize=0.0)
    return model
