import pyomo.environ as pyo


def model_parameters(model: pyo.AbstractModel) -> pyo.AbstractModel:
    # Bus admittance matrix (pu)
    model.g = pyo.Param(model.Y)
    model.b = pyo.Param(model.Y)
    # Reference bus voltage (pu and rad)
    model.vm_ref = pyo.Param(model.ref_BΦ)
    model.va_ref = pyo.Param(model.ref_BΦ)
    # Constant power loads (pu)
    model.pd = pyo.Param(model.LΦ)
    model.qd = pyo.Param(model.LΦ)
    # Generator limits (pu)
    model.pg_min = pyo.Param(model.GΦ_bounded)
    model.pg_max = pyo.Param(model.GΦ_bounded)
    model.qg_min = pyo.Param(model.GΦ_bounded)
    model.qg_max = pyo.Param(model.GΦ_bounded)
    # Polynomial cost coefficients
    model.cost_c2 = pyo.Param(model.G, default=0.0)
    model.cost_c1 = pyo.Param(model.G, default=0.0)
    model.cost_c0 = pyo.Param(model.G, default=0.0)
    return model
