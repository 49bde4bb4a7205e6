import pyomo.environ as pyo


def model_sets(model: pyo.AbstractModel) -> pyo.AbstractModel:
    model.B = pyo.Set()  # Bus indices
    model.BΦ = pyo.Set(dimen=2)  # Bus phase terminals
    model.ref_BΦ = pyo.Set(dimen=2, within=model.BΦ)  # Reference bus terminals
    model.G = pyo.Set()  # Generator ids
    model.GΦ = pyo.Set(dimen=2)  # Generator phase connections
    model.GΦ_bounded = pyo.Set(dimen=2, within=model.GΦ)
    model.L = pyo.Set()  # Load ids
    model.LΦ = pyo.Set(dimen=2)  # Load phase connections
    # Non-zero bus admittance entries (from bus, from phase, to bus, to phase)
    model.Y = pyo.Set(dimen=4)
    # Per bus phase terminal: admittance neighbours, connected generators and loads
    model.Y_neighbours = pyo.Set(model.BΦ, dimen=2, within=model.BΦ)  # type: ignore
    model.G_at = pyo.Set(model.BΦ, within=model.G)  # type: ignore
    model.L_at = pyo.Set(model.BΦ, within=model.L)  # type: ignore
    return model
