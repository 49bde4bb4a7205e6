r"""
Unbalanced AC power flow in polar voltage coordinates.

.. math::
    :label: acp-active-balance
    :nowrap:

    \begin{align}
        \sum_{g \in G_{b}} p^{g}_{g~\phi} - \sum_{l \in L_{b}} p^{d}_{l~\phi} =
        |V_{b~\phi}| \sum_{(j, \psi)} |V_{j~\psi}| \left( G_{b\phi~j\psi} \cos(\theta_{b\phi} - \theta_{j\psi})
        + B_{b\phi~j\psi} \sin(\theta_{b\phi} - \theta_{j\psi}) \right)
    \end{align}

.. math::
    :label: acp-reactive-balance
    :nowrap:

    \begin{align}
        \sum_{g \in G_{b}} q^{g}_{g~\phi} - \sum_{l \in L_{b}} q^{d}_{l~\phi} =
        |V_{b~\phi}| \sum_{(j, \psi)} |V_{j~\psi}| \left( G_{b\phi~j\psi} \sin(\theta_{b\phi} - \theta_{j\psi})
        - B_{b\phi~j\psi} \cos(\theta_{b\phi} - \theta_{j\psi}) \right)
    \end{align}

- :math:`G` and :math:`B` are the entries of the three-phase bus admittance matrix.
- The reference bus voltage magnitude and angle are fixed by the voltage source.
"""

import pyomo.environ as pyo

#### OBJECTIVE FUNCTIONS ####


def total_active_power(m, g):
    return sum(m.pg[g_, φ] for g_, φ in m.GΦ if g_ == g)


def objective_rule_generation_cost(m):
    # Minimize the polynomial generation cost of the total injected power
    return sum(
        m.cost_c2[g] * total_active_power(m, g) ** 2
        + m.cost_c1[g] * total_active_power(m, g)
        + m.cost_c0[g]
        for g in m.G
    )


##### CONSTRAINTS #####


# (1) Reference bus: voltage magnitude and angle fixed by the source.
def reference_voltage_magnitude_rule(m, b, φ):
    return m.vm[b, φ] == m.vm_ref[b, φ]


def reference_voltage_angle_rule(m, b, φ):
    return m.va[b, φ] == m.va_ref[b, φ]


# (2) Nodal power balance per bus and phase.
# A terminal without admittance entry has no power flowing through it.
def is_isolated_terminal(m, b, φ):
    return len(m.Y_neighbours[b, φ]) == 0


def active_power_balance_rule(m, b, φ):
    if is_isolated_terminal(m, b, φ):
        return pyo.Constraint.Skip
    p_gen = sum(m.pg[g, φ] for g in m.G_at[b, φ])
    p_load = sum(m.pd[l, φ] for l in m.L_at[b, φ])
    p_injection = m.vm[b, φ] * sum(
        m.vm[j, ψ]
        * (
            m.g[b, φ, j, ψ] * pyo.cos(m.va[b, φ] - m.va[j, ψ])
            + m.b[b, φ, j, ψ] * pyo.sin(m.va[b, φ] - m.va[j, ψ])
        )
        for j, ψ in m.Y_neighbours[b, φ]
    )
    return p_gen - p_load == p_injection


def reactive_power_balance_rule(m, b, φ):
    if is_isolated_terminal(m, b, φ):
        return pyo.Constraint.Skip
    q_gen = sum(m.qg[g, φ] for g in m.G_at[b, φ])
    q_load = sum(m.qd[l, φ] for l in m.L_at[b, φ])
    q_injection = m.vm[b, φ] * sum(
        m.vm[j, ψ]
        * (
            m.g[b, φ, j, ψ] * pyo.sin(m.va[b, φ] - m.va[j, ψ])
            - m.b[b, φ, j, ψ] * pyo.cos(m.va[b, φ] - m.va[j, ψ])
        )
        for j, ψ in m.Y_neighbours[b, φ]
    )
    return q_gen - q_load == q_injection


# (3) Generator limits.
def generator_active_power_bounds_rule(m, g, φ):
    return (m.pg_min[g, φ], m.pg[g, φ], m.pg_max[g, φ])


def generator_reactive_power_bounds_rule(m, g, φ):
    return (m.qg_min[g, φ], m.qg[g, φ], m.qg_max[g, φ])


def model_constraints(model: pyo.AbstractModel) -> pyo.AbstractModel:
    # 1) Reference bus
    model.reference_voltage_magnitude = pyo.Constraint(
        model.ref_BΦ, rule=reference_voltage_magnitude_rule
    )
    model.reference_voltage_angle = pyo.Constraint(
        model.ref_BΦ, rule=reference_voltage_angle_rule
    )
    # 2) Power balance
    model.active_power_balance = pyo.Constraint(
        model.BΦ, rule=active_power_balance_rule
    )
    model.reactive_power_balance = pyo.Constraint(
        model.BΦ, rule=reactive_power_balance_rule
    )
    # 3) Generator limits
    model.generator_active_power_bounds = pyo.Constraint(
        model.GΦ_bounded, rule=generator_active_power_bounds_rule
    )
    model.generator_reactive_power_bounds = pyo.Constraint(
        model.GΦ_bounded, rule=generator_reactive_power_bounds_rule
    )
    model.objective = pyo.Objective(
        rule=objective_rule_generation_cost, sense=pyo.minimize
    )
    return model
