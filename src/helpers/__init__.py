from helpers.general import (
    generate_log,
    pl_to_dict,
    pl_to_dict_with_tuple,
    build_pt_table,
)
from helpers.networkx import (
    generate_nx_graph,
    get_unreachable_nodes,
    generate_bfs_tree_with_edge_data,
)
from helpers.pyomo import extract_optimization_results

__all__ = [
    "generate_log",
    "pl_to_dict",
    "pl_to_dict_with_tuple",
    "build_pt_table",
    "generate_nx_graph",
    "get_unreachable_nodes",
    "generate_bfs_tree_with_edge_data",
    "extract_optimization_results",
]
