import polars as pl
import networkx as nx

from helpers.general import generate_log


# Global variable
log = generate_log(name=__name__)


def generate_nx_graph(edge_data: pl.DataFrame, nodes: list | None = None) -> nx.Graph:
    """
    Generate an undirected NetworkX graph from edge data.

    Args:
        edge_data (pl.DataFrame): Polars DataFrame with `u_of_edge` and `v_of_edge` columns,
            every other column is stored as edge data.
        nodes (list, optional): Nodes to add even when they are not connected to any edge.

    Returns:
        nx.Graph: The generated graph.
    """
    nx_graph = nx.Graph()
    if nodes is not None:
        nx_graph.add_nodes_from(nodes)
    for edge in edge_data.to_dicts():
        nx_graph.add_edge(**edge)
    return nx_graph


def get_unreachable_nodes(nx_graph: nx.Graph, source) -> list:
    """
    Get every node that cannot be reached from the source node.

    Args:
        nx_graph (nx.Graph): The NetworkX graph.
        source (node): The starting node.

    Returns:
        list: Unreachable nodes, in graph insertion order.
    """
    reachable = nx.node_connected_component(nx_graph, source)
    return [node for node in nx_graph.nodes if node not in reachable]


def generate_bfs_tree_with_edge_data(graph: nx.Graph, source):
    """
    Create a BFS tree from a graph while retaining edge data.

    Parameters:
        graph (nx.Graph): The input graph.
        source (node): The starting node for BFS.

    Returns:
        nx.DiGraph: A directed BFS tree with edge data preserved.
    """
    bfs_tree = nx.DiGraph()
    bfs_tree.add_node(source)
    for u, v in nx.bfs_edges(graph, source):
        edge_data = graph.get_edge_data(u, v)
        bfs_tree.add_edge(u, v, **edge_data)

    return bfs_tree
