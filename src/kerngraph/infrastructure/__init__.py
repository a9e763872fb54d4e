from ._computation import Computation
from ._graph import Graph
from ._tensor_store import TensorStore

__all__ = ["Computation", "Graph", "TensorStore"]
