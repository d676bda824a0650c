from __future__ import annotations
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple, Union
import numpy # type: ignore
import pandas

import utils.log as log


NEST_COLUMNS = ["level", "node", "parent", "exponent"]


class DecisionNode(NamedTuple):
    node: str
    parent: Optional[str]
    level: Union[int, str]
    sector: str
    exponent: float
    vehicle_type: Optional[str] = None
    technology: Optional[str] = None


def _is_missing(val) -> bool:
    return val is None or (isinstance(val, float) and numpy.isnan(val)) or val == ""


class NestTopology:
    """Static nested logit decision tree.

    Roots (nodes without parent) are sectors, e.g. passenger and freight.
    Leaves are (vehicle type, technology) alternatives.

        passenger
        /       \\
      4W         Bus
     /   \\        \\
    BEV  Liquids  Liquids

    Parameters
    ----------
    nodes : pandas.DataFrame
        Columns `level`, `node`, `parent` and `exponent`.
        Optional columns `vehicle_type` and `technology` give the leaf
        mapping. If they are missing or empty for a leaf, the parent node
        is taken as vehicle type and the node as technology.
        The exponent (> 0) is the logit sharpness of the choice between
        the children of the node, smaller meaning more substitutable.
    """

    def __init__(self, nodes: pandas.DataFrame):
        missing = [col for col in NEST_COLUMNS if col not in nodes]
        if missing:
            msg = "Nest topology lacks columns {}".format(", ".join(missing))
            log.error(msg)
            raise ValueError(msg)
        self._children: Dict[str, List[str]] = {}
        raw: Dict[str, dict] = {}
        for row in nodes.to_dict("records"):
            node = str(row["node"])
            if node in raw:
                msg = f"Node {node} defined twice in nest topology"
                log.error(msg)
                raise ValueError(msg)
            parent = None if _is_missing(row["parent"]) else str(row["parent"])
            raw[node] = row
            raw[node]["parent"] = parent
            self._children.setdefault(node, [])
        for node, row in raw.items():
            parent = row["parent"]
            if parent is None:
                continue
            if parent not in raw:
                msg = f"Parent {parent} of node {node} not in nest topology"
                log.error(msg)
                raise ValueError(msg)
            self._children[parent].append(node)
        self._nodes: Dict[str, DecisionNode] = {}
        self._leaf_index: Dict[Tuple[str, str], str] = {}
        for node, row in raw.items():
            sector = self._find_root(node, raw)
            exponent = (numpy.nan if _is_missing(row["exponent"])
                        else float(row["exponent"]))
            if self._children[node]:
                if not numpy.isfinite(exponent) or exponent <= 0:
                    msg = f"Exponent of node {node} must be positive"
                    log.error(msg)
                    raise ValueError(msg)
                vehicle_type, technology = None, None
            else:
                vehicle_type = row.get("vehicle_type")
                technology = row.get("technology")
                if _is_missing(vehicle_type) or _is_missing(technology):
                    if row["parent"] is None:
                        msg = f"Sector {node} has no alternatives"
                        log.error(msg)
                        raise ValueError(msg)
                    vehicle_type, technology = row["parent"], node
                key = (str(vehicle_type), str(technology))
                if key in self._leaf_index:
                    msg = "Leaves {} and {} both map to {}".format(
                        self._leaf_index[key], node, key)
                    log.error(msg)
                    raise ValueError(msg)
                self._leaf_index[key] = node
                vehicle_type, technology = key
            self._nodes[node] = DecisionNode(
                node, row["parent"], row["level"], sector, exponent,
                vehicle_type, technology)
        self.roots = [node for node in self._nodes
                      if self._nodes[node].parent is None]

    def _find_root(self, node: str, raw: Dict[str, dict]) -> str:
        visited = {node}
        while raw[node]["parent"] is not None:
            node = raw[node]["parent"]
            if node in visited:
                msg = f"Nest topology has a cycle through node {node}"
                log.error(msg)
                raise ValueError(msg)
            visited.add(node)
        return node

    def __getitem__(self, node: str) -> DecisionNode:
        return self._nodes[node]

    def __contains__(self, node: str) -> bool:
        return node in self._nodes

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def children(self, node: str) -> List[str]:
        return self._children[node]

    def is_leaf(self, node: str) -> bool:
        return not self._children[node]

    def exponent(self, node: str) -> float:
        return self._nodes[node].exponent

    @property
    def leaves(self) -> List[str]:
        return [node for node in self._nodes if self.is_leaf(node)]

    @property
    def vehicle_types(self) -> List[str]:
        return list(dict.fromkeys(vt for vt, _ in self._leaf_index))

    def leaf_node(self, vehicle_type: str, technology: str) -> str:
        """Return leaf node key of (vehicle type, technology) alternative.

        Raises
        ------
        KeyError
            If alternative is not in topology
        """
        return self._leaf_index[(vehicle_type, technology)]

    def find_leaf(self, vehicle_type: str, technology: str) -> Optional[str]:
        return self._leaf_index.get((vehicle_type, technology))

    def bottom_up(self, root: Optional[str] = None) -> Iterator[str]:
        """Iterate nodes so that children come before their parents."""
        for r in ([root] if root is not None else self.roots):
            yield from self._post_order(r)

    def _post_order(self, node: str) -> Iterator[str]:
        for child in self._children[node]:
            yield from self._post_order(child)
        yield node

    def top_down(self, root: Optional[str] = None) -> Iterator[str]:
        """Iterate nodes so that parents come before their children."""
        for r in ([root] if root is not None else self.roots):
            yield from self._pre_order(r)

    def _pre_order(self, node: str) -> Iterator[str]:
        yield node
        for child in self._children[node]:
            yield from self._pre_order(child)

    def to_frame(self) -> pandas.DataFrame:
        return pandas.DataFrame(
            list(self._nodes.values()), columns=DecisionNode._fields)
