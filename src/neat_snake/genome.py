from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .activations import Activation
from .fitness import FitnessRecord
from .genes import (
    ConnectionGene,
    ConnectionIndex,
    Layer,
    NodeGene,
    NodeIndex,
    NodeKind,
    initial_layer,
)
from .innovation import GENE_IDS, GeneIdAllocator


class GenomeStructureError(RuntimeError):
    """The gene graph is corrupt. Never raised for bad external input."""


@dataclass
class Genome:
    genome_id: int
    input_count: int
    output_count: int
    nodes: list[NodeGene] = field(default_factory=list)
    connections: list[ConnectionGene] = field(default_factory=list)
    fitness: FitnessRecord | None = None
    order_is_current: bool = False
    evaluation_order: list[int] = field(default_factory=list)
    _node_positions: dict[int, int] = field(default_factory=dict, repr=False)
    _connection_positions: dict[int, int] = field(default_factory=dict, repr=False)

    @classmethod
    def new(
        cls,
        input_count: int,
        output_count: int,
        ids: GeneIdAllocator = GENE_IDS,
        output_activation: Activation = Activation.SIGMOID,
    ) -> "Genome":
        genome = cls(genome_id=ids.new_genome_id(), input_count=input_count, output_count=output_count)
        for _ in range(input_count):
            genome.append_node(ids.new_node_id(), NodeKind.INPUT, Activation.IDENTITY)
        for _ in range(output_count):
            genome.append_node(ids.new_node_id(), NodeKind.OUTPUT, output_activation)
        return genome

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def node(self, index: NodeIndex) -> NodeGene:
        if index.genome_id != self.genome_id:
            raise GenomeStructureError(
                f"Node index {index} belongs to genome {index.genome_id}, not {self.genome_id}"
            )
        return self.nodes[index.position]

    def connection(self, index: ConnectionIndex) -> ConnectionGene:
        if index.genome_id != self.genome_id:
            raise GenomeStructureError(
                f"Connection index {index} belongs to genome {index.genome_id}, not {self.genome_id}"
            )
        return self.connections[index.position]

    def node_by_id(self, node_id: int) -> NodeGene | None:
        pos = self._node_positions.get(node_id)
        return None if pos is None else self.nodes[pos]

    def connection_by_id(self, connection_id: int) -> ConnectionGene | None:
        pos = self._connection_positions.get(connection_id)
        return None if pos is None else self.connections[pos]

    @property
    def input_nodes(self) -> list[NodeGene]:
        return self.nodes[: self.input_count]

    @property
    def output_nodes(self) -> list[NodeGene]:
        return self.nodes[self.input_count : self.input_count + self.output_count]

    @property
    def hidden_nodes(self) -> list[NodeGene]:
        return self.nodes[self.input_count + self.output_count :]

    def complexity(self) -> tuple[int, int]:
        enabled = sum(1 for c in self.connections if c.enabled)
        return len(self.hidden_nodes), enabled

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------
    def append_node(self, node_id: int, kind: NodeKind, activation: Activation) -> NodeGene:
        node = NodeGene(
            index=NodeIndex(self.genome_id, len(self.nodes)),
            node_id=node_id,
            kind=kind,
            activation=activation,
            layer=initial_layer(kind),
        )
        self.nodes.append(node)
        self._node_positions[node_id] = node.index.position
        self.order_is_current = False
        return node

    def add_hidden_node(self, activation: Activation, ids: GeneIdAllocator = GENE_IDS) -> NodeGene:
        return self.append_node(ids.new_node_id(), NodeKind.HIDDEN, activation)

    def add_connection(
        self,
        src: NodeIndex,
        dst: NodeIndex,
        weight: float,
        enabled: bool = True,
        ids: GeneIdAllocator = GENE_IDS,
        connection_id: int | None = None,
    ) -> ConnectionGene:
        dst_node = self.node(dst)
        self.node(src)
        conn = ConnectionGene(
            index=ConnectionIndex(self.genome_id, len(self.connections)),
            connection_id=ids.new_connection_id() if connection_id is None else connection_id,
            src=src,
            dst=dst,
            weight=float(weight),
            enabled=enabled,
        )
        self.connections.append(conn)
        self._connection_positions[conn.connection_id] = conn.index.position
        dst_node.incoming.append(conn.index)
        self.order_is_current = False
        return conn

    def invalidate(self) -> None:
        self.order_is_current = False

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def set_inputs(self, values: Sequence[float]) -> None:
        if len(values) != self.input_count:
            raise ValueError(f"Expected {self.input_count} inputs, got {len(values)}")
        for node, value in zip(self.input_nodes, values):
            node.value = float(value)

    def get_outputs(self) -> list[float]:
        return [node.value for node in self.output_nodes]

    def evaluate(self) -> None:
        if not self.order_is_current:
            raise GenomeStructureError(
                f"Genome {self.genome_id} evaluated with a stale evaluation order"
            )
        nodes = self.nodes
        connections = self.connections
        for pos in self.evaluation_order:
            node = nodes[pos]
            if node.kind is NodeKind.INPUT:
                continue
            total = 0.0
            for cidx in node.incoming:
                conn = connections[cidx.position]
                if conn.enabled:
                    total += nodes[conn.src.position].value * conn.weight
            node.value = node.activation.apply(total)

    def build_evaluation_order(self) -> None:
        if self.order_is_current:
            return
        self.evaluation_order = self._traversal_order()
        self._assign_layers()
        self.order_is_current = True

    def _traversal_order(self) -> list[int]:
        # Post-order walk back from every output through enabled connections only.
        limit = 2 * len(self.nodes)
        done = [False] * len(self.nodes)
        order: list[int] = []
        for out in self.output_nodes:
            start = out.index.position
            if done[start]:
                continue
            stack = [(start, 0)]
            on_path = {start}
            while stack:
                if len(stack) > limit:
                    raise self._cycle_error(stack[-1][0])
                pos, i = stack[-1]
                incoming = self.nodes[pos].incoming
                if i < len(incoming):
                    stack[-1] = (pos, i + 1)
                    conn = self.connection(incoming[i])
                    if not conn.enabled:
                        continue
                    pred = conn.src.position
                    if done[pred]:
                        continue
                    if pred in on_path:
                        raise self._cycle_error(pred)
                    stack.append((pred, 0))
                    on_path.add(pred)
                    continue
                stack.pop()
                on_path.discard(pos)
                done[pos] = True
                order.append(pos)
        return order

    def _assign_layers(self) -> None:
        # Depth uses every connection, enabled or not, so toggling never moves a node.
        count = len(self.nodes)
        limit = 2 * count
        depth: list[int | None] = [None] * count
        rooted = [False] * count
        for start in range(count):
            if depth[start] is not None:
                continue
            stack = [(start, 0)]
            on_path = {start}
            while stack:
                if len(stack) > limit:
                    raise self._cycle_error(stack[-1][0])
                pos, i = stack[-1]
                incoming = self.nodes[pos].incoming
                if i < len(incoming):
                    stack[-1] = (pos, i + 1)
                    pred = self.connection(incoming[i]).src.position
                    if depth[pred] is not None:
                        continue
                    if pred in on_path:
                        raise self._cycle_error(pred)
                    stack.append((pred, 0))
                    on_path.add(pred)
                    continue
                stack.pop()
                on_path.discard(pos)
                preds = [self.connections[c.position].src.position for c in incoming]
                depth[pos] = 1 + max(depth[p] for p in preds) if preds else 0
                rooted[pos] = self.nodes[pos].kind is NodeKind.INPUT or any(rooted[p] for p in preds)

        output_depth = max([1] + [d for d in depth if d is not None])
        for pos, node in enumerate(self.nodes):
            if node.kind is NodeKind.INPUT:
                node.layer = Layer.input()
            elif node.kind is NodeKind.OUTPUT:
                node.layer = Layer.output(output_depth)
            elif rooted[pos]:
                node.layer = Layer.hidden(depth[pos])
            else:
                node.layer = Layer.unreachable()

    def _cycle_error(self, position: int) -> GenomeStructureError:
        return GenomeStructureError(
            f"Cycle detected at node position {position} of genome {self.genome_id}\n{self.describe()}"
        )

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------
    def verify_invariants(self) -> None:
        def fail(message: str) -> None:
            raise GenomeStructureError(f"{message}\n{self.describe()}")

        gid = self.genome_id
        node_count = len(self.nodes)
        conn_count = len(self.connections)

        layout = self._layout_error()
        if layout is not None:
            fail(layout)
        for pos, node in enumerate(self.nodes):
            if node.index != NodeIndex(gid, pos):
                fail(f"Node at position {pos} carries index {node.index}")
        for pos, conn in enumerate(self.connections):
            if conn.index != ConnectionIndex(gid, pos):
                fail(f"Connection at position {pos} carries index {conn.index}")
            for end in (conn.src, conn.dst):
                if end.genome_id != gid or not 0 <= end.position < node_count:
                    fail(f"Connection {conn.connection_id} references foreign node {end}")

        if len({n.node_id for n in self.nodes}) != node_count:
            fail("Duplicate node IDs")
        if len({c.connection_id for c in self.connections}) != conn_count:
            fail("Duplicate connection IDs")
        if any(self._node_positions.get(n.node_id) != n.index.position for n in self.nodes):
            fail("Node ID lookup out of sync")
        if any(self._connection_positions.get(c.connection_id) != c.index.position for c in self.connections):
            fail("Connection ID lookup out of sync")

        listed = 0
        for node in self.nodes:
            if len(set(node.incoming)) != len(node.incoming):
                fail(f"Node {node.node_id} lists an incoming connection twice")
            for cidx in node.incoming:
                if cidx.genome_id != gid or not 0 <= cidx.position < conn_count:
                    fail(f"Node {node.node_id} references foreign connection {cidx}")
                if self.connections[cidx.position].dst != node.index:
                    fail(f"Node {node.node_id} lists connection {cidx} that does not end at it")
            listed += len(node.incoming)
        if listed != conn_count:
            fail("Some connections are missing from their output node's incoming list")

        if not self.order_is_current:
            return

        for conn in self.connections:
            src = self.nodes[conn.src.position].layer
            dst = self.nodes[conn.dst.position].layer
            if src.is_unreachable or dst.is_unreachable:
                continue
            if not src.comes_before(dst):
                fail(f"Connection {conn.connection_id} runs from layer {src} to layer {dst}")

        placed = {pos: i for i, pos in enumerate(self.evaluation_order)}
        for conn in self.connections:
            if not conn.enabled or conn.dst.position not in placed:
                continue
            if placed.get(conn.src.position, len(placed)) >= placed[conn.dst.position]:
                fail(f"Connection {conn.connection_id} is not respected by the evaluation order")

    def _layout_error(self) -> str | None:
        # Inputs occupy [0, N), outputs [N, N+M), hidden nodes the rest.
        boundary = self.input_count + self.output_count
        if len(self.nodes) < boundary:
            return f"Expected at least {boundary} nodes, found {len(self.nodes)}"
        for pos, node in enumerate(self.nodes):
            if pos < self.input_count:
                expected = NodeKind.INPUT
            elif pos < boundary:
                expected = NodeKind.OUTPUT
            else:
                expected = NodeKind.HIDDEN
            if node.kind is not expected:
                return f"Node at position {pos} is {node.kind.value}, expected {expected.value}"
        return None

    def describe(self) -> str:
        lines = [
            f"Genome {self.genome_id} ({self.input_count} in, {self.output_count} out, "
            f"order_current={self.order_is_current})"
        ]
        for node in self.nodes:
            lines.append(
                f"  node #{node.index.position} id={node.node_id} {node.kind.value} "
                f"{node.activation.value} layer={node.layer} in={[c.position for c in node.incoming]}"
            )
        for conn in self.connections:
            lines.append(
                f"  conn #{conn.index.position} id={conn.connection_id} "
                f"{conn.src.position}->{conn.dst.position} w={conn.weight:.4f} "
                f"{'on' if conn.enabled else 'off'}"
            )
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Copies and serialization
    # ------------------------------------------------------------------
    def clone(self, new_id: int | None = None) -> "Genome":
        gid = self.genome_id if new_id is None else new_id
        twin = Genome(
            genome_id=gid,
            input_count=self.input_count,
            output_count=self.output_count,
            fitness=self.fitness,
            order_is_current=self.order_is_current,
            evaluation_order=list(self.evaluation_order),
            _node_positions=dict(self._node_positions),
            _connection_positions=dict(self._connection_positions),
        )
        twin.nodes = [
            NodeGene(
                index=NodeIndex(gid, n.index.position),
                node_id=n.node_id,
                kind=n.kind,
                activation=n.activation,
                layer=n.layer,
                incoming=[ConnectionIndex(gid, c.position) for c in n.incoming],
                value=n.value,
            )
            for n in self.nodes
        ]
        twin.connections = [
            ConnectionGene(
                index=ConnectionIndex(gid, c.index.position),
                connection_id=c.connection_id,
                src=NodeIndex(gid, c.src.position),
                dst=NodeIndex(gid, c.dst.position),
                weight=c.weight,
                enabled=c.enabled,
            )
            for c in self.connections
        ]
        return twin

    def to_dict(self) -> dict[str, Any]:
        return {
            "genome_id": self.genome_id,
            "input_count": self.input_count,
            "output_count": self.output_count,
            "fitness": None if self.fitness is None else self.fitness.to_dict(),
            "nodes": [
                {"node_id": n.node_id, "kind": n.kind.value, "activation": n.activation.value}
                for n in self.nodes
            ],
            "connections": [
                {
                    "connection_id": c.connection_id,
                    "src": self.nodes[c.src.position].node_id,
                    "dst": self.nodes[c.dst.position].node_id,
                    "weight": c.weight,
                    "enabled": c.enabled,
                }
                for c in self.connections
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], ids: GeneIdAllocator = GENE_IDS) -> "Genome":
        genome = cls(
            genome_id=int(data["genome_id"]),
            input_count=int(data["input_count"]),
            output_count=int(data["output_count"]),
        )
        for n in data["nodes"]:
            genome.append_node(int(n["node_id"]), NodeKind(n["kind"]), Activation(n["activation"]))
        layout = genome._layout_error()
        if layout is not None:
            raise ValueError(f"Genome {genome.genome_id} has a bad node layout: {layout}")
        for c in data["connections"]:
            src = genome.node_by_id(int(c["src"]))
            dst = genome.node_by_id(int(c["dst"]))
            if src is None or dst is None:
                raise ValueError(f"Connection {c['connection_id']} references an unknown node")
            genome.add_connection(
                src.index,
                dst.index,
                float(c["weight"]),
                enabled=bool(c["enabled"]),
                connection_id=int(c["connection_id"]),
            )
        if data.get("fitness") is not None:
            genome.fitness = FitnessRecord.from_dict(data["fitness"])

        ids.reserve(
            node_id=max(genome._node_positions, default=0),
            connection_id=max(genome._connection_positions, default=0),
            genome_id=genome.genome_id,
        )
        genome.build_evaluation_order()
        if __debug__:
            genome.verify_invariants()
        return genome
