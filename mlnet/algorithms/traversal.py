from ..core._helpers import _check_mode


# Traversal (neighbors)
class Traversal:
    def neighbors(self, actor, layers=None, mode="all"):
        """Distinct actors adjacent to ``actor`` on the selected layers.

        Parameters
        --
        actor : str
        layers : iterable[str], optional
            Layer subset; all layers when omitted.
        mode : {"all", "in", "out"}
            Only meaningful on directed layers; undirected edges count in every mode.

        Returns
        ---
        list[str]
            In order of first appearance. An actor absent from a layer simply has no
            neighbors there.

        """
        self._require_actor(actor)
        _check_mode(mode)
        out = {}
        with self._lock:
            for layer in self._layer_selection(layers):
                for nb in self._layer_neighbors(actor, layer, mode):
                    out[nb] = None
        return list(out)

    def out_neighbors(self, actor, layers=None):
        """Successors of ``actor`` (undirected edges count both ways)."""
        return self.neighbors(actor, layers, mode="out")

    def successors(self, actor, layers=None):
        """Alias of :meth:`out_neighbors`."""
        return self.neighbors(actor, layers, mode="out")

    def in_neighbors(self, actor, layers=None):
        """Predecessors of ``actor`` (undirected edges count both ways)."""
        return self.neighbors(actor, layers, mode="in")

    def predecessors(self, actor, layers=None):
        """Alias of :meth:`in_neighbors`."""
        return self.neighbors(actor, layers, mode="in")

    def layer_degree(self, actor, layer, mode="all"):
        """Number of edges incident to ``actor`` on one layer.

        On a directed layer ``mode="all"`` counts in- plus out-edges, so a
        reciprocated pair a->b, b->a contributes 2.
        """
        if actor not in self._vertices[layer]:
            return 0
        if not self._directed[layer]:
            return len(self._out[layer][actor])
        if mode == "out":
            return len(self._out[layer][actor])
        if mode == "in":
            return len(self._in[layer][actor])
        return len(self._out[layer][actor]) + len(self._in[layer][actor])

    def _layer_neighbors(self, actor, layer, mode="all"):
        if actor not in self._vertices[layer]:
            return ()
        if mode == "out" or not self._directed[layer]:
            return self._out[layer][actor].keys()
        if mode == "in":
            return self._in[layer][actor].keys()
        return {**self._out[layer][actor], **self._in[layer][actor]}.keys()
