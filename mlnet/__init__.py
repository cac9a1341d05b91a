# mlnet/__init__.py
"""mlnet: multilayer network analysis."""

from __future__ import annotations

from importlib import import_module
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version
from typing import Any

# Lazily exposed submodules (imported on first attribute access)
_lazy_submodules = {
    "core": "mlnet.core",
    "algorithms": "mlnet.algorithms",
    "adapters": "mlnet.adapters",
    "io": "mlnet.io",
    "generation": "mlnet.generation",
    "measures": "mlnet.algorithms.measures",
    "comparison": "mlnet.algorithms.comparison",
    "distance": "mlnet.algorithms.distance",
    "community": "mlnet.algorithms.community",
    "networkx": "mlnet.adapters.networkx_adapter",
}

# Curated top-level symbols (lazy). name -> (module, attribute)
_lazy_symbols: dict[str, tuple[str, str]] = {
    # Store and errors
    "MultiNet": ("mlnet.core.graph", "MultiNet"),
    "MultiNetError": ("mlnet.core._helpers", "MultiNetError"),
    "SchemaError": ("mlnet.core._helpers", "SchemaError"),
    "UnknownReferenceError": ("mlnet.core._helpers", "UnknownReferenceError"),
    "ParameterError": ("mlnet.core._helpers", "ParameterError"),
    "AttrType": ("mlnet.core._helpers", "AttrType"),
    "EdgeType": ("mlnet.core._helpers", "EdgeType"),
    # Text format
    "read_ml": ("mlnet.io.ml_io", "read_ml"),
    "write_ml": ("mlnet.io.ml_io", "write_ml"),
    # Measures
    "degree": ("mlnet.algorithms.measures", "degree"),
    "neighborhood": ("mlnet.algorithms.measures", "neighborhood"),
    "xneighborhood": ("mlnet.algorithms.measures", "xneighborhood"),
    "relevance": ("mlnet.algorithms.measures", "relevance"),
    "xrelevance": ("mlnet.algorithms.measures", "xrelevance"),
    "degree_deviation": ("mlnet.algorithms.measures", "degree_deviation"),
    "actor_measures": ("mlnet.algorithms.measures", "actor_measures"),
    "layer_degrees": ("mlnet.algorithms.measures", "layer_degrees"),
    # Layer comparison
    "layer_comparison": ("mlnet.algorithms.comparison", "layer_comparison"),
    "COMPARISON_METHODS": ("mlnet.algorithms.comparison", "COMPARISON_METHODS"),
    # Distance
    "pareto_distance": ("mlnet.algorithms.distance", "pareto_distance"),
    "distance_table": ("mlnet.algorithms.distance", "distance_table"),
    # Communities
    "glouvain": ("mlnet.algorithms.community", "glouvain"),
    "clique_percolation": ("mlnet.algorithms.community", "clique_percolation"),
    "modularity": ("mlnet.algorithms.community", "modularity"),
    "nmi": ("mlnet.algorithms.community", "nmi"),
    "community_list": ("mlnet.algorithms.community", "community_list"),
    # Summary
    "layer_summary": ("mlnet.algorithms.summary", "layer_summary"),
    # Growth
    "grow": ("mlnet.generation.growth", "grow"),
    "PreferentialAttachment": ("mlnet.generation.growth", "PreferentialAttachment"),
    "RandomAttachment": ("mlnet.generation.growth", "RandomAttachment"),
    # NetworkX adapter
    "to_nx": ("mlnet.adapters.networkx_adapter", "to_nx"),
    "from_nx": ("mlnet.adapters.networkx_adapter", "from_nx"),
}

__all__ = sorted(set(list(_lazy_submodules) + list(_lazy_symbols)))


def __getattr__(name: str) -> Any:  # PEP 562: lazy attribute resolution
    if name in _lazy_submodules:
        return import_module(_lazy_submodules[name])
    if name in _lazy_symbols:
        mod, attr = _lazy_symbols[name]
        return getattr(import_module(mod), attr)
    raise AttributeError(name)


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + list(__all__))


try:
    __version__ = _pkg_version("mlnet")
except PackageNotFoundError:
    __version__ = "0.0.0"
