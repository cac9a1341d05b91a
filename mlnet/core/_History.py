import inspect
import json
import time
from datetime import UTC, datetime
from enum import Enum
from functools import wraps

import numpy as np

import polars as pl


class History:
    # History and Timeline

    # Mutating methods to wrap. Add here if you add new mutators.
    _MUTATORS = (
        "add_actor",
        "remove_actor",
        "add_layer",
        "add_vertex",
        "remove_vertex",
        "add_edge",
        "remove_edge",
        "add_attribute",
        "set_actor_attrs",
        "set_vertex_attrs",
        "set_edge_attrs",
        "align",
        "flatten",
    )

    def _utcnow_iso(self) -> str:
        return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")

    def _jsonify(self, x):
        # Make args/return JSON-safe & compact.

        if x is None or isinstance(x, (bool, int, float, str)):
            return x
        if isinstance(x, Enum):
            return x.value
        if isinstance(x, (set, frozenset)):
            return sorted(str(self._jsonify(v)) for v in x)
        if isinstance(x, (list, tuple)):
            return [self._jsonify(v) for v in x]
        if isinstance(x, dict):
            return {str(k): self._jsonify(v) for k, v in x.items()}
        # NumPy scalars
        if isinstance(x, (np.generic,)):
            return x.item()
        # Polars or other heavy objects -> just a tag
        t = type(x).__name__
        return f"<<{t}>>"

    def _log_event(self, op: str, **fields):
        if not self._history_enabled:
            return
        self._version += 1
        evt = {
            "version": self._version,
            "ts_utc": self._utcnow_iso(),  # ISO-8601 with Z
            "mono_ns": time.perf_counter_ns() - self._history_clock0,
            "op": op,
        }
        # sanitize; payload fields are stored as text so every column has a single dtype
        for k, v in fields.items():
            val = self._jsonify(v)
            evt[k] = val if isinstance(val, str) else json.dumps(val)
        self._history.append(evt)

    def _log_mutation(self, name=None):
        def deco(fn):
            op = name or fn.__name__
            sig = inspect.signature(fn)

            @wraps(fn)
            def wrapper(*args, **kwargs):
                bound = sig.bind(*args, **kwargs)
                bound.apply_defaults()
                # single writer: mutations are serialized on the store lock
                with self._lock:
                    depth = self._mutation_depth
                    self._mutation_depth += 1
                    try:
                        result = fn(*args, **kwargs)
                    finally:
                        self._mutation_depth -= 1
                    # nested mutator calls (align -> add_vertex) log only the outer call
                    if depth == 0:
                        payload = {k: v for k, v in bound.arguments.items() if k != "self"}
                        payload["result"] = result
                        self._log_event(op, **payload)
                return result

            return wrapper

        return deco

    def _install_history_hooks(self):
        for name in self._MUTATORS:
            if hasattr(self, name):
                fn = getattr(self, name)
                # Avoid double-wrapping
                if getattr(fn, "__wrapped__", None) is None:
                    setattr(self, name, self._log_mutation(name)(fn))

    def history(self, as_df: bool = False):
        """Return the append-only mutation history.

        Parameters
        --
        as_df : bool, default False
            If True, return a Polars DF [DataFrame]; otherwise return a list of dicts.

        Returns
        ---
        list[dict] or polars.DataFrame
            Each event includes: 'version', 'ts_utc' (UTC ISO-8601), 'mono_ns'
            (monotonic nanoseconds since the store was created), 'op', call
            argument fields, and 'result'.

        Notes
        -
        Ordering is guaranteed by 'version' and 'mono_ns'. The log is in-memory until exported.

        """
        if as_df:
            return pl.DataFrame(self._history, infer_schema_length=None)
        return list(self._history)

    def export_history(self, path: str):
        """Write the mutation history to disk.

        Parameters
        --
        path : str
            Output path. Supported extensions: '.parquet', '.ndjson' (a.k.a. '.jsonl'),
            '.json', '.csv'. Unknown extensions default to Parquet by appending '.parquet'.

        Returns
        ---
        int
            Number of events written. Returns 0 if the history is empty.

        """
        if not self._history:
            return 0
        df = self.history(as_df=True)
        p = str(path).lower()
        if p.endswith(".parquet"):
            df.write_parquet(path)
            return len(df)
        if p.endswith(".ndjson") or p.endswith(".jsonl"):
            with open(path, "w", encoding="utf-8") as f:
                for r in df.iter_rows(named=True):
                    f.write(json.dumps(r, ensure_ascii=False) + "\n")
            return len(df)
        if p.endswith(".json"):
            with open(path, "w", encoding="utf-8") as f:
                json.dump(df.to_dicts(), f, ensure_ascii=False)
            return len(df)
        if p.endswith(".csv"):
            df.write_csv(path)
            return len(df)
        # Default to Parquet if unknown
        df.write_parquet(str(path) + ".parquet")
        return len(df)

    def enable_history(self, flag: bool = True):
        """Enable or disable in-memory mutation logging."""
        self._history_enabled = bool(flag)

    def clear_history(self):
        """Clear the in-memory mutation log (exported files are untouched)."""
        self._history.clear()

    def mark(self, label: str):
        """Insert a manual marker (op='mark') into the mutation history."""
        self._log_event("mark", label=label)
