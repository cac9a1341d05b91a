import polars as pl

from ._helpers import (
    _ACTOR_RESERVED,
    _EDGE_RESERVED,
    _VERTEX_RESERVED,
    AttrType,
    SchemaError,
    Scope,
    UnknownReferenceError,
)


class AttributesClass:
    # Attributes
    #
    # Every attribute is declared once in a typed registry keyed by
    # (scope, layer, name); actor attributes use layer=None. Values live in
    # Polars tables: one actor table, and one vertex table and one edge table
    # per layer, so the same name may carry different types on different layers.

    def add_attribute(self, name, attr_type="NUMERIC", scope="actor", layer=None):
        """Declare a typed attribute.

        Parameters
        --
        name : str
        attr_type : str | AttrType
            ``NUMERIC``, ``STRING`` or ``CATEGORICAL`` (aliases: DOUBLE, INTEGER, TEXT).
        scope : str | Scope
            ``"actor"``, ``"vertex"`` or ``"edge"``.
        layer : str, optional
            Owning layer; required for vertex and edge attributes, forbidden for actor ones.

        Raises
        --
        SchemaError
            On a duplicate declaration or a reserved name.
        UnknownReferenceError
            If ``layer`` does not exist.

        """
        scope = Scope(scope) if not isinstance(scope, Scope) else scope
        attr_type = AttrType.parse(attr_type)
        if scope is Scope.ACTOR:
            if layer is not None:
                raise SchemaError(f"actor attribute {name!r} cannot be bound to a layer")
            reserved = _ACTOR_RESERVED
        else:
            if layer is None:
                raise SchemaError(f"{scope.value} attribute {name!r} requires a layer")
            self._require_layer(layer)
            reserved = _VERTEX_RESERVED if scope is Scope.VERTEX else _EDGE_RESERVED
        if name in reserved:
            raise SchemaError(f"{name!r} is a reserved column name for {scope.value} attributes")
        key = (scope, layer, name)
        if key in self._attr_schema:
            raise SchemaError(
                f"{scope.value} attribute {name!r}"
                + (f" on layer {layer!r}" if layer is not None else "")
                + " already declared"
            )
        self._attr_schema[key] = attr_type

        df = self._attr_table(scope, layer)
        df = df.with_columns(pl.lit(None).cast(attr_type.polars_dtype()).alias(name))
        self._store_attr_table(scope, layer, df)
        return key

    def attribute_type(self, name, scope="actor", layer=None):
        """Declared ``AttrType`` of an attribute, or raise ``UnknownReferenceError``."""
        scope = Scope(scope) if not isinstance(scope, Scope) else scope
        try:
            return self._attr_schema[(scope, layer, name)]
        except KeyError:
            raise UnknownReferenceError(
                f"no {scope.value} attribute {name!r}"
                + (f" on layer {layer!r}" if layer is not None else "")
            ) from None

    def attributes(self, scope=None, layer=None):
        """Table of declared attributes (columns: scope, layer, name, type)."""
        rows = []
        for (sc, ly, name), at in self._attr_schema.items():
            if scope is not None and sc is not Scope(scope):
                continue
            if layer is not None and ly != layer:
                continue
            rows.append({"scope": sc.value, "layer": ly, "name": name, "type": at.value})
        schema = {"scope": pl.Utf8, "layer": pl.Utf8, "name": pl.Utf8, "type": pl.Utf8}
        return pl.DataFrame(rows, schema=schema)

    ## Setters

    def set_actor_attrs(self, actor, **attrs):
        """Upsert actor attribute values; every key must be declared at actor scope."""
        self._require_actor(actor)
        clean = self._validate_attrs(Scope.ACTOR, None, attrs)
        self.actor_attributes = self._upsert_row(self.actor_attributes, {"actor": actor}, clean)

    def set_vertex_attrs(self, actor, layer, **attrs):
        """Upsert vertex attribute values declared on ``layer``."""
        self._require_vertex(actor, layer)
        clean = self._validate_attrs(Scope.VERTEX, layer, attrs)
        df = self._upsert_row(self._vertex_attr_tables[layer], {"actor": actor}, clean)
        self._vertex_attr_tables[layer] = df

    def set_edge_attrs(self, source, target, layer, **attrs):
        """Upsert edge attribute values declared on ``layer``.

        On undirected layers the endpoints may be given in either order.
        """
        u, v = self._edge_key(source, target, layer)
        clean = self._validate_attrs(Scope.EDGE, layer, attrs)
        df = self._upsert_row(self._edge_attr_tables[layer], {"source": u, "target": v}, clean)
        self._edge_attr_tables[layer] = df

    ## Getters

    def get_actor_attr(self, actor, name, default=None):
        self._require_actor(actor)
        self.attribute_type(name, Scope.ACTOR)
        return self._lookup(self.actor_attributes, {"actor": actor}, name, default)

    def get_vertex_attr(self, actor, layer, name, default=None):
        self._require_vertex(actor, layer)
        self.attribute_type(name, Scope.VERTEX, layer)
        return self._lookup(self._vertex_attr_tables[layer], {"actor": actor}, name, default)

    def get_edge_attr(self, source, target, layer, name, default=None):
        u, v = self._edge_key(source, target, layer)
        self.attribute_type(name, Scope.EDGE, layer)
        return self._lookup(
            self._edge_attr_tables[layer], {"source": u, "target": v}, name, default
        )

    def get_actor_attrs(self, actor) -> dict:
        """All set attribute values of an actor (unset values omitted)."""
        self._require_actor(actor)
        return self._row_dict(self.actor_attributes, {"actor": actor})

    def get_vertex_attrs(self, actor, layer) -> dict:
        self._require_vertex(actor, layer)
        return self._row_dict(self._vertex_attr_tables[layer], {"actor": actor})

    def get_edge_attrs(self, source, target, layer) -> dict:
        u, v = self._edge_key(source, target, layer)
        return self._row_dict(self._edge_attr_tables[layer], {"source": u, "target": v})

    def vertex_attributes(self, layer):
        """Vertex attribute table of ``layer`` (one row per vertex with a set value)."""
        self._require_layer(layer)
        return self._vertex_attr_tables[layer].clone()

    def edge_attributes(self, layer):
        """Edge attribute table of ``layer`` (one row per edge with a set value)."""
        self._require_layer(layer)
        return self._edge_attr_tables[layer].clone()

    ## Internals

    def _attr_table(self, scope, layer):
        if scope is Scope.ACTOR:
            return self.actor_attributes
        if scope is Scope.VERTEX:
            return self._vertex_attr_tables[layer]
        return self._edge_attr_tables[layer]

    def _store_attr_table(self, scope, layer, df):
        if scope is Scope.ACTOR:
            self.actor_attributes = df
        elif scope is Scope.VERTEX:
            self._vertex_attr_tables[layer] = df
        else:
            self._edge_attr_tables[layer] = df

    def _init_layer_attr_tables(self, layer):
        self._vertex_attr_tables[layer] = pl.DataFrame(schema={"actor": pl.Utf8})
        self._edge_attr_tables[layer] = pl.DataFrame(
            schema={"source": pl.Utf8, "target": pl.Utf8}
        )

    def _validate_attrs(self, scope, layer, attrs, *, strict=True):
        """INTERNAL: type-check incoming values against the registry."""
        clean = {}
        for k, v in attrs.items():
            at = self._attr_schema.get((scope, layer, k))
            if at is None:
                raise UnknownReferenceError(
                    f"undeclared {scope.value} attribute {k!r}"
                    + (f" on layer {layer!r}" if layer is not None else "")
                )
            try:
                clean[k] = at.coerce(v, strict=strict)
            except SchemaError as e:
                raise SchemaError(f"attribute {k!r}: {e}") from None
        return clean

    @staticmethod
    def _key_cond(key_vals):
        cond = None
        for k, v in key_vals.items():
            c = pl.col(k) == pl.lit(v)
            cond = c if cond is None else (cond & c)
        return cond

    def _upsert_row(self, df: pl.DataFrame, key_vals: dict, attrs: dict) -> pl.DataFrame:
        """INTERNAL: Upsert a row in a Polars DF [DataFrame] keyed by ``key_vals``.

        Columns and dtypes are fixed by the registry, so no dtype promotion happens here.
        """
        if not attrs:
            return df
        cond = self._key_cond(key_vals)
        schema = df.schema
        if df.height and df.filter(cond).height > 0:
            upds = [
                pl.when(cond).then(pl.lit(v, dtype=schema[k])).otherwise(pl.col(k)).alias(k)
                for k, v in attrs.items()
            ]
            return df.with_columns(upds)

        # build a single row aligned to df schema
        new_row = dict.fromkeys(df.columns)
        new_row.update(key_vals)
        new_row.update(attrs)
        return df.vstack(pl.DataFrame([new_row], schema=schema))

    def _drop_rows(self, df: pl.DataFrame, key_vals: dict) -> pl.DataFrame:
        if df.height == 0:
            return df
        return df.filter(~self._key_cond(key_vals))

    def _lookup(self, df, key_vals, name, default):
        if df.height == 0:
            return default
        rows = df.filter(self._key_cond(key_vals))
        if rows.height == 0:
            return default
        val = rows.get_column(name)[0]
        return default if val is None else val

    def _row_dict(self, df, key_vals) -> dict:
        if df.height == 0:
            return {}
        rows = df.filter(self._key_cond(key_vals)).to_dicts()
        if not rows:
            return {}
        return {k: v for k, v in rows[0].items() if k not in key_vals and v is not None}
