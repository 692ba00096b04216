"""
Symbol Graph Front Ends.

Front ends turn program descriptions into a `SymbolGraph`:

    - ``python_source``: Python modules, parsed with LibCST.
    - ``graph_json``: JSON graph documents produced by external hosts.
    - ``types``: Shared conversion of type expressions.
"""
