"""
Static Analysis Package.

This package contains the reentrancy check: a reachability analysis proving that
no process-wide singleton transitively exposes mutable state.

Modules:
    - ``model``: The immutable symbol graph (classes, members, types).
    - ``policy``: Exemption rules (sharable / unshared markers, enum holders).
    - ``reentrancy``: The depth-first scanner and the checker driver.
    - ``ledger``: Accumulation of flagged symbols.
    - ``reporter``: Rendering of diagnostics and the visitation trace.
"""
