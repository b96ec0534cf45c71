"""prbuddy: surface unresolved pull request review feedback for coding agents."""
