"""KFZlotti offline data layer: dataset sync, versioned cache and progress ledger."""
