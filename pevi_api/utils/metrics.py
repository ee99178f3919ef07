"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

# Escrow release protocol
escrow_steps = Counter(
    "pevi_escrow_steps_total",
    "Escrow release steps handled",
    ["step", "outcome"],
)

# Escrow service calls
gateway_call_duration = Histogram(
    "pevi_escrow_gateway_duration_seconds",
    "Escrow service call duration",
    ["operation"],
)

# Ledger submissions
ledger_submissions = Counter(
    "pevi_ledger_submissions_total",
    "Signed transactions submitted to the ledger",
    ["target", "outcome"],
)

# Escrow creation
escrow_creations = Counter(
    "pevi_escrow_creations_total",
    "Escrow creation attempts",
    ["kind", "outcome"],
)

# Reconciliation
reconciliation_results = Counter(
    "pevi_escrow_reconciliation_total",
    "Escrow id reconciliation results",
    ["source"],
)

# Lease conflicts
release_lease_conflicts = Counter(
    "pevi_release_lease_conflicts_total",
    "Release attempts rejected because another release was in flight",
)
