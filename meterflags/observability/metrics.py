"""
Prometheus metrics for the reading validation engine.
"""

from prometheus_client import Counter, Histogram


# ── Validation ───────────────────────────────────────────────
readings_validated_total = Counter(
    "meterflags_readings_validated_total",
    "Total readings run through the flag rule set",
    ["trigger"],
)

flags_emitted_total = Counter(
    "meterflags_flags_emitted_total",
    "Auto flags produced by the rule set",
    ["flag_type", "severity"],
)

validation_duration_seconds = Histogram(
    "meterflags_validation_duration_seconds",
    "Time to evaluate every rule for one reading",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1],
)

# ── Configuration ────────────────────────────────────────────
config_layer_fallbacks_total = Counter(
    "meterflags_config_layer_fallbacks_total",
    "Stored config overrides skipped because they were malformed",
    ["layer"],
)

# ── Reconciliation ───────────────────────────────────────────
reconciliation_checks_total = Counter(
    "meterflags_reconciliation_checks_total",
    "Bulk reconciliation checks by outcome",
    ["outcome"],
)

# ── Manual Flags ─────────────────────────────────────────────
manual_flag_operations_total = Counter(
    "meterflags_manual_flag_operations_total",
    "Manual flag add/remove operations",
    ["operation", "result"],
)
