from prometheus_client import Counter, Histogram

# --- Report Metrics ---

# Counter for finished report renders.
# Labels:
# - output: "document" for the in-memory page structure, "pdf" for PDF bytes.
REPORTS_RENDERED_TOTAL = Counter(
    "reports_rendered_total",
    "Total number of reports rendered.",
    ["output"],
)

# Counter for pages that fell back to the "no data available" placeholder.
# Labels:
# - section: canonical section name (e.g. "structuredData").
PLACEHOLDER_PAGES_TOTAL = Counter(
    "report_placeholder_pages_total",
    "Total number of pages rendered with a placeholder instead of content.",
    ["section"],
)

# Histogram for PDF build latency.
PDF_RENDER_SECONDS = Histogram(
    "report_pdf_render_seconds",
    "Time spent turning an assembled document into PDF bytes.",
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)

# --- Enhancement Job Metrics ---

# Counter for job lifecycle events.
# Labels:
# - event: "created", "completed", "failed", "rejected".
ENHANCEMENT_JOBS_TOTAL = Counter(
    "enhancement_jobs_total",
    "Enhancement job lifecycle events.",
    ["event"],
)

# Counter for merges discarded because they came from a superseded job.
STALE_MERGES_TOTAL = Counter(
    "enhancement_stale_merges_total",
    "Total number of merges discarded because the job was superseded or cancelled.",
)

# --- LLM Metrics ---

# Counter for tracking OpenAI API calls.
# Labels:
# - model: The name of the model being called.
LLM_CALLS_TOTAL = Counter(
    "llm_calls_total", "Total number of calls to the LLM.", ["model"]
)

# Counter for tracking LLM API errors.
# Labels:
# - model: The name of the model.
# - error_type: The class name of the error.
LLM_FAILURES_TOTAL = Counter(
    "llm_failures_total",
    "Total number of LLM call failures.",
    ["model", "error_type"],
)

# --- Error Metrics ---

ERRORS_TOTAL = Counter(
    "report_engine_errors_total",
    "Errors seen by the central error handler.",
    ["category", "severity"],
)
