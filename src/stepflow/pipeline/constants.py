"""Pipeline configuration constants."""

from __future__ import annotations

# Maximum steps per pipeline
MAX_STEPS_PER_PIPELINE: int = 50

# Default timeout per step (seconds)
DEFAULT_STEP_TIMEOUT: float = 30.0

# Mock iterations run by a loop step when none are configured
DEFAULT_LOOP_ITERATIONS: int = 3

# Upper bound on loop iterations; larger requests are clamped
MAX_LOOP_ITERATIONS: int = 1000

# Simulated API call defaults
DEFAULT_API_URL: str = "https://api.example.com/mock"
DEFAULT_API_METHOD: str = "POST"

# Banner prepended by the text "format" operation
FORMATTED_TEXT_BANNER: str = "=== Formatted Text ===\n\n"

# Sample pipeline IDs
TEXT_PROCESSOR_PIPELINE_ID: str = "pipeline-text-processor"
DATA_TRANSFORM_PIPELINE_ID: str = "pipeline-data-transform"
SAMPLE_PIPELINE_IDS: set[str] = {
    TEXT_PROCESSOR_PIPELINE_ID,
    DATA_TRANSFORM_PIPELINE_ID,
}
