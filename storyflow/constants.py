DEFAULT_MAX_STEP_ITERATIONS = 5
DEFAULT_STEP_TIMEOUT_SECONDS = 120.0
DEFAULT_LLM_MODEL = "anthropic:claude-3-5-sonnet-latest"
DEFAULT_LLM_ATTEMPTS = 3
DEFAULT_TOP_K = 3

COMPLETED_STEP = "completed"
FAILED_STEP = "failed"
TERMINAL_STEPS = (COMPLETED_STEP, FAILED_STEP)
