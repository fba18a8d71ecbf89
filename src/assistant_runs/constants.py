import os

# Queue topic for "execute this run" jobs
THREAD_RUN_JOB_NAME = os.getenv("RUN_QUEUE_JOB_NAME", "thread-run")

TOOL_CALLS_STEP_TYPE = "tool_calls"

# Tool types whose output can be supplied through submit_tool_outputs
SUBMITTABLE_TOOL_TYPES = frozenset({"function"})
# Tool types executed by the platform itself
MANAGED_TOOL_TYPES = frozenset({"code_interpreter", "retrieval"})

DEFAULT_WORKER_POLL_INTERVAL = 1.0

# A claimed job whose worker has not acked it within this many seconds is
# handed out again
DEFAULT_JOB_VISIBILITY_TIMEOUT = 300.0
# Deliveries after which a run is failed instead of executed again
DEFAULT_JOB_MAX_ATTEMPTS = 3
