"""Error taxonomy for workflow runs.

Every error raised out of ``start``/``run``/``resume`` derives from
``ExpoError``. Validation failures are raised before the state is touched;
producer failures abort the current call and carry the last complete
state snapshot.
"""


class ExpoError(Exception):
    """Base class for all orchestrator errors."""


class ValidationError(ExpoError, ValueError):
    """Malformed requirements, an invalid decision, or resume on a state that is not waiting."""


class StateIntegrityError(ExpoError):
    """The state is missing required fields or violates a structural invariant."""


class ProducerError(ExpoError):
    """A stage producer (or the quality evaluator) failed.

    Attributes:
        stage: Name of the failing stage, e.g. ``"spatial"``, ``"parallel_designs"`` or ``"quality_review"``.
        state: Last complete state before the failing step, or None if unknown.
            It never contains an artifact from the failing step.
    """

    def __init__(self, stage: str, message: str, state: dict | None = None):
        super().__init__(f"Stage '{stage}' failed: {message}")
        self.stage = stage
        self.state = state


class ResumeConflictError(ExpoError):
    """Another resume call for the same workflow is already in flight."""


class StaleStateError(ExpoError):
    """A store write would overwrite a newer version of the workflow."""
