"""Error taxonomy for a synthesis run."""


class SynthesisError(Exception):
    """Base class for failures raised out of the synthesis pipeline."""


class PlanningError(SynthesisError):
    """The requirement could not be turned into a valid task list. Fatal."""


class GenerationError(SynthesisError):
    """A task's generated artifacts were malformed or outside its claimed files."""

    def __init__(self, message, task_id=None):
        self.task_id = task_id
        super().__init__(f"[{task_id}] {message}" if task_id else message)


class BuildError(SynthesisError):
    """The build could not be made to pass within the repair budget."""


class RunCancelled(SynthesisError):
    """The run was abandoned between two steps."""
