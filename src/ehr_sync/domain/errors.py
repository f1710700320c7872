"""Error taxonomy of the sync pipeline.

Only ``ConfigurationError`` is allowed to escape a sync run; the other
errors are folded into per-item or per-stage failures by the orchestrator.
"""


class TransformError(Exception):
    """Raised when native input is structurally malformed."""
    pass


class ExecutionError(Exception):
    """The clinical data store rejected one or more bundle entries."""

    def __init__(self, errors, resource_count=0):
        self.errors = list(errors)
        self.resource_count = resource_count
        super().__init__(
            f"{len(self.errors)} entries rejected ({resource_count} accepted): "
            + "; ".join(self.errors)
        )


class TransportError(Exception):
    """Network or authentication failure on an external call."""
    pass


class ConfigurationError(Exception):
    """Unknown source system or missing transformer registration."""
    pass
