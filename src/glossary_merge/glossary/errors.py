"""Exceptions raised while merging glossary proposals."""


class GlossaryMergeError(Exception):
    """Base class for glossary merge errors."""


class ArbitrationError(GlossaryMergeError):
    """An arbitration response could not be applied.

    Every subclass is handled the same way by the updater: the whole
    response batch is discarded and the proposal is treated as ``none``.
    """


class StructuralError(ArbitrationError):
    """Response is not parseable as the action grammar."""


class ActionReferenceError(ArbitrationError):
    """An action references an id outside the proposal's conflict set."""


class ActionTypeError(ArbitrationError):
    """An action field has the wrong type."""


class TransportError(ArbitrationError):
    """The arbitration request itself failed."""


class SchedulerStalledError(GlossaryMergeError):
    """Pending proposals remain but none can be admitted and none are in flight."""
