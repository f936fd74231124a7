# engine/errors.py


class SimulationError(Exception):
    """Base class for everything the simulation engine raises on purpose."""


class InvalidTransition(SimulationError):
    """The requested operation is not allowed in the session's current phase."""


class TurnLimitReached(InvalidTransition):
    pass


class EvaluationFailed(SimulationError):
    """Raised by finish() when the evaluation call fails. The session stays active."""


class OrchestratorError(Exception):
    """Any failure talking to (or parsing output from) the language model."""


class SessionBusy(SimulationError):
    pass
