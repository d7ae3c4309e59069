"""Engine error taxonomy.

    EngineError
      ConfigurationError   registry invariant violated; surfaced to admins
        NoInitialStage
        DuplicateInitial
        DanglingNextStage
      NotFoundError        unknown participant, stage, or inbox entry
        UnknownParticipant
        UnknownStage
        UnknownInboxEntry
      ConflictError
        ConcurrencyConflict  version mismatch on write; retried locally
        AlreadyBootstrapped
      ValidationError      malformed input; raised before any state is touched

Routes translate these into HTTP status codes.
"""


class EngineError(RuntimeError):
    """Base class for every error raised by the progression engine."""


class ConfigurationError(EngineError):
    pass


class NoInitialStage(ConfigurationError):
    pass


class DuplicateInitial(ConfigurationError):
    pass


class DanglingNextStage(ConfigurationError):
    pass


class NotFoundError(EngineError):
    pass


class UnknownParticipant(NotFoundError):
    def __init__(self, participant_id: str) -> None:
        super().__init__(f"No progress record for participant '{participant_id}'")
        self.participant_id = participant_id


class UnknownStage(NotFoundError):
    def __init__(self, stage: int) -> None:
        super().__init__(f"No active stage {stage}")
        self.stage = stage


class UnknownInboxEntry(NotFoundError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"No inbox entry '{entry_id}'")
        self.entry_id = entry_id


class ConflictError(EngineError):
    pass


class ConcurrencyConflict(ConflictError):
    def __init__(self, key: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Version conflict on '{key}': expected {expected}, found {actual}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual


class AlreadyBootstrapped(ConflictError):
    def __init__(self, participant_id: str) -> None:
        super().__init__(f"Participant '{participant_id}' is already bootstrapped")
        self.participant_id = participant_id


class ValidationError(EngineError):
    pass
