class EmpForgeError(Exception):
    """Base exception for EmpForge errors"""
    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg

    def __str__(self):
        return self.msg


class LexiconError(EmpForgeError):
    pass


class SessionError(EmpForgeError):
    """Base exception for session errors"""
    pass


class StageError(EmpForgeError):
    """Base exception for pipeline stage errors"""
    pass


class AuditError(EmpForgeError):
    pass


class LexiconLoadError(LexiconError):
    def __init__(self, resource: str, details: str):
        self.resource = resource
        self.details = details
        super().__init__(f"Failed to load lexicon table '{resource}': {details}")


class SessionNotFoundError(SessionError):
    """Raised when a session id is not registered"""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class SessionStateError(SessionError):
    """Raised when an operation is not allowed in the session's current status"""
    def __init__(self, session_id: str, status: str, operation: str):
        self.session_id = session_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} session '{session_id}' in status '{status}'")


class InvalidTransitionError(SessionError):
    def __init__(self, status: str, event: str):
        self.status = status
        self.event = event
        super().__init__(f"Event '{event}' is not valid in status '{status}'")


class AlternativeNotFoundError(SessionError):
    def __init__(self, session_id: str, alternative_id: str, available: list[str]):
        self.session_id = session_id
        self.alternative_id = alternative_id
        self.available = available
        super().__init__(
            f"Alternative '{alternative_id}' not offered for session '{session_id}'.\n"
            f"Available alternatives: {', '.join(available) or 'none'}"
        )


class InvalidConfigPatchError(SessionError):
    """Raised when a manual patch names unknown fields or carries invalid values"""
    def __init__(self, details: str):
        self.details = details
        super().__init__(f"Invalid config patch: {details}")


class StageFailedError(StageError):
    """Raised when a stage fails unexpectedly; the session is left in error"""
    def __init__(self, session_id: str, phase: str, details: str):
        self.session_id = session_id
        self.phase = phase
        self.details = details
        super().__init__(f"Stage '{phase}' failed for session '{session_id}': {details}")


class StageTimeoutError(StageFailedError):
    def __init__(self, session_id: str, phase: str, timeout: float):
        self.timeout = timeout
        super().__init__(session_id, phase, f"deadline of {timeout}s exceeded")


class StepLimitExceededError(StageError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Submission exceeded the limit of {limit} reasoning steps")


class StepFinalizedError(AuditError):
    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' is finalized and can no longer change")


class AuditOrderError(AuditError):
    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' is older than the last recorded step")
