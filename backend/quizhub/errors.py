# Error taxonomy for quiz sessions. Every error is scoped to one session.


class QuizHubError(Exception):
    pass


class NotFound(QuizHubError):
    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class LoadError(QuizHubError):
    """Backend failure while fetching quiz or character data."""


class PersistError(QuizHubError):
    """Backend failure while writing a quiz result or bumping the completion count."""


class NoAnswersRecorded(QuizHubError):
    def __init__(self):
        super().__init__("no answers recorded; cannot resolve a winner")


class UnknownSession(QuizHubError):
    def __init__(self, handle: str):
        super().__init__(f"session not found: {handle}")
        self.handle = handle


class InvalidTransition(QuizHubError):
    def __init__(self, operation: str, state):
        super().__init__(f"cannot {operation} while session is {state.value}")
        self.operation = operation
        self.state = state


class SessionNotInProgress(InvalidTransition):
    def __init__(self, state):
        super().__init__("submit an answer", state)


class SessionNotComplete(InvalidTransition):
    def __init__(self, state):
        super().__init__("finish", state)
