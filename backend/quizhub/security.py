# Random identifiers for visitors and in-flight quiz sessions.
import secrets
import uuid


# Opaque visitor id stored alongside quiz results.
def generate_visitor_id() -> str:
    return str(uuid.uuid4())


# Unguessable handle for addressing a live session over HTTP.
def generate_session_handle() -> str:
    return secrets.token_urlsafe(16)
