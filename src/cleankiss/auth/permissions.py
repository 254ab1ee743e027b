"""Permission strings understood by the student API."""


class Permissions:
    """Namespaced permission constants (``<resource>:<action>``)."""

    class Students:
        VIEW = "students:view"
        CREATE = "students:create"
        UPDATE = "students:update"
        DELETE = "students:delete"

    class Courses:
        VIEW = "courses:view"
        CREATE = "courses:create"
        UPDATE = "courses:update"
        DELETE = "courses:delete"
