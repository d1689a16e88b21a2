# cluster_registry/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class RegistryError(Exception):
    """Base class for all cluster registry errors."""
    pass


# -----------------------------
# Validation Errors
# -----------------------------

class RegistryValidationError(RegistryError):
    """Invalid input (node id, account id, status value)."""
    pass


# -----------------------------
# Persistence Errors
# -----------------------------

class RegistryPersistenceError(RegistryError):
    pass


class RecordNotFound(RegistryPersistenceError):
    """Record file absent on disk."""

    def __init__(self, namespace: str, key: str):
        self.namespace = namespace
        self.key = key
        super().__init__(f"{namespace} record not found: {key}")


class NodeNotFound(RecordNotFound):

    def __init__(self, node_id: str):
        super().__init__("nodes", node_id)
        self.node_id = node_id


class PlacementNotFound(RecordNotFound):

    def __init__(self, account_id: int):
        super().__init__("placements", f"a-{account_id}")
        self.account_id = account_id


class NodeAlreadyExists(RegistryPersistenceError):
    pass


class StoreIOError(RegistryPersistenceError):
    """Underlying read/write/delete/readdir failure."""
    pass


class RecordParseError(RegistryPersistenceError):
    """JSON present but malformed or of the wrong shape."""
    pass


# -----------------------------
# Placement Errors
# -----------------------------

class NoSuitableNode(RegistryError):
    """No online candidate with resources for the requested role."""

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"no suitable node found for role: {role}")
