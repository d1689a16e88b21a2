"""Cluster registry service."""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from cluster_registry.core.errors import (
    NodeAlreadyExists,
    NodeNotFound,
    NoSuitableNode,
    PlacementNotFound,
    RecordNotFound,
    RecordParseError,
    RegistryError,
    RegistryValidationError,
)
from cluster_registry.core.models import (
    AccountPlacement,
    NodeRecord,
    NodeResources,
    NodeRole,
    NodeStatus,
    SweepResult,
    parse_role,
    parse_status,
    utcnow,
)
from cluster_registry.core.rwlock import ReadWriteLock
from cluster_registry.core.schemas import (
    parse_node,
    parse_placement,
    serialize_node,
    serialize_placement,
)
from cluster_registry.infrastructure.filesystem.store import (
    NODES,
    PLACEMENTS,
    JsonFileStore,
)
from cluster_registry.registry.placement import rank_nodes, select_best_node

logger = logging.getLogger(__name__)


Timeout = Union[timedelta, int, float]


def _as_timedelta(timeout: Timeout) -> timedelta:
    if isinstance(timeout, timedelta):
        return timeout
    return timedelta(seconds=timeout)


def placement_key(account_id: int) -> str:
    return f"a-{account_id}"


def _validate_account_id(account_id: int) -> int:
    if isinstance(account_id, bool) or not isinstance(account_id, int) or account_id <= 0:
        raise RegistryValidationError(f"account_id must be a positive integer: {account_id!r}")
    return account_id


class ClusterRegistry:
    """
    Authoritative node inventory and account placements for one data
    directory.

    Reads share the lock; saves, deletes and every read-modify-write
    (status, resources, heartbeat, dead-node demotion, placement) hold
    it exclusively for the whole compound, so concurrent updates to the
    same node never drop each other's fields.
    """

    def __init__(
        self,
        store: JsonFileStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._clock = clock
        self._lock = ReadWriteLock()

    @classmethod
    def from_directory(
        cls,
        base_dir: Union[str, Path],
        clock: Callable[[], datetime] = utcnow,
    ) -> "ClusterRegistry":
        return cls(JsonFileStore(base_dir), clock=clock)

    @property
    def store(self) -> JsonFileStore:
        return self._store

    def now(self) -> datetime:
        return self._clock()

    # ============================================
    # UNLOCKED HELPERS (caller holds the lock)
    # ============================================

    def _load_node(self, node_id: str) -> NodeRecord:
        try:
            record = self._store.read(NODES, node_id)
        except RecordNotFound as e:
            raise NodeNotFound(node_id) from e

        node = parse_node(record)
        if node.id != node_id:
            raise RecordParseError(
                f"Node file {node_id} holds record for {node.id}"
            )
        return node

    def _store_node(self, node: NodeRecord) -> None:
        self._store.write_document(NODES, node.id, serialize_node(node))

    def _scan_nodes(self) -> List[NodeRecord]:
        nodes = []
        for key, record in self._store.iter_records(NODES):
            try:
                node = parse_node(record)
            except RecordParseError as e:
                logger.warning(f"Skipping corrupt node record {key}: {e}")
                continue
            if node.id != key:
                logger.warning(f"Skipping node record {key}: id is {node.id!r}")
                continue
            nodes.append(node)
        return nodes

    # ============================================
    # NODE CRUD
    # ============================================

    def get_node(self, node_id: str) -> NodeRecord:
        """Get node by ID. Raises NodeNotFound."""
        with self._lock.read_locked():
            return self._load_node(node_id)

    def save_node(self, node: NodeRecord) -> None:
        """Create or overwrite a node record."""
        with self._lock.write_locked():
            self._store_node(node)
        logger.debug(f"Saved node {node.id} ({node.hostname})")

    def delete_node(self, node_id: str) -> None:
        """
        Remove a node. Raises NodeNotFound.

        Placements pointing at the node are left in place.
        """
        with self._lock.write_locked():
            try:
                self._store.delete(NODES, node_id)
            except RecordNotFound as e:
                raise NodeNotFound(node_id) from e
        logger.info(f"Deleted node {node_id}")

    def register_node(self, node: NodeRecord) -> NodeRecord:
        """
        Join a new node to the cluster.

        Stamps joined_at and last_seen with the current time. Raises
        NodeAlreadyExists if the id is taken.
        """
        with self._lock.write_locked():
            if self._store.exists(NODES, node.id):
                raise NodeAlreadyExists(f"Node {node.id} already exists")

            now = self.now()
            node.joined_at = now
            node.last_seen = now
            self._store_node(node)

        logger.info(
            f"Registered node {node.id} ({node.hostname}, {node.ip}) "
            f"roles={node.role_values()} status={node.status_value()}"
        )
        return node

    # ============================================
    # QUERIES
    # ============================================

    def list_nodes(self) -> List[NodeRecord]:
        """Snapshot of every readable node, in no particular order."""
        with self._lock.read_locked():
            return self._scan_nodes()

    def list_online_nodes(self) -> List[NodeRecord]:
        return [node for node in self.list_nodes() if node.is_online()]

    def list_nodes_by_role(self, role: Union[NodeRole, str]) -> List[NodeRecord]:
        """Nodes carrying `role` or `all`. Querying `all` returns every node."""
        role = parse_role(role)
        return [node for node in self.list_nodes() if node.has_role(role)]

    def discover_capabilities(self) -> Dict[str, List[str]]:
        """Map of node id to advertised roles."""
        return {
            node.id: node.role_values()
            for node in self.list_nodes()
        }

    # ============================================
    # LIVENESS
    # ============================================

    def update_node_status(
        self,
        node_id: str,
        status: Union[NodeStatus, str],
    ) -> NodeRecord:
        """Set status and refresh last_seen. Raises NodeNotFound."""
        status = parse_status(status)
        with self._lock.write_locked():
            node = self._load_node(node_id)
            previous = node.status
            node.status = status
            node.last_seen = self.now()
            self._store_node(node)

        if previous != status:
            logger.info(f"Node {node_id} status {previous.value} -> {status.value}")
        return node

    def update_node_resources(
        self,
        node_id: str,
        resources: NodeResources,
    ) -> NodeRecord:
        """Replace the resource snapshot and refresh last_seen."""
        with self._lock.write_locked():
            node = self._load_node(node_id)
            node.resources = resources
            node.last_seen = self.now()
            self._store_node(node)
        return node

    def process_heartbeat(
        self,
        node_id: str,
        resources: Optional[NodeResources] = None,
    ) -> NodeRecord:
        """
        Record a heartbeat: status becomes online, last_seen is refreshed
        and the resource snapshot replaced when one is supplied.

        Unknown nodes raise NodeNotFound; heartbeats never register.
        """
        with self._lock.write_locked():
            node = self._load_node(node_id)
            previous = node.status
            node.status = NodeStatus.ONLINE
            node.last_seen = self.now()
            if resources is not None:
                node.resources = resources
            self._store_node(node)

        if previous != NodeStatus.ONLINE:
            logger.info(f"Node {node_id} back online (was {previous.value})")
        else:
            logger.debug(f"Heartbeat from {node_id}")
        return node

    def get_dead_nodes(self, timeout: Timeout) -> List[NodeRecord]:
        """Online nodes whose last heartbeat is older than `timeout`."""
        cutoff = self.now() - _as_timedelta(timeout)
        return [node for node in self.list_nodes() if node.is_stale(cutoff)]

    def mark_dead_nodes(self, timeout: Timeout) -> List[str]:
        """
        Demote dead nodes to offline and return the ids that were demoted.

        Failures are logged and left out of the result.
        """
        return self.sweep_dead_nodes(timeout).marked

    def sweep_dead_nodes(self, timeout: Timeout) -> SweepResult:
        """
        Demote dead nodes to offline, reporting what happened to each.

        Each node is re-checked under the exclusive lock, so a heartbeat
        that lands after detection keeps the node online and is reported
        as revived rather than failed.
        """
        cutoff = self.now() - _as_timedelta(timeout)
        dead = [node for node in self.list_nodes() if node.is_stale(cutoff)]

        result = SweepResult()
        for candidate in dead:
            try:
                with self._lock.write_locked():
                    node = self._load_node(candidate.id)
                    revived = not node.is_stale(cutoff)
                    if not revived:
                        node.status = NodeStatus.OFFLINE
                        node.last_seen = self.now()
                        self._store_node(node)
            except RegistryError as e:
                logger.warning(f"Failed to mark node {candidate.id} offline: {e}")
                result.failed.append(candidate.id)
                continue

            if revived:
                logger.debug(f"Node {candidate.id} sent a heartbeat before demotion")
                result.revived.append(candidate.id)
                continue

            logger.info(
                f"Node {candidate.id} marked offline "
                f"(last seen {candidate.last_seen.isoformat()})"
            )
            result.marked.append(candidate.id)

        return result

    # ============================================
    # PLACEMENT
    # ============================================

    def get_best_node_for_placement(self, role: Union[NodeRole, str]) -> NodeRecord:
        """Best online node for a new account. Raises NoSuitableNode."""
        role = parse_role(role)
        return select_best_node(self.list_nodes_by_role(role), role)

    def rank_nodes_for_placement(
        self,
        role: Union[NodeRole, str],
    ) -> List[Tuple[NodeRecord, int]]:
        """
        Candidates for `role` with their scores, best first.

        The head is the node get_best_node_for_placement would return for
        the same snapshot. Raises NoSuitableNode when nothing qualifies.
        """
        role = parse_role(role)
        ranked = rank_nodes(self.list_nodes_by_role(role))
        if not ranked:
            raise NoSuitableNode(role.value)
        return ranked

    def get_account_placement(self, account_id: int) -> AccountPlacement:
        """Raises PlacementNotFound."""
        _validate_account_id(account_id)
        with self._lock.read_locked():
            try:
                record = self._store.read(PLACEMENTS, placement_key(account_id))
            except RecordNotFound as e:
                raise PlacementNotFound(account_id) from e

        placement = parse_placement(record)
        if placement.account_id != account_id:
            raise RecordParseError(
                f"Placement file {placement_key(account_id)} holds account "
                f"{placement.account_id}"
            )
        return placement

    def set_account_placement(self, account_id: int, node_id: str) -> AccountPlacement:
        """
        Bind an account to a node, overwriting any previous binding.

        The node is not checked for existence.
        """
        _validate_account_id(account_id)
        placement = AccountPlacement(
            account_id=account_id,
            node_id=node_id,
            placed_at=self.now(),
        )
        with self._lock.write_locked():
            self._store.write_document(
                PLACEMENTS,
                placement_key(account_id),
                serialize_placement(placement),
            )

        logger.info(f"Account {account_id} placed on node {node_id}")
        return placement

    def place_account(
        self,
        account_id: int,
        role: Union[NodeRole, str] = NodeRole.WEB,
    ) -> AccountPlacement:
        """Select the best node for `role` and persist the binding."""
        _validate_account_id(account_id)
        node = self.get_best_node_for_placement(role)
        return self.set_account_placement(account_id, node.id)

    def list_placements(self) -> List[AccountPlacement]:
        with self._lock.read_locked():
            records = list(self._store.iter_records(PLACEMENTS))

        placements = []
        for key, record in records:
            try:
                placement = parse_placement(record)
            except RecordParseError as e:
                logger.warning(f"Skipping corrupt placement record {key}: {e}")
                continue
            if placement_key(placement.account_id) != key:
                logger.warning(
                    f"Skipping placement record {key}: account is {placement.account_id}"
                )
                continue
            placements.append(placement)
        return placements

    def __repr__(self) -> str:
        return f"<ClusterRegistry(store={self._store!r})>"
