"""VBAN Matrix - process-level handle on one matrix.

This module contains the high-level abstraction used by the CLI and the
HTTP API:
- Owns the transport
- Holds the current Topology and full snapshot, swapped whole on refresh
- Dispatches events to registered listeners

Readers always see either the previous or the new topology/snapshot,
never one that is still being built."""

import asyncio
import logging
from typing import Optional

from pyvbanmatrix import actions, discovery, state
from pyvbanmatrix.exceptions import MatrixError, NotInitializedError
from pyvbanmatrix.listener import MultiplexingListener
from pyvbanmatrix.protocol import (
    DEFAULT_PORT,
    DEFAULT_QUERY_TIMEOUT,
    DEFAULT_STREAM_NAME,
    VBANTransport,
)
from pyvbanmatrix.state import PointState
from pyvbanmatrix.topology import Topology


class VBANMatrix:
    """High-level matrix control with discovery, snapshotting and actions."""

    def __init__(self, hostname, port=DEFAULT_PORT, stream_name=DEFAULT_STREAM_NAME,
                 timeout=DEFAULT_QUERY_TIMEOUT, transport=None, candidates=discovery.SLOT_CANDIDATES,
                 snapshot_concurrency: int = 1):
        """Initialize matrix handle.

        Args:
            hostname: Matrix hostname or IP
            port: VBAN port (usually 6980)
            stream_name: Stream tag for control commands
            timeout: Seconds to wait for each query reply
            transport: Object with async query/send, replaces the UDP transport
            candidates: Slot ids probed by discovery
            snapshot_concurrency: Points queried in parallel by a full fetch
        """
        self._logger = logging.getLogger(__name__)
        self._transport = transport or VBANTransport(hostname, port, stream_name, timeout)
        self._candidates = tuple(candidates)
        self._snapshot_concurrency = snapshot_concurrency

        self._topology: Optional[Topology] = None
        self._snapshot: Optional[dict] = None
        # Single writer: one discovery or snapshot at a time
        self._refresh_lock = asyncio.Lock()

        self._multiplex_callback = MultiplexingListener()

    @property
    def transport(self):
        return self._transport

    @property
    def topology(self) -> Optional[Topology]:
        """Topology from the last completed discovery, or None."""
        return self._topology

    @property
    def snapshot(self) -> Optional[dict]:
        """Snapshot from the last completed full fetch, or None."""
        return self._snapshot

    def register_listener(self, listener):
        """Register external listener for matrix events."""
        self._multiplex_callback.register_listener(listener)

    def unregister_listener(self, listener):
        """Unregister external listener."""
        self._multiplex_callback.unregister_listener(listener)

    def _require_topology(self) -> Topology:
        if self._topology is None:
            raise NotInitializedError("Matrix not initialized")
        return self._topology

    async def discover(self) -> Topology:
        """Re-probe the matrix and install the new topology."""
        async with self._refresh_lock:
            return await self._discover()

    async def _discover(self) -> Topology:
        self._logger.info("Discovering matrix...")
        topology = await discovery.discover(self._transport, self._candidates)
        self._topology = topology
        self._multiplex_callback.topology_discovered(topology)
        return topology

    async def fetch_full_snapshot(self) -> dict:
        """Query every point of the current topology and install the snapshot."""
        async with self._refresh_lock:
            return await self._fetch_full_snapshot()

    async def _fetch_full_snapshot(self) -> dict:
        topology = self._require_topology()
        self._logger.info("Fetching connections...")
        snapshot = await state.fetch_full_snapshot(
            self._transport, topology, concurrency=self._snapshot_concurrency
        )
        self._snapshot = snapshot
        self._multiplex_callback.snapshot_refreshed(snapshot)
        return snapshot

    async def refresh(self) -> tuple[Topology, dict]:
        """Discover, then fetch the full snapshot for the new topology."""
        async with self._refresh_lock:
            topology = await self._discover()
            snapshot = await self._fetch_full_snapshot()
            return topology, snapshot

    async def fetch_live_point(self, src_slot: str, dst_slot: str, in_name: str, out_name: str) -> PointState:
        """Query one point now. Unknown names and transport failures are raised."""
        topology = self._require_topology()
        try:
            point_state = await state.fetch_live_point(
                self._transport, topology, src_slot, dst_slot, in_name, out_name
            )
        except MatrixError as e:
            self._multiplex_callback.error(f"Live fetch of {in_name} -> {out_name} failed: {e}")
            raise
        self._multiplex_callback.point_refreshed(src_slot, dst_slot, in_name, out_name, point_state)
        return point_state

    async def apply(self, source: str, target: str, action: str, value=None) -> str:
        """Send an unconfirmed gain/mute/reset command. Re-fetch the point to see the result."""
        topology = self._require_topology()
        try:
            command = await actions.apply_action(self._transport, topology, source, target, action, value)
        except MatrixError as e:
            self._multiplex_callback.error(f"Action '{action}' on {source} -> {target} failed: {e}")
            raise
        self._multiplex_callback.action_sent(source, target, action, command)
        return command
