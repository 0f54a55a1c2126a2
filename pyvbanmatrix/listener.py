from abc import ABC, abstractmethod
from typing import List
import logging


class MatrixListener(ABC):

    @abstractmethod
    def topology_discovered(self, topology):
        pass

    @abstractmethod
    def snapshot_refreshed(self, snapshot: dict):
        pass

    def action_sent(self, source: str, target: str, action: str, command: str):
        """Called after a control command went out. The matrix does not confirm it."""
        pass

    def point_refreshed(self, src_slot: str, dst_slot: str, in_name: str, out_name: str, state):
        """Called with the live state of a single point."""
        pass

    def error(self, error_message: str):
        # By default, do nothing but can be overwritten to be notified of these messages.
        pass


class MultiplexingListener(MatrixListener):

    _listeners: List[MatrixListener]

    def __init__(self):
        self._listeners = []

    def topology_discovered(self, topology):
        for listener in self._listeners:
            listener.topology_discovered(topology)

    def snapshot_refreshed(self, snapshot: dict):
        for listener in self._listeners:
            listener.snapshot_refreshed(snapshot)

    def action_sent(self, source: str, target: str, action: str, command: str):
        for listener in self._listeners:
            listener.action_sent(source, target, action, command)

    def point_refreshed(self, src_slot: str, dst_slot: str, in_name: str, out_name: str, state):
        for listener in self._listeners:
            listener.point_refreshed(src_slot, dst_slot, in_name, out_name, state)

    def error(self, error_message: str):
        for listener in self._listeners:
            listener.error(error_message)

    def register_listener(self, listener: MatrixListener):
        self._listeners.append(listener)

    def unregister_listener(self, listener: MatrixListener):
        if listener in self._listeners:
            self._listeners.remove(listener)
        else:
            logging.info("Listener isn't registered")


class LoggingListener(MatrixListener):

    def __init__(self, logger = logging):
        self.logger = logger

    def topology_discovered(self, topology):
        self.logger.info(f"Matrix ready: {len(topology)} slot(s) {list(topology)}")

    def snapshot_refreshed(self, snapshot: dict):
        points = sum(len(section) for section in snapshot.values())
        self.logger.info(f"Connection matrix ready: {points} point(s)")

    def action_sent(self, source: str, target: str, action: str, command: str):
        self.logger.info(f"Action '{action}' sent for {source} -> {target}: {command}")

    def point_refreshed(self, src_slot: str, dst_slot: str, in_name: str, out_name: str, state):
        self.logger.info(f"{src_slot}:{in_name} -> {dst_slot}:{out_name}: {state}")

    def error(self, error_message: str):
        self.logger.error(error_message)
