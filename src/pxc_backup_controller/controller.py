from __future__ import annotations

import heapq
import logging
import threading
import time
from typing import Any, Callable

from kubernetes import watch
from kubernetes.client import ApiException

from .config import ControllerConfig
from .k8s import KubernetesClients
from .models import API_GROUP, API_VERSION, BACKUP_PLURAL, RequestKey
from .reconciler import BackupReconciler

logger = logging.getLogger(__name__)

ERROR_BACKOFF_BASE_SECONDS = 0.005
ERROR_BACKOFF_MAX_SECONDS = 300.0
WATCH_RESTART_DELAY_SECONDS = 1.0
WATCH_JOIN_TIMEOUT_SECONDS = 10.0


class WorkQueue:
    """Delaying queue of request keys; a key is held at most once."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._deadlines: dict[RequestKey, float] = {}
        self._heap: list[tuple[float, str, str]] = []
        self._condition = threading.Condition()

    def add(self, key: RequestKey, delay: float = 0.0) -> None:
        deadline = self._clock() + max(0.0, delay)
        with self._condition:
            current = self._deadlines.get(key)
            if current is not None and current <= deadline:
                return
            self._deadlines[key] = deadline
            heapq.heappush(self._heap, (deadline, key.namespace, key.name))
            self._condition.notify()

    def discard(self, key: RequestKey) -> None:
        with self._condition:
            self._deadlines.pop(key, None)

    def get(self, timeout: float | None = None) -> RequestKey | None:
        """Block until a key is due and return it, or ``None`` on timeout."""
        give_up_at = None if timeout is None else self._clock() + timeout
        with self._condition:
            while True:
                self._drop_stale_heads()
                now = self._clock()
                if self._heap and self._heap[0][0] <= now:
                    _, namespace, name = heapq.heappop(self._heap)
                    key = RequestKey(namespace=namespace, name=name)
                    del self._deadlines[key]
                    return key

                wait_for: float | None = self._heap[0][0] - now if self._heap else None
                if give_up_at is not None:
                    remaining = give_up_at - now
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)
                self._condition.wait(wait_for)

    def __len__(self) -> int:
        with self._condition:
            return len(self._deadlines)

    def _drop_stale_heads(self) -> None:
        while self._heap:
            deadline, namespace, name = self._heap[0]
            if self._deadlines.get(RequestKey(namespace=namespace, name=name)) == deadline:
                return
            heapq.heappop(self._heap)


class BackupController:
    def __init__(
        self,
        *,
        clients: KubernetesClients,
        reconciler: BackupReconciler,
        config: ControllerConfig,
        queue: WorkQueue | None = None,
    ) -> None:
        self.clients = clients
        self.reconciler = reconciler
        self.config = config
        self.queue = queue if queue is not None else WorkQueue()
        self._failures: dict[RequestKey, int] = {}
        self._watcher: watch.Watch | None = None

    def handle_event(self, event: dict[str, Any]) -> None:
        obj = event.get("object")
        if not isinstance(obj, dict):
            return
        metadata = obj.get("metadata") or {}
        namespace = metadata.get("namespace")
        name = metadata.get("name")
        if not namespace or not name:
            return

        key = RequestKey(namespace=namespace, name=name)
        if event.get("type") == "DELETED":
            self.queue.discard(key)
            self._failures.pop(key, None)
            return
        if event.get("type") in {"ADDED", "MODIFIED"}:
            self.queue.add(key)

    def process_next(self, timeout: float | None = None) -> bool:
        key = self.queue.get(timeout=timeout)
        if key is None:
            return False

        try:
            result = self.reconciler.reconcile(key)
        except Exception:  # pylint: disable=broad-except
            logger.exception("unexpected failure reconciling backup %s", key)
            self.queue.add(key, self._error_delay(key, self.config.requeue_after_seconds))
            return True

        if result.requeue_after is None:
            self._failures.pop(key, None)
            return True
        if result.error is not None:
            self.queue.add(key, self._error_delay(key, result.requeue_after))
        else:
            self._failures.pop(key, None)
            self.queue.add(key, result.requeue_after)
        return True

    def watch_backups(self, stop: threading.Event) -> None:
        while not stop.is_set():
            watcher = watch.Watch()
            self._watcher = watcher
            try:
                for event in watcher.stream(self._list_function(), **self._list_arguments()):
                    if stop.is_set():
                        break
                    self.handle_event(event)
            except ApiException as error:
                logger.warning("backup watch interrupted: API status %s (%s); restarting", error.status, error.reason)
                stop.wait(WATCH_RESTART_DELAY_SECONDS)
            except Exception as error:  # pylint: disable=broad-except
                logger.warning("backup watch interrupted: %s; restarting", error)
                stop.wait(WATCH_RESTART_DELAY_SECONDS)
            finally:
                watcher.stop()

    def run(self, stop: threading.Event) -> None:
        watcher_thread = threading.Thread(target=self.watch_backups, args=(stop,), name="backup-watch", daemon=True)
        watcher_thread.start()
        logger.info("watching %s in %s", BACKUP_PLURAL, self.config.namespace or "all namespaces")
        while not stop.is_set():
            self.process_next(timeout=1.0)

        watcher = self._watcher
        if watcher is not None:
            watcher.stop()
        watcher_thread.join(timeout=WATCH_JOIN_TIMEOUT_SECONDS)
        if watcher_thread.is_alive():
            logger.warning(
                "backup watch still running after %.0fs; leaving it to exit with the process",
                WATCH_JOIN_TIMEOUT_SECONDS,
            )

    def _error_delay(self, key: RequestKey, requeue_after: float) -> float:
        failures = self._failures.get(key, 0) + 1
        self._failures[key] = failures
        backoff = min(ERROR_BACKOFF_BASE_SECONDS * (2 ** (failures - 1)), ERROR_BACKOFF_MAX_SECONDS)
        return max(requeue_after, backoff)

    def _list_function(self) -> Callable[..., Any]:
        if self.config.namespace:
            return self.clients.custom_api.list_namespaced_custom_object
        return self.clients.custom_api.list_cluster_custom_object

    def _list_arguments(self) -> dict[str, Any]:
        arguments: dict[str, Any] = {
            "group": API_GROUP,
            "version": API_VERSION,
            "plural": BACKUP_PLURAL,
            "timeout_seconds": self.config.watch_timeout_seconds,
        }
        if self.config.namespace:
            arguments["namespace"] = self.config.namespace
        return arguments
