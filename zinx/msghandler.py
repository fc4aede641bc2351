"""Dispatch of incoming requests to routers, directly or through worker queues."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

from .chainbuilder import Chain, ChainBuilder, Interceptor
from .config import Config, WorkerMode
from .request import FuncRequest, Request, RequestPool
from .router import GroupRouter, RouteError, RouterSlices

__all__ = ["WORKER_ID_WITHOUT_WORKER_POOL", "MsgHandler"]

log = logging.getLogger(__name__)

# Worker id reported for requests handled without a worker pool.
WORKER_ID_WITHOUT_WORKER_POOL = 0

# Put on a task queue to make its worker exit.
_CLOSED = object()

RouterHandler = Callable[[Any], None]


class MsgHandler(Interceptor):
    """Routes requests by message id and runs them on workers or threads.

    The handler is the last link of its own interceptor chain: every request
    passes through the chain and is then dispatched here.
    """

    def __init__(self, config: Config | None = None, is_client: bool = False) -> None:
        self.config = config if config is not None else Config()
        cfg = self.config
        self.apis: dict[int, Any] = {}
        self.router_slices = RouterSlices()
        self.request_pool = RequestPool(cfg.request_pool_mode, cfg.router_slices_mode)
        self.free_workers: set[int] = set()
        self.extra_free_workers: set[int] = set()
        self._free_lock = threading.Lock()
        self._extra_lock = threading.Lock()

        if cfg.worker_mode == WorkerMode.BIND:
            # One worker per connection, so the pool grows to the connection limit.
            cfg.worker_pool_size = cfg.max_conn
            self.free_workers = set(range(cfg.worker_pool_size))

        task_queue_len = cfg.worker_pool_size

        if cfg.worker_mode == WorkerMode.DYNAMIC_BIND:
            log.debug("WorkerMode = %s", WorkerMode.DYNAMIC_BIND.value)
            self.free_workers = set(range(cfg.worker_pool_size))
            self.extra_free_workers = set(range(cfg.worker_pool_size, cfg.max_conn))
            task_queue_len = cfg.max_conn

        # Clients never run a worker pool.
        self.worker_pool_size = 0 if is_client else cfg.worker_pool_size
        self.task_queue: list[queue.Queue | None] = [None] * task_queue_len

        self.builder = ChainBuilder()
        self.builder.set_tail(self)

    # -- worker assignment -------------------------------------------------

    def use_worker(self, conn: Any) -> int:
        """Choose the worker id that will handle a connection's requests."""
        mode = self.config.worker_mode

        if mode == WorkerMode.BIND:
            with self._free_lock:
                if self.free_workers:
                    worker_id = min(self.free_workers)
                    self.free_workers.discard(worker_id)
                    return worker_id

        if mode == WorkerMode.DYNAMIC_BIND:
            with self._free_lock:
                if self.free_workers:
                    worker_id = min(self.free_workers)
                    self.free_workers.discard(worker_id)
                    return worker_id
            # The pool is exhausted: start a temporary worker.
            with self._extra_lock:
                if self.extra_free_workers:
                    worker_id = min(self.extra_free_workers)
                    self.extra_free_workers.discard(worker_id)
                    log.debug("start extra worker, workerID=%d", worker_id)
                    self._spawn_worker(worker_id)
                    return worker_id

        if self.worker_pool_size == 0:
            return 0
        return conn.conn_id % self.worker_pool_size

    def free_worker(self, conn: Any) -> None:
        """Give back the worker id held by a connection."""
        mode = self.config.worker_mode
        worker_id = conn.worker_id

        if mode == WorkerMode.BIND:
            with self._free_lock:
                self.free_workers.add(worker_id)

        if mode == WorkerMode.DYNAMIC_BIND:
            if worker_id < self.worker_pool_size:
                with self._free_lock:
                    self.free_workers.add(worker_id)
            else:
                self.stop_one_worker(worker_id)
                with self._extra_lock:
                    self.extra_free_workers.add(worker_id)

    # -- interceptor chain -------------------------------------------------

    def intercept(self, chain: Chain) -> Any:
        """Dispatch the chain's request, then let the chain continue."""
        request = chain.request
        if isinstance(request, (Request, FuncRequest)):
            if self.worker_pool_size > 0:
                self.send_msg_to_task_queue(request)
            else:
                threading.Thread(
                    target=self._dispatch,
                    args=(request, WORKER_ID_WITHOUT_WORKER_POOL),
                    daemon=True,
                ).start()
        return chain.proceed(chain.request)

    def set_head_interceptor(self, interceptor: Interceptor) -> None:
        """Set the interceptor that runs first, replacing any earlier one."""
        self.builder.set_head(interceptor)

    def add_interceptor(self, interceptor: Interceptor) -> None:
        """Add an interceptor that runs before dispatch."""
        self.builder.add_interceptor(interceptor)

    def execute(self, request: Any) -> None:
        """Pass a request through the interceptor chain."""
        self.builder.execute(request)

    # -- routing -----------------------------------------------------------

    def add_router(self, msg_id: int, router: Any) -> None:
        """Bind a class-based router to a message id."""
        if msg_id in self.apis:
            raise RouteError(f"repeated api , msgID = {msg_id}")
        self.apis[msg_id] = router
        log.info("Add Router msgID = %d", msg_id)

    def add_router_slices(self, msg_id: int, *handlers: RouterHandler) -> RouterSlices:
        """Bind a handler chain to a message id."""
        self.router_slices.add_handler(msg_id, *handlers)
        return self.router_slices

    def group(self, start: int, end: int, *handlers: RouterHandler) -> GroupRouter:
        """Create a route group for message ids start..end inclusive."""
        return GroupRouter(start, end, self.router_slices, *handlers)

    def use(self, *handlers: RouterHandler) -> RouterSlices:
        """Add handlers shared by every handler chain registered afterwards."""
        self.router_slices.use(*handlers)
        return self.router_slices

    # -- handling ----------------------------------------------------------

    def send_msg_to_task_queue(self, request: Any) -> None:
        """Queue a request for the worker bound to its connection."""
        worker_id = request.conn.worker_id
        task_queue = self.task_queue[worker_id]
        if task_queue is None:
            raise RuntimeError(f"worker {worker_id} has no task queue")
        task_queue.put(request)
        data = getattr(request, "data", None)
        if data is not None:
            log.debug("SendMsgToTaskQueue-->%s", bytes(data).hex())

    def _dispatch(self, request: Any, worker_id: int) -> None:
        if isinstance(request, FuncRequest):
            self._do_func_handler(request, worker_id)
        elif self.config.router_slices_mode:
            self._do_msg_handler_slices(request, worker_id)
        else:
            self._do_msg_handler(request, worker_id)

    def _do_func_handler(self, request: FuncRequest, worker_id: int) -> None:
        try:
            request.call_func()
        except Exception as exc:
            log.error("workerID: %d doFuncRequest panic: %s", worker_id, exc)

    def _do_msg_handler(self, request: Request, worker_id: int) -> None:
        try:
            router = self.apis.get(request.msg_id)
            if router is None:
                log.error("api msgID = %d is not FOUND!", request.msg_id)
                return
            request.bind_router(router)
            request.call()
            self.request_pool.release(request)
        except Exception as exc:
            log.error("workerID: %d doMsgHandler panic: %s", worker_id, exc)

    def _do_msg_handler_slices(self, request: Request, worker_id: int) -> None:
        try:
            handlers = self.router_slices.get_handlers(request.msg_id)
            if handlers is None:
                log.error("api msgID = %d is not FOUND!", request.msg_id)
                return
            request.bind_router_slices(handlers)
            request.router_slices_next()
            self.request_pool.release(request)
        except Exception as exc:
            log.error("workerID: %d doMsgHandler panic: %s", worker_id, exc)

    # -- workers -----------------------------------------------------------

    def start_one_worker(self, worker_id: int, task_queue: queue.Queue) -> None:
        """Handle requests from a queue until the queue is closed."""
        log.debug("Worker ID = %d is started.", worker_id)
        while True:
            request = task_queue.get()
            if request is _CLOSED:
                log.error(" taskQueue is closed, Worker ID = %d quit", worker_id)
                return
            self._dispatch(request, worker_id)

    def stop_one_worker(self, worker_id: int) -> None:
        """Close a worker's queue so that the worker exits."""
        log.debug("stop Worker ID = %d ", worker_id)
        task_queue = self.task_queue[worker_id]
        if task_queue is None:
            raise RuntimeError(f"worker {worker_id} has no task queue")
        self.task_queue[worker_id] = None
        task_queue.put(_CLOSED)

    def _spawn_worker(self, worker_id: int) -> None:
        task_queue: queue.Queue = queue.Queue(self.config.max_worker_task_len)
        self.task_queue[worker_id] = task_queue
        threading.Thread(
            target=self.start_one_worker,
            args=(worker_id, task_queue),
            name=f"zinx-worker-{worker_id}",
            daemon=True,
        ).start()

    def start_worker_pool(self) -> None:
        """Start one worker thread with its own queue for each pool slot."""
        for worker_id in range(self.worker_pool_size):
            self._spawn_worker(worker_id)