"""
Transfer queue - a single scheduler thread dispatching queued tasks
to worker threads under a bounded number of permits
"""
import threading
from typing import Callable, Dict, List, Optional

from ...core.exceptions import CancelledError, TransferError
from ...core.logging import get_logger
from .cancel import CancelToken
from .models import TaskStatus, TransferConfig, TransferTask

logger = get_logger(__name__)

TaskRunner = Callable[[TransferTask, CancelToken], None]


class TransferQueue:
    """
    Ordered task queue with bounded concurrency.

    Tasks are started oldest first. At most ``max_concurrency`` runners are
    in flight; one failing task never stops the others.
    """

    def __init__(self, config: Optional[TransferConfig] = None):
        """
        Initialize transfer queue.

        Args:
            config: Transfer configuration (max_concurrency, poll_interval)
        """
        self.config = config or TransferConfig()
        self._permits = threading.BoundedSemaphore(self.config.max_concurrency)
        self._lock = threading.Lock()
        self._tasks: List[TransferTask] = []
        self._runners: Dict[str, TaskRunner] = {}
        self._tokens: Dict[str, CancelToken] = {}
        self._workers: List[threading.Thread] = []
        self._stop = threading.Event()
        self._loop: Optional[threading.Thread] = None

    # --------------------
    # Queue management
    # --------------------
    @property
    def tasks(self) -> List[TransferTask]:
        """Snapshot of every task, in queue order"""
        with self._lock:
            return list(self._tasks)

    @property
    def running(self) -> bool:
        return self._loop is not None and self._loop.is_alive()

    def enqueue(self, task: TransferTask, runner: TaskRunner) -> TransferTask:
        """
        Append a pending task.

        Args:
            task: Task in pending status
            runner: Called as runner(task, cancel) on a worker thread

        Returns:
            The queued task
        """
        if task.status != TaskStatus.PENDING:
            raise TransferError(f"Only pending tasks can be queued, got {task.status.value}")
        with self._lock:
            self._tasks.append(task)
            self._runners[task.id] = runner
            self._tokens[task.id] = CancelToken()
        logger.debug(f"Queued {task.direction.value} task {task.id}: {task.file_name}")
        return task

    def cancel(self, task_id: str) -> bool:
        """
        Cancel a pending or running task.

        Returns:
            False if the task is unknown or already finished
        """
        with self._lock:
            task = next((t for t in self._tasks if t.id == task_id), None)
            token = self._tokens.get(task_id)
        if task is None:
            return False
        if token is not None:
            token.cancel()
        cancelled = task.cancel()
        if cancelled:
            logger.info(f"Cancelled task {task.file_name or task.id}")
        return cancelled

    def clear_finished(self) -> int:
        """Drop finished tasks, returning how many were removed"""
        with self._lock:
            finished = [t for t in self._tasks if t.is_finished]
            for task in finished:
                self._tasks.remove(task)
                self._runners.pop(task.id, None)
                self._tokens.pop(task.id, None)
        return len(finished)

    # --------------------
    # Scheduling
    # --------------------
    def start(self) -> None:
        """Start the scheduler thread (no-op when already running)"""
        if self.running:
            return
        self._stop.clear()
        self._loop = threading.Thread(target=self._run_loop, name="transfer-queue", daemon=True)
        self._loop.start()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """
        Stop scheduling new tasks.

        Args:
            wait: Join the scheduler and every worker thread
            timeout: Per-thread join timeout
        """
        self._stop.set()
        if not wait:
            return
        if self._loop is not None:
            self._loop.join(timeout)
        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout)

    def _next_pending(self) -> Optional[TransferTask]:
        with self._lock:
            return next((t for t in self._tasks if t.status == TaskStatus.PENDING), None)

    def _run_loop(self) -> None:
        while not self._stop.is_set():
            task = self._next_pending()
            if task is None:
                self._stop.wait(self.config.poll_interval)
                continue

            if not self._permits.acquire(timeout=self.config.poll_interval):
                continue

            # Cancelled while we were waiting for a permit
            if task.status != TaskStatus.PENDING:
                self._permits.release()
                continue

            try:
                task.start()
            except TransferError:
                self._permits.release()
                continue

            worker = threading.Thread(
                target=self._execute,
                args=(task,),
                name=f"transfer-{task.id[:8]}",
                daemon=True,
            )
            with self._lock:
                self._workers = [w for w in self._workers if w.is_alive()]
                self._workers.append(worker)
            worker.start()

    def _execute(self, task: TransferTask) -> None:
        with self._lock:
            runner = self._runners[task.id]
            token = self._tokens[task.id]

        try:
            runner(task, token)
        except CancelledError:
            self._settle(task, TaskStatus.CANCELLED)
        except Exception as e:
            logger.error(f"Transfer task {task.file_name or task.id} failed: {e}")
            self._settle(task, TaskStatus.FAILED, str(e))
        else:
            outcome = TaskStatus.CANCELLED if token.cancelled else TaskStatus.COMPLETED
            self._settle(task, outcome)
        finally:
            self._permits.release()

        logger.debug(f"Task {task.id} finished: {task.status.value}")

    @staticmethod
    def _settle(task: TransferTask, outcome: TaskStatus, message: str = "") -> None:
        # A task cancelled from another thread keeps its cancelled status
        try:
            if outcome == TaskStatus.COMPLETED:
                task.complete()
            elif outcome == TaskStatus.FAILED:
                task.fail(message)
            else:
                task.cancel()
        except TransferError:
            logger.debug(f"Task {task.id} already {task.status.value}, {outcome.value} ignored")
