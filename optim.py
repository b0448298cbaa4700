import logging
import multiprocessing
import queue
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from tqdm import tqdm

from layout import KeyboardLayout
from logger import RunLogger
from model import CostModel
from solvers.annealing import Annealer, AnnealingResult, AnnealingSchedule, CancelSignal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MultiStartResult:
    best: AnnealingResult
    results: tuple[AnnealingResult, ...]


# set once per worker process by the pool initializer, so that the model is pickled once per process
_worker_model: CostModel | None = None
_worker_schedule: AnnealingSchedule | None = None


def _init_worker(model: CostModel, schedule: AnnealingSchedule) -> None:
    global _worker_model, _worker_schedule
    _worker_model = model
    _worker_schedule = schedule


def _anneal(
    model: CostModel,
    schedule: AnnealingSchedule,
    seed: int,
    layout: KeyboardLayout | None,
    alphabet: Sequence[str] | None,
    cancel: CancelSignal | None,
    progress_queue,
    run_name: str,
    logs_dir: str | None,
) -> AnnealingResult:
    run_logger = RunLogger(run_name) if logs_dir else None
    annealer = Annealer(model, schedule, run_logger)
    result = annealer.run(layout, alphabet, seed, cancel, progress_queue)
    if run_logger is not None:
        run_logger.save(logs_dir)
    return result


def _anneal_worker(args) -> AnnealingResult:
    return _anneal(_worker_model, _worker_schedule, *args)


class MultiStart:
    '''
    Runs one independent annealer per seed, in-process or in a pool of processes, and
    keeps the lowest best cost (ties go to the earliest seed).

    The model, its statistics and its geometry are shared read-only; every run owns its
    generator, built from its seed, so the outcome does not depend on the number of processes.
    '''
    def __init__(
        self,
        model: CostModel,
        schedule: AnnealingSchedule | None = None,
        processes: int = 1,
        logs_dir: str | Path | None = None,
        run_name: str = 'anneal',
        progress: bool = True,
    ):
        if processes < 1:
            raise ValueError(f"processes must be >= 1, got {processes}")
        self.model = model
        self.schedule = schedule or AnnealingSchedule()
        self.processes = processes
        self.logs_dir = str(logs_dir) if logs_dir else None
        self.run_name = run_name
        self.progress = progress

    def run(
        self,
        seeds: Sequence[int],
        layout: KeyboardLayout | None = None,
        alphabet: Sequence[str] | None = None,
        cancel: CancelSignal | None = None,
    ) -> MultiStartResult:
        '''
        Anneal once per seed, starting from `layout` or from a random permutation of `alphabet`.

        With more than one process, `cancel` must be shareable across processes,
        e.g. a `multiprocessing.Manager().Event()`.
        '''
        seeds = list(seeds)
        if not seeds:
            raise ValueError("at least one seed is required")

        if self.processes == 1 or len(seeds) == 1:
            results = [
                _anneal(self.model, self.schedule, seed, layout, alphabet, cancel, None, self.run_name, self.logs_dir)
                for seed in tqdm(seeds, desc="Annealing", disable=not self.progress)
            ]
        else:
            results = self._run_pool(seeds, layout, alphabet, cancel)

        best = min(range(len(results)), key=lambda k: (results[k].best_cost, k))
        logger.info(f"best of {len(results)} runs: seed {results[best].seed}, cost {results[best].best_cost:.3f}")
        return MultiStartResult(best=results[best], results=tuple(results))

    def _run_pool(
        self,
        seeds: list[int],
        layout: KeyboardLayout | None,
        alphabet: Sequence[str] | None,
        cancel: CancelSignal | None,
    ) -> list[AnnealingResult]:
        manager = multiprocessing.Manager()
        progress_queue = manager.Queue()
        total_jobs = len(seeds)

        tasks = [
            (seed, layout, alphabet, cancel, progress_queue, self.run_name, self.logs_dir)
            for seed in seeds
        ]

        with multiprocessing.Pool(self.processes, initializer=_init_worker, initargs=(self.model, self.schedule)) as pool:
            results_async = pool.map_async(_anneal_worker, tasks)

            with tqdm(total=total_jobs, desc="Annealing", disable=not self.progress) as pbar:
                while not results_async.ready():
                    try:
                        # Check for progress updates without blocking
                        if pbar.n < total_jobs:
                            progress_queue.get(timeout=0.1)
                            pbar.update(1)
                        else:
                            results_async.wait(0.1)
                    except queue.Empty:
                        # timeout on get, continue loop
                        pass

                # update with any remaining items in the queue
                while not progress_queue.empty():
                    try:
                        progress_queue.get_nowait()
                        pbar.update(1)
                    except queue.Empty:
                        break

            # results come back in seed order
            results = results_async.get()

        manager.shutdown()
        return results
