import csv
import fcntl
import os
import time
from pathlib import Path


class RunLogger:
    '''
    A logger for annealing runs. Keeps the per-iteration events and the per-run summaries
    in memory, and appends them to tsv files on `save`.
    '''
    EVENTS_HEADER = ["run_name", "seed", "iteration", "temperature", "cost", "best_cost", "swaps", "accepted"]
    RUNS_HEADER = ["run_name", "seed", "initial_cost", "best_cost", "iterations", "accepted", "termination", "duration"]

    def __init__(self, run_name: str, log_runs: bool = True, log_events: bool = True):
        self.run_name = run_name
        self.log_runs = log_runs
        self.log_events = log_events

        self.events_filename = f"{self.run_name}_events.tsv"
        self.runs_filename = f"{self.run_name}_runs.tsv"

        self.events = []
        self.runs = []
        self.start_time = time.time()

    def start(self) -> None:
        self.start_time = time.time()

    def event(
        self,
        seed: int | None,
        iteration: int,
        temperature: float,
        cost: float,
        best_cost: float,
        swaps: tuple[tuple[int, int], ...],
        accepted: bool,
    ) -> None:
        if not self.log_events:
            return
        self.events.append((seed, iteration, temperature, cost, best_cost, swaps, accepted))

    def run(
        self,
        seed: int | None,
        initial_cost: float,
        best_cost: float,
        iterations: int,
        accepted: int,
        termination: str,
    ) -> None:
        if not self.log_runs:
            return
        self.runs.append((seed, initial_cost, best_cost, iterations, accepted, termination, time.time() - self.start_time))

    def save(self, logs_dir: str | Path) -> None:
        if not self.events and not self.runs:
            return

        os.makedirs(logs_dir, exist_ok=True)

        for file_path, header, rows in (
            (
                os.path.join(logs_dir, self.events_filename),
                self.EVENTS_HEADER,
                [
                    (self.run_name, seed, iteration, temperature, cost, best_cost, ' '.join(f'{i}-{j}' for i, j in swaps), int(accepted))
                    for seed, iteration, temperature, cost, best_cost, swaps, accepted in self.events
                ]
            ),
            (
                os.path.join(logs_dir, self.runs_filename),
                self.RUNS_HEADER,
                [(self.run_name, *run) for run in self.runs]
            ),
        ):
            if not rows:
                continue

            file_exists = os.path.exists(file_path)
            with open(file_path, "a+", newline='') as f:
                # using a lock to make this code multiprocessor safe if writing to the same log file
                fcntl.flock(f, fcntl.LOCK_EX)
                writer = csv.writer(f, delimiter='\t')
                if not file_exists:
                    writer.writerow(header)
                writer.writerows(rows)
                fcntl.flock(f, fcntl.LOCK_UN)
