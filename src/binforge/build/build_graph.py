"""Parallel execution of per-target pipelines.

The build graph maps each selected target to one task on a thread pool.
Targets share no mutable state: each owns its staging slot, and shared
source trees are only read. One target failing never cancels another.
"""

import logging
import sys
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from tqdm import tqdm

from ..config.targets import BuildTarget
from .orchestrator import BuildOrchestrator, BuildResult

ResultT = TypeVar("ResultT")


@dataclass
class GraphResult:
    """Per-target results in declaration order."""

    results: List[BuildResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results)

    @property
    def failed(self) -> List[BuildResult]:
        return [result for result in self.results if not result.success]

    @property
    def first_failure(self) -> Optional[BuildResult]:
        failed = self.failed
        return failed[0] if failed else None

    @property
    def returncode(self) -> int:
        """Exit status of the first failing target (0 when all succeeded)."""
        failure = self.first_failure
        return failure.returncode if failure else 0

    def get(self, name: str) -> Optional[BuildResult]:
        for result in self.results:
            if result.target == name:
                return result
        return None


class BuildGraph:
    """Runs one task per target on a worker pool.

    Args:
        orchestrator: Pipeline shared by every task, so the target triple
            is resolved once per invocation
        jobs: Maximum number of targets processed at the same time
        show_progress: Display a progress bar over completed targets
    """

    def __init__(self, orchestrator: BuildOrchestrator, jobs: int = 1, show_progress: bool = False):
        self.orchestrator = orchestrator
        self.jobs = max(1, jobs)
        self.show_progress = show_progress

    def build(self, targets: Sequence[BuildTarget], force: bool = False) -> GraphResult:
        """Build every target, in parallel when jobs > 1."""
        results = self.run(targets, lambda target: self.orchestrator.build(target, force=force))
        return GraphResult(results=results)

    def run(
        self,
        targets: Sequence[BuildTarget],
        task: Callable[[BuildTarget], ResultT],
    ) -> List[ResultT]:
        """Apply a per-target task to every target.

        Args:
            targets: Targets in declaration order
            task: Callable run once per target

        Returns:
            Task results in the same order as targets
        """
        targets = list(targets)
        if not targets:
            return []

        progress = None
        if self.show_progress and len(targets) > 1 and sys.stderr.isatty():
            progress = tqdm(total=len(targets), unit="target", desc="Building")

        try:
            if self.jobs == 1 or len(targets) == 1:
                results = []
                for target in targets:
                    results.append(task(target))
                    if progress:
                        progress.update(1)
                return results
            return self._run_parallel(targets, task, progress)
        finally:
            if progress:
                progress.close()

    def _run_parallel(
        self,
        targets: List[BuildTarget],
        task: Callable[[BuildTarget], ResultT],
        progress: Optional[tqdm],
    ) -> List[ResultT]:
        workers = min(self.jobs, len(targets))
        logging.debug(f"Running {len(targets)} targets on {workers} workers")

        by_name: Dict[str, ResultT] = {}
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="target")
        try:
            futures: Dict[Future, BuildTarget] = {
                executor.submit(task, target): target for target in targets
            }
            for future in as_completed(futures):
                target = futures[future]
                by_name[target.name] = future.result()
                if progress:
                    progress.set_postfix_str(target.name)
                    progress.update(1)
        except KeyboardInterrupt:
            executor.shutdown(wait=False, cancel_futures=True)
            killed = self.orchestrator.invoker.terminate_all()
            logging.warning(f"Interrupted; stopped {killed} toolchain processes")
            raise
        finally:
            executor.shutdown(wait=True)

        return [by_name[target.name] for target in targets]
