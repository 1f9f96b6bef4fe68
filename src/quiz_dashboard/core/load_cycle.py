from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from quiz_dashboard.core.data_loader import DataLoaderError, LoadRequest
from quiz_dashboard.core.metadata_loader import ReconciledDataset

logger = logging.getLogger(__name__)


class LoadState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERRORED = "errored"


@dataclass
class LoadCycle:
    """
    Idle -> Loading -> {Loaded | Errored}, restarted by every new selection.

    Results are tagged with the LoadRequest that produced them. A result whose
    tag is not the current request is stale and is dropped, so a slow earlier
    load can never overwrite a later one.
    """
    state: LoadState = LoadState.IDLE
    request: Optional[LoadRequest] = None
    dataset: Optional[ReconciledDataset] = None
    error: Optional[str] = None

    @property
    def had_load_error(self) -> bool:
        return self.state is LoadState.ERRORED

    def begin(self, request: LoadRequest) -> None:
        # Everything derived from the previous selection goes away here
        self.state = LoadState.LOADING
        self.request = request
        self.dataset = None
        self.error = None

    def _is_current(self, request: LoadRequest) -> bool:
        if request != self.request or self.state is not LoadState.LOADING:
            logger.warning(
                "Discarding stale load result for %s (current request: %s, state: %s)",
                request, self.request, self.state.value,
            )
            return False
        return True

    def complete(self, request: LoadRequest, dataset: ReconciledDataset) -> bool:
        if not self._is_current(request):
            return False
        self.state = LoadState.LOADED
        self.dataset = dataset
        return True

    def fail(self, request: LoadRequest, error: Exception) -> bool:
        if not self._is_current(request):
            return False
        self.state = LoadState.ERRORED
        self.dataset = None
        self.error = str(error)
        return True


def run_load(
    cycle: LoadCycle,
    request: LoadRequest,
    loader: Callable[[LoadRequest], ReconciledDataset],
) -> bool:
    """
    Drive one load for `request`. Returns True when the result was applied.

    Load failures end in ERRORED with no dataset; they are not retried.
    """
    cycle.begin(request)
    try:
        dataset = loader(request)
    except DataLoaderError as exc:
        logger.warning("Failed to load %s level %s: %s", request.location, request.level, exc)
        return cycle.fail(request, exc)
    return cycle.complete(request, dataset)
