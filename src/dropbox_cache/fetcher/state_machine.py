from __future__ import annotations

import enum
import logging
from typing import Mapping

logger = logging.getLogger(__name__)


class FetchState(enum.Enum):
    CHECKING_CACHE = "checking_cache"
    DOWNLOADING = "downloading"
    REAUTHENTICATING = "reauthenticating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TRANSITIONS: Mapping[FetchState, frozenset[FetchState]] = {
    FetchState.CHECKING_CACHE: frozenset({FetchState.SUCCEEDED, FetchState.DOWNLOADING}),
    FetchState.DOWNLOADING: frozenset({FetchState.SUCCEEDED, FetchState.REAUTHENTICATING, FetchState.FAILED}),
    FetchState.REAUTHENTICATING: frozenset({FetchState.DOWNLOADING}),
    FetchState.SUCCEEDED: frozenset(),
    FetchState.FAILED: frozenset(),
}


class FetchRun:
    """Tracks the state of one fetch and rejects transitions outside TRANSITIONS."""

    def __init__(self, remote_path: str, max_attempts: int) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.remote_path = remote_path
        self.max_attempts = max_attempts
        self.state = FetchState.CHECKING_CACHE
        self.attempt = 0
        self.history: list[FetchState] = [self.state]

    @property
    def done(self) -> bool:
        return not TRANSITIONS[self.state]

    @property
    def can_retry(self) -> bool:
        return self.attempt < self.max_attempts

    def move_to(self, target: FetchState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal fetch transition {self.state.value} -> {target.value}")
        if target is FetchState.DOWNLOADING:
            self.attempt += 1
        logger.debug(
            "Fetch state changed. path=%s from=%s to=%s attempt=%s/%s",
            self.remote_path,
            self.state.value,
            target.value,
            self.attempt,
            self.max_attempts,
        )
        self.state = target
        self.history.append(target)
