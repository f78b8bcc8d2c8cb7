"""
Lock hysteresis for detected quadrilaterals.

A document is "locked" once its quad has been found on a required number of
consecutive frames with the enclosed area changing by no more than a
relative tolerance between frames. The transition logic is a pure function
over an explicit StabilityState; StabilityTracker only holds the current
value for callers that want an object.
"""

import logging
from typing import Optional, Tuple

from src.scanner.types import LockTransition, StabilityConfig, StabilityState

logger = logging.getLogger(__name__)


def _classify_transition(
    previous: StabilityState, current: StabilityState
) -> LockTransition:
    if current.locked:
        return LockTransition.STILL_LOCKED if previous.locked else LockTransition.JUST_LOCKED
    if previous.locked:
        return LockTransition.RESET
    if current.stable_frames > 0:
        return LockTransition.STILL_TRACKING
    if previous.stable_frames > 0:
        return LockTransition.RESET
    return LockTransition.STILL_UNLOCKED


def update_stability(
    state: StabilityState,
    found: bool,
    area: float,
    config: Optional[StabilityConfig] = None,
) -> Tuple[StabilityState, LockTransition]:
    """
    Advance the stability state by one frame.

    Rules:
    - Quad lost: counter and last area reset to 0.
    - Quad found: relative area difference against the previous frame
      (0 when there is no previous area, so the first frame after a loss
      always counts). Within tolerance the counter increments, otherwise it
      restarts at 0. The last area is always updated.
    - Locked iff counter >= required stable frames.

    Args:
        state: State after the previous frame.
        found: Whether a valid quad was found this frame.
        area: Area of that quad (ignored when not found).
        config: Hysteresis thresholds (defaults if None).

    Returns:
        Tuple of (new_state, transition).

    Example:
        >>> state = StabilityState()
        >>> state, transition = update_stability(state, True, 5000.0)
        >>> transition
        <LockTransition.STILL_TRACKING: 'Still Tracking'>
    """
    config = config or StabilityConfig()

    if found:
        if state.last_area > 0:
            area_diff = abs(area - state.last_area) / state.last_area
        else:
            area_diff = 0.0

        if area_diff <= config.area_threshold:
            stable_frames = state.stable_frames + 1
            logger.debug(
                f"Stabilizing: {stable_frames}/{config.required_stable_frames}"
            )
        else:
            stable_frames = 0
            logger.debug(f"Reset: movement (diff: {area_diff:.2f})")

        last_area = float(area)
    else:
        if state.stable_frames > 0:
            logger.debug("Reset: quad lost")
        stable_frames = 0
        last_area = 0.0

    new_state = StabilityState(
        stable_frames=stable_frames,
        last_area=last_area,
        locked=stable_frames >= config.required_stable_frames,
    )
    transition = _classify_transition(state, new_state)

    if transition == LockTransition.JUST_LOCKED:
        logger.info(
            f"Document locked after {stable_frames} stable frames "
            f"(area {last_area:.0f})"
        )
    elif transition == LockTransition.RESET and state.locked:
        logger.info("Lock lost")

    return new_state, transition


class StabilityTracker:
    """
    Holder for the current StabilityState.

    Not thread-safe on its own: exactly one caller may update it, in frame
    order. ScanSession provides that serialization.

    Example:
        >>> tracker = StabilityTracker()
        >>> for area in areas:
        ...     if tracker.update(True, area) == LockTransition.JUST_LOCKED:
        ...         break
    """

    def __init__(self, config: Optional[StabilityConfig] = None):
        self.config = config or StabilityConfig()
        self._state = StabilityState()

    @property
    def state(self) -> StabilityState:
        return self._state

    @property
    def is_locked(self) -> bool:
        return self._state.locked

    def update(self, found: bool, area: float) -> LockTransition:
        """Feed one frame's observation. See update_stability."""
        self._state, transition = update_stability(
            self._state, found, area, self.config
        )
        return transition

    def reset(self) -> None:
        """Return to the initial (0, 0.0, unlocked) state."""
        self._state = StabilityState()
