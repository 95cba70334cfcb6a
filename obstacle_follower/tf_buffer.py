"""Time-indexed transform cache.

TransformBuffer stores the history of every frame-to-parent transform it is
fed and answers lookups between any two connected frames at a given time. It
is the in-process TransformProvider used by the WebSocket client; tests use it
alongside simpler canned fakes.

Ingestion (``set_transform``) and queries (``lookup_transform``) may run on
different threads. All access goes through one condition variable, so a query
always sees a consistent snapshot and a waiting query wakes up as soon as new
data arrives.
"""

import bisect
import logging
import threading
import time as _time
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .config import TF_CACHE_TIME, TF_EXTRAPOLATION_TOLERANCE
from .messages import TransformStamped
from .transform import (
    ConnectivityError,
    ExtrapolationError,
    FrameNotFoundError,
    TransformError,
    compose_transforms,
    identity_transform,
    interpolate_transforms,
    invert_transform,
)


class TransformBuffer:
    """Thread-safe cache of stamped transforms forming a frame tree.

    Each frame has at most one parent. Dynamic transforms keep a time-sorted
    history trimmed to ``cache_time`` seconds; static transforms hold a single
    sample valid at every time.

    Attributes:
        cache_time: Length of history kept per frame (seconds).
        extrapolation_tolerance: How far past either end of the history a
            lookup may reach before failing (seconds).
    """

    def __init__(
        self,
        cache_time: float = TF_CACHE_TIME,
        extrapolation_tolerance: float = TF_EXTRAPOLATION_TOLERANCE,
    ) -> None:
        """Initialize an empty buffer.

        Args:
            cache_time: History length per frame in seconds. Must be positive.
            extrapolation_tolerance: Allowed lookup overshoot in seconds.
                Must be non-negative.

        Raises:
            ValueError: If either argument is out of range.
        """
        if cache_time <= 0.0:
            raise ValueError(f"cache_time must be positive, got {cache_time}")
        if extrapolation_tolerance < 0.0:
            raise ValueError(
                f"extrapolation_tolerance must be non-negative, got {extrapolation_tolerance}"
            )

        self.cache_time = cache_time
        self.extrapolation_tolerance = extrapolation_tolerance

        self._condition = threading.Condition()
        self._parents: Dict[str, str] = {}  # child frame -> parent frame
        self._history: Dict[str, List[TransformStamped]] = {}  # child frame -> samples
        self._static: Dict[str, bool] = {}
        self._authorities: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def set_transform(
        self, transform: TransformStamped, authority: str = "default", is_static: bool = False
    ) -> bool:
        """Add one transform sample to the cache.

        Args:
            transform: Transform mapping ``child_frame_id`` into ``frame_id``.
            authority: Name of the source that published the transform.
            is_static: If True, the transform is valid at all times and
                replaces any previous sample for the child frame.

        Returns:
            True if the sample was stored, False if it was rejected.
        """
        parent = transform.frame_id.strip()
        child = transform.child_frame_id.strip()

        if not parent or not child:
            logging.error(f"Ignoring transform from '{authority}' with empty frame id")
            return False
        if parent == child:
            logging.error(f"Ignoring transform from '{authority}' with frame '{child}' as its own parent")
            return False

        sample = replace(transform, frame_id=parent, child_frame_id=child)

        with self._condition:
            old_parent = self._parents.get(child)
            if old_parent is not None and old_parent != parent:
                logging.warning(
                    f"Frame '{child}' re-parented from '{old_parent}' to '{parent}' by '{authority}'"
                )
                self._history[child] = []

            self._parents[child] = parent
            self._authorities[child] = authority

            if is_static:
                self._history[child] = [sample]
                self._static[child] = True
            else:
                if self._static.get(child):
                    logging.warning(f"Dynamic transform for static frame '{child}' from '{authority}'")
                    # Static sample is not part of the dynamic history
                    self._history[child] = []
                self._static[child] = False
                self._insert_sample(child, sample)

            self._condition.notify_all()

        return True

    def _insert_sample(self, child: str, sample: TransformStamped) -> None:
        history = self._history.setdefault(child, [])
        stamps = [t.stamp for t in history]
        index = bisect.bisect_left(stamps, sample.stamp)

        if index < len(history) and history[index].stamp == sample.stamp:
            history[index] = sample
        else:
            history.insert(index, sample)

        # Drop samples older than the cache window
        oldest_allowed = history[-1].stamp - self.cache_time
        while len(history) > 1 and history[0].stamp < oldest_allowed:
            history.pop(0)

    def clear(self) -> None:
        """Forget every stored transform."""
        with self._condition:
            self._parents.clear()
            self._history.clear()
            self._static.clear()
            self._authorities.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all_frames(self) -> List[str]:
        """Return the sorted names of every frame the buffer knows."""
        with self._condition:
            return sorted(set(self._parents) | set(self._parents.values()))

    def can_transform(
        self, target_frame: str, source_frame: str, time: Optional[float] = None
    ) -> bool:
        """Check whether a lookup would currently succeed, without waiting."""
        with self._condition:
            try:
                self._lookup_locked(target_frame, source_frame, time)
            except TransformError:
                return False
            return True

    def lookup_transform(
        self,
        target_frame: str,
        source_frame: str,
        time: Optional[float] = None,
        timeout: float = 0.0,
    ) -> TransformStamped:
        """Return the transform mapping ``source_frame`` points into ``target_frame``.

        Args:
            target_frame: Frame the result maps into.
            source_frame: Frame the result maps from.
            time: Time of the lookup in seconds. None means the latest time
                at which every transform in the chain is available.
            timeout: Maximum time to wait for the lookup to become possible
                (seconds). 0 fails immediately.

        Returns:
            TransformStamped with ``frame_id=target_frame`` and
            ``child_frame_id=source_frame``.

        Raises:
            FrameNotFoundError: If either frame is unknown.
            ConnectivityError: If the frames are not in the same tree.
            ExtrapolationError: If ``time`` is outside the cached history
                by more than the extrapolation tolerance.
        """
        deadline = _time.monotonic() + max(timeout, 0.0)

        with self._condition:
            while True:
                try:
                    return self._lookup_locked(target_frame, source_frame, time)
                except TransformError:
                    remaining = deadline - _time.monotonic()
                    if remaining <= 0.0:
                        raise
                    self._condition.wait(remaining)

    def _known(self, frame: str) -> bool:
        return frame in self._parents or frame in self._parents.values()

    def _chain_to_root(self, frame: str) -> List[str]:
        chain = [frame]
        while chain[-1] in self._parents:
            parent = self._parents[chain[-1]]
            if parent in chain:
                raise ConnectivityError(f"Loop in frame tree at '{parent}'")
            chain.append(parent)
        return chain

    def _lookup_locked(
        self, target_frame: str, source_frame: str, time: Optional[float]
    ) -> TransformStamped:
        for frame in (target_frame, source_frame):
            if not self._known(frame):
                raise FrameNotFoundError(f"Frame '{frame}' does not exist")

        if target_frame == source_frame:
            return identity_transform(target_frame, stamp=time if time is not None else 0.0)

        source_chain = self._chain_to_root(source_frame)
        target_chain = self._chain_to_root(target_frame)

        target_set = set(target_chain)
        ancestor = next((f for f in source_chain if f in target_set), None)
        if ancestor is None:
            raise ConnectivityError(
                f"Frames '{source_frame}' and '{target_frame}' are not part of the same tree"
            )

        # Edges are named by their child frame
        source_edges = source_chain[: source_chain.index(ancestor)]
        target_edges = target_chain[: target_chain.index(ancestor)]

        stamp = time if time is not None else self._latest_common_time(source_edges + target_edges)

        source_to_ancestor = self._chain_transform(source_frame, source_edges, stamp)
        target_to_ancestor = self._chain_transform(target_frame, target_edges, stamp)

        result = compose_transforms(invert_transform(target_to_ancestor), source_to_ancestor)
        return replace(result, frame_id=target_frame, child_frame_id=source_frame, stamp=stamp)

    def _latest_common_time(self, edges: List[str]) -> float:
        latest = [self._history[child][-1].stamp for child in edges if not self._static.get(child)]
        return min(latest) if latest else 0.0

    def _chain_transform(self, frame: str, edges: List[str], stamp: float) -> TransformStamped:
        result = identity_transform(frame, stamp)
        for child in edges:
            result = compose_transforms(self._sample_at(child, stamp), result)
        return result

    def _sample_at(self, child: str, stamp: float) -> TransformStamped:
        history = self._history.get(child)
        if not history:
            raise ConnectivityError(f"No transform data for frame '{child}'")

        if self._static.get(child):
            return history[0]

        first, last = history[0].stamp, history[-1].stamp
        if stamp < first - self.extrapolation_tolerance:
            raise ExtrapolationError(
                f"Lookup at {stamp:.3f} would extrapolate into the past for '{child}' "
                f"(earliest data at {first:.3f})"
            )
        if stamp > last + self.extrapolation_tolerance:
            raise ExtrapolationError(
                f"Lookup at {stamp:.3f} would extrapolate into the future for '{child}' "
                f"(latest data at {last:.3f})"
            )

        if stamp <= first:
            return history[0]
        if stamp >= last:
            return history[-1]

        before, after = self._bracket(history, stamp)
        return interpolate_transforms(before, after, stamp)

    @staticmethod
    def _bracket(
        history: List[TransformStamped], stamp: float
    ) -> Tuple[TransformStamped, TransformStamped]:
        stamps = [t.stamp for t in history]
        index = bisect.bisect_right(stamps, stamp)
        return history[index - 1], history[index]
