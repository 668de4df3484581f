"""Splitting of capture units into API-sized chunks."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from batch_capture.models.domain import CaptureUnit

DEFAULT_MAX_BROWSERS_PER_JOB = 25


def split_unit(unit: CaptureUnit, limit: int = DEFAULT_MAX_BROWSERS_PER_JOB) -> Iterator[CaptureUnit]:
    """Yield units of at most ``limit`` browsers each.

    URL, filename and job configuration are carried over unchanged and the
    browsers keep their original order. A unit already within the limit is
    yielded as is.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    if len(unit.browsers) <= limit:
        yield unit
        return

    for start in range(0, len(unit.browsers), limit):
        yield unit.model_copy(update={"browsers": unit.browsers[start : start + limit]})


def split_units(
    units: Iterable[CaptureUnit],
    limit: int = DEFAULT_MAX_BROWSERS_PER_JOB,
) -> Iterator[CaptureUnit]:
    """Lazily split every unit of a batch, preserving batch order."""
    for unit in units:
        yield from split_unit(unit, limit)
