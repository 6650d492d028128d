"""Retention planning: rank images by age and split them into keep/delete."""

from dataclasses import dataclass
from typing import Iterable

from .models import ImageInfo


@dataclass(frozen=True)
class RetentionPlan:
    """Partition of one repository's images.

    Both tuples are ordered newest first.
    """

    keep: tuple[ImageInfo, ...]
    delete: tuple[ImageInfo, ...]


def rank_images(images: Iterable[ImageInfo]) -> list[ImageInfo]:
    """Sort images newest first.

    The sort is stable, so images with equal timestamps stay in the order
    they were discovered. Which of two tied images ends up kept is not part
    of the contract.
    """
    return sorted(images, key=lambda image: image.created, reverse=True)


def plan_retention(images: Iterable[ImageInfo], keep_last: int) -> RetentionPlan:
    """Keep the ``keep_last`` newest images and mark the rest for deletion.

    ``keep_last <= 0`` is valid and deletes everything.
    """
    ranked = rank_images(images)
    boundary = max(keep_last, 0)
    return RetentionPlan(keep=tuple(ranked[:boundary]), delete=tuple(ranked[boundary:]))
