"""
Pairs detected image corners with the planar checkerboard template.
"""

from typing import Iterable

from CameraCalibration.core.structures import CorrespondenceSet, DetectionResult, PatternGeometry
from CameraCalibration.logger import get_logger

logger = get_logger("correspondence")


class CorrespondenceBuilder:
    """
    Builds the CorrespondenceSet consumed by estimation and refinement.

    The template is computed once; every accepted image refers to the same
    template array.
    """

    def __init__(self, geometry: PatternGeometry):
        self.geometry = geometry
        self.template = geometry.object_points()
        self.template.setflags(write=False)

    def build(self, detections: Iterable[DetectionResult]) -> CorrespondenceSet:
        """
        Assemble correspondences from detection results.

        Args:
            detections: Results in input image order. A result without an
                image_index is assigned its position in the sequence.

        Returns:
            CorrespondenceSet with one entry per found detection, input order
            preserved (empty if nothing was found)
        """
        correspondences = CorrespondenceSet()
        skipped = 0

        for position, detection in enumerate(detections):
            if not detection.found:
                skipped += 1
                continue

            index = detection.image_index if detection.image_index is not None else position
            if len(detection.corners) != self.geometry.num_corners:
                raise ValueError(
                    f"Image {index}: detection has {len(detection.corners)} corners, "
                    f"pattern has {self.geometry.num_corners}"
                )
            correspondences.append(self.template, detection.corners, index)

        logger.debug(f"Built correspondences: {len(correspondences)} images, "
                     f"{correspondences.total_points} points ({skipped} skipped)")
        return correspondences
