import numpy as np
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple


@dataclass
class CorrespondenceSet:
    """
    Ordered (object points, image points) pairs over all accepted images.

    object_points[i] is the same template array for every i; image_points[i]
    holds the detected corners of the i-th accepted image, and image_indices[i]
    the position of that image in the original input sequence.
    """
    object_points: List[np.ndarray] = field(default_factory=list)
    image_points: List[np.ndarray] = field(default_factory=list)
    image_indices: List[int] = field(default_factory=list)

    def append(self, object_points: np.ndarray, image_points: np.ndarray, image_index: int):
        if len(object_points) != len(image_points):
            raise ValueError(
                f"Image {image_index}: {len(image_points)} image points for "
                f"{len(object_points)} object points"
            )
        self.object_points.append(object_points)
        self.image_points.append(image_points)
        self.image_indices.append(image_index)

    def __len__(self) -> int:
        return len(self.image_points)

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        return iter(zip(self.object_points, self.image_points))

    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def total_points(self) -> int:
        return int(sum(len(points) for points in self.image_points))

