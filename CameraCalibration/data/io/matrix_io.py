"""
Calibration persistence in OpenCV FileStorage XML.

Layout (compatible with consumers reading OpenCV matrix nodes):
    <output_dir>/Intrinsics.xml   node "Intrinsics", 3x3 camera matrix
    <output_dir>/Distortion.xml   node "Distortion", 1x5 (k1, k2, p1, p2, k3)
"""

import numpy as np
import cv2
from pathlib import Path
from typing import Tuple, Union

from CameraCalibration.core.exceptions import IOFailure
from CameraCalibration.core.structures import CameraModel
from CameraCalibration.logger import get_logger

logger = get_logger("data.io")

INTRINSICS_FILE = "Intrinsics.xml"
DISTORTION_FILE = "Distortion.xml"
INTRINSICS_NODE = "Intrinsics"
DISTORTION_NODE = "Distortion"


class MatrixIO:
    """Single-matrix FileStorage operations with error handling"""

    @staticmethod
    def write(matrix: np.ndarray, filepath: Union[str, Path], node_name: str):
        """
        Write one matrix node.

        Raises:
            IOFailure: If the file cannot be opened for writing
        """
        path = Path(filepath)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
        except (OSError, cv2.error) as e:
            raise IOFailure(f"Cannot open for writing ({e})", path=str(path)) from e

        if not storage.isOpened():
            raise IOFailure("Cannot open for writing", path=str(path))
        try:
            storage.write(node_name, np.ascontiguousarray(matrix))
        finally:
            storage.release()

    @staticmethod
    def read(filepath: Union[str, Path], node_name: str) -> np.ndarray:
        """
        Read one matrix node.

        Raises:
            IOFailure: If the file is missing, unreadable or lacks the node
        """
        path = Path(filepath)
        if not path.is_file():
            raise IOFailure("Calibration file not found", path=str(path))

        try:
            storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
        except cv2.error as e:
            raise IOFailure(f"Cannot parse ({e})", path=str(path)) from e

        try:
            if not storage.isOpened():
                raise IOFailure("Cannot open for reading", path=str(path))
            node = storage.getNode(node_name)
            if node.empty():
                raise IOFailure(f"Missing node '{node_name}'", path=str(path))
            matrix = node.mat()
        finally:
            storage.release()

        if matrix is None:
            raise IOFailure(f"Node '{node_name}' is not a matrix", path=str(path))
        return matrix


def save_calibration(camera_model: CameraModel,
                     output_dir: Union[str, Path],
                     dtype=np.float64) -> Tuple[Path, Path]:
    """
    Write Intrinsics.xml and Distortion.xml.

    Args:
        camera_model: Calibrated camera
        output_dir: Destination folder (created if needed)
        dtype: Stored element type; np.float32 reproduces 32-bit output files

    Returns:
        (intrinsics path, distortion path)

    Raises:
        IOFailure: If either file cannot be written
    """
    output_dir = Path(output_dir)
    intrinsics_path = output_dir / INTRINSICS_FILE
    distortion_path = output_dir / DISTORTION_FILE

    MatrixIO.write(camera_model.camera_matrix.astype(dtype), intrinsics_path, INTRINSICS_NODE)
    MatrixIO.write(camera_model.dist_coeffs.reshape(1, -1).astype(dtype),
                   distortion_path, DISTORTION_NODE)

    logger.info(f"Saved calibration to {intrinsics_path} and {distortion_path}")
    return intrinsics_path, distortion_path


def load_calibration(output_dir: Union[str, Path]) -> CameraModel:
    """
    Read a calibration written by save_calibration.

    Raises:
        IOFailure: If a file is missing or malformed
    """
    output_dir = Path(output_dir)
    camera_matrix = MatrixIO.read(output_dir / INTRINSICS_FILE, INTRINSICS_NODE)
    dist_coeffs = MatrixIO.read(output_dir / DISTORTION_FILE, DISTORTION_NODE)

    if camera_matrix.shape != (3, 3):
        raise IOFailure(f"Expected a 3x3 camera matrix, got {camera_matrix.shape}",
                        path=str(output_dir / INTRINSICS_FILE))

    return CameraModel(camera_matrix.astype(np.float64), dist_coeffs.astype(np.float64).ravel())
