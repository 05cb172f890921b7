"""
Calibration Session
===================

Orchestrates one calibration run:

    images -> PatternDetector -> CorrespondenceBuilder -> InitialIntrinsicsEstimator
           -> CalibrationRefiner (coarse pass) -> CalibrationRefiner (full pass)
           -> CalibrationReport

Detection failures only drop the affected image; every other failure aborts
the run with a CalibrationError subclass carrying the stage that raised it.
"""

import time
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from CameraCalibration.config import SessionConfig
from CameraCalibration.core.exceptions import CalibrationError, DetectionFailure, InsufficientData, IOFailure
from CameraCalibration.core.interfaces import IImageProvider
from CameraCalibration.core.structures import (
    CalibrationReport, CameraModel, DetectionResult, PatternGeometry
)
from CameraCalibration.algorithms.detection import PatternDetector
from CameraCalibration.algorithms.correspondence import CorrespondenceBuilder
from CameraCalibration.algorithms.estimation import InitialIntrinsicsEstimator, raise_for_estimation
from CameraCalibration.algorithms.optimization import CalibrationRefiner
from CameraCalibration.data.providers import create_provider
from CameraCalibration.data.io import save_calibration
from CameraCalibration.visualization import CornerViewer
from CameraCalibration.logger import get_logger

logger = get_logger("session")


def check_image_size(index: int, size: Tuple[int, int], expected: Tuple[int, int]):
    """
    Raise DetectionFailure if an image does not match the session's image size.

    All views of one calibration must come from the same sensor resolution.
    """
    if size != expected:
        raise DetectionFailure(
            f"image size {size[0]}x{size[1]} differs from {expected[0]}x{expected[1]}",
            stage="detection",
            image_index=index
        )


class CalibrationSession:
    """
    Single-camera checkerboard calibration.

    Example:
        >>> config = SessionConfig(image_dir='./chessboards', output_dir='./calib')
        >>> session = CalibrationSession(config)
        >>> report = session.calibrate()
        >>> session.save()
    """

    def __init__(self,
                 config: Optional[SessionConfig] = None,
                 images: Optional[Sequence[np.ndarray]] = None,
                 provider: Optional[IImageProvider] = None,
                 detector: Optional[PatternDetector] = None,
                 viewer: Optional[CornerViewer] = None):
        """
        Initialize session.

        Args:
            config: Session configuration (defaults if None)
            images: In-memory images; takes precedence over config.image_dir
            provider: Image provider; takes precedence over images
            detector: Pattern detector (default configuration if None)
            viewer: Corner viewer used when config.show_corners is set
        """
        self.config = config or SessionConfig()
        self.geometry: PatternGeometry = self.config.geometry()

        if provider is not None:
            self.provider = provider
        elif images is not None:
            self.provider = create_provider(images)
        elif self.config.image_dir is not None:
            self.provider = create_provider(self.config.image_dir)
        else:
            raise ValueError("No image source: pass images, a provider, or set config.image_dir")

        self.detector = detector or PatternDetector()
        self.viewer = viewer

        self._detections: Optional[List[DetectionResult]] = None
        self._image_size: Optional[Tuple[int, int]] = None
        self._report: Optional[CalibrationReport] = None

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def report(self) -> Optional[CalibrationReport]:
        return self._report

    @property
    def camera_matrix(self) -> Optional[np.ndarray]:
        return None if self._report is None else self._report.camera_matrix

    @property
    def dist_coeffs(self) -> Optional[np.ndarray]:
        return None if self._report is None else self._report.dist_coeffs

    @property
    def image_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) of the first image, once detection has run"""
        return self._image_size

    @property
    def detections(self) -> Optional[List[DetectionResult]]:
        return self._detections

    @property
    def accepted_indices(self) -> List[int]:
        if self._detections is None:
            return []
        return [d.image_index for d in self._detections if d.found]

    @property
    def rejected_indices(self) -> List[int]:
        if self._detections is None:
            return []
        return [d.image_index for d in self._detections if not d.found]

    # ========================================================================
    # DETECTION
    # ========================================================================

    def _detect_one(self, index: int) -> Tuple[DetectionResult, Tuple[int, int]]:
        image = self.provider.get_image(index)
        if image is None or image.size == 0:
            raise IOFailure("Empty image", stage="detection", image_index=index)
        size = (image.shape[1], image.shape[0])
        result = self.detector.detect(image, self.geometry.width, self.geometry.height,
                                      image_index=index)
        return result, size

    def detect_all(self) -> List[DetectionResult]:
        """
        Run the detector on every image, in input order.

        Uses config.workers threads; results are merged only after every
        detection has finished, so the order never depends on scheduling.

        Returns:
            One DetectionResult per image
        """
        num_images = len(self.provider)
        logger.info("=" * 60)
        logger.info(f"DETECTING {self.geometry.width}x{self.geometry.height} CHECKERBOARD "
                    f"IN {num_images} IMAGES")
        logger.info("=" * 60)
        start_time = time.time()

        indices = list(range(num_images))
        if self.config.workers > 1 and num_images > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
                outcomes = list(executor.map(self._detect_one, indices))
        else:
            outcomes = [self._detect_one(i) for i in indices]

        detections = []
        image_size = None
        for index, (result, size) in enumerate(outcomes):
            if image_size is None:
                image_size = size
            else:
                try:
                    check_image_size(index, size, image_size)
                except DetectionFailure as e:
                    result = DetectionResult.not_found(e.message, image_index=index)

            name = self.provider.get_identifier(index)
            if result.found:
                logger.info(f"  ✓ [{index}] {name}")
            else:
                logger.info(f"  ✗ [{index}] {name}: {result.reason}")
            detections.append(result)

        self._detections = detections
        self._image_size = image_size
        self._report = None

        logger.info(f"Accepted {len(self.accepted_indices)}/{num_images} images "
                    f"({time.time() - start_time:.2f}s)")

        if self.config.show_corners:
            self._show_detections()

        return detections

    def _show_detections(self):
        viewer = self.viewer or CornerViewer()
        try:
            for result in self._detections:
                if result.found:
                    viewer.show(self.provider.get_image(result.image_index),
                                self.geometry.pattern_size, result.corners,
                                title=self.provider.get_identifier(result.image_index))
        finally:
            viewer.close()

    # ========================================================================
    # CALIBRATION
    # ========================================================================

    def calibrate(self) -> CalibrationReport:
        """
        Run the full pipeline.

        Returns:
            CalibrationReport

        Raises:
            InsufficientData: Fewer than config.min_images accepted images
            DegenerateGeometry, IllConditioned, ConvergenceFailure: Fatal
                estimation or refinement failures
        """
        if self._detections is None:
            self.detect_all()

        start_time = time.time()
        accepted = self.accepted_indices
        if len(accepted) < self.config.min_images:
            raise InsufficientData(
                f"{len(accepted)} images with a detected pattern, "
                f"need at least {self.config.min_images}",
                stage="detection"
            )

        correspondences = CorrespondenceBuilder(self.geometry).build(self._detections)

        logger.info("=" * 60)
        logger.info(f"CALIBRATING FROM {len(correspondences)} IMAGES "
                    f"({correspondences.total_points} CORNERS)")
        logger.info("=" * 60)

        estimation = InitialIntrinsicsEstimator().estimate(correspondences, self._image_size)
        raise_for_estimation(estimation)
        initial = CameraModel.with_zero_distortion(estimation.model)

        refiner = CalibrationRefiner()
        coarse = refiner.refine(correspondences, initial, self._image_size, self.config.coarse_pass)
        logger.info(f"Coarse pass RMS: {coarse.rms_error:.4f}px")

        full = refiner.refine(correspondences, coarse.camera_model, self._image_size,
                              self.config.full_pass)
        logger.info(f"Full pass RMS: {full.rms_error:.4f}px")

        self._report = CalibrationReport(
            camera_model=full.camera_model,
            rms_error=full.rms_error,
            poses=tuple(full.poses),
            per_image_errors=tuple(float(e) for e in full.per_image_errors),
            accepted_indices=tuple(correspondences.image_indices),
            rejected_indices=tuple(self.rejected_indices),
            image_size=self._image_size
        )

        for line in self._report.summary_lines():
            logger.info(line)
        logger.info(f"Calibration time: {time.time() - start_time:.2f}s")

        return self._report

    def save(self, output_dir: Optional[Union[str, Path]] = None,
             dtype=np.float64) -> Tuple[Path, Path]:
        """
        Persist the calibrated camera.

        Args:
            output_dir: Destination folder (config.output_dir if None)
            dtype: Stored element type

        Raises:
            CalibrationError: If no report exists yet
            IOFailure: If writing fails
        """
        if self._report is None:
            raise CalibrationError("Nothing to save: calibrate() has not produced a report",
                                   stage="persistence")
        output_dir = output_dir if output_dir is not None else self.config.output_dir
        if output_dir is None:
            raise IOFailure("No output folder given", stage="persistence")
        return save_calibration(self._report.camera_model, output_dir, dtype=dtype)


def calibrate_camera(images: Union[Sequence[np.ndarray], str, Path, IImageProvider],
                     geometry: PatternGeometry,
                     workers: int = 1,
                     show_corners: bool = False,
                     **detector_config) -> CalibrationReport:
    """
    One-call calibration.

    Args:
        images: Images, a folder path, or a provider
        geometry: Checkerboard description
        workers: Detection threads
        show_corners: Display each detection
        **detector_config: PatternDetectorConfig overrides

    Returns:
        CalibrationReport
    """
    config = SessionConfig(side_length=geometry.side_length,
                           grid_width=geometry.width,
                           grid_height=geometry.height,
                           workers=workers,
                           show_corners=show_corners)
    session = CalibrationSession(config,
                                 provider=create_provider(images),
                                 detector=PatternDetector(**detector_config))
    return session.calibrate()
