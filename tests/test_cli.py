import cv2
import pytest

from CameraCalibration.cli import build_parser, main
from CameraCalibration.core.exceptions import CalibrationError, IOFailure, InsufficientData


def test_parser_defaults():
    args = build_parser().parse_args(["--images", "boards"])

    assert args.width == 6
    assert args.height == 8
    assert args.side_length == 22.5
    assert args.workers == 1
    assert not args.show
    assert args.output is None


def test_images_argument_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_main_calibrates_and_saves(board_images, tmp_path, capsys):
    image_dir = tmp_path / "boards"
    image_dir.mkdir()
    for index, image in enumerate(board_images[:6]):
        cv2.imwrite(str(image_dir / f"board_{index:02d}.png"), image)
    output_dir = tmp_path / "calibration"

    code = main(["--images", str(image_dir), "--output", str(output_dir),
                 "--log-level", "WARNING"])

    assert code == 0
    assert (output_dir / "Intrinsics.xml").is_file()
    assert (output_dir / "Distortion.xml").is_file()
    assert "RMS reprojection error" in capsys.readouterr().out


def test_main_missing_folder(tmp_path):
    assert main(["--images", str(tmp_path / "missing"), "--log-level", "ERROR"]) == 1


def test_main_empty_folder(tmp_path):
    assert main(["--images", str(tmp_path), "--log-level", "ERROR"]) == 1


def test_main_invalid_grid(tmp_path):
    assert main(["--images", str(tmp_path), "--width", "1", "--log-level", "ERROR"]) == 2


# =============================================================================
# ERRORS
# =============================================================================

def test_error_message_carries_context():
    error = InsufficientData("1 image", stage="detection", image_index=3)

    assert isinstance(error, CalibrationError)
    assert str(error) == "[stage=detection, image=3] 1 image"
    assert error.message == "1 image"


def test_io_failure_includes_path():
    error = IOFailure("Could not decode image", path="/tmp/a.png", image_index=0)

    assert error.stage == "io"
    assert error.path == "/tmp/a.png"
    assert "/tmp/a.png" in str(error)


def test_error_without_context():
    assert str(CalibrationError("plain")) == "plain"
