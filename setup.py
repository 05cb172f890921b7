"""
Setup script for the Checkerboard Camera Calibration package.
"""

from setuptools import setup, find_packages
import os


def read_readme():
    """Read README file for long description."""
    if os.path.exists('README.md'):
        with open('README.md', 'r', encoding='utf-8') as f:
            return f.read()
    return "Single-camera intrinsic calibration from checkerboard images"


# Core requirements (always installed)
install_requires = [
    'opencv-python>=4.5.0',
    'numpy>=1.19.0',
    'scipy>=1.5.0',
]

# Optional dependencies for different use cases
extras_require = {
    'dev': [
        'pytest>=6.0.0',
        'pytest-cov>=2.12.0',
        'black>=21.0.0',
        'isort>=5.9.0',
        'flake8>=3.9.0'
    ],
    'test': [
        'pytest>=6.0.0',
    ],
}

setup(
    name="camera-calibration",
    version="1.0.0",
    description="Single-camera intrinsic calibration from checkerboard images",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=['CameraCalibration', 'CameraCalibration.*']),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Image Processing",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        'console_scripts': [
            'calibrate-camera=CameraCalibration.cli:main',
        ],
    },
    keywords=[
        "computer vision",
        "camera calibration",
        "checkerboard",
        "intrinsics",
        "lens distortion",
        "opencv"
    ],
)
