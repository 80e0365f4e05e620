[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "transpod"
version = "0.1.0"
description = "Rigid-body geometry, silhouette geometric hashing and matching, point cloud and PNM image I/O for transparent object pose estimation"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "computer vision",
    "pose estimation",
    "geometric hashing",
    "silhouette",
    "point cloud",
    "pnm",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Recognition",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["transpod"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
