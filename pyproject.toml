[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dcfphase"
version = "0.1.0"
description = "Phase-modulation decoder for the DCF77 time signal from I/Q samples streamed over a serial link"
requires-python = ">=3.10"
dependencies = []
keywords = ["dcf77", "time signal", "phase modulation", "kalman filter", "cobs", "radio clock"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Ham Radio",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dcfphase = "dcfphase.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dcfphase"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
