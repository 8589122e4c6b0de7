[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sensornode"
version = "0.1.0"
description = "A small MQTT 3.1.1 client over pluggable transports, with sensor-reading polling helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["mqtt", "iot", "sensors", "telemetry", "pubsub"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications",
    "Topic :: Home Automation",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sensornode"]

[tool.hatch.build.targets.sdist]
include = ["sensornode", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
