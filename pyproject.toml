[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wideevent"
version = "0.1.0"
description = "Wide-event structured logging: accumulate one rich event per unit of work and emit it as a single record."
requires-python = ">=3.10"
dependencies = []
keywords = ["logging", "wide events", "structured logging", "observability", "wsgi", "sampling"]
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
    "Topic :: System :: Logging",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Middleware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["wideevent"]

[tool.hatch.build.targets.sdist]
include = ["wideevent", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
