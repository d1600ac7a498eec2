[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "strecklistan"
version = "0.1.0"
description = "Point-of-sale and bookkeeping server for a small member-run kiosk, with iZettle card payments"
requires-python = ">=3.10"
keywords = ["point-of-sale", "bookkeeping", "kiosk", "inventory", "izettle", "rest-api"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Other Audience",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Point-Of-Sale",
]
dependencies = [
    "flask",
    "msgpack",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
strecklistan = "strecklistan.server:main"

[tool.hatch.build.targets.wheel]
packages = ["strecklistan"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
