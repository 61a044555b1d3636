[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vibecop"
version = "0.1.0"
description = "Permission-check telemetry building blocks and a terminal dashboard for the vibecop daemon"
requires-python = ">=3.10"
dependencies = [
    "grpcio",
]
keywords = ["permissions", "audit", "telemetry", "otlp", "tui", "agents"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: Console :: Curses",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
vibecop-tui = "vibecop.tui.app:main"

[tool.hatch.build.targets.wheel]
packages = ["vibecop"]

[tool.hatch.build.targets.sdist]
include = ["vibecop", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
check_untyped_defs = true
