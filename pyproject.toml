[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tracestore"
version = "0.1.0"
description = "Trace object encodings, span combining, search matching, in-memory columnar query iterators and a fair per-tenant request queue"
requires-python = ">=3.10"
dependencies = []
keywords = ["tracing", "spans", "search", "columnar", "query", "scheduler", "queue"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tracestore"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
