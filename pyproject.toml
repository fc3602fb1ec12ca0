[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dagledger"
version = "0.1.0"
description = "Building blocks for a DAG-based ledger: transaction graph, consensus rounds, Snowball sampling, caching, prefix indexing, metrics and structured logging."
requires-python = ">=3.10"
keywords = ["dag", "ledger", "consensus", "snowball", "graph", "distributed"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "sortedcontainers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["dagledger"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
