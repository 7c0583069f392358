[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cyberrank"
version = "0.1.0"
description = "Stake-weighted particle ranking, search index and resource investmint accounting for a knowledge graph"
requires-python = ">=3.10"
dependencies = []
keywords = ["rank", "pagerank", "knowledge-graph", "entropy", "karma", "vesting", "search-index"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Information Analysis",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cyberrank"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
