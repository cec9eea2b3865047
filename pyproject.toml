[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "promqlcore"
version = "0.1.0"
description = "PromQL syntax tree with printing, pretty-printing and type checking, literal and duration parsing, query options and a worker group"
requires-python = ">=3.10"
dependencies = []
keywords = ["promql", "prometheus", "query", "syntax-tree", "pretty-printer", "type-checking"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["promqlcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
