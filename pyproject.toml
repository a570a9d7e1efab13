[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "webapiclients"
version = "0.1.0"
description = "Record types, paginators, fetchers and crawl state helpers for the benchling, bioRxiv, protocols.io, papersapp and National Weather Service web APIs"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "web api",
    "crawler",
    "pagination",
    "checkpoint",
    "biorxiv",
    "protocols.io",
    "benchling",
    "papersapp",
    "weather",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["webapiclients"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
