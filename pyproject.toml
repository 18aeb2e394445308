[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xpg"
version = "0.1.0"
description = "Connection providers, pool settings, pool metrics and query helpers for PostgreSQL clients"
requires-python = ">=3.10"
dependencies = []
keywords = ["postgresql", "connection-pool", "database", "fallback", "metrics"]
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
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["xpg"]

[tool.pytest.ini_options]
addopts = "-ra"
