[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "legacyconnect"
version = "0.1.0"
description = "Asyncio building blocks for HTTP client connections: connection metadata, name resolution and happy-eyeballs TCP connecting"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "client", "connector", "tcp", "dns", "happy-eyeballs", "asyncio"]
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
    "Framework :: AsyncIO",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["legacyconnect"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
