[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "limakit"
version = "0.1.0"
description = "Helpers for tooling that manages Linux virtual machine instances: argument guessing, yq edit flags, cached downloads with digest checks, and cloud-init data pieces."
requires-python = ">=3.10"
dependencies = []
keywords = ["virtual-machine", "cloud-init", "downloader", "yq", "ssh", "digest"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["limakit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
