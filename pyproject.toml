[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minios"
version = "0.1.0"
description = "Pieces of a small distributed operating-system simulator: a CPU with MMU, TLB and page cache, I/O devices, and kernel process bookkeeping over HTTP"
requires-python = ">=3.10"
keywords = [
    "operating-system",
    "simulator",
    "paging",
    "tlb",
    "cache",
    "education",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Education",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
minios-cpu = "minios.cpu.server:main"
minios-io = "minios.iodevice:main"

[tool.hatch.build.targets.wheel]
packages = ["minios"]

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
warn_redundant_casts = true
