[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "iprd"
version = "0.1.1"
description = "ASIC miner IP Report listener that forwards reports to TCP subscribers"
requires-python = ">=3.11"
keywords = [
    "asic",
    "miner",
    "ip-report",
    "packet-capture",
    "pcap",
    "udp",
    "broadcast",
    "daemon",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "psutil",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
iprd = "iprd.cli:main"
iprd-offline = "iprd.offline:main"
iprd-client = "iprd.client:main"

[tool.hatch.build.targets.wheel]
packages = ["iprd"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
