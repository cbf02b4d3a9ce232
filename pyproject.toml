[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "olcnet"
version = "0.1.0"
description = "A small TCP messaging framework with framed messages, a handshake, client and server interfaces and load-testing tools"
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "tcp", "messaging", "client", "server", "stress-test"]
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
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
olcnet-stress-client = "olcnet.stress:client_main"
olcnet-stress-server = "olcnet.stress:server_main"
olcnet-flood = "olcnet.stress:flood_main"

[tool.hatch.build.targets.wheel]
packages = ["olcnet"]

[tool.pytest.ini_options]
addopts = "-ra"
