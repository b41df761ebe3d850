[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "asteria"
version = "1.3.0"
description = "Relay keyboard and mouse input from one machine to another over TCP"
requires-python = ">=3.11"
keywords = ["input", "relay", "keyboard", "mouse", "kvm", "evdev"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "platformdirs",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
asteria-server = "asteria.server_cli:main"
asteria-client = "asteria.client_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["asteria"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
