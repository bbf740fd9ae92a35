[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kvcache"
version = "0.1.0"
description = "A small in-memory key-value cache server with a length-prefixed binary protocol"
requires-python = ">=3.10"
dependencies = []
keywords = ["cache", "key-value", "server", "hashtable", "protocol"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kvcache-server = "kvcache.server:main"
kvcache-client = "kvcache.client:main"

[tool.hatch.build.targets.wheel]
packages = ["kvcache"]

[tool.pytest.ini_options]
addopts = "-ra"
