[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spore-protocol"
version = "0.1.0"
description = "Validation rules of the Spore digital-object protocol: spores, clusters, cluster proxies and agents, and mutant extensions"
requires-python = ">=3.10"
dependencies = []
keywords = ["spore", "ckb", "nft", "mime", "validation", "cluster"]
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
packages = ["spore_protocol"]

[tool.pytest.ini_options]
addopts = "-ra"
