[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dvmeta"
version = "0.1.0"
description = "Dolby Vision metadata helpers: madVR measurements, CM XML parsing, edit configurations and L1 generation"
requires-python = ">=3.10"
keywords = ["dolby-vision", "hdr", "hdr10plus", "madvr", "metadata", "pq"]
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
    "Topic :: Multimedia :: Video",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dvmeta"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
