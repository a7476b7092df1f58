[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "atomcc"
version = "0.1.0"
description = "Compiler and stack-based virtual machine for AtomC, a small subset of C"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "atomc", "lexer", "parser", "virtual-machine", "education"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Compilers",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
atomcc = "atomcc.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["atomcc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
