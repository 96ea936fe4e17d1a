[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tatsu"
version = "1.3.1"
description = "Build, send and read TSS signing requests for firmware personalization"
requires-python = ">=3.10"
dependencies = []
keywords = ["tss", "plist", "firmware", "signing", "img4", "restore"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tatsu"]

[tool.pytest.ini_options]
addopts = "-ra"
