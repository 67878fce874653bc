[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meteor"
version = "0.1.0"
description = "Metagenome and metavirome joint analysis: reference downloads, CRISPR spacer host matching and viral protein search pipelines"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "bioinformatics",
    "metagenomics",
    "metavirome",
    "virus-host prediction",
    "crispr",
    "blast",
    "uniprot",
    "ncbi taxonomy",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
meteor = "meteor.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["meteor"]

[tool.hatch.build.targets.sdist]
include = ["meteor", "tests"]

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
check_untyped_defs = true
