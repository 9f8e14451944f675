[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "judgeapi"
version = "0.1.0"
description = "Building blocks for a coding-problem judge backend: accounts, JWT auth, problems, request logs and solution history in MongoDB, with Werkzeug handlers and middleware."
requires-python = ">=3.10"
keywords = ["wsgi", "werkzeug", "judge", "programming-problems", "jwt", "mongodb"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Education",
]
dependencies = [
    "pymongo",
    "pyjwt",
    "bcrypt",
    "werkzeug",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["judgeapi"]

[tool.hatch.build.targets.sdist]
include = ["judgeapi", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
