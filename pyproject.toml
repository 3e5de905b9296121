[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eh2telegraph"
version = "0.1.0"
description = "Telegram bot that mirrors image galleries to Telegraph pages"
requires-python = ">=3.10"
keywords = ["telegram", "telegraph", "bot", "gallery", "sync", "saucenao"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Internet :: WWW/HTTP",
]
dependencies = [
    "httpx>=0.24",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
    "respx>=0.20",
]

[project.scripts]
eh2telegraph-bot = "eh2telegraph.bot:main"

[tool.hatch.build.targets.wheel]
packages = ["eh2telegraph"]

[tool.hatch.build.targets.sdist]
include = ["eh2telegraph", "tests", "pyproject.toml", "README.md"]

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
