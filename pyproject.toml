[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "postmark"
version = "0.1.0"
description = "Compose MIME e-mail messages and hand them to a sender of your choice."
requires-python = ">=3.10"
dependencies = []
keywords = ["email", "mime", "mail", "attachments", "multipart", "rfc2047", "smtp-auth"]
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
    "Topic :: Communications :: Email",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["postmark"]

[tool.hatch.build.targets.sdist]
include = ["postmark", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
