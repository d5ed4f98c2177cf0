[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tritontube"
version = "0.1.0"
description = "A small video sharing site with MPEG-DASH streaming, pluggable metadata stores and a consistent-hashing storage cluster"
requires-python = ">=3.10"
keywords = ["video", "dash", "streaming", "consistent-hashing", "grpc", "etcd", "sqlite", "flask"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Multimedia :: Video",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "flask",
    "jinja2",
    "grpcio",
    "httpx",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tritontube-web = "tritontube.app:main"
tritontube-storage = "tritontube.storage:main"
tritontube-admin = "tritontube.admin:main"

[tool.hatch.build.targets.wheel]
packages = ["tritontube"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
