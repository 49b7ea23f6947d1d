[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ageio"
version = "0.1.0"
description = "Streaming ChaCha20-Poly1305 payload encryption and ASCII armor for age-format files"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["age", "encryption", "chacha20-poly1305", "stream", "armor", "base64"]
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
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ageio"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
