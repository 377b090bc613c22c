[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lumber"
version = "0.6.0"
description = "Pull logs from Vercel, Fly.io and Supabase through a common connector interface"
requires-python = ">=3.10"
dependencies = []
keywords = ["logging", "logs", "vercel", "flyio", "supabase", "connector", "log-collection"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Logging",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lumber"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
