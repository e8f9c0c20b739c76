[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "skale"
version = "0.1.0"
description = "Telemetry readiness checks, Prometheus signal loading and short-horizon demand forecasting for predictive workload scaling."
requires-python = ">=3.10"
dependencies = []
keywords = ["autoscaling", "forecasting", "prometheus", "telemetry", "holt-winters", "seasonal-naive"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["skale"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
