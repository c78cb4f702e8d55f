[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sdadapter"
version = "0.1.0"
description = "Stackdriver helpers for Kubernetes: core metric queries, kubelet stats types, an events API server and constant-metric exporters"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "kubernetes",
    "stackdriver",
    "monitoring",
    "metrics",
    "events",
    "prometheus",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
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
test = [
    "pytest",
]

[project.scripts]
sd-dummy-exporter = "sdadapter.sd_exporter:main"
prometheus-dummy-exporter = "sdadapter.prometheus_exporter:main"
events-adapter = "sdadapter.events_server:main"

[tool.hatch.build.targets.wheel]
packages = ["sdadapter"]

[tool.pytest.ini_options]
addopts = "-ra"
