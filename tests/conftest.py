"""
Pytest configuration and shared fixtures for promlabels tests.

Keeps the process-global configuration isolated between tests and
provides the dashboard queries used across test modules.
"""

import os

import pytest

import promlabels.config as config_module
from promlabels.config import PromLabelsConfig, RendererConfig, set_config
from promlabels.promql.printer import Printer


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Start every test from environment-free default settings."""
    for name in list(os.environ):
        if name.startswith("PROMLABELS_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "_global_config", None)
    yield
    config_module._global_config = None


@pytest.fixture
def narrow_config() -> PromLabelsConfig:
    """Install a configuration whose renderer wraps at 40 columns."""
    config = PromLabelsConfig(renderer=RendererConfig(max_line_width=40))
    set_config(config)
    return config


@pytest.fixture
def narrow_printer() -> Printer:
    return Printer(max_line_width=30, indent="  ")


@pytest.fixture
def dashboard_queries() -> dict[str, str]:
    """Queries taken from generated Prometheus and Alertmanager dashboards."""
    return {
        "build_info": (
            "count by (job, instance, version) "
            "(prometheus_build_info{job=~'$job', instance=~'$instance'})"
        ),
        "alerts": "sum(alertmanager_alerts{job=~'$job'}) by (instance)",
        "notification_latency": (
            "histogram_quantile(0.50, sum(rate(alertmanager_notification_latency_seconds_bucket"
            "{job=~'$job', integration=~'$integration'}[5m])) by (le,integration,instance))"
        ),
        "dropped_samples": (
            "rate(prometheus_remote_storage_dropped_samples_total{instance=~'$instance', url='$url'}[5m])"
            " or rate(prometheus_remote_storage_samples_dropped_total{instance=~'$instance', url='$url'}[5m])"
        ),
        "interval_length": (
            "rate(prometheus_target_interval_length_seconds_sum{job=~'$job',instance=~'$instance'}[5m])"
            " / rate(prometheus_target_interval_length_seconds_count{job=~'$job',instance=~'$instance'}[5m])"
        ),
    }
