"""
Utility modules for gcloud-st.

- logging: console/JSON logging with a per-run ID and call decorator
- errors: typed error taxonomy
- config: immutable upload options
- config_loader: YAML options files
- metrics: Prometheus counters for a run
"""

from gcloud_st.utils.logging import get_logger, log_function_call

__all__ = ["get_logger", "log_function_call"]
