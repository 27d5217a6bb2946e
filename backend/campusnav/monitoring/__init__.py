from campusnav.monitoring.metrics import get_metrics, record_provider_call, record_request

__all__ = ["get_metrics", "record_provider_call", "record_request"]
