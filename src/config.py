"""Configuration settings for the EHR sync service."""

import os


def _get_bool(name, default):
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes")


def _get_optional_int(name):
    value = os.environ.get(name)
    return int(value) if value else None


def get_redis_host_and_port():
    """Get Redis connection details from environment variables."""
    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", 6379))
    return dict(host=host, port=port)


def get_redis_url():
    """Get Redis URL from environment variables."""
    redis_config = get_redis_host_and_port()
    return f"redis://{redis_config['host']}:{redis_config['port']}"


def get_api_host_and_port():
    """Get API bind address from environment variables."""
    host = os.environ.get("API_HOST", "localhost")
    port = int(os.environ.get("API_PORT", 8000))
    return dict(host=host, port=port)


def get_api_url():
    """Get API URL from environment variables."""
    api_config = get_api_host_and_port()
    return f"http://{api_config['host']}:{api_config['port']}"


def get_fhir_store_config():
    """Get connection settings for the central clinical data store."""
    return dict(
        base_url=os.environ.get("FHIR_BASE_URL", "http://localhost:8103/fhir/R4"),
        access_token=os.environ.get("FHIR_ACCESS_TOKEN"),
        timeout=float(os.environ.get("FHIR_TIMEOUT", 30)),
    )


def get_document_converter_config():
    """Get connection settings for the external clinical document converter."""
    return dict(
        base_url=os.environ.get("DOC_CONVERTER_URL", "http://localhost:8080"),
        timeout=float(os.environ.get("DOC_CONVERTER_TIMEOUT", 30)),
    )


def get_event_log_config():
    """Get sync event log backing configuration.

    ``backend`` is either ``memory`` (process local ring buffer) or ``redis``.
    """
    return dict(
        backend=os.environ.get("SYNC_EVENT_LOG_BACKEND", "memory").lower(),
        key=os.environ.get("SYNC_EVENT_LOG_KEY", "sync:events"),
        max_events=int(os.environ.get("SYNC_EVENT_LOG_MAX", 100)),
        ttl_seconds=_get_optional_int("SYNC_EVENT_LOG_TTL"),
    )


def get_source_system_config(system):
    """Get live connection settings for a source EHR system.

    Variables are prefixed with the upper-cased system key,
    e.g. ``ATHENA_BASE_URL``.
    """
    prefix = str(system).upper()
    return dict(
        base_url=os.environ.get(f"{prefix}_BASE_URL", ""),
        client_id=os.environ.get(f"{prefix}_CLIENT_ID", ""),
        client_secret=os.environ.get(f"{prefix}_CLIENT_SECRET", ""),
        timeout=float(os.environ.get(f"{prefix}_TIMEOUT", 30)),
    )


def use_mock_sources():
    """Whether source systems are served from synthetic data."""
    return _get_bool("USE_MOCKS", True)


def get_mock_data_config():
    """Get sizing of the synthetic data generated per source system."""
    return dict(
        patient_count=int(os.environ.get("MOCK_PATIENT_COUNT", 5)),
        document_count=int(os.environ.get("MOCK_DOCUMENT_COUNT", 3)),
        message_count=int(os.environ.get("MOCK_MESSAGE_COUNT", 5)),
        seed=_get_optional_int("MOCK_SEED"),
    )


def get_sync_item_timeout():
    """Per item timeout in seconds for store submissions, ``None`` disables it."""
    value = os.environ.get("SYNC_ITEM_TIMEOUT")
    return float(value) if value else None
