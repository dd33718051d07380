import logging

import pytest

from gitops_core.config import get_settings


@pytest.fixture
def app_env(monkeypatch, tmp_path):
    """Point the application root and log directory at a temporary directory."""
    for name in ("GITOPS_LOG_LEVEL", "GITOPS_LOG_ARCHIVES", "GITOPS_PROFILES_FILE", "GITOPS_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITOPS_ROOT", str(tmp_path))
    monkeypatch.setenv("GITOPS_LOG_DIR", str(tmp_path / "logs"))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()
    # release the file handlers installed by configure_logging
    for handler in list(logging.getLogger("gitops").handlers):
        handler.close()
        logging.getLogger("gitops").removeHandler(handler)
