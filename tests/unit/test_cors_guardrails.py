from __future__ import annotations

import pytest

from apps.api_gateway.main import _cors_params


def test_prod_rejects_wildcard_origin(settings_guard) -> None:
    settings_guard.app_env = "prod"
    settings_guard.cors_allowed_origins = "*"
    settings_guard.cors_allow_credentials = True

    with pytest.raises(RuntimeError):
        _cors_params()


def test_wildcard_disables_credentials(settings_guard) -> None:
    settings_guard.app_env = "dev"
    settings_guard.cors_allowed_origins = "*"
    settings_guard.cors_allow_credentials = True

    origins, allow_credentials = _cors_params()
    assert origins == ["*"]
    assert allow_credentials is False


def test_csv_origins_keep_credentials(settings_guard) -> None:
    settings_guard.app_env = "prod"
    settings_guard.cors_allowed_origins = "https://volunteers.animecon.nl,https://admin.animecon.nl"
    settings_guard.cors_allow_credentials = True

    origins, allow_credentials = _cors_params()
    assert origins == ["https://volunteers.animecon.nl", "https://admin.animecon.nl"]
    assert allow_credentials is True
