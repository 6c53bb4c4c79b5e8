from __future__ import annotations

import pytest

from remote_repository.config import DEFAULT_CALL_TIMEOUT_S, RepositoryConfig


def test_defaults() -> None:
    config = RepositoryConfig(base_url="http://repo.local")

    assert config.request_timeout_s == 10
    assert config.call_timeout_s == DEFAULT_CALL_TIMEOUT_S == 300
    assert config.authorization_param == "authorization"


def test_from_env_reads_prefixed_variables() -> None:
    env = {
        "REMOTE_REPOSITORY_URL": " http://repo.local/api ",
        "REMOTE_REPOSITORY_REQUEST_TIMEOUT_S": "2.5",
        "REMOTE_REPOSITORY_CALL_TIMEOUT_S": "60",
        "REMOTE_REPOSITORY_AUTHORIZATION_PARAM": "token",
    }

    config = RepositoryConfig.from_env(env)

    assert config == RepositoryConfig(
        base_url="http://repo.local/api",
        request_timeout_s=2.5,
        call_timeout_s=60,
        authorization_param="token",
    )


def test_from_env_custom_prefix_and_blank_values() -> None:
    env = {"CRM_URL": "http://crm.local", "CRM_REQUEST_TIMEOUT_S": ""}

    config = RepositoryConfig.from_env(env, prefix="CRM_")

    assert config.base_url == "http://crm.local"
    assert config.request_timeout_s == 10


def test_from_mapping_rejects_bad_values() -> None:
    with pytest.raises(ValueError):
        RepositoryConfig.from_mapping({})
    with pytest.raises(ValueError):
        RepositoryConfig.from_mapping({"base_url": "http://x", "request_timeout_s": "soon"})
    with pytest.raises(ValueError):
        RepositoryConfig.from_mapping({"base_url": "http://x", "call_timeout_s": 0})
