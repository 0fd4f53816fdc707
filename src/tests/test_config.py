import textwrap

import pytest
import yaml

from core.config import ConfigError, load_resources, load_settings


def _write(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return str(path)


def test_settings_defaults_fill_missing_sections(tmp_path):
    path = _write(tmp_path, "settings.yaml", """
        version: "2"
        name: nightly
        settings:
          baseline:
            required_successful_probes: 3
    """)

    settings = load_settings(path)

    assert settings.name == "nightly"
    assert settings.settings.baseline.required_successful_probes == 3
    assert settings.settings.run.timeout_seconds == 5
    assert settings.settings.output.format == "console"
    assert settings.settings.output.save_results is True


def test_settings_path_from_environment(tmp_path, monkeypatch):
    path = _write(tmp_path, "custom.yaml", """
        settings:
          output:
            format: json
    """)
    monkeypatch.setenv("SETTINGS_PATH", path)

    assert load_settings().settings.output.format == "json"


def test_non_positive_threshold_is_rejected(tmp_path):
    path = _write(tmp_path, "settings.yaml", """
        settings:
          baseline:
            required_successful_probes: 0
    """)

    with pytest.raises(ConfigError) as exc:
        load_settings(path)
    assert any("required_successful_probes" in p for p in exc.value.problems)


def test_missing_file_is_a_config_error(tmp_path):
    with pytest.raises(ConfigError) as exc:
        load_settings(str(tmp_path / "nope.yaml"))
    assert exc.value.problems == ["file not found"]


def test_malformed_yaml_is_a_config_error(tmp_path):
    path = _write(tmp_path, "resources.yaml", "apis: [unclosed\n")
    with pytest.raises(ConfigError):
        load_resources(path)


def test_resources_are_loaded_in_order(tmp_path):
    path = _write(tmp_path, "resources.yaml", """
        apis:
          - name: users
            base_url: https://users.example.com/
            endpoints:
              - path: /users
                method: POST
                expected_status: 201
                expected_fields: [id]
                request:
                  fixture:
                    body: {name: Ada, role: admin}
                stash:
                  userId: id
              - path: "/users/{{userId}}"
                method: GET
                expected_status: 200
          - name: local
            base_url: http://localhost:3000
            disabled: true
            endpoints:
              - path: /health
                method: GET
                expected_status: 200
    """)

    resources = load_resources(path)

    users, local = resources.apis
    assert users.base_url == "https://users.example.com"
    assert [e.key for e in users.endpoints] == [("POST", "/users"), ("GET", "/users/{{userId}}")]
    assert users.endpoints[0].stash == {"userId": "id"}
    assert users.endpoints[0].body_fixture_params() == ["name", "role"]
    assert users.endpoints[1].fixture_body is None
    assert local.disabled


@pytest.mark.parametrize("endpoint, message", [
    ({"path": "users", "method": "GET", "expected_status": 200}, "must start with '/'"),
    ({"path": "/users", "method": "FETCH", "expected_status": 200}, "method"),
    ({"path": "/users", "method": "GET", "expected_status": 700}, "expected_status"),
    ({"path": "/users", "method": "POST", "expected_status": 201}, "requires a synthetic request body"),
])
def test_invalid_endpoints_are_rejected(tmp_path, endpoint, message):
    path = tmp_path / "resources.yaml"
    path.write_text(yaml.safe_dump({
        "apis": [{"name": "users", "base_url": "http://users.test", "endpoints": [endpoint]}],
    }), encoding="utf-8")

    with pytest.raises(ConfigError) as exc:
        load_resources(str(path))
    assert message in str(exc.value)


def test_duplicate_api_names_are_rejected(tmp_path):
    path = _write(tmp_path, "resources.yaml", """
        apis:
          - name: users
            base_url: http://a.test
            endpoints: [{path: /a, method: GET, expected_status: 200}]
          - name: users
            base_url: http://b.test
            endpoints: [{path: /b, method: GET, expected_status: 200}]
    """)

    with pytest.raises(ConfigError) as exc:
        load_resources(path)
    assert "Duplicate API name found: users" in str(exc.value)


@pytest.mark.parametrize("base_url", ["ftp://files.test", "not a url", "http://"])
def test_invalid_base_urls_are_rejected(tmp_path, base_url):
    path = _write(tmp_path, "resources.yaml", f"""
        apis:
          - name: users
            base_url: "{base_url}"
            endpoints: [{{path: /a, method: GET, expected_status: 200}}]
    """)

    with pytest.raises(ConfigError):
        load_resources(path)
