import pytest

from mosdns.config import (
    BadIPObserverConfig,
    Config,
    PluginConfig,
    ServerListenerConfig,
    load_config,
    merge_include,
)

MAIN_YAML = """
log:
  level: debug
data_providers:
  - tag: main_dp
    file: main.txt
plugins:
  - tag: main_plugin
    type: forward
    args:
      upstream: udp
servers:
  - exec: main_plugin
    timeout: "7"
    listeners:
      - protocol: tcp
        addr: 127.0.0.1:5353
        proxy_protocol: "true"
"""


def test_from_mapping_decodes_nested_values():
    config = Config.from_mapping(
        {
            "servers": [{"exec": "entry", "timeout": "7", "listeners": [{"addr": "a", "idle_timeout": 3}]}],
            "api": {"http": "127.0.0.1:8080"},
        }
    )
    assert config.servers[0].exec == "entry"
    assert config.servers[0].timeout == 7
    assert config.servers[0].listeners == [ServerListenerConfig(addr="a", idle_timeout=3)]
    assert config.api.http == "127.0.0.1:8080"


def test_from_mapping_rejects_unknown_keys():
    with pytest.raises(ValueError, match="invalid keys"):
        Config.from_mapping({"plugins": [{"tag": "a", "typo": "x"}]})


def test_from_mapping_rejects_negative_unsigned():
    with pytest.raises(ValueError, match="overflows uint"):
        Config.from_mapping({"servers": [{"timeout": -1}]})


def test_plugin_args_are_kept_as_given():
    config = Config.from_mapping({"plugins": [{"tag": "p", "type": "t", "args": {"k": [1, 2]}}]})
    assert config.plugins == [PluginConfig(tag="p", type="t", args={"k": [1, 2]})]


def test_bad_ip_observer_defaults():
    observer = BadIPObserverConfig(threshold=5)
    observer.apply_defaults()
    assert (observer.interval, observer.ttl, observer.ipv4_mask, observer.ipv6_mask) == (10, 600, 32, 48)
    assert observer.threshold == 5


def test_bad_ip_observer_keeps_set_values():
    observer = BadIPObserverConfig(interval=3, ipv6_mask=64)
    observer.apply_defaults()
    assert observer.interval == 3
    assert observer.ipv6_mask == 64


def test_load_config_from_path(tmp_path):
    path = tmp_path / "main.yaml"
    path.write_text(MAIN_YAML)
    config, used = load_config(str(path))
    assert used == str(path)
    assert config.log.level == "debug"
    assert config.data_providers[0].tag == "main_dp"
    assert config.servers[0].listeners[0].proxy_protocol is True
    assert config.plugins[0].args == {"upstream": "udp"}


def test_load_config_searches_working_directory(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text("api:\n  http: 127.0.0.1:8080\n")
    monkeypatch.chdir(tmp_path)
    config, used = load_config("")
    assert used.endswith("config.yaml")
    assert config.api.http == "127.0.0.1:8080"


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ValueError, match="failed to read config"):
        load_config(str(tmp_path / "absent.yaml"))


def test_merge_include_puts_included_entries_first(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "sub.yaml").write_text(
        "plugins:\n  - tag: sub_plugin\n    type: t\nservers:\n  - exec: sub_plugin\n"
    )
    (tmp_path / "main.yaml").write_text(MAIN_YAML + "include: [sub.yaml]\n")
    config, used = load_config("main.yaml")
    merge_include(config, 0, [used])
    assert [p.tag for p in config.plugins] == ["sub_plugin", "main_plugin"]
    assert [s.exec for s in config.servers] == ["sub_plugin", "main_plugin"]
    assert [d.tag for d in config.data_providers] == ["main_dp"]


def test_merge_include_depth_limit(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "loop.yaml").write_text("include: [loop.yaml]\n")
    config, used = load_config("loop.yaml")
    with pytest.raises(ValueError, match="maximun include depth reached"):
        merge_include(config, 0, [used])