import pytest

from minecontrol.config import (
    DEFAULT_CONFIG,
    ConfigurationError,
    load_config,
    merge,
)


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults():
    config = load_config()
    assert config['rcon']['address'] == '127.0.0.1'
    assert config['rcon']['port'] == 25566
    assert config['rcon']['timeout'] is None
    assert config['rcon']['strict'] is False
    assert config['server']['port'] == 7767
    assert config['verbose'] is False


def test_defaults_are_not_mutated():
    config = load_config(overrides=dict(rcon=dict(port=1234)))
    assert config['rcon']['port'] == 1234
    assert DEFAULT_CONFIG['rcon']['port'] == 25566


def test_config_file_in_current_directory(workdir):
    (workdir / 'minecontrol.yaml').write_text(
        'rcon:\n'
        '  address: mc.example.com\n'
        '  password: secret\n'
        'server:\n'
        '  username: admin\n'
    )
    config = load_config()
    assert config['rcon']['address'] == 'mc.example.com'
    assert config['rcon']['password'] == 'secret'
    assert config['rcon']['port'] == 25566
    assert config['server']['username'] == 'admin'


def test_flags_override_config_file(workdir):
    (workdir / 'minecontrol.yml').write_text(
        'rcon: {address: mc.example.com, port: 25575}\n')
    config = load_config(overrides=dict(
        rcon=dict(address=None, port=30000)))
    assert config['rcon']['address'] == 'mc.example.com'
    assert config['rcon']['port'] == 30000


def test_explicit_file(workdir):
    path = workdir / 'other.yaml'
    path.write_text('rcon:\n  timeout: 5\n  strict: true\nverbose: true\n')
    config = load_config(str(path))
    assert config['rcon']['timeout'] == 5.0
    assert config['rcon']['strict'] is True
    assert config['verbose'] is True


def test_missing_explicit_file(workdir):
    with pytest.raises(ConfigurationError):
        load_config(str(workdir / 'nope.yaml'))


def test_empty_file(workdir):
    (workdir / 'minecontrol.yaml').write_text('')
    assert load_config()['rcon']['port'] == 25566


@pytest.mark.parametrize('content', [
    'rcon: [1, 2\n',
    '- just\n- a list\n',
    'rcon: localhost\n',
    'rcon:\n  port: 70000\n',
    'rcon:\n  port: abc\n',
    'rcon:\n  timeout: -1\n',
    'server:\n  port: 0\n',
])
def test_invalid_config(workdir, content):
    (workdir / 'minecontrol.yaml').write_text(content)
    with pytest.raises(ConfigurationError):
        load_config()


def test_merge_skips_none():
    config = dict(a=1, b=dict(c=2, d=3))
    merge(config, dict(a=None, b=dict(c=None, d=4)))
    assert config == dict(a=1, b=dict(c=2, d=4))
