"""Configuration loading

Values are layered: built-in defaults, then the YAML config file, then
command-line flags.
"""

import os
import copy
import logging

import yaml


log = logging.getLogger(__name__)

CONFIG_NAMES = ('minecontrol.yaml', 'minecontrol.yml')

DEFAULT_CONFIG = dict(
    verbose=False,
    rcon=dict(
        address='127.0.0.1',
        port=25566,
        password='',
        timeout=None,
        strict=False,
    ),
    server=dict(
        port=7767,
        username='',
        password='',
    ),
)


class ConfigurationError(Exception):
    """Raised when the configuration is invalid or can't be read"""


def find_config_file(directory='.'):
    for name in CONFIG_NAMES:
        path = os.path.join(directory, name)
        if os.path.isfile(path):
            return path


def read_config_file(path):
    """Return the mapping stored in a YAML config file"""
    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as ex:
        raise ConfigurationError(
            'Could not read config file %s: %s' % (path, ex)) from ex
    except yaml.YAMLError as ex:
        raise ConfigurationError(
            'Invalid config file %s: %s' % (path, ex)) from ex

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            'Config file %s must contain a mapping' % path)
    return data


def merge(config, overrides):
    """Recursively update ``config`` with the non-None values of
    ``overrides``"""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            merge(config[key], value)
        elif value is not None:
            config[key] = value
    return config


def _check_port(config, section):
    port = config[section]['port']
    try:
        port = int(port)
    except (TypeError, ValueError):
        raise ConfigurationError(
            '%s.port must be an integer, got: %r' % (section, port))
    if not 1 <= port <= 65535:
        raise ConfigurationError(
            '%s.port must be between 1 and 65535' % section)
    config[section]['port'] = port


def validate(config):
    for section in ('rcon', 'server'):
        if not isinstance(config.get(section), dict):
            raise ConfigurationError('%s must be a mapping' % section)
        _check_port(config, section)

    if not config['rcon'].get('address'):
        raise ConfigurationError('rcon.address is required')

    timeout = config['rcon'].get('timeout')
    if timeout is not None:
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            raise ConfigurationError(
                'rcon.timeout must be a number, got: %r' % timeout)
        if timeout <= 0:
            raise ConfigurationError('rcon.timeout must be positive')
        config['rcon']['timeout'] = timeout

    config['rcon']['strict'] = bool(config['rcon'].get('strict'))
    config['verbose'] = bool(config.get('verbose'))
    return config


def load_config(path=None, overrides=None):
    """Return the validated configuration

    ``path`` is an explicit config file, which must exist. Without it the
    current directory is searched and a missing file is not an error.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if path is None:
        path = find_config_file()
        if path is None:
            log.info('No config file found, using default values.')
    elif not os.path.isfile(path):
        raise ConfigurationError('Config file not found: %s' % path)

    if path is not None:
        log.debug('Reading config file %s', path)
        file_config = read_config_file(path)
        for section in ('rcon', 'server'):
            if section in file_config and \
                    not isinstance(file_config[section], dict):
                raise ConfigurationError('%s must be a mapping' % section)
        merge(config, file_config)

    if overrides:
        merge(config, overrides)

    return validate(config)
