"""Command line interface

Usage examples::

    minecontrol -a mc.example.com -P secret run time set 0
    minecontrol repl
    minecontrol server --serverPort 7767 --serverUsername admin \\
        --serverPassword admin
"""

import sys
import getpass
import logging
import argparse

from . import __version__
from . import rcon
from .config import ConfigurationError, load_config
from .utils import format_error
from .rest_server import run_server


log = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def build_parser():
    parser = argparse.ArgumentParser(
        prog='minecontrol',
        description='Control a Minecraft server over RCON',
    )
    parser.add_argument(
        '-a', '--address',
        help='The IP address or domain name of the server to connect to '
             '(default: 127.0.0.1)')
    parser.add_argument(
        '-p', '--port', type=int,
        help='The RCON port number at the provided address (default: 25566)')
    parser.add_argument(
        '-P', '--password',
        help='The RCON password needed to connect to the server')
    parser.add_argument(
        '-c', '--config',
        help='Path of the YAML config file (default: ./minecontrol.yaml)')
    parser.add_argument(
        '--timeout', type=float,
        help='Give up on the server after this many seconds (default: wait '
             'forever)')
    parser.add_argument(
        '--strict', action='store_true', default=None,
        help='Reject packets with invalid padding bytes')
    parser.add_argument(
        '--verbose', action='store_true', default=None,
        help='Set verbose mode')
    parser.add_argument(
        '--version', action='store_true',
        help='Print the version number and exit')

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')

    run = subparsers.add_parser(
        'run', help='Run the provided command on the server, then exit')
    run.add_argument('rcon_command', nargs='+', metavar='command')

    subparsers.add_parser(
        'repl', help='Open a REPL for your Minecraft server')

    server = subparsers.add_parser(
        'server', help='Create an HTTP server for the REST API and GUI')
    server.add_argument(
        '--serverPort', dest='server_port', type=int,
        help='Port to run the REST server on (default: 7767)')
    server.add_argument(
        '--serverUsername', dest='server_username',
        help='HTTP Basic auth username that the REST server will require')
    server.add_argument(
        '--serverPassword', dest='server_password',
        help='HTTP Basic auth password that the REST server will require')

    return parser


def config_overrides(args):
    """Map the command line flags to config keys"""
    return dict(
        verbose=args.verbose,
        rcon=dict(
            address=args.address,
            port=args.port,
            password=args.password,
            timeout=args.timeout,
            strict=args.strict,
        ),
        server=dict(
            port=getattr(args, 'server_port', None),
            username=getattr(args, 'server_username', None),
            password=getattr(args, 'server_password', None),
        ),
    )


def open_connection(config):
    """Return an authenticated connection, or None after printing why"""
    cfg = config['rcon']
    try:
        return rcon.connect(
            cfg['address'], cfg['port'], cfg['password'],
            timeout=cfg['timeout'], strict=cfg['strict'])
    except rcon.RconError as ex:
        print(format_error(ex), file=sys.stderr)
        return None


def do_run(config, args):
    command = ' '.join(args.rcon_command)

    conn = open_connection(config)
    if conn is None:
        return 1

    with conn:
        log.info('Executing command: %s', command)
        try:
            response = conn.exec_command(command)
        except rcon.RconError as ex:
            print('FATAL:', format_error(ex), file=sys.stderr)
            return 1

    print(response)
    return 0


def do_repl(config, args):
    conn = open_connection(config)
    if conn is None:
        return 1

    print('Type "exit" to quit')

    with conn:
        while True:
            try:
                line = input('> ')
            except EOFError:
                print()
                break

            command = line.strip()
            if command == 'exit':
                break
            if not command:
                continue

            try:
                print(conn.exec_command(command))
            except rcon.RconError as ex:
                print('FATAL:', format_error(ex))

    return 0


def do_server(config, args):
    conn = open_connection(config)
    if conn is None:
        return 1

    server = config['server']
    with conn:
        try:
            run_server(conn, port=server['port'],
                       username=server['username'],
                       password=server['password'],
                       verbose=config['verbose'])
        except KeyboardInterrupt:
            pass

    return 0


COMMANDS = dict(
    run=do_run,
    repl=do_repl,
    server=do_server,
)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print('Minecontrol is version %s' % __version__)
        return 0

    if args.command is None:
        parser.print_help()
        return 2

    setup_logging(args.verbose)

    try:
        config = load_config(args.config, config_overrides(args))
    except ConfigurationError as ex:
        print(format_error(ex), file=sys.stderr)
        return 2

    if config['verbose']:
        setup_logging(True)
        log.debug('config: %r', dict(
            config, rcon=dict(config['rcon'], password='***')))

    if not config['rcon']['password']:
        config['rcon']['password'] = getpass.getpass('Enter RCON password: ')

    return COMMANDS[args.command](config, args)


if __name__ == '__main__':
    sys.exit(main())
