"""HTTP/JSON front-end to an RCON connection"""

import os
import re
import hmac
import logging
import functools

from flask import (Flask, Response, jsonify, redirect, request,
                   send_from_directory)

from . import __version__
from .utils import catch


log = logging.getLogger(__name__)

GUI_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'gui')

# Vanilla servers: "There are 2 of a max of 20 players online: a, b"
# Pre-1.13 servers: "There are 2/20 players online:a, b"
LIST_RE = re.compile(
    r'\s*There are (?P<count>\d+)(?: of a max of |/)(?P<max>\d+) '
    r'players online:(?P<users>.*)',
    re.S
)


def parse_player_list(text):
    """Parse the output of the /list command"""
    m = LIST_RE.match(text)
    if not m:
        return dict(count=None, max=None, users=[])

    users = [u.strip() for u in m.group('users').split(',')]
    return dict(
        count=int(m.group('count')),
        max=int(m.group('max')),
        users=[u for u in users if u],
    )


def basic_auth(username, password):
    """Require the given HTTP basic auth credentials, if both are set"""
    def decorator(f):
        if not (username and password):
            return f

        @functools.wraps(f)
        def wrap(*args, **kwargs):
            auth = request.authorization
            if (auth is None or auth.username is None or
                    auth.password is None or
                    not hmac.compare_digest(auth.username.encode('utf-8'),
                                            username.encode('utf-8')) or
                    not hmac.compare_digest(auth.password.encode('utf-8'),
                                            password.encode('utf-8'))):
                return Response(
                    'Authentication required', 401,
                    {'WWW-Authenticate': 'Basic realm="minecontrol"'})
            return f(*args, **kwargs)
        return wrap
    return decorator


def create_app(client, username=None, password=None):
    """Return the Flask application serving ``client``

    ``client`` is anything with an ``exec_command(text)`` method, normally an
    authenticated :class:`minecontrol.rcon.RconConnection`.
    """
    app = Flask(__name__, static_folder=None)
    protected = basic_auth(username, password)

    @app.route('/')
    @protected
    def index():
        return redirect('/gui/', code=302)

    @app.route('/gui/')
    @app.route('/gui/<path:filename>')
    @protected
    def gui(filename='index.html'):
        return send_from_directory(GUI_DIR, filename)

    @app.route('/api')
    @app.route('/api/')
    @protected
    def api_root():
        return jsonify(
            status='success',
            name='minecontrol',
            version=__version__,
            connected=bool(getattr(client, 'authenticated', True)),
        )

    @app.route('/api/users')
    @protected
    @catch
    def users_root():
        text = client.exec_command('/list')
        result = parse_player_list(text)
        return jsonify(status='success', raw=text, **result)

    @app.route('/api/users/<username>')
    @protected
    @catch
    def user(username):
        users = parse_player_list(client.exec_command('/list'))['users']
        online = username in users
        return jsonify(status='success', username=username, online=online)

    return app


def run_server(client, port=7767, host='0.0.0.0', username=None,
               password=None, verbose=False):
    """Serve the API until interrupted"""
    app = create_app(client, username, password)

    if not verbose:
        logging.getLogger('werkzeug').setLevel(logging.ERROR)

    log.info('Starting server on port %d', port)
    app.run(host=host, port=port, threaded=True)
