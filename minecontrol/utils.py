import logging
import functools

from flask import jsonify

from .rcon import RconError


log = logging.getLogger(__name__)


def format_error(ex):
    """One line description of an exception"""
    message = str(ex)
    if message:
        return '%s: %s' % (type(ex).__name__, message)
    return type(ex).__name__


def catch(f):
    """Turn RCON errors raised by a view into a 502 JSON response"""
    @functools.wraps(f)
    def wrap(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except RconError as ex:
            log.error('RCON request failed: %s', format_error(ex))
            return jsonify(status='error', message=str(ex)), 502
    return wrap
