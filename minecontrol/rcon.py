# Copyright (C) 2016 Mickaël Thomas
# Copyright (C) 2013 Peter Rowlands

# From pysrcds project: https://github.com/pmrowla/pysrcds
# Made compatible to the Minecraft RCON implementation.

"""Minecraft RCON communications module

Packet format (all integers are little-endian signed 32-bit)::

    length | request id | type | payload | 0x00 0x00

``length`` counts everything after itself, so it is always
``10 + len(payload)``. Servers answer a successful login with a packet of
type 2 (not 3) and a failed login with request id -1.

Responses larger than ~4KB are split by the server over several packets;
only the first one is read.
"""

import random
import socket
import struct
import logging
import itertools
import threading


# Packet types
SERVERDATA_AUTH = 3
SERVERDATA_AUTH_RESPONSE = 2
SERVERDATA_EXECCOMMAND = 2
SERVERDATA_RESPONSE_VALUE = 0

AUTH_FAILED_ID = -1

PADDING = b'\x00\x00'

log = logging.getLogger(__name__)


class RconError(Exception):
    """Generic RCON error"""
    pass


class RconConnectionError(RconError):
    """Raised if the TCP connection to the server can't be established"""


class RconAuthError(RconError):
    """Raised if an RCON Authentication error occurs"""


class RconNotConnectedError(RconError):
    """Raised when using a connection that isn't authenticated or is closed"""


class RconWriteError(RconError):
    """Raised if writing a packet to the server fails"""


class RconTimeoutError(RconError):
    """Raised if the server doesn't answer within the configured timeout"""


class RconProtocolError(RconError):
    """Raised when the packet stream can't be decoded"""


class RconTruncatedError(RconProtocolError):
    """Raised if the stream ends in the middle of a packet"""


class RconMalformedPacketError(RconProtocolError):
    """Raised for packets violating the framing rules"""


class RconPacket(object):

    """RCON packet"""

    _struct = struct.Struct('<3i')

    def __init__(self, pkt_id=0, pkt_type=-1, body=b'', length=None,
                 padding=PADDING):
        self.pkt_id = pkt_id
        self.pkt_type = pkt_type
        self.body = body
        self.padding = padding
        if length is None:
            length = self.size()
        self.length = length

    def __repr__(self):
        return "RconPacket(pkt_id=%d, pkt_type=%d, body=%r)" % (
            self.pkt_id, self.pkt_type, self.body)

    def size(self):
        """Return the pkt_size field for this packet"""
        return len(self.body) + 10

    def padding_ok(self):
        """Return whether the two trailing bytes are both null"""
        return self.padding == PADDING

    def pack(self):
        """Return the packed version of the packet

        The stored ``length`` is written as is.
        """
        header = self._struct.pack(self.length, self.pkt_id, self.pkt_type)
        return b'%s%s%s' % (header, self.body, PADDING)


def build_packet(pkt_id, pkt_type, payload, encoding='utf-8'):
    """Build a packet whose length matches its payload"""
    if isinstance(payload, str):
        payload = payload.encode(encoding)
    return RconPacket(pkt_id, pkt_type, payload)


def write_packet(wfile, pkt):
    """Write one packet to a binary file-like object and flush it"""
    try:
        wfile.write(pkt.pack())
        wfile.flush()
    except socket.timeout as ex:
        raise RconTimeoutError('Timed out sending packet') from ex
    except (OSError, ValueError) as ex:
        raise RconWriteError('Could not send packet: %s' % ex) from ex


def _read_exactly(rfile, size, what):
    try:
        data = rfile.read(size)
    except socket.timeout as ex:
        raise RconTimeoutError('Timed out reading %s' % what) from ex
    except (OSError, ValueError) as ex:
        raise RconTruncatedError(
            'Stream failed while reading %s: %s' % (what, ex)) from ex

    if data is None or len(data) < size:
        raise RconTruncatedError(
            'Stream ended while reading %s (got %d of %d bytes)' % (
                what, len(data or b''), size))
    return data


def read_packet(rfile, strict=False):
    """Read one RCON packet from a binary file-like object

    With ``strict`` set, a packet whose two trailing bytes aren't both null
    is rejected. Otherwise it is accepted and the raw padding is kept on the
    returned packet.
    """
    header = _read_exactly(rfile, RconPacket._struct.size, 'packet header')
    (pkt_size, pkt_id, pkt_type) = RconPacket._struct.unpack(header)

    if pkt_size < 10:
        raise RconMalformedPacketError(
            'Invalid packet length %d (minimum is 10)' % pkt_size)

    body = b''
    if pkt_size > 10:
        body = _read_exactly(rfile, pkt_size - 10, 'packet body')
    padding = _read_exactly(rfile, len(PADDING), 'packet padding')

    pkt = RconPacket(pkt_id, pkt_type, body, length=pkt_size,
                     padding=padding)

    if not pkt.padding_ok():
        if strict:
            raise RconMalformedPacketError(
                'Invalid packet padding %r' % padding)
        log.warning('Ignoring invalid packet padding %r', padding)

    return pkt


class RconConnection(object):

    """RCON client to server connection

    A connection may be shared between threads: each command holds a lock
    for its whole request/response exchange.
    """

    def __init__(self, server, port=25575, password='', encoding='utf-8',
                 timeout=None, strict=False):
        self.server = server
        self.port = port
        self.encoding = encoding
        self.password = password
        self.timeout = timeout
        self.strict = strict
        self.authenticated = False
        self.closed = False
        self.pkt_id = itertools.count(random.randint(1, 1 << 16))
        self._lock = threading.Lock()
        self._sock = None
        self._rfile = None
        self._wfile = None

    def __repr__(self):
        return "RconConnection(server=%r, port=%d, authenticated=%r)" % (
            self.server, self.port, self.authenticated)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def connect(self):
        """Open the connection and authenticate with the password"""

        with self._lock:
            if self.closed:
                raise RconNotConnectedError('Connection was closed')
            if self._sock is not None:
                raise RconError('Already connected')

            log.info('Connecting to %s:%d', self.server, self.port)
            try:
                self._sock = socket.create_connection(
                    (self.server, self.port), timeout=self.timeout)
            except OSError as ex:
                self.closed = True
                raise RconConnectionError(
                    'Could not connect to %s:%d: %s' % (
                        self.server, self.port, ex)) from ex

            self._rfile = self._sock.makefile('rb')
            self._wfile = self._sock.makefile('wb')

            try:
                self._authenticate(self.password.encode(self.encoding))
            except Exception:
                self.closed = True
                self._close_socket()
                raise

            self.authenticated = True
            log.info('Authenticated with %s:%d', self.server, self.port)

        return self

    def _authenticate(self, password):
        """Authenticate with the server using the given password"""
        auth_pkt = RconPacket(next(self.pkt_id), SERVERDATA_AUTH, password)
        self._send_pkt(auth_pkt)
        auth_resp = self._recv_pkt()

        if auth_resp.pkt_id == AUTH_FAILED_ID:
            raise RconAuthError('Bad password')
        if auth_resp.pkt_type != SERVERDATA_AUTH_RESPONSE:
            raise RconAuthError(
                'Received invalid auth response packet (type %d)' %
                auth_resp.pkt_type)

    def exec_command(self, command):
        """Execute the given RCON command
        Return the response body
        """
        with self._lock:
            if not self.authenticated:
                raise RconNotConnectedError('Client not connected')

            cmd_pkt = build_packet(next(self.pkt_id), SERVERDATA_EXECCOMMAND,
                                   command, self.encoding)
            self._send_pkt(cmd_pkt)
            resp = self._recv_pkt()

        return resp.body.decode(self.encoding, 'replace')

    def close(self):
        """Close the connection, it can't be used afterwards"""
        with self._lock:
            self.authenticated = False
            if not self.closed:
                log.info('Closing connection to %s:%d',
                         self.server, self.port)
            self.closed = True
            self._close_socket()

    def _close_socket(self):
        for f in (self._rfile, self._wfile, self._sock):
            if f is None:
                continue
            try:
                f.close()
            except OSError as ex:
                log.debug('Error while closing %r: %s', f, ex)
        self._rfile = self._wfile = self._sock = None

    def _send_pkt(self, pkt):
        """Send one RCON packet over the connection"""
        log.debug('send: %r', pkt)
        write_packet(self._wfile, pkt)

    def _recv_pkt(self):
        """Read one RCON packet"""
        pkt = read_packet(self._rfile, self.strict)
        log.debug('recv: %r', pkt)
        return pkt


def connect(server, port=25575, password='', **kwargs):
    """Return an authenticated :class:`RconConnection`"""
    return RconConnection(server, port, password, **kwargs).connect()
