# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Redis 网关（可选缓存服务的连通性探测，供健康检查使用）
from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlparse


def _resp_bulk(data: bytes) -> bytes:
    return b"$%d\r\n%s\r\n" % (len(data), data)


def _resp_array(items: list[bytes]) -> bytes:
    buf = [b"*%d\r\n" % len(items)]
    buf.extend(_resp_bulk(x) for x in items)
    return b"".join(buf)


def _read_line(sock: socket.socket) -> bytes:
    data = bytearray()
    while True:
        chunk = sock.recv(1)
        if not chunk:
            raise ConnectionError("Redis connection closed")
        data += chunk
        if len(data) >= 2 and data[-2:] == b"\r\n":
            return bytes(data[:-2])


def _expect_simple(sock: socket.socket, expected: bytes) -> None:
    line = _read_line(sock)
    if not line:
        raise ConnectionError("Redis empty reply")
    if line == b"+" + expected:
        return
    raise ConnectionError(f"Redis unexpected reply: {line!r}")


@dataclass(frozen=True)
class RedisConnInfo:
    host: str
    port: int
    db: int
    username: Optional[str]
    password: Optional[str]
    timeout_seconds: float


def parse_redis_url(redis_url: str, timeout_seconds: float) -> RedisConnInfo:
    info = urlparse(redis_url)
    if info.scheme != "redis":
        raise ValueError("REDIS_URL must start with redis://")

    path = info.path.lstrip("/")
    return RedisConnInfo(
        host=info.hostname or "localhost",
        port=info.port or 6379,
        db=int(path) if path else 0,
        username=unquote(info.username) if info.username else None,
        password=unquote(info.password) if info.password else None,
        timeout_seconds=timeout_seconds,
    )


class RedisGateway:
    def __init__(self, redis_url: str, timeout_seconds: float = 2.0) -> None:
        self._info = parse_redis_url(redis_url, timeout_seconds=timeout_seconds)

    def ping(self) -> bool:
        info = self._info
        with socket.create_connection((info.host, info.port), timeout=info.timeout_seconds) as sock:
            sock.settimeout(info.timeout_seconds)

            if info.password:
                if info.username and info.username != "default":
                    sock.sendall(
                        _resp_array([b"AUTH", info.username.encode("utf-8"), info.password.encode("utf-8")])
                    )
                else:
                    sock.sendall(_resp_array([b"AUTH", info.password.encode("utf-8")]))
                _expect_simple(sock, b"OK")

            if info.db != 0:
                sock.sendall(_resp_array([b"SELECT", str(info.db).encode("utf-8")]))
                _expect_simple(sock, b"OK")

            sock.sendall(_resp_array([b"PING"]))
            _expect_simple(sock, b"PONG")
            return True
