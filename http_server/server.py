import asyncio
import json
import logging
import re
import time
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from .request import Request
from .response import Response

logger = logging.getLogger()

# "<name>" placeholders match one path segment
_PARAM_RE = re.compile(r"<([A-Za-z_][A-Za-z0-9_]*)>")

DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024  # 10MB

# Rejected bodies above this are not drained, the connection is just closed
MAX_DISCARD_SIZE = 1024 * 1024  # 1MB
DISCARD_TIMEOUT = 5.0


class PayloadTooLarge(ValueError):
    """Raised while parsing when content-length exceeds the body limit"""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Request body too large: {size} > {limit} bytes")


def compile_path(path: str) -> re.Pattern:
    """Turn '/items/<key>' into a regex capturing each placeholder"""
    pattern = ''
    last = 0
    for match in _PARAM_RE.finditer(path):
        pattern += re.escape(path[last:match.start()])
        pattern += f'(?P<{match.group(1)}>[^/]+)'
        last = match.end()
    pattern += re.escape(path[last:])
    return re.compile(f'^{pattern}$')


class HTTPServer:
    def __init__(
        self,
        host: str = '0.0.0.0',
        port: int = 8080,
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
    ):
        self.host = host
        self.port = port
        self.max_body_size = max_body_size
        self.routes: Dict[Tuple[str, str], Callable] = {}
        self._patterns: List[Tuple[str, re.Pattern]] = []

    def route(self, path: str, methods: Optional[List] = None):
        """Decorator for registering route handlers"""
        if methods is None:
            methods = ['GET']

        if not any(p == path for p, _ in self._patterns):
            self._patterns.append((path, compile_path(path)))

        def decorator(handler):
            for method in methods:
                self.routes[(method.upper(), path)] = handler
            return handler
        return decorator

    def match(self, method: str, path: str) -> Tuple[Optional[Callable], Dict[str, str], bool]:
        """
        Find the handler for a request.

        Returns (handler, path params, path matched). Path params are still
        percent-encoded.
        """
        path_matched = False
        for route_path, pattern in self._patterns:
            m = pattern.match(path)
            if m is None:
                continue
            path_matched = True
            handler = self.routes.get((method, route_path))
            if handler is not None:
                return handler, m.groupdict(), True
        return None, {}, path_matched

    async def parse_request(self, reader: asyncio.StreamReader) -> Optional[Request]:
        """Parse HTTP request with timeout and size limits"""
        try:
            # Read request line with timeout
            request_line = await asyncio.wait_for(
                reader.readline(),
                timeout=5.0
            )

            if not request_line:
                return None

            request_line = request_line.decode('utf-8').strip()
            method, full_path, version = request_line.split(' ', 2)

            parsed_url = urlparse(full_path)
            path = parsed_url.path
            query_params = parse_qs(parsed_url.query)

            headers = {}
            while True:
                line = await asyncio.wait_for(reader.readline(), timeout=5.0)
                if line in (b'\r\n', b'\n', b''):
                    break

                header_line = line.decode('utf-8').strip()
                if ':' in header_line:
                    key, value = header_line.split(':', 1)
                    headers[key.strip().lower()] = value.strip()

            body = b''
            content_length = int(headers.get('content-length', 0))

            if content_length > 0:
                if content_length > self.max_body_size:
                    raise PayloadTooLarge(content_length, self.max_body_size)

                body = await asyncio.wait_for(
                    reader.readexactly(content_length),
                    timeout=30.0
                )

            return Request(
                method=method.upper(),
                path=path,
                headers=headers,
                query_params=query_params,
                body=body,
                version=version
            )

        except PayloadTooLarge:
            raise
        except asyncio.TimeoutError:
            return None
        except Exception as e:
            logger.error(f"Error parsing request: {e}")
            return None

    async def discard_body(self, reader: asyncio.StreamReader, size: int):
        """Read and drop a small rejected request body, bounded in time"""
        if size > MAX_DISCARD_SIZE:
            return

        async def drain():
            remaining = size
            while remaining > 0:
                chunk = await reader.read(min(remaining, 65536))
                if not chunk:
                    break
                remaining -= len(chunk)

        try:
            await asyncio.wait_for(drain(), timeout=DISCARD_TIMEOUT)
        except asyncio.TimeoutError:
            pass

    def build_response(self, response: Response) -> bytes:
        """Build HTTP response bytes"""
        status_messages = {
            200: 'OK',
            201: 'Created',
            204: 'No Content',
            400: 'Bad Request',
            404: 'Not Found',
            405: 'Method Not Allowed',
            413: 'Payload Too Large',
            500: 'Internal Server Error',
        }

        status_text = status_messages.get(response.status, 'Unknown')

        if 'content-type' not in response.headers:
            response.headers['content-type'] = 'text/plain'

        response.headers['content-length'] = str(len(response.body))
        response.headers['connection'] = 'keep-alive'
        response.headers['server'] = 'PersistHttp/1.0'

        response_line = f"HTTP/1.1 {response.status} {status_text}\r\n"
        header_lines = ''.join(
            f"{key}: {value}\r\n"
            for key, value in response.headers.items()
        )

        return (
            response_line.encode() +
            header_lines.encode() +
            b'\r\n' +
            response.body
        )

    async def handle_request(self, request: Request) -> Response:
        """Route request to appropriate handler"""
        handler, params, path_matched = self.match(request.method, request.path)

        if handler is None:
            if path_matched:
                return Response(status=405, body=b'Method Not Allowed')
            return Response(status=404, body=b'Route Not Found')

        request.path_params = params

        try:
            result = await handler(request)

            if isinstance(result, Response):
                return result
            elif isinstance(result, dict):
                return Response(
                    status=200,
                    headers={'content-type': 'application/json'},
                    body=json.dumps(result).encode()
                )
            elif isinstance(result, str):
                return Response(
                    status=200,
                    body=result.encode()
                )
            elif isinstance(result, bytes):
                return Response(
                    status=200,
                    headers={'content-type': 'application/octet-stream'},
                    body=result
                )

            raise TypeError("Response cannot be casted to appropriate HTTP response format")
        except Exception as e:
            logger.error(f"Handler error: {e}")
            return Response(
                status=500,
                body=b'Internal Server Error'
            )

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle a single client connection with keep-alive"""
        peer = writer.get_extra_info('peername')

        try:
            while True:
                try:
                    request = await self.parse_request(reader)
                except PayloadTooLarge as e:
                    logger.warning(f"Rejected request from {peer}: {e}")
                    writer.write(self.build_response(Response(status=413, body=str(e).encode())))
                    await writer.drain()
                    # Closing with unread input would reset the connection
                    await self.discard_body(reader, e.size)
                    break

                if request is None:
                    break

                start_time = time.perf_counter()
                logger.debug(f"--> {request.method} {request.path}")

                response = await self.handle_request(request)

                writer.write(self.build_response(response))
                await writer.drain()

                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.debug(
                    f"<-- {response.status} - {len(response.body)} bytes - {elapsed_ms:.2f}ms"
                )

                connection_header = request.headers.get('connection', '').lower()
                if connection_header == 'close':
                    break

        except ConnectionResetError:
            pass
        except Exception as e:
            logger.error(f"Connection error from {peer}: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def start(self):
        """Start the HTTP server"""
        server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port
        )

        addr = server.sockets[0].getsockname()
        logger.info(f'Persist HTTP Server running on http://{addr[0]}:{addr[1]}')

        try:
            async with server:
                await server.serve_forever()
        except asyncio.CancelledError:
            logger.info("Server shutdown requested")
        finally:
            await self.shutdown(server)

    async def shutdown(self, server):
        """Gracefully shutdown the server"""
        logger.info("Shutting down server...")
        server.close()
        await server.wait_closed()
        logger.info("Server shutdown complete")
