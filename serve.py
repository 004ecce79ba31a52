import asyncio
import logging
import os

import click

from http_server.request import Request
from http_server.response import Response, response
from http_server.server import HTTPServer
from persist import Backend, create_backend
from persist.models.conf import DEFAULT_CONF_PATH, Conf, load_conf
from persist.models.exceptions import BackendError, BackendInitError, ConfigError

logger = logging.getLogger()

ROUTE = '/bloomfilter/<key>'


async def main(conf: Conf):
    backend = await create_backend(conf)
    server = HTTPServer(
        host=conf.listen_host or '0.0.0.0',
        port=conf.listen_port,
        max_body_size=conf.max_body_size,
    )
    await register_routes(server, backend)
    logger.debug(f"Registered routes: {list(server.routes)}")
    try:
        await server.start()
    finally:
        await backend.close()


async def register_routes(server: HTTPServer, backend: Backend):

    @server.route(ROUTE, ['PUT'])
    async def put(request: Request) -> Response:
        key = request.param_bytes('key')
        body = request.body

        try:
            ok = await backend.put(key, body)
        except BackendError as e:
            logger.info(f"PUT {request.param('key')} {len(body)} False {e}")
            return response(status_code=500).json({"success": False, "error": str(e)})

        logger.info(f"PUT {request.param('key')} {len(body)} {ok} None")
        return response(status_code=200).json({"success": ok})

    @server.route(ROUTE, ['GET'])
    async def get(request: Request) -> Response:
        key = request.param_bytes('key')

        try:
            value = await backend.get(key)
        except BackendError as e:
            logger.info(f"GET {request.param('key')} 0 {e}")
            return response(status_code=500).json({"error": str(e)})

        if value is None:
            logger.info(f"GET {request.param('key')} 0 not found")
            return response(status_code=404).json({"error": "Key not found"})

        logger.info(f"GET {request.param('key')} {len(value)} None")
        return response(status_code=200).raw(value)


@click.command()
@click.option(
    '--conf', 'conf_path',
    default=DEFAULT_CONF_PATH,
    show_default=True,
    help='Path to configuration JSON',
)
def cli(conf_path: str):
    """Serve PUT/GET /bloomfilter/<key> from the configured backend."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        conf = load_conf(conf_path)
        asyncio.run(main(conf))
    except (ConfigError, BackendInitError) as e:
        logger.critical(f"Startup failed: {e}")
        raise SystemExit(1) from e
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
