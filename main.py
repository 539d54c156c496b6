"""Entry point for the llama-server sidecar.

Startup order is strict: spawn llama-server, wait for its /health, and only
then bind the HTTP front. Failing either of the first two steps exits the
process with a non-zero code.
"""

import asyncio
import logging
import sys

import uvicorn

from llama_sidecar.api.context import AppContext
from llama_sidecar.api.proxy import ProxyTarget, create_upstream_client
from llama_sidecar.app import create_app
from llama_sidecar.config import Settings, load_settings
from llama_sidecar.process import ChildSupervisor, SpawnError, wait_for_upstream

logger = logging.getLogger("llama_sidecar")


async def serve(settings: Settings) -> int:
    """
    Spawn, gate on readiness, then serve until uvicorn stops.

    The child is killed and the client closed on every way out, including
    cancellation while waiting for readiness.

    Returns:
        Process exit code
    """
    client = create_upstream_client(timeout=settings.request_timeout)
    supervisor = ChildSupervisor()
    target = ProxyTarget.from_host_port(settings.llama_host, settings.llama_port)

    try:
        try:
            await supervisor.spawn(
                settings.llama_server_path,
                settings.model_path,
                settings.llama_host,
                settings.llama_port,
                settings.ctx_size,
                settings.n_gpu_layers,
            )
        except SpawnError as e:
            logger.error(str(e))
            return 1

        ready = await wait_for_upstream(
            client,
            target.base_url,
            settings.ready_timeout,
            is_alive=supervisor.is_alive,
        )
        if not ready:
            logger.error("llama-server did not become ready within timeout")
            return 1

        app = create_app(AppContext(client=client, target=target, supervisor=supervisor))
        config = uvicorn.Config(
            app,
            host=settings.bind_host,
            port=settings.bind_port,
            log_level=settings.log_level.lower(),
        )
        logger.info(f"Serving on {settings.bind_host}:{settings.bind_port}")
        await uvicorn.Server(config).serve()
        return 0
    finally:
        # No-ops when the app lifespan already cleaned up
        await supervisor.terminate()
        await client.aclose()


def main() -> int:
    settings = load_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    return asyncio.run(serve(settings))


if __name__ == "__main__":
    sys.exit(main())
