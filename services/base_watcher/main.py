import signal

from loguru import logger

from funding_watcher.callback import CallbackPublisher
from funding_watcher.chains.evm import EvmLogSource
from funding_watcher.config import AppSettings
from funding_watcher.core_api import (
    CoreApiCheckpointStore,
    CoreApiClient,
    CoreApiDedupeStore,
    CoreApiRouteResolver,
    CoreApiRouteStore,
)
from funding_watcher.runner import Runner
from funding_watcher.watcher import Watcher

WATCHER_NAME = "base-watcher"


def build_runner(settings: AppSettings) -> Runner:
    client = CoreApiClient(
        base_url=settings.core_api_url,
        secret=settings.auth_jwt_secret,
        issuer=settings.auth_jwt_issuer,
        audience=settings.auth_jwt_audience,
        subject=WATCHER_NAME,
        timeout=settings.core_api_timeout_sec,
    )
    source = EvmLogSource.create(settings, routes=CoreApiRouteStore(client))
    watcher = Watcher(
        chain=settings.evm_chain,
        min_confirmations=settings.evm_min_confirmations,
        resolver=CoreApiRouteResolver(client, watcher_name=WATCHER_NAME),
        publisher=CallbackPublisher(
            endpoint=settings.callback_url,
            secret=settings.callback_secret,
            timeout=settings.callback_timeout_sec,
        ),
    )
    return Runner(
        name=WATCHER_NAME,
        source=source,
        watcher=watcher,
        checkpoints=CoreApiCheckpointStore(client, watcher_name=WATCHER_NAME, chain=settings.evm_chain),
        dedupe=CoreApiDedupeStore(client, watcher_name=WATCHER_NAME),
        poll_interval_sec=settings.evm_poll_interval_sec,
    )


def main():
    settings = AppSettings()
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.log_level)

    runner = build_runner(settings)
    # Signals are observed between cycles; an in-flight cycle runs to completion
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda *_: runner.stop())
    runner.run()


if __name__ == "__main__":
    main()
