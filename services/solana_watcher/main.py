import signal

from loguru import logger

from funding_watcher.callback import CallbackPublisher
from funding_watcher.chains.solana import SolanaTransactionSource
from funding_watcher.config import AppSettings
from funding_watcher.constants import SOLANA_CHAIN
from funding_watcher.core_api import (
    CoreApiCheckpointStore,
    CoreApiClient,
    CoreApiDedupeStore,
    CoreApiRouteResolver,
    CoreApiRouteStore,
)
from funding_watcher.runner import Runner
from funding_watcher.watcher import Watcher

WATCHER_NAME = "solana-watcher"


def build_runner(settings: AppSettings) -> Runner:
    client = CoreApiClient(
        base_url=settings.core_api_url,
        secret=settings.auth_jwt_secret,
        issuer=settings.auth_jwt_issuer,
        audience=settings.auth_jwt_audience,
        subject=WATCHER_NAME,
        timeout=settings.core_api_timeout_sec,
    )
    source = SolanaTransactionSource.create(settings, routes=CoreApiRouteStore(client))
    # Finality is binary on Solana; min_confirmations does not apply
    watcher = Watcher(
        chain=SOLANA_CHAIN,
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
        checkpoints=CoreApiCheckpointStore(client, watcher_name=WATCHER_NAME, chain=SOLANA_CHAIN),
        dedupe=CoreApiDedupeStore(client, watcher_name=WATCHER_NAME),
        poll_interval_sec=settings.solana_poll_interval_sec,
    )


def main():
    settings = AppSettings()
    logger.remove()
    logger.add(lambda m: print(m, end=""), level=settings.log_level)

    runner = build_runner(settings)
    # Signals are observed between cycles; an in-flight cycle runs to completion
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda *_: runner.stop())
    runner.run()


if __name__ == "__main__":
    main()
