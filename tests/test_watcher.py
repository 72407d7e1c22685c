from __future__ import annotations

import pytest

from tests.fakes import PublisherStub, ResolverStub, candidate


def test_evm_ignored_before_min_confirmations():
    from funding_watcher.models import ProcessResult
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    resolver = ResolverStub(transfer_id="tr_1")
    w = Watcher(chain="base", min_confirmations=2, resolver=resolver, publisher=pub)

    result = w.process_candidate(candidate(confirmations=1))
    assert result is ProcessResult.IGNORED
    assert pub.called_with == []
    # gate runs before the route lookup
    assert resolver.calls == []


def test_evm_confirmed_publishes_once_with_event_id():
    from funding_watcher.models import ProcessResult
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    w = Watcher(chain="base", min_confirmations=2, resolver=ResolverStub(transfer_id="tr_123"), publisher=pub)

    result = w.process_candidate(candidate(tx_hash="0xabc", log_index=3, confirmations=2))
    assert result is ProcessResult.CONFIRMED
    assert len(pub.called_with) == 1
    event = pub.called_with[0]
    assert event.event_id == "tr_123:0xabc"
    assert event.log_index == 3
    assert event.deposit_address == "0xdep"


def test_solana_not_finalized_is_ignored():
    from funding_watcher.models import ProcessResult
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    w = Watcher(chain="solana", resolver=ResolverStub(transfer_id="tr_1"), publisher=pub)

    result = w.process_candidate(candidate(chain="solana", tx_hash="sig_1", finalized=False))
    assert result is ProcessResult.IGNORED
    assert pub.called_with == []


def test_solana_finalized_ignores_confirmation_threshold():
    from funding_watcher.models import ProcessResult
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    w = Watcher(chain="solana", min_confirmations=32, resolver=ResolverStub(transfer_id="tr_9"), publisher=pub)

    result = w.process_candidate(candidate(chain="solana", tx_hash="sig_abc", finalized=True))
    assert result is ProcessResult.CONFIRMED
    assert pub.called_with[0].event_id == "tr_9:sig_abc"


def test_candidate_without_readiness_signal_is_ignored():
    from funding_watcher.models import ProcessResult
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    w = Watcher(chain="base", resolver=ResolverStub(transfer_id="tr_1"), publisher=pub)
    assert w.process_candidate(candidate()) is ProcessResult.IGNORED
    assert pub.called_with == []


def test_route_not_found_does_not_publish():
    from funding_watcher.models import ProcessResult
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    w = Watcher(chain="base", min_confirmations=1, resolver=ResolverStub(transfer_id=None), publisher=pub)

    result = w.process_candidate(candidate(token="USDT", confirmations=5))
    assert result is ProcessResult.ROUTE_NOT_FOUND
    assert pub.called_with == []


def test_publisher_error_propagates():
    from funding_watcher.watcher import Watcher

    pub = PublisherStub(err=RuntimeError("publish failed"))
    w = Watcher(chain="base", min_confirmations=1, resolver=ResolverStub(transfer_id="tr_1"), publisher=pub)

    with pytest.raises(RuntimeError):
        w.process_candidate(candidate(confirmations=5))
    assert len(pub.called_with) == 1


def test_resolver_error_propagates():
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    w = Watcher(chain="base", resolver=ResolverStub(err=ConnectionError("down")), publisher=pub)

    with pytest.raises(ConnectionError):
        w.process_candidate(candidate(confirmations=5))
    assert pub.called_with == []


def test_chain_mismatch_raises():
    from funding_watcher.errors import InvalidChainError
    from funding_watcher.watcher import Watcher

    pub = PublisherStub()
    w = Watcher(chain="base", resolver=ResolverStub(transfer_id="tr_1"), publisher=pub)

    with pytest.raises(InvalidChainError):
        w.process_candidate(candidate(chain="solana", finalized=True))
    assert pub.called_with == []
