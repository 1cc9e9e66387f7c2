# Tests for the expired refresh-token sweep.

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from oauth2.cleanup import RefreshTokenCleanup
from oauth2.models import RefreshToken
from oauth2.repository import RefreshTokenRepository
from oauth2.utils import utcnow


def _add_tokens(db, seeded, expired: int, live: int):
    now = utcnow()
    for i in range(expired):
        db.add(RefreshToken(
            user_id=seeded.member.id,
            client_id=f"expired-client-{i}",
            value=f"expired-{i}",
            expires_at=now - timedelta(hours=1)
        ))
    for i in range(live):
        db.add(RefreshToken(
            user_id=seeded.member.id,
            client_id=f"live-client-{i}",
            value=f"live-{i}",
            expires_at=now + timedelta(days=1)
        ))
    db.commit()


class TestRunOnce:

    def test_deletes_expired_in_batches(self, database, db, seeded, service):
        _add_tokens(db, seeded, expired=7, live=2)
        cleanup = RefreshTokenCleanup(database.new_session, service, interval_seconds=60, batch_size=3)

        with patch.object(
            RefreshTokenRepository, "delete_expired_batch", wraps=RefreshTokenRepository.delete_expired_batch
        ) as delete_batch:
            assert cleanup.run_once() == 7

        # 3 + 3 + 1
        assert delete_batch.call_count == 3
        remaining = {token.value for token in db.query(RefreshToken).all()}
        assert remaining == {"live-0", "live-1"}

    def test_nothing_to_delete(self, database, seeded):
        cleanup = RefreshTokenCleanup(database.new_session, batch_size=10)
        assert cleanup.run_once() == 0

    def test_count_expired(self, database, db, seeded):
        _add_tokens(db, seeded, expired=4, live=1)
        cleanup = RefreshTokenCleanup(database.new_session)
        assert cleanup.count_expired() == 4

    def test_sweeps_client_cache(self, database, seeded):
        service = MagicMock()
        RefreshTokenCleanup(database.new_session, service).run_once()
        service.cleanup.assert_called_once()

    def test_errors_propagate(self, database, seeded):
        cleanup = RefreshTokenCleanup(database.new_session)
        with patch.object(RefreshTokenRepository, "delete_expired_batch", side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError):
                cleanup.run_once()

    def test_rejects_empty_batches(self, database):
        with pytest.raises(ValueError):
            RefreshTokenCleanup(database.new_session, batch_size=0)


class TestBackgroundLoop:

    def test_loop_survives_failures(self, database):
        cleanup = RefreshTokenCleanup(database.new_session, interval_seconds=0.01)
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("transient")
            return 0

        async def scenario():
            with patch.object(cleanup, "run_once", side_effect=flaky):
                cleanup.start()
                assert cleanup.running
                for _ in range(200):
                    if len(calls) >= 2:
                        break
                    await asyncio.sleep(0.01)
                await cleanup.stop()

        asyncio.run(scenario())
        assert len(calls) >= 2
        assert not cleanup.running

    def test_stop_without_start(self, database):
        asyncio.run(RefreshTokenCleanup(database.new_session).stop())
