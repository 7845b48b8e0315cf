from __future__ import annotations

import hashlib
import json
from collections import OrderedDict
from typing import Mapping, Optional, Set

from redis.asyncio import Redis
from redis.exceptions import RedisError

from checkout_flow.core.logging import get_logger
from checkout_flow.integrations.payment_gateways.base import DuplicateProof, VerificationFailed
from checkout_flow.models.session import PaymentSession, VerificationResult
from checkout_flow.schemas.backend import VerificationRequest
from checkout_flow.services.backend_client import BackendClient, BackendUnavailable

logger = get_logger(__name__)

LOCK_PREFIX = "checkout:verify:idemp:"
LOCK_TTL_SECONDS = 3600
MAX_CACHED_RESULTS = 1000
PENDING = "pending"
ALREADY_VERIFIED_MARKERS = ("already verified", "already_verified", "already been verified")


def proof_fingerprint(transaction_id: str, proof: Mapping[str, str]) -> str:
    canonical = json.dumps({"transaction_id": transaction_id, "proof": dict(proof)}, sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _says_already_verified(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in ALREADY_VERIFIED_MARKERS)


class OutcomeVerifier:
    """Submits provider proof to the backend, once per distinct proof.

    Verification is two steps so a caller can find out whether a proof is
    a duplicate before it commits a session to verifying: ``claim`` checks
    the caches and takes the lock, ``submit`` calls the backend.
    """

    def __init__(
        self,
        backend: BackendClient,
        redis_client: Optional[Redis] = None,
        lock_ttl_seconds: int = LOCK_TTL_SECONDS,
        max_cached_results: int = MAX_CACHED_RESULTS,
    ):
        self.backend = backend
        self.redis_client = redis_client
        self.lock_ttl_seconds = lock_ttl_seconds
        self.max_cached_results = max_cached_results
        self._results: "OrderedDict[str, VerificationResult]" = OrderedDict()
        self._pending: Set[str] = set()

    async def _acquire_idempotency_lock(self, key: str) -> bool:
        if self.redis_client is None:
            return True
        async with self.redis_client.pipeline(transaction=True) as pipe:
            pipe.setnx(key, PENDING)
            pipe.expire(key, self.lock_ttl_seconds)
            created, _ = await pipe.execute()
            return bool(created)

    async def _stored_result(self, key: str) -> Optional[VerificationResult]:
        raw = await self.redis_client.get(key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        if raw == PENDING:
            return None
        return VerificationResult(**json.loads(raw))

    async def _store_result(self, key: str, result: VerificationResult) -> None:
        if self.redis_client is None:
            return
        payload = {
            "transaction_id": result.transaction_id,
            "success": result.success,
            "failure_reason": result.failure_reason,
            "already_verified": result.already_verified,
        }
        try:
            await self.redis_client.set(key, json.dumps(payload), ex=self.lock_ttl_seconds)
        except RedisError as exc:
            # the in-process cache still holds the result; the lock expires with its TTL
            logger.warning("verifier.store_failed", key=key, error=str(exc))

    async def _release(self, key: str) -> None:
        if self.redis_client is None:
            return
        try:
            await self.redis_client.delete(key)
        except RedisError as exc:
            logger.warning("verifier.release_failed", key=key, error=str(exc))

    def _remember(self, fingerprint: str, result: VerificationResult) -> None:
        self._results[fingerprint] = result
        self._results.move_to_end(fingerprint)
        while len(self._results) > self.max_cached_results:
            self._results.popitem(last=False)

    async def claim(self, session: PaymentSession, proof: Mapping[str, str]) -> Optional[VerificationResult]:
        """
        Reserve ``proof`` for verification.

        Returns:
            The earlier result when this proof was already verified, or
            None when the caller now holds the claim and must ``submit``

        Raises:
            VerificationFailed: No transaction id yet, or the idempotency store is unreachable
            DuplicateProof: The same proof is being verified right now
        """
        if not session.transaction_id:
            raise VerificationFailed(
                "cannot verify before the backend issued a transaction id",
                error_code="missing_transaction_id",
                provider=session.method.value if session.method else None,
            )

        fingerprint = proof_fingerprint(session.transaction_id, proof)
        cached = self._results.get(fingerprint)
        if cached is not None:
            logger.info("verifier.duplicate", transaction_id=session.transaction_id, source="memory")
            return cached
        if fingerprint in self._pending:
            raise DuplicateProof(
                "this proof is already being verified",
                error_code="duplicate_proof",
                transaction_id=session.transaction_id,
            )

        lock_key = f"{LOCK_PREFIX}{fingerprint}"
        try:
            acquired = await self._acquire_idempotency_lock(lock_key)
            stored = None if acquired else await self._stored_result(lock_key)
        except RedisError as exc:
            logger.error("verifier.store_unavailable", transaction_id=session.transaction_id, error=str(exc))
            raise VerificationFailed(
                f"idempotency store unavailable: {exc}",
                error_code="idempotency_store_unavailable",
                provider=session.method.value if session.method else None,
                transaction_id=session.transaction_id,
            ) from exc

        if not acquired:
            if stored is None:
                raise DuplicateProof(
                    "this proof is already being verified",
                    error_code="duplicate_proof",
                    transaction_id=session.transaction_id,
                )
            logger.info("verifier.duplicate", transaction_id=session.transaction_id, source="redis")
            self._remember(fingerprint, stored)
            return stored

        self._pending.add(fingerprint)
        return None

    async def release(self, session: PaymentSession, proof: Mapping[str, str]) -> None:
        """Give up a claim without submitting it."""
        fingerprint = proof_fingerprint(session.transaction_id, proof)
        self._pending.discard(fingerprint)
        await self._release(f"{LOCK_PREFIX}{fingerprint}")

    async def submit(self, session: PaymentSession, proof: Mapping[str, str]) -> VerificationResult:
        """
        Send a claimed proof to the backend and record the result.

        Raises:
            VerificationFailed: The backend is unreachable; the claim is released
        """
        fingerprint = proof_fingerprint(session.transaction_id, proof)
        lock_key = f"{LOCK_PREFIX}{fingerprint}"
        request = VerificationRequest(
            user_id=session.user_id,
            items=session.item_payload,
            method=session.method,
            transaction_id=session.transaction_id,
            proof=dict(proof),
        )
        try:
            response = await self.backend.verify(request, auth_token=session.config.auth_token)
        except BackendUnavailable as exc:
            await self._release(lock_key)
            raise VerificationFailed(
                exc.error_message,
                error_code=exc.error_code,
                provider=session.method.value if session.method else None,
                transaction_id=session.transaction_id,
                details=exc.details,
            ) from exc
        except Exception:
            await self._release(lock_key)
            raise
        finally:
            self._pending.discard(fingerprint)

        already_verified = response.already_verified or (
            not response.success and _says_already_verified(response.message)
        )
        success = response.success or already_verified
        result = VerificationResult(
            transaction_id=session.transaction_id,
            success=success,
            failure_reason=None if success else (response.message or "verification rejected"),
            already_verified=already_verified,
        )
        self._remember(fingerprint, result)
        await self._store_result(lock_key, result)

        logger.info(
            "verifier.verified",
            transaction_id=session.transaction_id,
            success=result.success,
            already_verified=result.already_verified,
        )
        return result

    async def verify(self, session: PaymentSession, proof: Mapping[str, str]) -> VerificationResult:
        """
        Verify ``proof`` for the session's transaction.

        A proof seen before returns the earlier result without another
        backend call.

        Raises:
            VerificationFailed: No transaction id, idempotency store or backend unreachable
            DuplicateProof: The same proof is being verified right now
        """
        known = await self.claim(session, proof)
        if known is not None:
            return known
        return await self.submit(session, proof)
