"""
Sales Agent - ConversationService

Purpose: Coordinate per-session conversation context between an ephemeral
cache and the durable conversation store, and drive the sales conversation
stage machine.

Key Features:
- Cache-aside reads: cache first, store on miss, cache repopulated with TTL
- Store-then-cache writes: a failed store write never reaches the cache
- Per-session FIFO serialization of mutations (SessionLockRegistry)
- Forward-only stage progression, NATURAL_END terminal
- Language mirroring through an injected LanguageDetector

Design Patterns:
- Cache-Aside Pattern: Check cache first, load from store on miss
- Capability Interfaces: Store and Cache are independent injected collaborators
- Async Locks: Per-session locks prevent lost updates
- Graceful Degradation: Cache failures fall back to store-only operation
"""

from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
from uuid import uuid4

from salesagent.config.logging_config import get_logger
from salesagent.services.conversation_cache import (
    DEFAULT_SESSION_TTL_SECONDS,
    ConversationCache,
    cache_key,
)
from salesagent.services.conversation_models import (
    DEFAULT_SALES_PERSONA,
    DEFAULT_TIMEZONE,
    MESSAGE_ROLES,
    ConversationContext,
    ConversationStage,
    Language,
    Message,
    utcnow,
)
from salesagent.services.conversation_stage import TERMINAL_STAGE, validate_transition
from salesagent.services.conversation_store import ConversationStore
from salesagent.services.errors import (
    AlreadyExists,
    ConversationError,
    NotFound,
    StorageUnavailable,
)
from salesagent.services.language import LanguageDetector
from salesagent.services.session_locks import SessionLockRegistry

logger = get_logger(__name__)

T = TypeVar("T")

_TICK = timedelta(microseconds=1)


class ConversationService:
    """
    Coordinates conversation contexts for concurrent chat sessions.

    Reads (get_context, get_conversation_analytics) never wait behind the
    mutation queue and may see a cached value up to one TTL old. Every
    mutation runs under the session's lock and reloads the context from the
    store, so it always builds on the latest persisted state.

    Usage:
        service = ConversationService(store=SqlConversationStore(),
                                      cache=InMemoryConversationCache())
        await service.start()

        await service.create_context("s1", customer_id="cust_42", language=Language.EN)
        await service.append_message("s1", "user", "Hi, do you deliver to Penang?")
        await service.set_stage("s1", ConversationStage.DISCOVERY)
        context = await service.get_context("s1")
        await service.end_session("s1")

        await service.stop()
    """

    def __init__(self,
                 store: ConversationStore,
                 cache: Optional[ConversationCache] = None,
                 language_detector: Optional[LanguageDetector] = None,
                 session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
                 default_timezone: str = DEFAULT_TIMEZONE):
        """
        Initialize ConversationService.

        Args:
            store: Durable conversation store
            cache: Optional ephemeral cache (None means store-only)
            language_detector: Optional detector used by process_chat_message
            session_ttl_seconds: Cache TTL for a context (default: 30 minutes)
            default_timezone: Timezone stamped on new conversations
        """
        self._store = store
        self._cache = cache
        self._language_detector = language_detector
        self._ttl_seconds = session_ttl_seconds
        self._default_timezone = default_timezone
        self._locks = SessionLockRegistry()
        # Bumped by every mutation before it writes the store
        self._generations: Dict[str, int] = {}

        logger.info(
            f"🎤 ConversationService initialized: "
            f"ttl={session_ttl_seconds}s, cache={type(cache).__name__ if cache is not None else 'disabled'}, "
            f"language_detection={language_detector is not None}"
        )

    async def start(self) -> None:
        """Start cache background work (if the cache backend has any)."""
        start = getattr(self._cache, "start", None)
        if start is not None:
            await start()
        logger.info("✅ ConversationService started")

    async def stop(self) -> None:
        """Stop cache background work and release cache connections."""
        stop = getattr(self._cache, "stop", None)
        if stop is not None:
            await stop()
        logger.info("✅ ConversationService stopped")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_context(self, session_id: str) -> ConversationContext:
        """
        Get the conversation context for a session.

        Returns the cached context when present and unexpired; otherwise loads
        it from the store and repopulates the cache. Ended sessions are served
        from the store and never re-cached.

        Raises:
            NotFound: Neither cache nor store knows the session
            StorageUnavailable: Cache missed and the store is unreachable
        """
        cached = await self._cache_get(session_id)
        if cached is not None:
            logger.debug(f"🎤 Session {session_id[:8]}... found in cache")
            return cached

        generation = self._generations.get(session_id, 0)
        context = await self._find(session_id)
        if context is None:
            raise NotFound(f"Conversation {session_id} not found", session_id)

        if context.is_active and self._can_cache_read(session_id, generation):
            await self._cache_put(context)
        return context

    async def get_conversation_analytics(self, session_id: str) -> Dict[str, Any]:
        """
        Summary statistics for a conversation.

        Returns:
            Dict with total_messages, messages_by_role, duration_ms, language,
            stage and is_active
        """
        context = await self.get_context(session_id)

        by_role = {role: 0 for role in MESSAGE_ROLES}
        for message in context.messages:
            by_role[message.role] = by_role.get(message.role, 0) + 1

        duration_ms = 0
        if len(context.messages) >= 2:
            elapsed = context.messages[-1].timestamp - context.messages[0].timestamp
            duration_ms = int(elapsed.total_seconds() * 1000)

        return {
            "session_id": context.session_id,
            "total_messages": len(context.messages),
            "messages_by_role": by_role,
            "duration_ms": duration_ms,
            "language": context.language.value,
            "stage": context.conversation_stage.value,
            "is_active": context.is_active,
        }

    # ------------------------------------------------------------------
    # Mutations (serialized per session)
    # ------------------------------------------------------------------

    async def create_context(self,
                             session_id: str,
                             customer_id: Optional[str] = None,
                             language: Language = Language.EN) -> ConversationContext:
        """
        Create a new conversation (stage INTRODUCTION, empty history).

        Raises:
            AlreadyExists: The store already has this session
            StorageUnavailable: Store unreachable
        """
        async def _create() -> ConversationContext:
            if await self._find(session_id) is not None:
                raise AlreadyExists(f"Conversation {session_id} already exists", session_id)
            return await self._create_new(session_id, customer_id, Language(language))

        return await self._exclusive(session_id, _create)

    async def append_message(self,
                             session_id: str,
                             role: str,
                             content: str,
                             metadata: Optional[Dict[str, Any]] = None) -> Message:
        """
        Append a message to a conversation.

        A user message on an unknown session creates the conversation first.

        Args:
            session_id: Session key
            role: 'user', 'assistant' or 'system'
            content: Message text
            metadata: Optional free-form mapping stored with the message

        Returns:
            Message: The appended message

        Raises:
            ValueError: Unknown role
            NotFound: Session unknown and role is not 'user'
            StorageUnavailable: Store unreachable (nothing is cached)
        """
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Invalid message role '{role}' (expected one of {', '.join(MESSAGE_ROLES)})")

        async def _append() -> Message:
            context = await self._find(session_id)
            if context is None:
                if role != "user":
                    raise NotFound(f"Conversation {session_id} not found", session_id)
                context = await self._create_new(session_id, None, Language.EN)

            message = self._append_to(context, role, content, metadata)
            await self._persist(context)

            logger.debug(
                f"💬 Added {role} message to session {session_id[:8]}... "
                f"(length={len(content)} chars, total={len(context.messages)})"
            )
            return message

        return await self._exclusive(session_id, _append)

    async def set_stage(self, session_id: str, new_stage: ConversationStage) -> ConversationContext:
        """
        Move a conversation to a new stage.

        Raises:
            InvalidTransition: new_stage precedes the current stage, or the
                conversation already reached NATURAL_END
            NotFound: Unknown session
            StorageUnavailable: Store unreachable
        """
        new_stage = ConversationStage(new_stage)

        async def _set_stage() -> ConversationContext:
            context = await self._require(session_id)
            validate_transition(context.conversation_stage, new_stage, session_id)

            previous = context.conversation_stage
            context.conversation_stage = new_stage
            self._touch(context)
            await self._persist(context)

            logger.info(f"🔀 Session {session_id[:8]}... stage {previous.value} → {new_stage.value}")
            return context.copy()

        return await self._exclusive(session_id, _set_stage)

    async def update_context(self,
                             session_id: str,
                             *,
                             language: Optional[Language] = None,
                             detected_language_preference: Optional[Language] = None,
                             current_intent: Optional[str] = None) -> ConversationContext:
        """
        Update scalar context fields (language, detected preference, intent).

        Fields left as None are unchanged.
        """
        async def _update() -> ConversationContext:
            context = await self._require(session_id)
            if language is not None:
                context.language = Language(language)
            if detected_language_preference is not None:
                context.detected_language_preference = Language(detected_language_preference)
            if current_intent is not None:
                context.current_intent = current_intent
            self._touch(context)
            await self._persist(context)
            return context.copy()

        return await self._exclusive(session_id, _update)

    async def update_sales_persona(self,
                                   session_id: str,
                                   persona: Dict[str, Any]) -> ConversationContext:
        """
        Merge persona fields (salesperson name, company, promotion, ...) into
        the conversation's sales persona.

        Keys not present in persona keep their current value.

        Raises:
            NotFound: Unknown session
            StorageUnavailable: Store unreachable
        """
        changes = dict(persona)

        async def _update_persona() -> ConversationContext:
            context = await self._require(session_id)
            context.sales_persona = {**context.sales_persona, **changes}
            self._touch(context)
            await self._persist(context)

            logger.info(
                f"🧑‍💼 Updated sales persona for session {session_id[:8]}... "
                f"(fields={', '.join(sorted(changes)) or 'none'})"
            )
            return context.copy()

        return await self._exclusive(session_id, _update_persona)

    async def process_chat_message(self,
                                   session_id: str,
                                   message: str,
                                   customer_id: Optional[str] = None,
                                   language: Optional[Language] = None,
                                   platform: Optional[str] = None,
                                   metadata: Optional[Dict[str, Any]] = None) -> ConversationContext:
        """
        Handle an inbound customer message.

        Gets or creates the conversation, mirrors the customer's language when
        no explicit language is given, and appends the user message. All of it
        is one mutation on the session queue.

        Returns:
            ConversationContext: Context after the message was recorded
        """
        explicit_language = Language(language) if language is not None else None

        async def _process() -> ConversationContext:
            context = await self._find(session_id)
            if context is None:
                context = await self._create_new(
                    session_id, customer_id, explicit_language or Language.EN
                )

            message_language = explicit_language
            if explicit_language is not None:
                context.language = explicit_language
            elif self._language_detector is not None:
                message_language = self._mirror_language(context, message)

            message_metadata: Dict[str, Any] = {"platform": platform}
            if message_language is not None:
                message_metadata["language"] = message_language.value
            message_metadata.update(metadata or {})
            self._append_to(context, "user", message, message_metadata)
            await self._persist(context)

            logger.info(
                f"💬 Processed chat message for session {session_id[:8]}... "
                f"(platform={platform}, language={context.language.value}, "
                f"stage={context.conversation_stage.value})"
            )
            return context.copy()

        return await self._exclusive(session_id, _process)

    async def end_session(self, session_id: str) -> ConversationContext:
        """
        End a conversation: stage NATURAL_END, inactive in the store, evicted
        from the cache.

        Idempotent: ending an already ended session writes nothing.

        Raises:
            NotFound: Unknown session
            StorageUnavailable: Store unreachable
        """
        async def _end() -> ConversationContext:
            context = await self._require(session_id)

            if context.conversation_stage is TERMINAL_STAGE and not context.is_active:
                logger.debug(f"🎤 Session {session_id[:8]}... already ended")
                await self._cache_evict(session_id)
                return context

            context.conversation_stage = TERMINAL_STAGE
            context.is_active = False
            self._touch(context)
            context.ended_at = context.last_activity_at
            self._bump_generation(session_id)
            await self._update_store(context)
            await self._cache_evict(session_id)

            logger.info(f"✅ Ended session {session_id[:8]}... ({len(context.messages)} messages)")
            return context.copy()

        return await self._exclusive(session_id, _end)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _exclusive(self, session_id: str, fn: Callable[[], Awaitable[T]]) -> T:
        return await self._locks.run_exclusive(session_id, fn)

    async def _require(self, session_id: str) -> ConversationContext:
        context = await self._find(session_id)
        if context is None:
            raise NotFound(f"Conversation {session_id} not found", session_id)
        return context

    async def _create_new(self,
                          session_id: str,
                          customer_id: Optional[str],
                          language: Language) -> ConversationContext:
        now = utcnow()
        context = ConversationContext(
            session_id=session_id,
            customer_id=customer_id,
            language=language,
            detected_language_preference=language,
            conversation_stage=ConversationStage.INTRODUCTION,
            last_activity_at=now,
            created_at=now,
            timezone=self._default_timezone,
            sales_persona=dict(DEFAULT_SALES_PERSONA),
        )
        self._bump_generation(session_id)
        created = await self._store_call(session_id, self._store.create(context))
        await self._cache_put(created)

        logger.info(
            f"✅ Created new conversation {session_id[:8]}... "
            f"(customer={customer_id}, language={language.value})"
        )
        return created

    def _mirror_language(self, context: ConversationContext, text: str) -> Language:
        """Record the detected language, switch to it when mirroring applies, and return it."""
        detection = self._language_detector.detect(text)
        context.detected_language_preference = detection.language

        if self._language_detector.should_mirror(text, context.language):
            logger.info(
                f"🌐 Mirroring customer language for session {context.session_id[:8]}...: "
                f"{context.language.value} → {detection.language.value} "
                f"(confidence={detection.confidence:.2f})"
            )
            context.language = detection.language
        return detection.language

    def _bump_generation(self, session_id: str) -> None:
        self._generations[session_id] = self._generations.get(session_id, 0) + 1

    def _can_cache_read(self, session_id: str, generation: int) -> bool:
        """
        Whether a store read may repopulate the cache.

        A read that overlapped a mutation (one queued or running now, or one
        that wrote since the read started) could put an older context back in
        the cache after the mutation refreshed or evicted it.
        """
        if self._locks.pending(session_id) > 0:
            logger.trace(f"🔄 Skipping cache fill for session {session_id[:8]}... (mutation in flight)")
            return False
        if self._generations.get(session_id, 0) != generation:
            logger.trace(f"🔄 Skipping cache fill for session {session_id[:8]}... (written during read)")
            return False
        return True

    @staticmethod
    def _touch(context: ConversationContext) -> datetime:
        """Advance last_activity_at without ever moving it backwards."""
        context.last_activity_at = max(utcnow(), context.last_activity_at)
        return context.last_activity_at

    def _append_to(self,
                   context: ConversationContext,
                   role: str,
                   content: str,
                   metadata: Optional[Dict[str, Any]]) -> Message:
        timestamp = utcnow()
        if context.messages and timestamp <= context.messages[-1].timestamp:
            # Strictly increasing per session so the store can order by timestamp
            timestamp = context.messages[-1].timestamp + _TICK

        message = Message(
            id=str(uuid4()),
            role=role,
            content=content,
            timestamp=timestamp,
            metadata=dict(metadata) if metadata is not None else None,
        )
        context.messages.append(message)
        context.last_activity_at = max(timestamp, context.last_activity_at)
        return message

    async def _persist(self, context: ConversationContext) -> None:
        """Write store first; the cache is refreshed only after the store accepted it."""
        self._bump_generation(context.session_id)
        updated = await self._update_store(context)
        if updated.is_active:
            await self._cache_put(updated)
        else:
            await self._cache_evict(updated.session_id)

    async def _find(self, session_id: str) -> Optional[ConversationContext]:
        return await self._store_call(session_id, self._store.find(session_id))

    async def _update_store(self, context: ConversationContext) -> ConversationContext:
        return await self._store_call(context.session_id, self._store.update(context))

    @staticmethod
    async def _store_call(session_id: str, call: Awaitable[T]) -> T:
        """Await a store call, reporting non-domain failures as StorageUnavailable."""
        try:
            return await call
        except ConversationError:
            raise
        except Exception as e:
            logger.error(f"💥 Store call failed for session {session_id[:8]}...: {e}")
            raise StorageUnavailable(f"Conversation store unavailable: {e}", session_id) from e

    async def _cache_get(self, session_id: str) -> Optional[ConversationContext]:
        if self._cache is None:
            return None
        try:
            payload = await self._cache.get(cache_key(session_id))
            return ConversationContext.from_dict(payload) if payload is not None else None
        except Exception as e:
            logger.warning(f"⚠️ Cache read failed for session {session_id[:8]}..., using store: {e}")
            return None

    async def _cache_put(self, context: ConversationContext) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(cache_key(context.session_id), context.to_dict(), self._ttl_seconds)
        except Exception as e:
            logger.warning(f"⚠️ Cache write failed for session {context.session_id[:8]}...: {e}")
            # An older entry may still be cached; drop it so reads fall through to the store
            await self._cache_evict(context.session_id)

    async def _cache_evict(self, session_id: str) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.delete(cache_key(session_id))
        except Exception as e:
            logger.warning(f"⚠️ Cache eviction failed for session {session_id[:8]}...: {e}")
